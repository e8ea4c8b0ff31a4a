from api.router import router
from api.totp import manage_credentials, verify

@router.get("/")
async def index():
    return {"message": "Why are you here?"}
