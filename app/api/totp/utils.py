from fastapi import Request
import os
import secrets
from common.log_handler import log
from ..utils import api_response

async def authorize_admin(token: str, request: Request):
    admin_secret = os.getenv("ADMIN_SECRET")
    if not admin_secret or not secrets.compare_digest(token.encode(), admin_secret.encode()):
        log.warning(f"Unauthorized admin request to {request.url.path} from {request.client.host}")
        return api_response(message="Unauthorized", success=False, status_code=401)
    return True
