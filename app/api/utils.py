from fastapi.responses import JSONResponse
from typing import Any, Optional

def api_response(
    data: Any = None,
    message: Optional[str] = None,
    success: bool = True,
    status_code: int = 200,
    headers: dict = None,
):
    payload = {
        "success": success,
        "message": message,
        "data": data
    }

    return JSONResponse(
        content=payload,
        status_code=status_code,
        headers=headers
    )
