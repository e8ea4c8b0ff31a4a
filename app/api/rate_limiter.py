from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from common.log_handler import log
from .utils import api_response
import slowapi
import os

limiter = slowapi.Limiter(
    key_func=get_remote_address,
    enabled=os.getenv("RATE_LIMIT_ENABLED", "TRUE").upper() == "TRUE",
)

VERIFY_RATE_LIMIT = os.getenv("TOTP_VERIFY_RATE_LIMIT", "10/minute")


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    log.warning(f"Rate limit exceeded on {request.url.path} from {request.client.host}: {exc.detail}")
    return api_response(message="Too many requests", success=False, status_code=429)
