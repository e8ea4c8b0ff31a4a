from ..router import router
from common.log_handler import log
from fastapi import Request
from database.models import get_session, Credentials
from database.utils import fetch_credential
from sqlalchemy.exc import IntegrityError
from twofa import gen_key, get_url
import os
from ..utils import api_response
from ..schemas import TotpEnrollRequest, TotpEnrollResponse, AdminResponse
from .utils import authorize_admin


DEFAULT_ISSUER = os.getenv("TOTP_ISSUER", "twofa")


@router.post("/totp/enroll", response_model=TotpEnrollResponse)
async def enroll_credential(body: TotpEnrollRequest, token: str, request: Request):
    """
    Enroll a new TOTP credential.

    Generates a fresh shared secret for the label and returns it together with
    the otpauth:// provisioning URI and a QR code of it. The secret is shown
    only once; it cannot be fetched again later. Requires admin authentication.

    Args:
        body (TotpEnrollRequest): Label and optional issuer
        token (str): Admin authentication token
        request (Request): HTTP request object (for client IP logging)

    Returns:
        dict: JSON response with secret, url and qr

    Responses:
        200: Credential enrolled
        401: Unauthorized or invalid token
        409: A credential with this label already exists
    """
    auth = await authorize_admin(token, request)
    if auth is not True:
        return auth

    async with get_session() as session:
        if await fetch_credential(session, body.label):
            return api_response(message="Credential already exists", success=False, status_code=409)

        secret = gen_key()
        session.add(Credentials(label=body.label, totp_secret=secret))
        try:
            await session.commit()
        except IntegrityError:
            # lost a race against a concurrent enrollment
            await session.rollback()
            return api_response(message="Credential already exists", success=False, status_code=409)

    provisioning = get_url(secret, body.issuer or DEFAULT_ISSUER, body.label)
    log.info(f"Enrolled TOTP credential '{body.label}' by admin {request.client.host}")
    return api_response(
        message="Credential enrolled",
        data={"secret": secret, "url": provisioning.url, "qr": provisioning.qr},
    )


@router.delete("/totp/{label}", response_model=AdminResponse)
async def revoke_credential(label: str, token: str, request: Request):
    """
    Permanently remove a TOTP credential.

    Responses:
        200: Credential removed
        401: Unauthorized or invalid token
        404: Credential not found
    """
    auth = await authorize_admin(token, request)
    if auth is not True:
        return auth
    async with get_session() as session:
        credential = await fetch_credential(session, label)
        if not credential:
            return api_response(message="Credential not found", success=False, status_code=404)
        await session.delete(credential)
        await session.commit()
    log.info(f"Revoked TOTP credential '{label}' by admin {request.client.host}")
    return api_response(message="Credential revoked")
