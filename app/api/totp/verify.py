from ..router import router
from common.log_handler import log
from fastapi import Request
from database.models import get_session
from database.utils import fetch_credential, mark_totp_spent
from twofa import check, TotpFailure, TotpResult
from ..utils import api_response
from ..rate_limiter import limiter, VERIFY_RATE_LIMIT
from ..schemas import TotpVerifyRequest, TotpVerifyResponse


FAILURE_RESPONSES = {
    TotpFailure.MALFORMED_TOTP: ("TOTP code must be exactly 6 digits", 400),
    TotpFailure.SPENT_TOTP: ("TOTP code has already been used", 401),
    TotpFailure.WRONG_TOTP: ("Invalid TOTP code", 401),
    TotpFailure.MALFORMED_KEY: ("Stored secret is corrupt", 500),
}


@router.post("/totp/verify", response_model=TotpVerifyResponse)
@limiter.limit(VERIFY_RATE_LIMIT)
async def verify_totp(request: Request, body: TotpVerifyRequest):
    """
    Verify a TOTP code for an enrolled credential.

    Accepts the code of the current and of the previous 30 second period.
    The two most recently accepted codes are refused, so a code can be used
    only once. An accepted code is recorded in the same transaction.

    Args:
        request (Request): HTTP request object (for rate limiting and IP logging)
        body (TotpVerifyRequest): Label and the TOTP code to check

    Returns:
        dict: JSON response with the check result in data

    Responses:
        200: TOTP accepted
        400: TOTP code is not 6 digits (MALFORMED_TOTP)
        401: TOTP code already used (SPENT_TOTP) or wrong (WRONG_TOTP)
        404: Credential not found
        429: Too many verification attempts
        500: Stored secret is not valid base32 (MALFORMED_KEY)
    """
    async with get_session() as session:
        credential = await fetch_credential(session, body.label, for_update=True)
        if not credential:
            log.warning(f"TOTP verification for unknown label '{body.label}' from {request.client.host}")
            return api_response(message="Credential not found", success=False, status_code=404)

        result = check(credential.totp_secret, body.totp_code, credential.spent_totps())

        if result.ok and not await mark_totp_spent(session, credential, body.totp_code):
            # a concurrent request accepted the same code first
            result = TotpResult(ok=False, reason=TotpFailure.SPENT_TOTP)

        if result.ok:
            log.info(f"TOTP verified for '{body.label}' from {request.client.host}")
            return api_response(message="TOTP accepted", data=result.model_dump(mode="json", exclude_none=True))

    message, status_code = FAILURE_RESPONSES[result.reason]
    if result.reason == TotpFailure.MALFORMED_KEY:
        log.error(f"Stored TOTP secret for '{body.label}' is not valid base32")
    else:
        log.warning(f"TOTP verification failed for '{body.label}' from {request.client.host}: {result.reason.value}")
    return api_response(
        message=message,
        data=result.model_dump(mode="json", exclude_none=True),
        success=False,
        status_code=status_code,
    )
