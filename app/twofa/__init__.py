"""
Time-based one-time passwords (RFC 6238) for two-factor authentication.
"""

from .base32 import to_base32, to_buffer
from .totp import (
    ALGO,
    DIGITS,
    KEY_SIZE,
    PERIOD_SECS,
    EncodedKey,
    OtpAuthUrl,
    RawKey,
    TotpFailure,
    TotpResult,
    check,
    gen_key,
    get,
    get_url,
)

# `generate` reads better at call sites outside of tests
generate = get
