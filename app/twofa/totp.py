"""
TOTP (Time-based One-Time Password) generation and verification for 2FA.

Implements RFC 6238 on top of RFC 4226 with a fixed parameter set that
common authenticator apps agree on: HMAC-SHA1, 6 digits, 30 second periods
and 20 byte shared secrets.

The parameters below must never change once keys have been provisioned:
authenticator apps that already hold a key keep computing codes with the
values they were given at enrollment.
"""

import hmac
import io
import re
import secrets
import struct
import time
from datetime import datetime
from enum import Enum
from typing import NewType, Optional, Sequence
from urllib.parse import quote, urlencode

import qrcode
import qrcode.image.svg
from pydantic import BaseModel, Field

from common.log_handler import log
from .base32 import to_base32, to_buffer


# Algorithm to use with `hmac.new`. MS Authenticator is SHA1 only (tested on iOS)
ALGO = "sha1"

# 20 bytes is 160 bits is 32 chars in base32
KEY_SIZE = 20

# How often a new TOTP is generated in seconds
PERIOD_SECS = 30

DIGITS = 6

TOTP_PATTERN = re.compile(r"[0-9]{%d}" % DIGITS)

# Raw shared secret, as fed to HMAC
RawKey = NewType("RawKey", bytes)

# Shared secret as stored and shown to users
EncodedKey = NewType("EncodedKey", str)


class TotpFailure(str, Enum):
    """Why a TOTP was refused."""
    MALFORMED_KEY = "MALFORMED_KEY"
    MALFORMED_TOTP = "MALFORMED_TOTP"
    SPENT_TOTP = "SPENT_TOTP"
    WRONG_TOTP = "WRONG_TOTP"


class TotpResult(BaseModel):
    """Outcome of `check`. `reason` is set only when `ok` is False."""
    ok: bool = Field(..., description="Whether the TOTP was accepted")
    reason: Optional[TotpFailure] = Field(None, description="Failure kind if not accepted")


class OtpAuthUrl(BaseModel):
    """Provisioning URI for a key together with its QR code as SVG markup."""
    url: str
    qr: str


def get(key: RawKey, delta: int = 0, date: Optional[datetime] = None) -> str:
    """
    Returns the TOTP for the given raw key.

    You probably want to use `check` instead. This is exposed mainly for tests
    and tooling.

    Args:
        key: Raw shared secret (already base32 decoded)
        delta: Offset of the time window, e.g. -1 for the previous TOTP, +1 for the next
        date: Timezone aware instant to anchor generation to, defaults to now

    Returns:
        6-digit code, zero padded

    Raises:
        TypeError: If the key is a string rather than bytes
        ValueError: If date is a naive datetime
    """
    if isinstance(key, str):
        raise TypeError(
            "TOTP key must be raw bytes, not str. Decode the base32 secret with to_buffer() first"
        )

    if date is not None and date.utcoffset() is None:
        raise ValueError("date must be timezone aware, e.g. datetime.now(timezone.utc)")

    now = date.timestamp() if date is not None else time.time()
    counter = delta + int(now // PERIOD_SECS)

    # the counter is an unsigned 64-bit integer, earlier instants wrap around
    digest = hmac.new(key, struct.pack(">Q", counter & 0xFFFFFFFFFFFFFFFF), ALGO).digest()

    # dynamic truncation, RFC 4226 section 5.3
    i = digest[-1] & 0x0F
    code = struct.unpack(">I", digest[i:i + 4])[0] & 0x7FFFFFFF

    return str(code % 10 ** DIGITS).zfill(DIGITS)


def check(
    key: EncodedKey,
    totp: str,
    spent: Sequence[str],
    date: Optional[datetime] = None,
) -> TotpResult:
    """
    Check whether the given TOTP is valid for the key at call time.
    Accepts the current TOTP and the one from the previous period, never the next one.

    The caller is responsible for resisting TOTP reuse: save the last two
    successfully used TOTPs (in storage shared across application instances)
    and pass them as `spent` on every check. A TOTP found there is refused.

    `date` is meant for automated tests only. Applications should leave it unset.

    Args:
        key: Base32 encoded shared secret
        totp: The TOTP to check
        spent: At least the two most recently accepted TOTPs for this key
        date: Instant to check against, defaults to now

    Returns:
        TotpResult with ok=True, or ok=False and the failure reason

    Raises:
        ValueError: If fewer than two spent TOTPs are given, or date is naive
        TypeError: If spent is a single string
    """
    if isinstance(spent, str):
        raise TypeError("spent must be a sequence of TOTP strings, not a single string")
    if len(spent) < 2:
        raise ValueError(
            f"check() needs the last two successfully used TOTPs to prevent replay, got {len(spent)}"
        )
    if date is not None and date.utcoffset() is None:
        raise ValueError("date must be timezone aware, e.g. datetime.now(timezone.utc)")

    k = to_buffer(key)
    if k is None:
        log.debug("TOTP check failed: key is not valid base32")
        return TotpResult(ok=False, reason=TotpFailure.MALFORMED_KEY)

    if not isinstance(totp, str) or not TOTP_PATTERN.fullmatch(totp):
        return TotpResult(ok=False, reason=TotpFailure.MALFORMED_TOTP)

    if totp in spent:
        log.debug("TOTP check failed: TOTP already used")
        return TotpResult(ok=False, reason=TotpFailure.SPENT_TOTP)

    curr = get(RawKey(k), 0, date)
    prev = get(RawKey(k), -1, date)

    # always compare against both windows
    matches_curr = hmac.compare_digest(totp, curr)
    matches_prev = hmac.compare_digest(totp, prev)
    if matches_curr or matches_prev:
        return TotpResult(ok=True)

    return TotpResult(ok=False, reason=TotpFailure.WRONG_TOTP)


def gen_key() -> EncodedKey:
    """Returns a new base32 encoded TOTP shared secret from the OS CSPRNG."""
    key = secrets.token_bytes(KEY_SIZE)
    return EncodedKey(to_base32(key))


def get_url(key: EncodedKey, issuer: str, label: str) -> OtpAuthUrl:
    """
    Returns an `otpauth` URL for the given key along with a QR code as a
    string of `<svg />`. The QR code can be displayed as a data url with the
    prefix `data:image/svg+xml;utf8,`.

    The `issuer` should be both machine and human friendly; use e.g.
    "exam-registry" instead of "Exam Registry:". MS Authenticator swaps spaces
    for pluses here, along with other weirdness.

    The label should be the user account name; spaces render correctly there,
    so "Jane Doe", "jdoe" and "jane@example.com" are all fine.

    Only `secret` and `issuer` are put in the URL. Some apps mishandle the
    algorithm, digits and period parameters, so the defaults are relied upon.
    """
    query = urlencode({"secret": key, "issuer": issuer})
    url = f"otpauth://totp/{quote(label, safe='@:')}?{query}"

    img = qrcode.make(url, image_factory=qrcode.image.svg.SvgPathImage, border=0)
    buf = io.BytesIO()
    img.save(buf)

    return OtpAuthUrl(url=url, qr=buf.getvalue().decode("utf-8"))
