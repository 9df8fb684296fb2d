"""
TOTP (RFC 6238) one-time passwords for multi-factor authentication.

Codes are HMAC-SHA1 over a 30 second time step, 6 digits long, which is what
standard authenticator apps expect.

Usage:
    secret = generate_secret()            # store against the user
    uri = provisioning_uri(secret, "ada@example.com", "daylog")  # QR code
    validate_code(secret, "123456")       # True / False
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import math
import secrets
import struct
import time
from urllib.parse import quote, urlencode

TIME_STEP_SECONDS = 30
CODE_DIGITS = 6
SECRET_BYTES = 20  # 160 bits, the RFC 4226 recommendation
MAX_COUNTER = 2**64  # counters are packed as unsigned 64-bit integers


class TotpInputError(ValueError):
    """Raised for input the TOTP engine cannot compute a code from."""


class InvalidSecretError(TotpInputError):
    """Raised when a stored secret is not valid base32."""


class InvalidTimeError(TotpInputError):
    """Raised when a timestamp does not map to a usable time step."""


def encode_base32(data: bytes) -> str:
    """Base32-encode bytes as lowercase without padding ("hello" -> "nbswy3dp")."""
    return base64.b32encode(data).decode("ascii").rstrip("=").lower()


def decode_base32(value: str) -> bytes:
    """
    Decode base32 leniently: any case, spaces allowed, padding optional.

    Raises:
        InvalidSecretError: If the value is not a string, is empty or is not
            valid base32
    """
    if not isinstance(value, str):
        raise InvalidSecretError("Secret must be a string")

    cleaned = value.replace(" ", "").upper().rstrip("=")
    if not cleaned:
        raise InvalidSecretError("Secret is empty")

    padding = "=" * (-len(cleaned) % 8)
    try:
        return base64.b32decode(cleaned + padding)
    except (binascii.Error, ValueError) as e:
        raise InvalidSecretError("Secret is not valid base32") from e


def generate_secret() -> str:
    """Return a new random secret as uppercase base32 without padding."""
    return encode_base32(secrets.token_bytes(SECRET_BYTES)).upper()


def _hotp(key: bytes, counter: int) -> str:
    digest = hmac.new(key, struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    value = struct.unpack(">I", digest[offset : offset + 4])[0] & 0x7FFFFFFF
    return str(value % 10**CODE_DIGITS).zfill(CODE_DIGITS)


def _counter(for_time: float | None) -> int:
    """
    Time step for a Unix timestamp.

    Raises:
        InvalidTimeError: If the timestamp is not a finite number or falls
            outside the unsigned 64-bit counter range
    """
    if for_time is None:
        for_time = time.time()
    if isinstance(for_time, bool) or not isinstance(for_time, (int, float)):
        raise InvalidTimeError("Timestamp must be a number")
    if isinstance(for_time, float) and not math.isfinite(for_time):
        raise InvalidTimeError("Timestamp must be finite")

    counter = int(for_time // TIME_STEP_SECONDS)
    if not 0 <= counter < MAX_COUNTER:
        raise InvalidTimeError("Timestamp is outside the supported range")
    return counter


def generate_code(secret: str, for_time: float | None = None) -> str:
    """
    Derive the code for a secret at a moment in time.

    Args:
        secret: Base32 secret
        for_time: Unix timestamp in seconds (defaults to now)

    Returns:
        Zero-padded 6 digit code

    Raises:
        InvalidSecretError: If the secret cannot be decoded
        InvalidTimeError: If the timestamp has no valid time step
    """
    return _hotp(decode_base32(secret), _counter(for_time))


def match_code(
    secret: str,
    code: str,
    window: int = 1,
    for_time: float | None = None,
) -> int | None:
    """
    Find the time step a submitted code belongs to.

    Returns:
        The matching counter within `window` steps of now, or None when the
        code is wrong, empty or malformed

    Raises:
        TotpInputError: If the secret or timestamp is unusable
    """
    key = decode_base32(secret)
    counter = _counter(for_time)

    if not isinstance(code, str):
        return None
    code = code.strip()
    if len(code) != CODE_DIGITS or not code.isascii() or not code.isdigit():
        return None

    for step in range(counter - window, counter + window + 1):
        if 0 <= step < MAX_COUNTER and hmac.compare_digest(_hotp(key, step), code):
            return step
    return None


def validate_code(
    secret: str,
    code: str,
    window: int = 1,
    for_time: float | None = None,
) -> bool:
    """
    Check a submitted code, accepting up to `window` steps of clock drift.

    Args:
        secret: Base32 secret
        code: Code typed by the user
        window: Number of 30s steps tolerated either side of now
        for_time: Unix timestamp to validate at (defaults to now)

    Returns:
        True if the code matches any step in the window, False otherwise
        (including empty or malformed codes)

    Raises:
        InvalidSecretError: If the secret cannot be decoded. A corrupt secret
            is not the same thing as a wrong code.
        InvalidTimeError: If the timestamp has no valid time step
    """
    return match_code(secret, code, window, for_time) is not None


def provisioning_uri(secret: str, account_name: str, issuer: str) -> str:
    """Build the otpauth:// URI that authenticator apps read from a QR code."""
    label = quote(f"{issuer}:{account_name}", safe=":@")
    params = urlencode(
        {
            "secret": secret,
            "issuer": issuer,
            "algorithm": "SHA1",
            "digits": CODE_DIGITS,
            "period": TIME_STEP_SECONDS,
        }
    )
    return f"otpauth://totp/{label}?{params}"
