"""
CSRF protection using the double-submit cookie pattern.

The token lives only in a script-readable cookie. Pages echo it back in the
X-CSRF-Token header (or a form field of the same name as the cookie) on every
state-changing request; a request is accepted only when both copies match.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from collections.abc import Mapping
from typing import Any

from fastapi import HTTPException, Request, Response, status

from daylog import config

logger = logging.getLogger(__name__)

CSRF_TOKEN_NAME = "daylog_csrf_token"
CSRF_HEADER_NAME = "x-csrf-token"

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def generate_csrf_token() -> str:
    """Return a new token: 32 random bytes as a 64 character hex string."""
    return secrets.token_hex(32)


def set_csrf_token(
    response: Response,
    token: str,
    *,
    secure: bool | None = None,
    max_age: int | None = None,
) -> None:
    """
    Store the token in the CSRF cookie.

    The cookie is deliberately not HttpOnly: page scripts must read it to
    send it back in the header.
    """
    if secure is None:
        secure = config.settings.SECURE_COOKIES
    if max_age is None:
        max_age = config.settings.CSRF_COOKIE_MAX_AGE

    response.set_cookie(
        key=CSRF_TOKEN_NAME,
        value=token,
        httponly=False,
        secure=secure,
        samesite="strict",
        max_age=max_age,
        path="/",
    )


def get_csrf_token(cookies: Mapping[str, str]) -> str | None:
    """Read the token from a cookie mapping; None when absent or empty."""
    return cookies.get(CSRF_TOKEN_NAME) or None


def validate_csrf_token(
    request: Request,
    cookies: Mapping[str, str],
    form_data: Mapping[str, Any] | None = None,
) -> bool:
    """
    Check the token submitted with a request against the cookie copy.

    Args:
        request: Incoming request; the X-CSRF-Token header is checked first
        cookies: Cookie store holding the issued token
        form_data: Parsed form body, used when the header is missing

    Returns:
        True only if a cookie token exists, a submitted token was found,
        and the two are identical
    """
    stored = get_csrf_token(cookies)
    if not stored:
        return False

    submitted = request.headers.get(CSRF_HEADER_NAME)
    if not submitted and form_data is not None:
        value = form_data.get(CSRF_TOKEN_NAME)
        submitted = value if isinstance(value, str) else None

    if not submitted:
        return False

    return hmac.compare_digest(stored.encode(), submitted.encode())


async def require_csrf(request: Request) -> None:
    """
    FastAPI dependency rejecting unsafe requests without a matching token.

    Raises:
        HTTPException: 403 if the token is missing or does not match
    """
    if request.method in SAFE_METHODS:
        return

    form_data = None
    content_type = request.headers.get("content-type", "").lower()
    if not request.headers.get(CSRF_HEADER_NAME) and content_type.startswith(_FORM_CONTENT_TYPES):
        form_data = await request.form()

    if not validate_csrf_token(request, request.cookies, form_data):
        logger.warning("CSRF validation failed for %s %s", request.method, request.url.path)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or missing CSRF token.",
        )
