"""
Session authentication for daylog.

JWT issuance and the current-user dependency. The session cookie carries the
user id and whether the session has passed a TOTP check.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Cookie, HTTPException, Response, status

from daylog import config
from daylog.models.auth import SessionUser


def create_jwt(user_id: UUID, mfa: bool = False) -> str:
    """
    Create a JWT for a user session.

    Args:
        user_id: User UUID to encode in the token
        mfa: Whether the session has passed a TOTP check

    Returns:
        Signed JWT string
    """
    expires_at = datetime.now(UTC) + timedelta(hours=config.settings.JWT_EXPIRY_HOURS)
    payload = {
        "sub": str(user_id),
        "mfa": mfa,
        "exp": expires_at,
        "iat": datetime.now(UTC),
    }
    return jwt.encode(payload, config.settings.JWT_SECRET, algorithm=config.settings.JWT_ALGORITHM)


def decode_jwt(token: str) -> dict:
    """
    Decode and verify a JWT.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        return jwt.decode(token, config.settings.JWT_SECRET, algorithms=[config.settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired. Please sign in again.",
        ) from e
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token. Please sign in again.",
        ) from e


def set_session_cookie(response: Response, token: str) -> None:
    """Write the HTTP-only session cookie."""
    response.set_cookie(
        key=config.settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=config.settings.SECURE_COOKIES,
        samesite="lax",
        max_age=config.settings.JWT_EXPIRY_HOURS * 3600,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    # Clear cookie by setting it to expired
    response.set_cookie(
        key=config.settings.SESSION_COOKIE_NAME,
        value="",
        httponly=True,
        secure=config.settings.SECURE_COOKIES,
        samesite="lax",
        max_age=0,
        path="/",
    )


async def get_current_user(session: Annotated[str | None, Cookie()] = None) -> SessionUser:
    """
    FastAPI dependency to get the current authenticated user.

    Args:
        session: JWT from HTTP-only session cookie

    Returns:
        Identity carried by the session

    Raises:
        HTTPException: If authentication fails
    """
    if not session:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated. Please sign in.",
        )

    payload = decode_jwt(session)
    user_id_str = payload.get("sub")
    if not user_id_str:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token. Please sign in again.",
        )

    try:
        user_id = UUID(user_id_str)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token. Please sign in again.",
        ) from e

    return SessionUser(id=user_id, mfa=bool(payload.get("mfa", False)))
