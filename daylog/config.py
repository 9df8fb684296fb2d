"""
daylog configuration: all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings from environment variables."""

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")

    # Auth
    JWT_SECRET: str = os.environ.get("JWT_SECRET", "")
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_HOURS: int = int(os.environ.get("JWT_EXPIRY_HOURS", "24"))
    SESSION_COOKIE_NAME: str = "session"

    # Cookies are marked Secure everywhere except local development
    SECURE_COOKIES: bool = _env_bool("SECURE_COOKIES", ENVIRONMENT != "development")

    # CSRF
    CSRF_COOKIE_MAX_AGE: int = int(os.environ.get("CSRF_COOKIE_MAX_AGE", str(60 * 60 * 24)))

    # Rate Limits (window seconds / max requests per window / sweep interval seconds)
    RATE_LIMIT_AUTH_WINDOW_SECONDS: float = float(os.environ.get("RATE_LIMIT_AUTH_WINDOW_SECONDS", "900"))
    RATE_LIMIT_AUTH_MAX_REQUESTS: int = int(os.environ.get("RATE_LIMIT_AUTH_MAX_REQUESTS", "5"))
    RATE_LIMIT_AUTH_CLEANUP_SECONDS: float = float(os.environ.get("RATE_LIMIT_AUTH_CLEANUP_SECONDS", "60"))

    RATE_LIMIT_GENERAL_WINDOW_SECONDS: float = float(os.environ.get("RATE_LIMIT_GENERAL_WINDOW_SECONDS", "900"))
    RATE_LIMIT_GENERAL_MAX_REQUESTS: int = int(os.environ.get("RATE_LIMIT_GENERAL_MAX_REQUESTS", "100"))
    RATE_LIMIT_GENERAL_CLEANUP_SECONDS: float = float(os.environ.get("RATE_LIMIT_GENERAL_CLEANUP_SECONDS", "60"))

    RATE_LIMIT_UPLOAD_WINDOW_SECONDS: float = float(os.environ.get("RATE_LIMIT_UPLOAD_WINDOW_SECONDS", "900"))
    RATE_LIMIT_UPLOAD_MAX_REQUESTS: int = int(os.environ.get("RATE_LIMIT_UPLOAD_MAX_REQUESTS", "20"))
    RATE_LIMIT_UPLOAD_CLEANUP_SECONDS: float = float(os.environ.get("RATE_LIMIT_UPLOAD_CLEANUP_SECONDS", "30"))

    # MFA (TOTP)
    TOTP_WINDOW: int = int(os.environ.get("TOTP_WINDOW", "1"))  # +/- steps of clock drift
    TOTP_ISSUER: str = os.environ.get("TOTP_ISSUER", "daylog")


# Singleton instance
settings = Settings()

if not settings.JWT_SECRET:
    raise RuntimeError("JWT_SECRET environment variable is required")
