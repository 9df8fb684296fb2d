"""
Pydantic models for daylog.

All data shapes defined here. No imports from repos or routes.
"""

from daylog.models.auth import (
    CsrfTokenResponse,
    LogoutResponse,
    MeResponse,
    MfaCodeRequest,
    MfaSetupResponse,
    MfaStatusResponse,
    SessionUser,
)

__all__ = [
    "SessionUser",
    "MeResponse",
    "CsrfTokenResponse",
    "MfaSetupResponse",
    "MfaCodeRequest",
    "MfaStatusResponse",
    "LogoutResponse",
]
