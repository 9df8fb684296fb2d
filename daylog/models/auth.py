"""Authentication models for sessions, CSRF tokens and MFA."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SessionUser(BaseModel):
    """Identity carried by the session cookie."""

    id: UUID
    mfa: bool = False


class MeResponse(BaseModel):
    """Who the session belongs to."""

    user_id: UUID
    mfa_enabled: bool
    mfa_verified: bool


class CsrfTokenResponse(BaseModel):
    """A freshly issued CSRF token, also set as a cookie."""

    csrf_token: str


class MfaSetupResponse(BaseModel):
    """Pending TOTP secret for the user to add to an authenticator app."""

    secret: str
    provisioning_uri: str


class MfaCodeRequest(BaseModel):
    """A TOTP code typed by the user."""

    model_config = ConfigDict(extra="forbid")

    code: str = Field(..., min_length=1, max_length=16)


class MfaStatusResponse(BaseModel):
    """MFA state after an enrolment change or verification."""

    mfa_enabled: bool
    message: str


class LogoutResponse(BaseModel):
    """Response after logout."""

    message: str = "Logged out successfully"
