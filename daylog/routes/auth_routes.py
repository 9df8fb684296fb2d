"""Authentication routes: CSRF tokens, sessions and TOTP multi-factor auth."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status

from daylog import config
from daylog.auth import clear_session_cookie, create_jwt, get_current_user, set_session_cookie
from daylog.middleware.csrf import generate_csrf_token, require_csrf, set_csrf_token
from daylog.middleware.rate_limit import rate_limit
from daylog.models.auth import (
    CsrfTokenResponse,
    LogoutResponse,
    MeResponse,
    MfaCodeRequest,
    MfaSetupResponse,
    MfaStatusResponse,
    SessionUser,
)
from daylog.repos.mfa_secret_repo import MfaSecretRepo
from daylog.services.totp import TotpInputError, generate_secret, match_code, provisioning_uri

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])
mfa_secret_repo = MfaSecretRepo()

_mfa_guards = [Depends(rate_limit("auth")), Depends(require_csrf)]


def _matched_counter(secret: str, code: str) -> int | None:
    """Time step a TOTP code belongs to, turning a corrupt stored secret into a 500."""
    try:
        return match_code(secret, code, window=config.settings.TOTP_WINDOW)
    except TotpInputError as e:
        logger.exception("Stored TOTP secret could not be used")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="MFA is misconfigured for this account. Please contact support.",
        ) from e


async def _accept_active_code(user_id: UUID, secret: str, code: str) -> None:
    """
    Check a code against the active secret and consume its time step.

    Raises:
        HTTPException: 401 if the code is wrong or was already used
    """
    counter = _matched_counter(secret, code)
    if counter is None:
        raise _invalid_code()
    if not await mfa_secret_repo.record_use(user_id, counter):
        logger.warning("Rejected reused MFA code for user %s", user_id)
        raise _invalid_code()


def _invalid_code() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication code.",
    )


@router.get("/csrf", status_code=200, dependencies=[Depends(rate_limit("general"))])
async def issue_csrf_token_endpoint(response: Response) -> CsrfTokenResponse:
    """
    Issue a CSRF token.

    Sets the token cookie; the page sends the same value back in the
    X-CSRF-Token header on state-changing requests.
    """
    token = generate_csrf_token()
    set_csrf_token(response, token)
    return CsrfTokenResponse(csrf_token=token)


@router.get("/me", status_code=200, dependencies=[Depends(rate_limit("general"))])
async def get_current_user_endpoint(
    user: SessionUser = Depends(get_current_user),
) -> MeResponse:
    """
    Get the current authenticated user.

    Requires valid session cookie.
    """
    return MeResponse(
        user_id=user.id,
        mfa_enabled=await mfa_secret_repo.is_enabled(user.id),
        mfa_verified=user.mfa,
    )


@router.post(
    "/logout",
    status_code=200,
    dependencies=[Depends(rate_limit("general")), Depends(require_csrf)],
)
async def logout_endpoint(response: Response) -> LogoutResponse:
    """
    Logout the current user.

    Clears the session cookie.
    """
    clear_session_cookie(response)
    return LogoutResponse()


@router.post("/mfa/setup", status_code=200, dependencies=_mfa_guards)
async def mfa_setup_endpoint(
    user: SessionUser = Depends(get_current_user),
) -> MfaSetupResponse:
    """
    Start TOTP enrolment.

    Generates a pending secret; it only takes effect after /mfa/confirm.
    """
    if await mfa_secret_repo.is_enabled(user.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="MFA is already enabled. Disable it before enrolling again.",
        )

    secret = generate_secret()
    await mfa_secret_repo.set_pending(user.id, secret)
    logger.info("MFA enrolment started for user %s", user.id)

    return MfaSetupResponse(
        secret=secret,
        provisioning_uri=provisioning_uri(secret, str(user.id), config.settings.TOTP_ISSUER),
    )


@router.post("/mfa/confirm", status_code=200, dependencies=_mfa_guards)
async def mfa_confirm_endpoint(
    req: MfaCodeRequest,
    response: Response,
    user: SessionUser = Depends(get_current_user),
) -> MfaStatusResponse:
    """Activate the pending secret once the user proves their app produces matching codes."""
    secret = await mfa_secret_repo.get_pending(user.id)
    if secret is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No MFA enrolment in progress.",
        )

    counter = _matched_counter(secret, req.code)
    if counter is None:
        raise _invalid_code()

    await mfa_secret_repo.activate(user.id, counter)
    set_session_cookie(response, create_jwt(user.id, mfa=True))
    logger.info("MFA enabled for user %s", user.id)

    return MfaStatusResponse(mfa_enabled=True, message="Multi-factor authentication enabled.")


@router.post("/mfa/verify", status_code=200, dependencies=_mfa_guards)
async def mfa_verify_endpoint(
    req: MfaCodeRequest,
    response: Response,
    user: SessionUser = Depends(get_current_user),
) -> MfaStatusResponse:
    """
    Complete sign-in with a TOTP code.

    Reissues the session cookie marked as MFA-verified.
    """
    secret = await mfa_secret_repo.get_active(user.id)
    if secret is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="MFA is not enabled for this account.",
        )

    await _accept_active_code(user.id, secret, req.code)

    set_session_cookie(response, create_jwt(user.id, mfa=True))
    return MfaStatusResponse(mfa_enabled=True, message="Authentication code accepted.")


@router.post("/mfa/disable", status_code=200, dependencies=_mfa_guards)
async def mfa_disable_endpoint(
    req: MfaCodeRequest,
    response: Response,
    user: SessionUser = Depends(get_current_user),
) -> MfaStatusResponse:
    """Turn MFA off. Requires a current code so a stolen session alone cannot do it."""
    secret = await mfa_secret_repo.get_active(user.id)
    if secret is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="MFA is not enabled for this account.",
        )

    await _accept_active_code(user.id, secret, req.code)

    await mfa_secret_repo.disable(user.id)
    set_session_cookie(response, create_jwt(user.id, mfa=False))
    logger.info("MFA disabled for user %s", user.id)

    return MfaStatusResponse(mfa_enabled=False, message="Multi-factor authentication disabled.")
