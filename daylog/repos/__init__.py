"""
Repository layer for daylog.

Account-owned state used by the security layer lives here.
"""

from daylog.repos.mfa_secret_repo import MfaSecretRepo

__all__ = [
    "MfaSecretRepo",
]
