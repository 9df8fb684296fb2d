"""
Repository for TOTP secrets.

Secrets belong to the user account. This in-memory store stands in for the
account table; swap it for a database-backed repo with the same methods to
persist enrolments across restarts.
"""

from __future__ import annotations

import threading
from uuid import UUID


class MfaSecretRepo:
    """
    TOTP secrets per user.

    A secret starts as pending when the user begins enrolment and becomes
    active once they prove their authenticator produces matching codes.
    Secrets are never edited in place; rotation stores a new one.

    The time step of the last accepted code is kept per user so a code
    cannot be used twice.
    """

    def __init__(self):
        self._pending: dict[UUID, str] = {}
        self._active: dict[UUID, str] = {}
        self._last_counter: dict[UUID, int] = {}
        self._lock = threading.Lock()

    async def set_pending(self, user_id: UUID, secret: str) -> None:
        """Store a secret awaiting confirmation, replacing any earlier one."""
        with self._lock:
            self._pending[user_id] = secret

    async def get_pending(self, user_id: UUID) -> str | None:
        with self._lock:
            return self._pending.get(user_id)

    async def activate(self, user_id: UUID, counter: int) -> bool:
        """
        Promote the pending secret to active.

        Args:
            user_id: User UUID
            counter: Time step of the code that confirmed the enrolment

        Returns:
            True if there was a pending secret to promote
        """
        with self._lock:
            secret = self._pending.pop(user_id, None)
            if secret is None:
                return False
            self._active[user_id] = secret
            self._last_counter[user_id] = counter
            return True

    async def get_active(self, user_id: UUID) -> str | None:
        with self._lock:
            return self._active.get(user_id)

    async def is_enabled(self, user_id: UUID) -> bool:
        with self._lock:
            return user_id in self._active

    async def record_use(self, user_id: UUID, counter: int) -> bool:
        """
        Mark a time step as used for the active secret.

        Returns:
            False if a code from this step or a later one was already accepted
        """
        with self._lock:
            last = self._last_counter.get(user_id)
            if last is not None and counter <= last:
                return False
            self._last_counter[user_id] = counter
            return True

    async def disable(self, user_id: UUID) -> bool:
        """
        Remove the user's active and pending secrets.

        Returns:
            True if MFA was enabled
        """
        with self._lock:
            self._pending.pop(user_id, None)
            self._last_counter.pop(user_id, None)
            return self._active.pop(user_id, None) is not None
