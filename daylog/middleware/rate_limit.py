"""
In-memory rate limiting for daylog requests.

Fixed-window counters per key (client IP + route path). Each limiter owns a
background sweep task that evicts expired windows; admission never depends on
the sweep having run. For a single process only; a shared store such as Redis
would be needed to limit across workers.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from email.utils import formatdate

from fastapi import HTTPException, Request, Response, status

from daylog import config

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass
class RateWindow:
    """Request count for one key within its current window."""

    count: int
    reset_time: float


@dataclass(frozen=True)
class RateDecision:
    """Outcome of a single admission check."""

    allowed: bool
    reset_time: float
    remaining: int


class RateLimiter:
    """
    Fixed-window rate limiter.

    Each key gets max_requests per window_seconds. The counter resets when the
    window ends, so up to 2 * max_requests can land across a window boundary.

    Usage:
        limiter = RateLimiter(window_seconds=60, max_requests=5)
        limiter.start()  # inside a running event loop
        if not limiter.is_allowed("203.0.113.7:/auth/mfa/verify").allowed:
            raise HTTPException(status_code=429)
        await limiter.close()
    """

    def __init__(
        self,
        window_seconds: float,
        max_requests: int,
        cleanup_interval_seconds: float = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._clock = clock
        self._store: dict[str, RateWindow] = {}
        self._lock = threading.Lock()
        self._sweep_task: asyncio.Task | None = None
        self._closed = False

    def now(self) -> float:
        """Current time on the limiter's clock."""
        return self._clock()

    def is_allowed(self, key: str) -> RateDecision:
        """
        Count a request against key and decide whether it may proceed.

        Args:
            key: Opaque identifier, usually "<client ip>:<route path>"

        Returns:
            RateDecision with the window's reset time and remaining budget
        """
        now = self.now()

        with self._lock:
            entry = self._store.get(key)

            if entry is None or now >= entry.reset_time:
                entry = RateWindow(count=1, reset_time=now + self.window_seconds)
                self._store[key] = entry
                return RateDecision(
                    allowed=True,
                    reset_time=entry.reset_time,
                    remaining=self.max_requests - 1,
                )

            if entry.count >= self.max_requests:
                return RateDecision(allowed=False, reset_time=entry.reset_time, remaining=0)

            entry.count += 1
            return RateDecision(
                allowed=True,
                reset_time=entry.reset_time,
                remaining=self.max_requests - entry.count,
            )

    def reset(self, key: str) -> None:
        """Drop the window for a key (administrative override)."""
        with self._lock:
            self._store.pop(key, None)

    def cleanup(self) -> int:
        """
        Remove every window whose reset time has passed.

        Returns:
            Number of windows removed
        """
        now = self.now()
        with self._lock:
            expired = [key for key, entry in self._store.items() if entry.reset_time <= now]
            for key in expired:
                del self._store[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._store)

    def start(self) -> None:
        """
        Start the periodic sweep. Must be called from a running event loop.

        Calling start() on a running limiter is a no-op. A closed limiter
        cannot be restarted.
        """
        if self._closed:
            raise RuntimeError("RateLimiter has been closed")
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def close(self) -> None:
        """Stop the sweep and forget all windows. Safe to call more than once."""
        self._closed = True
        task, self._sweep_task = self._sweep_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                logger.debug("Rate limit sweep stopped")
        with self._lock:
            self._store.clear()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval_seconds)
            try:
                removed = self.cleanup()
                if removed:
                    logger.debug("Evicted %d expired rate limit windows", removed)
            except Exception:
                logger.exception("Error in rate limit sweep")


@dataclass
class RateLimiters:
    """The limiters the request pipeline uses, keyed by traffic class."""

    auth: RateLimiter
    general: RateLimiter
    upload: RateLimiter

    def __getitem__(self, name: str) -> RateLimiter:
        if name not in ("auth", "general", "upload"):
            raise KeyError(name)
        return getattr(self, name)

    def all(self) -> list[RateLimiter]:
        return [self.auth, self.general, self.upload]

    def start(self) -> None:
        for limiter in self.all():
            limiter.start()

    async def close(self) -> None:
        for limiter in self.all():
            await limiter.close()


def build_rate_limiters(
    settings: config.Settings | None = None,
    clock: Callable[[], float] = time.time,
) -> RateLimiters:
    """
    Build the auth, general and upload limiters from settings.

    Called once while constructing the app; the result is stored on
    app.state and handed to the rate_limit() dependency.
    """
    settings = settings or config.settings
    return RateLimiters(
        auth=RateLimiter(
            settings.RATE_LIMIT_AUTH_WINDOW_SECONDS,
            settings.RATE_LIMIT_AUTH_MAX_REQUESTS,
            settings.RATE_LIMIT_AUTH_CLEANUP_SECONDS,
            clock=clock,
        ),
        general=RateLimiter(
            settings.RATE_LIMIT_GENERAL_WINDOW_SECONDS,
            settings.RATE_LIMIT_GENERAL_MAX_REQUESTS,
            settings.RATE_LIMIT_GENERAL_CLEANUP_SECONDS,
            clock=clock,
        ),
        upload=RateLimiter(
            settings.RATE_LIMIT_UPLOAD_WINDOW_SECONDS,
            settings.RATE_LIMIT_UPLOAD_MAX_REQUESTS,
            settings.RATE_LIMIT_UPLOAD_CLEANUP_SECONDS,
            clock=clock,
        ),
    )


def get_client_ip(request: Request) -> str:
    """
    Best-effort client address from proxy headers.

    Precedence: first X-Forwarded-For entry, X-Real-IP, CF-Connecting-IP.
    Clients with none of these share the "unknown" bucket.
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    cf_connecting_ip = request.headers.get("cf-connecting-ip")
    if cf_connecting_ip:
        return cf_connecting_ip.strip()

    return UNKNOWN_CLIENT


def rate_limit_key(request: Request) -> str:
    """Key a request by client and route so each route has its own budget."""
    return f"{get_client_ip(request)}:{request.url.path}"


def check_rate_limit(limiter: RateLimiter, request: Request) -> RateDecision:
    """Count request against limiter."""
    return limiter.is_allowed(rate_limit_key(request))


def rate_limit_headers(
    reset_time: float,
    remaining: int,
    limit: int | None = None,
    now: float | None = None,
) -> dict[str, str]:
    """
    HTTP headers describing a rate limit decision.

    Retry-After is not clamped; it is zero or negative once the window has
    already ended.
    """
    if limit is None:
        limit = config.settings.RATE_LIMIT_GENERAL_MAX_REQUESTS
    if now is None:
        now = time.time()
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": formatdate(reset_time, usegmt=True),
        "Retry-After": str(math.ceil(reset_time - now)),
    }


def rate_limit(name: str) -> Callable:
    """
    FastAPI dependency factory enforcing one of the app's limiters.

    Usage:
        @router.post("/mfa/verify", dependencies=[Depends(rate_limit("auth"))])
    """

    async def dependency(request: Request, response: Response) -> RateDecision:
        limiter = request.app.state.rate_limiters[name]
        decision = check_rate_limit(limiter, request)
        headers = rate_limit_headers(
            decision.reset_time, decision.remaining, limiter.max_requests, now=limiter.now()
        )

        if not decision.allowed:
            logger.warning("Rate limit exceeded for %s (%s limiter)", rate_limit_key(request), name)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please wait a moment.",
                headers=headers,
            )

        response.headers.update(headers)
        return decision

    return dependency
