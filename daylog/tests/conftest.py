"""
Pytest configuration and fixtures for daylog tests.
"""

from __future__ import annotations

import os

# Set test environment variables before importing config
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("SECURE_COOKIES", "false")

from uuid import uuid4  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from starlette.requests import Request  # noqa: E402

from daylog.auth import create_jwt  # noqa: E402
from daylog.main import create_app  # noqa: E402
from daylog.middleware.csrf import CSRF_HEADER_NAME, CSRF_TOKEN_NAME, generate_csrf_token  # noqa: E402
from daylog.middleware.rate_limit import build_rate_limiters  # noqa: E402


class FakeClock:
    """Controllable time source for rate limiters."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app():
    """A fresh app per test so limiter state never leaks between tests."""
    return create_app(build_rate_limiters())


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest_asyncio.fixture
async def async_client(app):
    """Async HTTP client against the ASGI app."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest.fixture
def user_id():
    return uuid4()


def build_auth_headers(session_token: str, csrf_token: str | None = None) -> dict[str, str]:
    """Cookie and CSRF headers for an authenticated, state-changing request."""
    csrf_token = csrf_token or generate_csrf_token()
    return {
        "cookie": f"session={session_token}; {CSRF_TOKEN_NAME}={csrf_token}",
        CSRF_HEADER_NAME: csrf_token,
    }


@pytest.fixture
def headers_for():
    """Build auth headers around an arbitrary session token."""
    return build_auth_headers


@pytest.fixture
def auth_headers(user_id):
    """Headers carrying a valid session and a matching CSRF token."""
    return build_auth_headers(create_jwt(user_id))


@pytest.fixture
def make_request():
    """Factory for bare Starlette requests with the given headers."""

    def _make(headers: dict[str, str] | None = None, path: str = "/", method: str = "GET") -> Request:
        scope = {
            "type": "http",
            "method": method,
            "path": path,
            "root_path": "",
            "scheme": "http",
            "query_string": b"",
            "server": ("testserver", 80),
            "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        }
        return Request(scope)

    return _make
