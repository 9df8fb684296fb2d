"""
daylog FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from daylog.middleware.rate_limit import RateLimiters, build_rate_limiters
from daylog.routes import auth_routes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Start the rate limiter sweep tasks
    - Stop them and drop their state on shutdown
    """
    rate_limiters: RateLimiters = app.state.rate_limiters

    # Startup
    rate_limiters.start()
    logger.info("Rate limit sweep tasks started")

    yield

    # Shutdown
    await rate_limiters.close()
    logger.info("Rate limit sweep tasks stopped")


def create_app(rate_limiters: RateLimiters | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        rate_limiters: Limiters for the request pipeline; built from settings
            when omitted

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="daylog",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.rate_limiters = rate_limiters or build_rate_limiters()

    # Register routes
    app.include_router(auth_routes.router)

    @app.get("/health")
    async def health():
        """Health check endpoint for uptime monitoring."""
        return {"status": "ok"}

    return app


app = create_app()
