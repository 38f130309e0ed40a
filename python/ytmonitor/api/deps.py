"""FastAPI dependencies for route handlers.

Common dependencies like database sessions, settings, and rate limiting.
"""

from typing import Annotated

from fastapi import Depends, Request

from ytmonitor.config import Settings, get_settings
from ytmonitor.db.session import get_db, get_session_factory
from ytmonitor.services.rate_limit import API_BUCKET, Limit, RateLimiter

__all__ = [
    "client_source",
    "enforce_api_rate_limit",
    "get_db",
    "get_rate_limiter",
    "get_session_factory",
    "get_settings",
]


def get_rate_limiter(request: Request) -> RateLimiter:
    """Get the shared rate limiter from app state.

    The limiter is created with the app, so it exists even when the
    lifespan has not run (in-process ASGI transports in tests).
    """
    return request.app.state.rate_limiter


def client_source(request: Request) -> str:
    """Rate-limit key for the caller: its client host."""
    return request.client.host if request.client else "unknown"


def enforce_api_rate_limit(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> None:
    """General per-source limit applied to every /api/v1 route."""
    limiter.check(
        Limit(API_BUCKET, settings.api_rate_limit_per_window, settings.api_rate_limit_window_s),
        client_source(request),
    )
