"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
This allows tests to import modules without requiring all environment
variables to be configured upfront.
"""

from fastapi import APIRouter, Depends

from ytmonitor.api.deps import enforce_api_rate_limit
from ytmonitor.api.routes.blocks import router as blocks_router
from ytmonitor.api.routes.devices import router as devices_router
from ytmonitor.api.routes.health import router as health_router
from ytmonitor.api.routes.history import router as history_router

API_PREFIX = "/api/v1"


def create_api_router() -> APIRouter:
    """Create and configure the API router.

    Returns:
        Configured APIRouter with all routes registered. Everything under
        /api/v1 shares the general per-source rate limit.
    """
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])

    v1_router = APIRouter(prefix=API_PREFIX, dependencies=[Depends(enforce_api_rate_limit)])
    v1_router.include_router(devices_router, tags=["devices"])
    v1_router.include_router(history_router, tags=["history"])
    v1_router.include_router(blocks_router, tags=["blocks"])
    api_router.include_router(v1_router)

    return api_router


__all__ = ["API_PREFIX", "create_api_router"]
