"""Health check and service info endpoints."""

from datetime import UTC, datetime

from fastapi import APIRouter

from ytmonitor import __version__

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Liveness check endpoint.

    Returns 200 if the process is running.
    Does not check database or other dependencies.
    """
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


@router.get("/")
async def service_info() -> dict:
    return {
        "name": "YouTube Monitor API",
        "version": __version__,
        "endpoints": {
            "health": "/health",
            "register": "/api/v1/register",
            "heartbeat": "/api/v1/heartbeat/{device_id}",
            "watch_history": "/api/v1/watch-history",
            "blocks": "/api/v1/blocks",
        },
    }
