"""Device registration, heartbeat and listing routes.

Routes are transport-only: each calls exactly one service function.

- POST /register: Unauthenticated; idempotent per device_id; rate-limited per source
- GET|POST /heartbeat/{device_id}: API key; the path id must be the key's device
- GET /devices: Management; every device with derived is_online
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from ytmonitor.api.deps import client_source, get_db, get_rate_limiter, get_settings
from ytmonitor.auth import DeviceDep, ManagementDep, ensure_device_scope
from ytmonitor.config import Settings
from ytmonitor.schemas.devices import (
    DeviceOut,
    HeartbeatResponse,
    RegisterDeviceRequest,
    RegisterDeviceResponse,
)
from ytmonitor.services import devices as devices_service
from ytmonitor.services.rate_limit import (
    REGISTER_BUCKET,
    REGISTER_WINDOW_SECONDS,
    Limit,
    RateLimiter,
)

router = APIRouter()


@router.post("/register", response_model=RegisterDeviceResponse)
def register(
    body: RegisterDeviceRequest,
    request: Request,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> RegisterDeviceResponse:
    """Register a device or return its existing API key.

    Returns:
        201 Created (new device) or 200 OK (already registered):
        {"device_id", "api_key", "message"}

    Errors:
        E_INVALID_DEVICE_ID (400): device_id empty, too long, or not URL-safe
        E_RATE_LIMITED (429): Too many registrations from this source
    """
    limiter.check(
        Limit(REGISTER_BUCKET, settings.register_rate_limit_per_hour, REGISTER_WINDOW_SECONDS),
        client_source(request),
    )
    result, created = devices_service.register_device(db, body.device_id, body.device_name)
    response.status_code = 201 if created else 200
    return result


@router.api_route(
    "/heartbeat/{device_id}", methods=["GET", "POST"], response_model=HeartbeatResponse
)
def heartbeat(
    device_id: str,
    device: DeviceDep,
    db: Annotated[Session, Depends(get_db)],
) -> HeartbeatResponse:
    """Record device liveness.

    Errors:
        E_UNAUTHENTICATED (401): Missing, malformed, or unknown API key
        E_FORBIDDEN (403): Key belongs to another device
    """
    ensure_device_scope(device, device_id)
    return devices_service.record_heartbeat(db, device.device_id)


@router.get("/devices", response_model=list[DeviceOut], dependencies=[ManagementDep])
def list_devices(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> list[DeviceOut]:
    return devices_service.list_devices(db, settings.device_online_window_s)
