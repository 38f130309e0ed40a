"""Device registration, heartbeat, and listing.

Registration is idempotent: a device_id that already exists gets its
existing api_key back unchanged, so the agent may call it on every startup.
A new api_key (UUID v4) is issued only when the server has no row for the
device_id. Keys are never rotated implicitly.

"Online" is derived at read time: last_heartbeat within
DEVICE_ONLINE_WINDOW_S of now. No background sweep exists.
"""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from sqlalchemy.orm import Session

from ytmonitor.db import store
from ytmonitor.db.models import Device, as_utc
from ytmonitor.db.session import transaction
from ytmonitor.errors import ApiErrorCode, NotFoundError
from ytmonitor.logging import get_logger, key_fingerprint
from ytmonitor.schemas.devices import (
    DeviceOut,
    HeartbeatResponse,
    RegisterDeviceResponse,
)

logger = get_logger(__name__)

DEFAULT_ONLINE_WINDOW = timedelta(minutes=2)


def generate_api_key() -> str:
    """Issue a fresh bearer credential (random UUID v4, 122 bits of entropy)."""
    return str(uuid4())


def register_device(
    db: Session, device_id: str, device_name: str
) -> tuple[RegisterDeviceResponse, bool]:
    """Register a device or return its existing credential.

    Args:
        db: Database session.
        device_id: Validated client-chosen identifier.
        device_name: Validated display name.

    Returns:
        Tuple of (response, created) where created is True for a new device.
    """
    existing = store.find_device_by_id(db, device_id)
    if existing is not None:
        logger.info("device_reregistered", device_id=device_id)
        return (
            RegisterDeviceResponse(
                device_id=existing.device_id,
                api_key=existing.api_key,
                message="Device already registered",
            ),
            False,
        )

    device, created = store.upsert_device(
        db, device_id=device_id, device_name=device_name, api_key=generate_api_key()
    )
    if created:
        logger.info(
            "device_registered",
            device_id=device.device_id,
            key_fingerprint=key_fingerprint(device.api_key),
        )
        message = "Device registered successfully"
    else:
        # Lost a registration race; the winner's row and key are returned
        logger.info("device_registration_race_resolved", device_id=device.device_id)
        message = "Device already registered"

    return (
        RegisterDeviceResponse(
            device_id=device.device_id, api_key=device.api_key, message=message
        ),
        created,
    )


def record_heartbeat(
    db: Session, device_id: str, now: datetime | None = None
) -> HeartbeatResponse:
    """Set last_heartbeat = now for an authenticated device.

    Raises:
        NotFoundError: E_DEVICE_NOT_FOUND if the row was deleted after auth.
    """
    now = now or datetime.now(UTC)
    with transaction(db, "record_heartbeat"):
        found = store.touch_heartbeat(db, device_id, now)
    if not found:
        raise NotFoundError(ApiErrorCode.E_DEVICE_NOT_FOUND, "Device not found")

    logger.debug("heartbeat_recorded", device_id=device_id)
    return HeartbeatResponse(device_id=device_id, timestamp=now, status="ok")


def is_online(
    last_heartbeat: datetime | None,
    now: datetime | None = None,
    window: timedelta = DEFAULT_ONLINE_WINDOW,
) -> bool:
    """Whether a device heartbeat is recent enough to count as online."""
    if last_heartbeat is None:
        return False
    now = now or datetime.now(UTC)
    return now - as_utc(last_heartbeat) < window


def to_device_out(device: Device, now: datetime, window: timedelta) -> DeviceOut:
    return DeviceOut(
        device_id=device.device_id,
        device_name=device.device_name,
        last_heartbeat=as_utc(device.last_heartbeat),
        created_at=as_utc(device.created_at),
        is_online=is_online(device.last_heartbeat, now=now, window=window),
    )


def list_devices(db: Session, online_window_s: int) -> list[DeviceOut]:
    """List every device, newest first, with derived liveness."""
    now = datetime.now(UTC)
    window = timedelta(seconds=online_window_s)
    return [to_device_out(d, now, window) for d in store.list_devices(db)]


def require_device(db: Session, device_id: str) -> Device:
    """Fetch a device or raise E_DEVICE_NOT_FOUND."""
    device = store.find_device_by_id(db, device_id)
    if device is None:
        raise NotFoundError(ApiErrorCode.E_DEVICE_NOT_FOUND, "Device not found")
    return device
