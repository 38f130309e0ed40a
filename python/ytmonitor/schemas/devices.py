"""Device registration and heartbeat schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Client-generated device ids are opaque but must be URL-safe
DEVICE_ID_PATTERN = r"^[A-Za-z0-9_-]+$"
DEVICE_ID_MAX_LENGTH = 255


class RegisterDeviceRequest(BaseModel):
    """Request body for POST /api/v1/register."""

    device_id: str = Field(
        ...,
        min_length=1,
        max_length=DEVICE_ID_MAX_LENGTH,
        pattern=DEVICE_ID_PATTERN,
        description="Client-chosen stable identifier (letters, digits, '-' and '_')",
    )
    device_name: str = Field(..., min_length=1, max_length=255, description="Display name")

    @field_validator("device_name")
    @classmethod
    def strip_device_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("device_name must not be blank")
        return v


class RegisterDeviceResponse(BaseModel):
    device_id: str
    api_key: str
    message: str


class HeartbeatResponse(BaseModel):
    device_id: str
    timestamp: datetime
    status: str = "ok"


class DeviceOut(BaseModel):
    """Device as shown to the monitoring party.

    The api_key is deliberately absent: it is only ever returned to the
    device itself, by the registration call.
    """

    device_id: str
    device_name: str
    last_heartbeat: datetime | None = None
    created_at: datetime
    is_online: bool

    model_config = ConfigDict(from_attributes=True)
