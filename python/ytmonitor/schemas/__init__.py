"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from ytmonitor.schemas.blocks import (
    BlockAttemptCreate,
    BlockAttemptOut,
    BlockAttemptStats,
    BlockOut,
    CreateBlockRequest,
)
from ytmonitor.schemas.devices import (
    DeviceOut,
    HeartbeatResponse,
    RegisterDeviceRequest,
    RegisterDeviceResponse,
)
from ytmonitor.schemas.history import (
    SubmitHistoryRequest,
    SubmitHistoryResponse,
    WatchHistoryItem,
    WatchHistoryOut,
)

__all__ = [
    # Device schemas
    "RegisterDeviceRequest",
    "RegisterDeviceResponse",
    "HeartbeatResponse",
    "DeviceOut",
    # History schemas
    "WatchHistoryItem",
    "SubmitHistoryRequest",
    "SubmitHistoryResponse",
    "WatchHistoryOut",
    # Block schemas
    "CreateBlockRequest",
    "BlockOut",
    "BlockAttemptCreate",
    "BlockAttemptOut",
    "BlockAttemptStats",
]
