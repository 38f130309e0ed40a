"""Watch-history ingestion schemas.

The submission body is accepted as a list of raw objects and each row is
validated individually against WatchHistoryItem by the service, so a bad
row can be reported by index instead of failing the whole body opaquely.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WatchHistoryItem(BaseModel):
    """One watched video as sent by the agent.

    watched_at accepts ISO-8601 strings or epoch numbers (seconds or
    milliseconds); when omitted the server's receipt time is used.
    """

    video_id: str = Field(..., min_length=1, max_length=64)
    title: str | None = Field(default=None, max_length=1000)
    channel_name: str | None = Field(default=None, max_length=500)
    channel_id: str | None = Field(default=None, max_length=255)
    thumbnail_url: str | None = Field(default=None, max_length=2048)
    video_url: str | None = Field(default=None, max_length=2048)
    watched_at: datetime | None = None
    duration: int | None = Field(default=None, ge=0)

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class SubmitHistoryRequest(BaseModel):
    """Request body for POST /api/v1/watch-history.

    device_id is optional, at the top level or on a row. When present it
    must name the device the API key belongs to.
    """

    device_id: str | None = None
    videos: list[Any] = Field(..., min_length=1)

    def claimed_device_ids(self) -> set[str]:
        """Every device id the body names, read before row validation."""
        claimed = {self.device_id} if self.device_id is not None else set()
        for raw in self.videos:
            if isinstance(raw, dict) and raw.get("device_id") is not None:
                claimed.add(str(raw["device_id"]))
        return claimed


class SubmitHistoryResponse(BaseModel):
    success: bool = True
    count: int


class WatchHistoryOut(BaseModel):
    id: int
    device_id: str
    video_id: str
    title: str | None = None
    channel_name: str | None = None
    channel_id: str | None = None
    thumbnail_url: str | None = None
    video_url: str | None = None
    watched_at: datetime
    duration: int | None = None

    model_config = ConfigDict(from_attributes=True)
