"""Block rule and block attempt schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ytmonitor.schemas.devices import DEVICE_ID_MAX_LENGTH, DEVICE_ID_PATTERN

BlockTypeValue = Literal["video", "channel", "keyword"]

# =============================================================================
# Request Schemas
# =============================================================================


class CreateBlockRequest(BaseModel):
    """Request body for POST /api/v1/blocks.

    Exactly one of url (video or channel link) or keyword must be given.
    device_id scopes the block to one device; omit it for a global block.
    """

    url: str | None = Field(default=None, min_length=1, max_length=2048)
    keyword: str | None = Field(default=None, min_length=1, max_length=255)
    custom_message: str | None = Field(default=None, max_length=1000)
    device_id: str | None = Field(
        default=None, max_length=DEVICE_ID_MAX_LENGTH, pattern=DEVICE_ID_PATTERN
    )

    @model_validator(mode="after")
    def exactly_one_target(self) -> "CreateBlockRequest":
        if (self.url is None) == (self.keyword is None):
            raise ValueError("Provide exactly one of 'url' or 'keyword'")
        return self


class BlockAttemptCreate(BaseModel):
    """Request body for POST /api/v1/blocks/attempts."""

    device_id: str = Field(
        ..., min_length=1, max_length=DEVICE_ID_MAX_LENGTH, pattern=DEVICE_ID_PATTERN
    )
    youtube_id: str = Field(..., min_length=1, max_length=255)
    type: BlockTypeValue = "video"
    video_title: str | None = Field(default=None, max_length=1000)
    channel_name: str | None = Field(default=None, max_length=500)


# =============================================================================
# Response Schemas
# =============================================================================


class BlockOut(BaseModel):
    id: str
    type: BlockTypeValue
    youtube_id: str
    title: str | None = None
    channel_name: str | None = None
    thumbnail_url: str | None = None
    custom_message: str | None = None
    device_id: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BlockAttemptOut(BaseModel):
    id: int
    device_id: str
    device_name: str | None = None
    youtube_id: str
    type: BlockTypeValue
    video_title: str
    channel_name: str
    attempted_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BlockAttemptStats(BaseModel):
    today: int
    total: int
