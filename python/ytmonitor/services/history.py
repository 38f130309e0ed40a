"""Watch-history ingestion.

Validate-then-insert, all-or-nothing:
1. Every row of the batch is validated against WatchHistoryItem.
2. If any row fails, nothing is written and the response itemizes the
   failing indexes (E_HISTORY_BATCH_INVALID with details).
3. Otherwise the whole batch is inserted in one transaction, in array
   order, owned by the authenticated device.

The owner is always the device resolved from the API key; a device_id
inside a row is ignored.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ytmonitor.db import store
from ytmonitor.db.models import as_utc
from ytmonitor.db.session import transaction
from ytmonitor.errors import ApiErrorCode, InvalidRequestError
from ytmonitor.logging import get_logger
from ytmonitor.schemas.history import WatchHistoryItem, WatchHistoryOut

logger = get_logger(__name__)

DEFAULT_BATCH_MAX = 100
MAX_LIST_LIMIT = 500


def _describe(error: ValidationError) -> list[dict[str, str]]:
    return [
        {"field": ".".join(str(p) for p in e["loc"]) or "video", "message": e["msg"]}
        for e in error.errors()
    ]


def validate_history_batch(
    videos: list[Any],
    batch_max: int = DEFAULT_BATCH_MAX,
) -> list[WatchHistoryItem]:
    """Validate every row of a submitted batch.

    Raises:
        InvalidRequestError: E_INVALID_REQUEST for an empty or oversized batch,
            E_HISTORY_BATCH_INVALID listing each failing row by index.
    """
    if not videos:
        raise InvalidRequestError(message="videos must contain at least one item")
    if len(videos) > batch_max:
        raise InvalidRequestError(
            message=f"videos must contain at most {batch_max} items (got {len(videos)})"
        )

    items: list[WatchHistoryItem] = []
    failures: list[dict[str, Any]] = []
    for index, raw in enumerate(videos):
        try:
            items.append(WatchHistoryItem.model_validate(raw))
        except ValidationError as e:
            failures.append({"index": index, "errors": _describe(e)})

    if failures:
        raise InvalidRequestError(
            ApiErrorCode.E_HISTORY_BATCH_INVALID,
            f"{len(failures)} of {len(videos)} videos failed validation; nothing was stored",
            details={"failed": failures, "accepted": 0},
        )
    return items


def submit_history(
    db: Session,
    device_id: str,
    videos: list[Any],
    batch_max: int = DEFAULT_BATCH_MAX,
    received_at: datetime | None = None,
) -> int:
    """Store a batch of watched videos for the authenticated device.

    Returns:
        Number of rows inserted (always the full batch size).
    """
    items = validate_history_batch(videos, batch_max=batch_max)
    received_at = received_at or datetime.now(UTC)

    rows = [
        {
            "video_id": item.video_id,
            "title": item.title,
            "channel_name": item.channel_name,
            "channel_id": item.channel_id,
            "thumbnail_url": item.thumbnail_url,
            "video_url": item.video_url,
            "watched_at": as_utc(item.watched_at) if item.watched_at else received_at,
            "duration": item.duration,
        }
        for item in items
    ]

    with transaction(db, "submit_history"):
        count = store.insert_watch_history_batch(db, device_id, rows)

    logger.info("history_batch_inserted", device_id=device_id, count=count)
    return count


def list_history(
    db: Session, device_id: str | None = None, limit: int = 50
) -> list[WatchHistoryOut]:
    """Newest-first history for the dashboard, optionally for one device."""
    limit = max(1, min(limit, MAX_LIST_LIMIT))
    entries = store.query_watch_history(db, device_id=device_id, limit=limit)
    out = []
    for entry in entries:
        item = WatchHistoryOut.model_validate(entry)
        item.watched_at = as_utc(entry.watched_at)
        out.append(item)
    return out
