"""Block attempt logging and reporting.

Attempts are append-only and never deduplicated server-side; how often the
agent reports a continuous block exposure is decided by its attempt-log
policy.
"""

from datetime import UTC, datetime, time

from sqlalchemy.orm import Session

from ytmonitor.db import store
from ytmonitor.db.models import BlockAttempt, as_utc
from ytmonitor.db.session import transaction
from ytmonitor.logging import get_logger
from ytmonitor.schemas.blocks import BlockAttemptCreate, BlockAttemptOut, BlockAttemptStats

logger = get_logger(__name__)

UNKNOWN = "Unknown"
MAX_RECENT_LIMIT = 500


def log_attempt(db: Session, device_id: str, request: BlockAttemptCreate) -> None:
    """Record one enforcement trigger for the authenticated device."""
    attempt = BlockAttempt(
        device_id=device_id,
        youtube_id=request.youtube_id,
        type=request.type,
        video_title=request.video_title or UNKNOWN,
        channel_name=request.channel_name or UNKNOWN,
    )
    with transaction(db, "log_attempt"):
        store.insert_block_attempt(db, attempt)

    logger.info(
        "block_attempt_logged",
        device_id=device_id,
        youtube_id=request.youtube_id,
        block_type=request.type,
    )


def attempt_stats(db: Session, now: datetime | None = None) -> BlockAttemptStats:
    """Attempt counts for the current UTC day and overall."""
    now = now or datetime.now(UTC)
    start_of_day = datetime.combine(now.astimezone(UTC).date(), time.min, tzinfo=UTC)
    return BlockAttemptStats(
        today=store.count_block_attempts(db, since=start_of_day),
        total=store.count_block_attempts(db),
    )


def recent_attempts(db: Session, limit: int = 50) -> list[BlockAttemptOut]:
    limit = max(1, min(limit, MAX_RECENT_LIMIT))
    return [
        BlockAttemptOut(
            id=attempt.id,
            device_id=attempt.device_id,
            device_name=device_name,
            youtube_id=attempt.youtube_id,
            type=attempt.type,
            video_title=attempt.video_title,
            channel_name=attempt.channel_name,
            attempted_at=as_utc(attempt.attempted_at),
        )
        for attempt, device_name in store.query_recent_block_attempts(db, limit=limit)
    ]
