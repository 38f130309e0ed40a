"""Storage operations consumed by the protocol services.

This is the only module that issues queries against the monitoring tables:
services call these functions with a Session and stay agnostic of the
engine behind it. Callers own the transaction boundary (see
ytmonitor.db.session.transaction) unless a function says otherwise.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ytmonitor.db.models import Block, BlockAttempt, Device, WatchHistoryEntry, utcnow
from ytmonitor.db.session import transaction


def _dialect_insert(db: Session):
    """Pick the dialect-specific INSERT that supports ON CONFLICT."""
    if db.get_bind().dialect.name == "postgresql":
        return pg_insert
    return sqlite_insert


def find_device_by_api_key(db: Session, api_key: str) -> Device | None:
    return db.scalars(select(Device).where(Device.api_key == api_key)).first()


def find_device_by_id(db: Session, device_id: str) -> Device | None:
    return db.get(Device, device_id)


def upsert_device(
    db: Session, device_id: str, device_name: str, api_key: str
) -> tuple[Device, bool]:
    """Create the device row unless one already exists for device_id.

    Two registrations racing on the same device_id both land on the single
    surviving row: the losing INSERT is a no-op and the re-read returns the
    winner's api_key. Commits in its own transaction.

    Returns:
        Tuple of (device, created).
    """
    insert = _dialect_insert(db)
    stmt = (
        insert(Device)
        .values(
            device_id=device_id,
            device_name=device_name,
            api_key=api_key,
            created_at=utcnow(),
        )
        .on_conflict_do_nothing(index_elements=["device_id"])
    )
    with transaction(db, "register_device"):
        result = db.execute(stmt)

    device = db.get(Device, device_id, populate_existing=True)
    if device is None:
        # Row vanished between insert and read (concurrent delete)
        raise LookupError(f"device {device_id} disappeared during registration")
    return device, result.rowcount == 1


def touch_heartbeat(db: Session, device_id: str, at: datetime) -> bool:
    """Set last_heartbeat for a device. Returns False if the device is gone."""
    result = db.execute(
        update(Device).where(Device.device_id == device_id).values(last_heartbeat=at)
    )
    return result.rowcount == 1


def list_devices(db: Session) -> Sequence[Device]:
    return db.scalars(select(Device).order_by(Device.created_at.desc())).all()


def insert_watch_history_batch(
    db: Session, device_id: str, rows: Sequence[dict[str, Any]]
) -> int:
    """Insert a batch of history rows for one device in array order.

    All-or-nothing within the caller's transaction.
    """
    for row in rows:
        db.add(WatchHistoryEntry(device_id=device_id, **row))
    db.flush()
    return len(rows)


def query_watch_history(
    db: Session, device_id: str | None = None, limit: int = 50
) -> Sequence[WatchHistoryEntry]:
    stmt = select(WatchHistoryEntry)
    if device_id is not None:
        stmt = stmt.where(WatchHistoryEntry.device_id == device_id)
    stmt = stmt.order_by(WatchHistoryEntry.watched_at.desc(), WatchHistoryEntry.id.desc())
    return db.scalars(stmt.limit(limit)).all()


def query_blocks_for_device(db: Session, device_id: str) -> Sequence[Block]:
    """Global blocks plus blocks scoped to device_id, newest first."""
    stmt = (
        select(Block)
        .where(or_(Block.device_id.is_(None), Block.device_id == device_id))
        .order_by(Block.created_at.desc())
    )
    return db.scalars(stmt).all()


def query_all_blocks(db: Session) -> Sequence[Block]:
    return db.scalars(select(Block).order_by(Block.created_at.desc())).all()


def insert_block(db: Session, block: Block) -> Block:
    db.add(block)
    db.flush()
    return block


def delete_block(db: Session, block_id: str) -> bool:
    block = db.get(Block, block_id)
    if block is None:
        return False
    db.delete(block)
    db.flush()
    return True


def insert_block_attempt(db: Session, attempt: BlockAttempt) -> BlockAttempt:
    db.add(attempt)
    db.flush()
    return attempt


def count_block_attempts(db: Session, since: datetime | None = None) -> int:
    stmt = select(func.count()).select_from(BlockAttempt)
    if since is not None:
        stmt = stmt.where(BlockAttempt.attempted_at >= since)
    return db.scalar(stmt) or 0


def query_recent_block_attempts(
    db: Session, limit: int = 50
) -> Sequence[tuple[BlockAttempt, str | None]]:
    """Newest attempts paired with the owning device's display name."""
    stmt = (
        select(BlockAttempt, Device.device_name)
        .outerjoin(Device, Device.device_id == BlockAttempt.device_id)
        .order_by(BlockAttempt.attempted_at.desc(), BlockAttempt.id.desc())
        .limit(limit)
    )
    return db.execute(stmt).tuples().all()
