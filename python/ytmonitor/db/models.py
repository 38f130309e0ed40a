"""SQLAlchemy ORM models for the monitoring service.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Column types are portable so the same models back the embedded SQLite
store and a PostgreSQL deployment.
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# =============================================================================
# Enums
# =============================================================================


class BlockType(str, PyEnum):
    """Kinds of content a block rule can target."""

    video = "video"
    channel = "channel"
    keyword = "keyword"


# =============================================================================
# Models
# =============================================================================


class Device(Base):
    """A monitored browser/machine identity.

    device_id is client-generated and immutable; api_key is server-issued
    and never rotated implicitly.
    """

    __tablename__ = "devices"

    device_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    device_name: Mapped[str] = mapped_column(String(255), nullable=False)
    api_key: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    last_heartbeat: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    watch_history: Mapped[list["WatchHistoryEntry"]] = relationship(
        "WatchHistoryEntry", back_populates="device", cascade="all, delete-orphan"
    )


class WatchHistoryEntry(Base):
    """One playback event. Append-only; never mutated after insert.

    The autoincrement id preserves the array order of a submitted batch.
    """

    __tablename__ = "watch_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("devices.device_id", ondelete="CASCADE"),
        nullable=False,
    )
    video_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    channel_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    channel_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    watched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)

    device: Mapped["Device"] = relationship("Device", back_populates="watch_history")

    __table_args__ = (
        Index("idx_watch_history_device", "device_id"),
        Index("idx_watch_history_watched_at", "watched_at"),
    )


class Block(Base):
    """A content restriction rule.

    device_id NULL means global: the rule applies to every device.
    """

    __tablename__ = "blocks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    youtube_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    channel_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    custom_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    device_id: Mapped[str | None] = mapped_column(
        String(255),
        ForeignKey("devices.device_id", ondelete="CASCADE"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "type IN ('video', 'channel', 'keyword')",
            name="ck_blocks_type",
        ),
        Index("idx_blocks_device", "device_id"),
        Index("idx_blocks_youtube_id", "youtube_id"),
    )


class BlockAttempt(Base):
    """A record of enforcement triggering on a device. Append-only."""

    __tablename__ = "block_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("devices.device_id", ondelete="CASCADE"),
        nullable=False,
    )
    youtube_id: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    video_title: Mapped[str] = mapped_column(Text, nullable=False)
    channel_name: Mapped[str] = mapped_column(Text, nullable=False)
    attempted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "type IN ('video', 'channel', 'keyword')",
            name="ck_block_attempts_type",
        ),
        Index("idx_block_attempts_device", "device_id"),
        Index("idx_block_attempts_attempted_at", "attempted_at"),
    )
