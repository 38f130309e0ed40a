"""Monitoring schema - devices, watch_history, blocks, block_attempts

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the four tables behind device registration, history sync and
block enforcement. Types are portable: the same revision runs against the
embedded SQLite store and PostgreSQL.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ==========================================================================
    # devices table
    # ==========================================================================
    op.create_table(
        "devices",
        sa.Column("device_id", sa.String(255), nullable=False),
        sa.Column("device_name", sa.String(255), nullable=False),
        sa.Column("api_key", sa.String(36), nullable=False),
        sa.Column("last_heartbeat", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("device_id"),
        sa.UniqueConstraint("api_key", name="uq_devices_api_key"),
    )

    # ==========================================================================
    # watch_history table
    # ==========================================================================
    op.create_table(
        "watch_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("device_id", sa.String(255), nullable=False),
        sa.Column("video_id", sa.String(64), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("channel_name", sa.Text(), nullable=True),
        sa.Column("channel_id", sa.String(255), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("video_url", sa.Text(), nullable=True),
        sa.Column("watched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["device_id"], ["devices.device_id"], ondelete="CASCADE"),
    )
    op.create_index("idx_watch_history_device", "watch_history", ["device_id"])
    op.create_index("idx_watch_history_watched_at", "watch_history", ["watched_at"])

    # ==========================================================================
    # blocks table (device_id NULL = global)
    # ==========================================================================
    op.create_table(
        "blocks",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("youtube_id", sa.String(255), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("channel_name", sa.Text(), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("custom_message", sa.Text(), nullable=True),
        sa.Column("device_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["device_id"], ["devices.device_id"], ondelete="CASCADE"),
        sa.CheckConstraint("type IN ('video', 'channel', 'keyword')", name="ck_blocks_type"),
    )
    op.create_index("idx_blocks_device", "blocks", ["device_id"])
    op.create_index("idx_blocks_youtube_id", "blocks", ["youtube_id"])

    # ==========================================================================
    # block_attempts table
    # ==========================================================================
    op.create_table(
        "block_attempts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("device_id", sa.String(255), nullable=False),
        sa.Column("youtube_id", sa.String(255), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("video_title", sa.Text(), nullable=False),
        sa.Column("channel_name", sa.Text(), nullable=False),
        sa.Column("attempted_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["device_id"], ["devices.device_id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "type IN ('video', 'channel', 'keyword')", name="ck_block_attempts_type"
        ),
    )
    op.create_index("idx_block_attempts_device", "block_attempts", ["device_id"])
    op.create_index("idx_block_attempts_attempted_at", "block_attempts", ["attempted_at"])


def downgrade() -> None:
    op.drop_index("idx_block_attempts_attempted_at", table_name="block_attempts")
    op.drop_index("idx_block_attempts_device", table_name="block_attempts")
    op.drop_table("block_attempts")

    op.drop_index("idx_blocks_youtube_id", table_name="blocks")
    op.drop_index("idx_blocks_device", table_name="blocks")
    op.drop_table("blocks")

    op.drop_index("idx_watch_history_watched_at", table_name="watch_history")
    op.drop_index("idx_watch_history_device", table_name="watch_history")
    op.drop_table("watch_history")

    op.drop_table("devices")
