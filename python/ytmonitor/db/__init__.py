"""Database module for the monitoring service.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from ytmonitor.db.engine import create_db_engine, get_engine
from ytmonitor.db.models import (
    Base,
    Block,
    BlockAttempt,
    BlockType,
    Device,
    WatchHistoryEntry,
)
from ytmonitor.db.session import get_db, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "transaction",
    # Base
    "Base",
    # Enums
    "BlockType",
    # Models
    "Device",
    "WatchHistoryEntry",
    "Block",
    "BlockAttempt",
]
