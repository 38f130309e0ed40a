"""Business logic services.

This module contains service-layer functions that implement the monitoring
protocol. Services are called by route handlers and orchestrate storage
operations through ytmonitor.db.store.
"""

from ytmonitor.services.attempts import attempt_stats, log_attempt, recent_attempts
from ytmonitor.services.blocks import (
    create_block,
    delete_block,
    list_all_blocks,
    list_blocks_for_device,
)
from ytmonitor.services.devices import list_devices, record_heartbeat, register_device
from ytmonitor.services.history import list_history, submit_history

__all__ = [
    "register_device",
    "record_heartbeat",
    "list_devices",
    "submit_history",
    "list_history",
    "create_block",
    "delete_block",
    "list_all_blocks",
    "list_blocks_for_device",
    "log_attempt",
    "attempt_stats",
    "recent_attempts",
]
