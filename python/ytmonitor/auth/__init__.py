"""Authentication and authorization module.

This module provides:
- API-key authentication resolving a request to a device identity
- Device scope checks (a key may only touch its own device's data)
- The management-surface guard for block administration
"""

from ytmonitor.auth.api_key import (
    AuthenticatedDevice,
    DeviceDep,
    ensure_device_scope,
    get_device,
)
from ytmonitor.auth.management import ManagementDep, require_management

__all__ = [
    "AuthenticatedDevice",
    "DeviceDep",
    "ensure_device_scope",
    "get_device",
    "ManagementDep",
    "require_management",
]
