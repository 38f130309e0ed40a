"""API-key authentication for device endpoints.

Provides:
- get_device: Dependency resolving the request's API key to a device identity
- ensure_device_scope: Cross-check of a device id in the URL/body against it

Order of checks:
1. Extract the key from X-API-Key, or from "Authorization: Bearer <key>"
2. Reject keys that are not UUID-shaped without touching storage
3. Look up the device owning the key
4. Attach AuthenticatedDevice to request state and the logging context

Missing, malformed and unknown keys are all E_UNAUTHENTICATED (401). A
valid key used against another device's id is E_FORBIDDEN (403).
"""

import re
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ytmonitor.db import store
from ytmonitor.db.session import get_db
from ytmonitor.errors import ForbiddenError, UnauthenticatedError
from ytmonitor.logging import get_logger, get_request_id, key_fingerprint, set_request_context

logger = get_logger(__name__)

# Header names
API_KEY_HEADER = "x-api-key"
AUTHORIZATION_HEADER = "authorization"

API_KEY_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


@dataclass(frozen=True)
class AuthenticatedDevice:
    """Device identity resolved from an API key.

    Attributes:
        device_id: The device the key belongs to.
        device_name: Its display name.
    """

    device_id: str
    device_name: str


def is_api_key_shaped(value: str) -> bool:
    return bool(API_KEY_PATTERN.match(value))


def extract_api_key(request: Request) -> str | None:
    """Read the bearer credential from the request headers.

    X-API-Key wins when both headers are present.
    """
    key = request.headers.get(API_KEY_HEADER)
    if key:
        return key.strip()

    auth_header = request.headers.get(AUTHORIZATION_HEADER)
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return None


def _reject(request: Request, reason: str, message: str, api_key: str | None = None):
    logger.warning(
        "auth_failure",
        reason=reason,
        request_path=request.url.path,
        key_fingerprint=key_fingerprint(api_key),
    )
    return UnauthenticatedError(message=message)


def authenticate_request(request: Request, db: Session) -> AuthenticatedDevice:
    """Resolve the request's API key to a device.

    Raises:
        UnauthenticatedError: Missing, malformed, or unknown key.
    """
    api_key = extract_api_key(request)
    if not api_key:
        raise _reject(request, "missing_header", "API key required")

    if not is_api_key_shaped(api_key):
        raise _reject(request, "malformed_key", "Invalid API key", api_key)

    device = store.find_device_by_api_key(db, api_key)
    if device is None:
        raise _reject(request, "unknown_key", "Invalid API key", api_key)

    identity = AuthenticatedDevice(device_id=device.device_id, device_name=device.device_name)
    request.state.device = identity
    set_request_context(get_request_id(), device_id=identity.device_id)
    return identity


def get_device(
    request: Request, db: Annotated[Session, Depends(get_db)]
) -> AuthenticatedDevice:
    """FastAPI dependency for routes that require a device API key."""
    return authenticate_request(request, db)


def ensure_device_scope(device: AuthenticatedDevice, device_id: str) -> None:
    """Reject access to another device's data.

    Raises:
        ForbiddenError: If device_id differs from the authenticated device.
    """
    if device_id != device.device_id:
        logger.warning(
            "auth_failure",
            reason="device_scope_mismatch",
            requested_device_id=device_id,
        )
        raise ForbiddenError(message="API key does not belong to this device")


DeviceDep = Annotated[AuthenticatedDevice, Depends(get_device)]
