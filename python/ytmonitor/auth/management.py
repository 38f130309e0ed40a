"""Management-surface guard.

Block creation/deletion and the dashboard listings belong to the monitoring
party, never to a monitored device. When YTM_MANAGEMENT_SECRET is configured
(always in staging/prod) these endpoints require the X-YTM-Management header
to carry it. Without a configured secret the embedded desktop service trusts
its local callers, as the dashboard runs in the same process tree.
"""

import hmac
from typing import Annotated

from fastapi import Depends, Request

from ytmonitor.config import Settings, get_settings
from ytmonitor.errors import ApiErrorCode, ForbiddenError
from ytmonitor.logging import get_logger

logger = get_logger(__name__)

MANAGEMENT_HEADER = "x-ytm-management"


def verify_management_secret(header_value: str | None, secret: str | None) -> None:
    """Constant-time check of the management header.

    Raises:
        ForbiddenError: E_MANAGEMENT_ONLY if the header is missing or wrong.
    """
    if not secret:
        return

    if header_value is None:
        logger.warning("auth_failure", reason="management_header_missing")
        raise ForbiddenError(ApiErrorCode.E_MANAGEMENT_ONLY, "Management access required")

    # Constant-time comparison to prevent timing attacks
    if not hmac.compare_digest(header_value.encode(), secret.encode()):
        logger.warning("auth_failure", reason="management_header_mismatch")
        raise ForbiddenError(ApiErrorCode.E_MANAGEMENT_ONLY, "Management access required")


def require_management(
    request: Request, settings: Annotated[Settings, Depends(get_settings)]
) -> None:
    """FastAPI dependency guarding management endpoints."""
    verify_management_secret(request.headers.get(MANAGEMENT_HEADER), settings.management_secret)


ManagementDep = Depends(require_management)
