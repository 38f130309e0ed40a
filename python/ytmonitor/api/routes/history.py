"""Watch-history routes.

- POST /watch-history: API key; batch of 1..HISTORY_BATCH_MAX videos owned by
  the authenticated device, stored all-or-nothing
- GET /watch-history: Management; newest-first history for the dashboard
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ytmonitor.api.deps import get_db, get_settings
from ytmonitor.auth import DeviceDep, ManagementDep, ensure_device_scope
from ytmonitor.config import Settings
from ytmonitor.schemas.history import (
    SubmitHistoryRequest,
    SubmitHistoryResponse,
    WatchHistoryOut,
)
from ytmonitor.services import history as history_service

router = APIRouter()


@router.post("/watch-history", response_model=SubmitHistoryResponse)
def submit_history(
    body: SubmitHistoryRequest,
    device: DeviceDep,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> SubmitHistoryResponse:
    """Store a batch of watched videos.

    Rows are always stored under the API key's device. A device_id in the
    body or in any row must name that same device.

    Errors:
        E_FORBIDDEN (403): A device_id in the body belongs to another device;
            nothing was stored
        E_INVALID_REQUEST (400): Empty or oversized batch
        E_HISTORY_BATCH_INVALID (400): One or more rows invalid; details.failed
            lists them by index and nothing was stored
    """
    for claimed in sorted(body.claimed_device_ids()):
        ensure_device_scope(device, claimed)

    count = history_service.submit_history(
        db, device.device_id, body.videos, batch_max=settings.history_batch_max
    )
    return SubmitHistoryResponse(success=True, count=count)


@router.get("/watch-history", response_model=list[WatchHistoryOut], dependencies=[ManagementDep])
def list_history(
    db: Annotated[Session, Depends(get_db)],
    device_id: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> list[WatchHistoryOut]:
    return history_service.list_history(db, device_id=device_id, limit=limit)
