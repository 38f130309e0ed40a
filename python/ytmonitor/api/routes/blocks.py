"""Block rule routes.

Devices read their rule set and report enforcement; only the management
surface creates and deletes rules.

- GET /blocks/attempts/stats, GET /blocks/attempts/recent: Management
- POST /blocks/attempts: API key; the body device_id must be the key's device
- GET /blocks: Management; every rule
- GET /blocks/{device_id}: API key; global rules plus rules scoped to the device
- POST /blocks, DELETE /blocks/{block_id}: Management

The /blocks/attempts routes are registered before /blocks/{device_id} so
the literal segment is never captured as a device id.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ytmonitor.api.deps import get_db, get_settings
from ytmonitor.auth import DeviceDep, ManagementDep, ensure_device_scope
from ytmonitor.config import Settings
from ytmonitor.schemas.blocks import (
    BlockAttemptCreate,
    BlockAttemptOut,
    BlockAttemptStats,
    CreateBlockRequest,
)
from ytmonitor.services import attempts as attempts_service
from ytmonitor.services import blocks as blocks_service

router = APIRouter()


# =============================================================================
# Block attempts
# =============================================================================


@router.get(
    "/blocks/attempts/stats", response_model=BlockAttemptStats, dependencies=[ManagementDep]
)
def attempt_stats(db: Annotated[Session, Depends(get_db)]) -> BlockAttemptStats:
    return attempts_service.attempt_stats(db)


@router.get(
    "/blocks/attempts/recent",
    response_model=list[BlockAttemptOut],
    dependencies=[ManagementDep],
)
def recent_attempts(
    db: Annotated[Session, Depends(get_db)],
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> list[BlockAttemptOut]:
    return attempts_service.recent_attempts(db, limit=limit)


@router.post("/blocks/attempts")
def log_attempt(
    body: BlockAttemptCreate,
    device: DeviceDep,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Record that a block was enforced on the authenticated device.

    Errors:
        E_FORBIDDEN (403): body.device_id is not the key's device
    """
    ensure_device_scope(device, body.device_id)
    attempts_service.log_attempt(db, device.device_id, body)
    return {"success": True}


# =============================================================================
# Block rules
# =============================================================================


@router.get("/blocks", dependencies=[ManagementDep])
def list_all_blocks(db: Annotated[Session, Depends(get_db)]) -> dict:
    """Every rule, newest first, for the dashboard.

    Returns:
        {"success": true, "blocks": [BlockOut, ...], "count"}
    """
    blocks = blocks_service.list_all_blocks(db)
    return {
        "success": True,
        "blocks": [b.model_dump(mode="json") for b in blocks],
        "count": len(blocks),
    }


@router.get("/blocks/{device_id}")
def get_device_blocks(
    device_id: str,
    device: DeviceDep,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Rules visible to the device, newest first.

    Returns:
        {"device_id", "blocks": [BlockOut, ...], "count"}
    """
    ensure_device_scope(device, device_id)
    blocks = blocks_service.list_blocks_for_device(db, device.device_id)
    return {
        "device_id": device.device_id,
        "blocks": [b.model_dump(mode="json") for b in blocks],
        "count": len(blocks),
    }


@router.post("/blocks", status_code=201, dependencies=[ManagementDep])
def create_block(
    body: CreateBlockRequest,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict:
    """Create a video, channel, or keyword block.

    Returns:
        201 Created: {"success": true, "block": BlockOut}

    Errors:
        E_INVALID_URL (400): url is not a recognised YouTube video/channel link
        E_DEVICE_NOT_FOUND (404): device_id names an unknown device
    """
    block = blocks_service.create_block(
        db,
        body,
        fetch_metadata=settings.fetch_video_metadata,
        metadata_timeout_s=settings.metadata_timeout_s,
    )
    return {"success": True, "block": block.model_dump(mode="json")}


@router.delete("/blocks/{block_id}", dependencies=[ManagementDep])
def delete_block(block_id: str, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Permanently delete a block.

    Errors:
        E_BLOCK_NOT_FOUND (404): No block has this id
    """
    blocks_service.delete_block(db, block_id)
    return {"success": True}
