"""Block rule management and distribution.

Blocks are written only through the management surface. Devices read the
union of global blocks (device_id NULL) and blocks scoped to themselves,
newest first; a device-scoped block never hides a global one.
"""

from sqlalchemy.orm import Session

from ytmonitor.db import store
from ytmonitor.db.models import Block, BlockType, as_utc
from ytmonitor.db.session import transaction
from ytmonitor.errors import ApiErrorCode, NotFoundError
from ytmonitor.logging import get_logger
from ytmonitor.schemas.blocks import BlockOut, CreateBlockRequest
from ytmonitor.services.devices import require_device
from ytmonitor.services.metadata import resolve_block_metadata
from ytmonitor.services.youtube_url import require_youtube_target

logger = get_logger(__name__)


def to_block_out(block: Block) -> BlockOut:
    out = BlockOut.model_validate(block)
    out.created_at = as_utc(block.created_at)
    return out


def create_block(
    db: Session,
    request: CreateBlockRequest,
    *,
    fetch_metadata: bool = False,
    metadata_timeout_s: float = 5.0,
) -> BlockOut:
    """Create a block from a YouTube link or a title keyword.

    Raises:
        InvalidRequestError: E_INVALID_URL if the link is not a video/channel shape.
        NotFoundError: E_DEVICE_NOT_FOUND if device_id names an unknown device.
    """
    if request.url is not None:
        target = require_youtube_target(request.url)
        block_type, target_id = target.type, target.id
    else:
        block_type, target_id = BlockType.keyword.value, request.keyword.strip()

    if request.device_id is not None:
        require_device(db, request.device_id)

    # Resolved before the write transaction so a slow lookup holds no lock
    metadata = resolve_block_metadata(
        block_type, target_id, fetch_remote=fetch_metadata, timeout_s=metadata_timeout_s
    )

    block = Block(
        type=block_type,
        youtube_id=target_id,
        title=metadata.title,
        channel_name=metadata.channel_name,
        thumbnail_url=metadata.thumbnail_url,
        custom_message=request.custom_message,
        device_id=request.device_id,
    )
    with transaction(db, "create_block"):
        store.insert_block(db, block)

    logger.info(
        "block_created",
        block_id=block.id,
        block_type=block_type,
        youtube_id=target_id,
        scope=request.device_id or "global",
    )
    return to_block_out(block)


def list_blocks_for_device(db: Session, device_id: str) -> list[BlockOut]:
    """Blocks visible to one device: global plus device-scoped."""
    return [to_block_out(b) for b in store.query_blocks_for_device(db, device_id)]


def list_all_blocks(db: Session) -> list[BlockOut]:
    return [to_block_out(b) for b in store.query_all_blocks(db)]


def delete_block(db: Session, block_id: str) -> None:
    """Permanently delete a block.

    Raises:
        NotFoundError: E_BLOCK_NOT_FOUND if no block has this id.
    """
    with transaction(db, "delete_block"):
        deleted = store.delete_block(db, block_id)
    if not deleted:
        raise NotFoundError(ApiErrorCode.E_BLOCK_NOT_FOUND, "Block not found")
    logger.info("block_deleted", block_id=block_id)
