"""
Submission queue routes for the downstream moderation consumer.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from ..auth import verify_api_key
from ..clock import utc_now
from ..config import get_db
from ..database import Database
from ..exceptions import QueueStateError, require_queue_item
from ..schemas import QueueItemResponse, QueueUpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/queue",
    tags=["queue"],
    dependencies=[Depends(verify_api_key)]
)


@router.get("")
async def list_pending(
    db: Annotated[Database, Depends(get_db)],
    limit: int = Query(default=50, ge=1, le=500),
) -> list[QueueItemResponse]:
    """Pending rows, highest priority first, oldest first within a priority."""
    return [QueueItemResponse.from_db(i) for i in db.get_pending_queue(limit)]


@router.get("/{item_id}")
async def get_queue_item(
    item_id: int,
    db: Annotated[Database, Depends(get_db)]
) -> QueueItemResponse:
    return QueueItemResponse.from_db(require_queue_item(db.get_queue_item(item_id)))


@router.patch("/{item_id}")
async def update_queue_item(
    item_id: int,
    request: QueueUpdateRequest,
    db: Annotated[Database, Depends(get_db)]
) -> QueueItemResponse:
    """Move a pending row to processed, failed or duplicate."""
    require_queue_item(db.get_queue_item(item_id))
    if request.status == "failed" and not request.error_message:
        raise HTTPException(status_code=400, detail="error_message is required for failed items")

    try:
        item = db.mark_queue_item(item_id, request.status, utc_now(), request.error_message)
    except QueueStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(f"Queue item {item_id} marked {item.status.value}")
    return QueueItemResponse.from_db(item)
