"""
Miscellaneous routes: health check, crawl history, statistics.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from .. import __version__
from ..auth import verify_api_key
from ..config import state, get_db
from ..database import Database
from ..exceptions import require_source
from ..schemas import HistoryEntryResponse, SourceStatsResponse, StatusResponse

router = APIRouter(tags=["misc"])


# ─────────────────────────────────────────────────────────────
# Health Check
# ─────────────────────────────────────────────────────────────

@router.get("/status")
async def health_check(
    db: Annotated[Database, Depends(get_db)]
) -> StatusResponse:
    """Service health, scheduler state and queue depth."""
    scheduler = state.scheduler
    return StatusResponse(
        status="ok",
        version=__version__,
        scheduler_running=bool(scheduler and scheduler.running),
        active_sources=sorted(scheduler.active_sources) if scheduler else [],
        queue=db.count_queue_by_status(),
    )


# ─────────────────────────────────────────────────────────────
# History & Statistics
# ─────────────────────────────────────────────────────────────

@router.get("/history/{source_id}", dependencies=[Depends(verify_api_key)])
async def get_history(
    source_id: int,
    db: Annotated[Database, Depends(get_db)],
    limit: int = Query(default=100, ge=1, le=1000),
) -> list[HistoryEntryResponse]:
    """Candidates recently seen for a source, newest first."""
    require_source(db.get_source(source_id))
    return [HistoryEntryResponse.from_db(e) for e in db.get_history(source_id, limit)]


@router.get("/stats", dependencies=[Depends(verify_api_key)])
async def get_stats(
    db: Annotated[Database, Depends(get_db)]
) -> list[SourceStatsResponse]:
    """Per-source crawl statistics."""
    return [SourceStatsResponse.from_db(s) for s in db.get_stats()]
