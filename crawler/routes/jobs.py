"""
Crawl job routes: list, inspect, trigger.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from ..auth import verify_api_key
from ..config import state, get_db
from ..database import Database, JobStatus
from ..exceptions import SourceBusyError, SourceNotFoundError, require_job
from ..schemas import CrawlTriggerResponse, JobResponse

router = APIRouter(tags=["jobs"], dependencies=[Depends(verify_api_key)])


@router.get("/jobs")
async def list_jobs(
    db: Annotated[Database, Depends(get_db)],
    source_id: int | None = None,
    status: JobStatus | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> list[JobResponse]:
    """List crawl jobs, newest first."""
    jobs = db.get_jobs(
        source_id=source_id,
        status=status.value if status else None,
        limit=limit,
        offset=offset,
    )
    return [JobResponse.from_db(j) for j in jobs]


@router.get("/jobs/{job_id}")
async def get_job(
    job_id: int,
    db: Annotated[Database, Depends(get_db)]
) -> JobResponse:
    """Get a single crawl job."""
    return JobResponse.from_db(require_job(db.get_job(job_id)))


@router.post("/crawl/{source_id}", status_code=202)
async def trigger_crawl(source_id: int) -> CrawlTriggerResponse:
    """Start a crawl of one source now, outside its schedule."""
    if state.scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not initialized")

    try:
        state.scheduler.trigger_crawl(source_id)
    except SourceNotFoundError:
        raise HTTPException(status_code=404, detail="Source not found")
    except SourceBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return CrawlTriggerResponse(source_id=source_id)
