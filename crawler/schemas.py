"""
Pydantic models for API request/response validation.
"""

from typing import Literal

from pydantic import BaseModel

from .database import DBHistoryEntry, DBJob, DBQueueItem, SourceStats


# ─────────────────────────────────────────────────────────────
# Job Schemas
# ─────────────────────────────────────────────────────────────

class JobResponse(BaseModel):
    """One crawl job and its counters."""
    id: int
    source_id: int
    status: str
    items_found: int
    items_submitted: int
    items_failed: int
    started_at: str | None
    completed_at: str | None
    error_message: str | None = None
    created_at: str | None

    @classmethod
    def from_db(cls, job: DBJob) -> "JobResponse":
        return cls(
            id=job.id,
            source_id=job.source_id,
            status=job.status.value,
            items_found=job.items_found,
            items_submitted=job.items_submitted,
            items_failed=job.items_failed,
            started_at=job.started_at.isoformat() if job.started_at else None,
            completed_at=job.completed_at.isoformat() if job.completed_at else None,
            error_message=job.error_message,
            created_at=job.created_at.isoformat() if job.created_at else None,
        )


class CrawlTriggerResponse(BaseModel):
    source_id: int
    status: str = "started"


# ─────────────────────────────────────────────────────────────
# Queue Schemas
# ─────────────────────────────────────────────────────────────

class QueueItemResponse(BaseModel):
    """A staged candidate awaiting (or past) downstream ingestion."""
    id: int
    source_id: int
    job_id: int | None
    original_url: str
    extracted_url: str
    title: str | None
    group_label: str | None
    context: dict
    priority: int
    status: str
    image_url: str | None = None
    favicon_url: str | None = None
    created_at: str
    processed_at: str | None = None
    error_message: str | None = None

    @classmethod
    def from_db(cls, item: DBQueueItem) -> "QueueItemResponse":
        return cls(
            id=item.id,
            source_id=item.source_id,
            job_id=item.job_id,
            original_url=item.original_url,
            extracted_url=item.extracted_url,
            title=item.title,
            group_label=item.group_label,
            context=item.context,
            priority=item.priority,
            status=item.status.value,
            image_url=item.image_url,
            favicon_url=item.favicon_url,
            created_at=item.created_at.isoformat(),
            processed_at=item.processed_at.isoformat() if item.processed_at else None,
            error_message=item.error_message,
        )


class QueueUpdateRequest(BaseModel):
    """Terminal transition reported by the downstream consumer."""
    status: Literal["processed", "failed", "duplicate"]
    error_message: str | None = None


# ─────────────────────────────────────────────────────────────
# History & Statistics Schemas
# ─────────────────────────────────────────────────────────────

class HistoryEntryResponse(BaseModel):
    id: int
    source_id: int
    job_id: int
    url: str
    title: str | None
    discovered_at: str
    submitted: bool
    error_message: str | None = None

    @classmethod
    def from_db(cls, entry: DBHistoryEntry) -> "HistoryEntryResponse":
        return cls(
            id=entry.id,
            source_id=entry.source_id,
            job_id=entry.job_id,
            url=entry.url,
            title=entry.title,
            discovered_at=entry.discovered_at.isoformat(),
            submitted=entry.submitted,
            error_message=entry.error_message,
        )


class SourceStatsResponse(BaseModel):
    """Aggregate crawl outcomes for one source."""
    source_id: int
    source_name: str
    total_crawls: int
    completed_crawls: int
    failed_crawls: int
    total_items_found: int
    total_items_submitted: int
    total_items_failed: int
    success_rate: float

    @classmethod
    def from_db(cls, stats: SourceStats) -> "SourceStatsResponse":
        return cls(
            source_id=stats.source_id,
            source_name=stats.source_name,
            total_crawls=stats.total_crawls,
            completed_crawls=stats.completed_crawls,
            failed_crawls=stats.failed_crawls,
            total_items_found=stats.total_items_found,
            total_items_submitted=stats.total_items_submitted,
            total_items_failed=stats.total_items_failed,
            success_rate=round(stats.success_rate, 4),
        )


class StatusResponse(BaseModel):
    status: str
    version: str
    scheduler_running: bool
    active_sources: list[int]
    queue: dict[str, int]
