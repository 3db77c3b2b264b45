"""
Database models - dataclasses for database entities.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from ..profiles import SourceProfile


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class QueueStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
    DUPLICATE = "duplicate"


TERMINAL_QUEUE_STATUSES = {QueueStatus.PROCESSED, QueueStatus.FAILED, QueueStatus.DUPLICATE}


@dataclass
class DBSource:
    id: int
    name: str
    type: str  # rss, sitemap, web
    url: str
    domain: str
    enabled: bool
    crawl_frequency_hours: int
    profile: SourceProfile
    last_crawled_at: datetime | None = None
    next_crawl_at: datetime | None = None
    topics: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None

    def is_due(self, now: datetime) -> bool:
        return self.enabled and (self.next_crawl_at is None or self.next_crawl_at <= now)

    def next_crawl_after(self, crawled_at: datetime) -> datetime:
        return crawled_at + timedelta(hours=self.crawl_frequency_hours)


@dataclass
class DBJob:
    id: int
    source_id: int
    status: JobStatus
    items_found: int = 0
    items_submitted: int = 0
    items_failed: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None
    created_at: datetime | None = None


@dataclass
class NewQueueItem:
    """A candidate about to be staged in the submission queue."""
    source_id: int
    original_url: str
    extracted_url: str
    title: str | None = None
    group_label: str | None = None
    context: dict[str, Any] = field(default_factory=dict)
    priority: int = 5
    job_id: int | None = None
    image_url: str | None = None


@dataclass
class DBQueueItem:
    id: int
    source_id: int
    original_url: str
    extracted_url: str
    title: str | None
    group_label: str | None
    context: dict[str, Any]
    priority: int
    status: QueueStatus
    created_at: datetime
    job_id: int | None = None
    image_url: str | None = None
    favicon_url: str | None = None
    processed_at: datetime | None = None
    error_message: str | None = None


@dataclass
class EnqueueResult:
    """Outcome of staging one candidate. Duplicates are not errors."""
    item_id: int
    inserted: bool
    priority_raised: bool = False


@dataclass
class DBHistoryEntry:
    id: int
    source_id: int
    job_id: int
    url: str
    title: str | None
    discovered_at: datetime
    submitted: bool
    error_message: str | None = None


@dataclass
class SourceStats:
    source_id: int
    source_name: str
    total_crawls: int
    completed_crawls: int
    failed_crawls: int
    total_items_found: int
    total_items_submitted: int
    total_items_failed: int

    @property
    def success_rate(self) -> float:
        finished = self.completed_crawls + self.failed_crawls
        return self.completed_crawls / finished if finished else 0.0
