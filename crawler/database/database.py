"""
Database facade - provides unified access to all repositories.
"""

from datetime import datetime
from pathlib import Path
from typing import Any

from .connection import DatabaseConnection
from .history_repository import HistoryRepository
from .job_repository import JobRepository
from .models import (
    DBHistoryEntry,
    DBJob,
    DBQueueItem,
    DBSource,
    EnqueueResult,
    NewQueueItem,
    QueueStatus,
    SourceStats,
)
from .queue_repository import QueueRepository
from .source_repository import SourceRepository


class Database:
    """
    Unified database access facade.

    Source and job tables are the only shared mutable state of the
    pipeline; every write below is a single keyed update.
    """

    def __init__(self, db_path: Path):
        self._connection = DatabaseConnection(db_path)

        # Initialize repositories
        self.sources = SourceRepository(self._connection)
        self.jobs = JobRepository(self._connection)
        self.queue = QueueRepository(self._connection)
        self.history = HistoryRepository(self._connection)

    # ─────────────────────────────────────────────────────────────
    # Source operations (delegated to SourceRepository)
    # ─────────────────────────────────────────────────────────────

    def add_source(
        self,
        name: str,
        type: str,
        url: str,
        domain: str | None = None,
        crawl_frequency_hours: int = 24,
        enabled: bool = True,
        topics: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> int:
        return self.sources.add(
            name, type, url, domain, crawl_frequency_hours, enabled, topics, metadata
        )

    def get_source(self, source_id: int) -> DBSource | None:
        return self.sources.get(source_id)

    def get_sources(self) -> list[DBSource]:
        return self.sources.get_all()

    def get_sources_due(self, now: datetime) -> list[DBSource]:
        return self.sources.get_due(now)

    def set_source_enabled(self, source_id: int, enabled: bool):
        return self.sources.set_enabled(source_id, enabled)

    def record_crawl(self, source_id: int, crawled_at: datetime):
        return self.sources.record_crawl(source_id, crawled_at)

    # ─────────────────────────────────────────────────────────────
    # Job operations (delegated to JobRepository)
    # ─────────────────────────────────────────────────────────────

    def create_job(self, source_id: int, now: datetime) -> int:
        return self.jobs.create(source_id, now)

    def start_job(self, job_id: int, now: datetime) -> bool:
        return self.jobs.start(job_id, now)

    def set_job_items_found(self, job_id: int, items_found: int):
        return self.jobs.set_items_found(job_id, items_found)

    def complete_job(self, job_id: int, items_submitted: int, items_failed: int, now: datetime) -> bool:
        return self.jobs.complete(job_id, items_submitted, items_failed, now)

    def fail_job(self, job_id: int, error_message: str, now: datetime) -> bool:
        return self.jobs.fail(job_id, error_message, now)

    def fail_unfinished_jobs(self, error_message: str, now: datetime) -> int:
        return self.jobs.fail_unfinished(error_message, now)

    def get_job(self, job_id: int) -> DBJob | None:
        return self.jobs.get(job_id)

    def get_jobs(
        self,
        source_id: int | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[DBJob]:
        return self.jobs.get_all(source_id, status, limit, offset)

    def has_active_job(self, source_id: int) -> bool:
        return self.jobs.has_active(source_id)

    def get_stats(self) -> list[SourceStats]:
        return self.jobs.get_stats()

    # ─────────────────────────────────────────────────────────────
    # Queue operations (delegated to QueueRepository)
    # ─────────────────────────────────────────────────────────────

    def enqueue(self, item: NewQueueItem, now: datetime) -> EnqueueResult:
        return self.queue.enqueue(item, now)

    def attach_media(self, item_id: int, image_url: str | None = None, favicon_url: str | None = None):
        return self.queue.attach_media(item_id, image_url, favicon_url)

    def get_queue_item(self, item_id: int) -> DBQueueItem | None:
        return self.queue.get(item_id)

    def get_pending_queue(self, limit: int = 50) -> list[DBQueueItem]:
        return self.queue.get_pending(limit)

    def mark_queue_item(
        self,
        item_id: int,
        status: QueueStatus | str,
        now: datetime,
        error_message: str | None = None,
    ) -> DBQueueItem:
        return self.queue.mark(item_id, status, now, error_message)

    def count_queue_by_status(self) -> dict[str, int]:
        return self.queue.count_by_status()

    # ─────────────────────────────────────────────────────────────
    # History operations (delegated to HistoryRepository)
    # ─────────────────────────────────────────────────────────────

    def record_history(
        self,
        source_id: int,
        job_id: int,
        url: str,
        title: str | None,
        submitted: bool,
        now: datetime,
        error_message: str | None = None,
    ) -> int:
        return self.history.record(source_id, job_id, url, title, submitted, now, error_message)

    def get_history(self, source_id: int, limit: int = 100) -> list[DBHistoryEntry]:
        return self.history.get_for_source(source_id, limit)
