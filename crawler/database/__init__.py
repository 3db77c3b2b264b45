"""
Database module - SQLite storage for sources, jobs, history and the submission queue.

Uses repository pattern for better separation of concerns.
"""

from .connection import DatabaseConnection
from .models import (
    DBHistoryEntry,
    DBJob,
    DBQueueItem,
    DBSource,
    EnqueueResult,
    JobStatus,
    NewQueueItem,
    QueueStatus,
    SourceStats,
)
from .source_repository import SourceRepository
from .job_repository import JobRepository
from .queue_repository import QueueRepository
from .history_repository import HistoryRepository
from .database import Database

__all__ = [
    "Database",
    "DatabaseConnection",
    "DBHistoryEntry",
    "DBJob",
    "DBQueueItem",
    "DBSource",
    "EnqueueResult",
    "JobStatus",
    "NewQueueItem",
    "QueueStatus",
    "SourceStats",
    "SourceRepository",
    "JobRepository",
    "QueueRepository",
    "HistoryRepository",
]
