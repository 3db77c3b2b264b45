"""
Database row converters - convert SQLite rows to dataclasses.
"""

import json
import sqlite3
from datetime import datetime, timezone

from ..profiles import resolve_profile
from .models import (
    DBHistoryEntry,
    DBJob,
    DBQueueItem,
    DBSource,
    JobStatus,
    QueueStatus,
)


def to_db_timestamp(value: datetime) -> str:
    """UTC ISO-8601 with fixed precision, so string order is time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _json(value: str | None, default):
    if not value:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return default


def row_to_source(row: sqlite3.Row) -> DBSource:
    """Convert a database row to a DBSource, resolving its fetch profile."""
    metadata = _json(row["metadata"], {})
    return DBSource(
        id=row["id"],
        name=row["name"],
        type=row["type"],
        url=row["url"],
        domain=row["domain"],
        enabled=bool(row["enabled"]),
        crawl_frequency_hours=row["crawl_frequency_hours"],
        profile=resolve_profile(row["type"], row["url"], metadata),
        last_crawled_at=parse_timestamp(row["last_crawled_at"]),
        next_crawl_at=parse_timestamp(row["next_crawl_at"]),
        topics=_json(row["topics"], []),
        metadata=metadata,
        created_at=parse_timestamp(row["created_at"]),
    )


def row_to_job(row: sqlite3.Row) -> DBJob:
    return DBJob(
        id=row["id"],
        source_id=row["source_id"],
        status=JobStatus(row["status"]),
        items_found=row["items_found"],
        items_submitted=row["items_submitted"],
        items_failed=row["items_failed"],
        started_at=parse_timestamp(row["started_at"]),
        completed_at=parse_timestamp(row["completed_at"]),
        error_message=row["error_message"],
        created_at=parse_timestamp(row["created_at"]),
    )


def row_to_queue_item(row: sqlite3.Row) -> DBQueueItem:
    return DBQueueItem(
        id=row["id"],
        source_id=row["source_id"],
        job_id=row["job_id"],
        original_url=row["original_url"],
        extracted_url=row["extracted_url"],
        title=row["title"],
        group_label=row["group_label"],
        context=_json(row["context"], {}),
        priority=row["priority"],
        status=QueueStatus(row["status"]),
        image_url=row["image_url"],
        favicon_url=row["favicon_url"],
        created_at=parse_timestamp(row["created_at"]),
        processed_at=parse_timestamp(row["processed_at"]),
        error_message=row["error_message"],
    )


def row_to_history(row: sqlite3.Row) -> DBHistoryEntry:
    return DBHistoryEntry(
        id=row["id"],
        source_id=row["source_id"],
        job_id=row["job_id"],
        url=row["url"],
        title=row["title"],
        discovered_at=parse_timestamp(row["discovered_at"]),
        submitted=bool(row["submitted"]),
        error_message=row["error_message"],
    )
