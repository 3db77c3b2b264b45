"""
Source repository - crawl targets and their schedule.

Sources are created and edited through the admin boundary; the pipeline
itself only reads them and advances last_crawled_at/next_crawl_at.
"""

import json
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlparse

from .connection import DatabaseConnection
from .converters import row_to_source, to_db_timestamp
from .models import DBSource


class SourceRepository:
    """Repository for crawler source operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def add(
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
        """Add a new source. Returns source ID."""
        if crawl_frequency_hours < 1:
            raise ValueError("crawl_frequency_hours must be at least 1")
        domain = domain or (urlparse(url).hostname or "").lower()
        with self._db.conn() as conn:
            cursor = conn.execute(
                """INSERT INTO crawler_sources
                   (name, type, url, domain, enabled, crawl_frequency_hours, topics, metadata)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    name, type, url, domain, enabled, crawl_frequency_hours,
                    json.dumps(topics or []), json.dumps(metadata or {}),
                )
            )
            return cursor.lastrowid

    def get(self, source_id: int) -> DBSource | None:
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT * FROM crawler_sources WHERE id = ?", (source_id,)
            ).fetchone()
            return row_to_source(row) if row else None

    def get_all(self) -> list[DBSource]:
        with self._db.conn() as conn:
            rows = conn.execute("SELECT * FROM crawler_sources ORDER BY name").fetchall()
            return [row_to_source(row) for row in rows]

    def get_due(self, now: datetime) -> list[DBSource]:
        """Enabled sources never crawled or whose next crawl time has passed."""
        with self._db.conn() as conn:
            rows = conn.execute(
                """SELECT * FROM crawler_sources
                   WHERE enabled = TRUE
                     AND (next_crawl_at IS NULL OR next_crawl_at <= ?)
                   ORDER BY next_crawl_at IS NOT NULL, next_crawl_at, id""",
                (to_db_timestamp(now),)
            ).fetchall()
            return [row_to_source(row) for row in rows]

    def set_enabled(self, source_id: int, enabled: bool):
        with self._db.conn() as conn:
            conn.execute(
                "UPDATE crawler_sources SET enabled = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (enabled, source_id)
            )

    def update_frequency(self, source_id: int, crawl_frequency_hours: int):
        """Change crawl frequency, keeping next_crawl_at = last_crawled_at + frequency."""
        if crawl_frequency_hours < 1:
            raise ValueError("crawl_frequency_hours must be at least 1")
        source = self.get(source_id)
        if source is None:
            return
        next_crawl = None
        if source.last_crawled_at:
            next_crawl = to_db_timestamp(source.last_crawled_at + timedelta(hours=crawl_frequency_hours))
        with self._db.conn() as conn:
            conn.execute(
                """UPDATE crawler_sources
                   SET crawl_frequency_hours = ?, next_crawl_at = ?, updated_at = CURRENT_TIMESTAMP
                   WHERE id = ?""",
                (crawl_frequency_hours, next_crawl, source_id)
            )

    def record_crawl(self, source_id: int, crawled_at: datetime):
        """Advance the schedule: last = crawled_at, next = crawled_at + frequency."""
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT crawl_frequency_hours FROM crawler_sources WHERE id = ?", (source_id,)
            ).fetchone()
            if row is None:
                return
            next_crawl = crawled_at + timedelta(hours=row["crawl_frequency_hours"])
            conn.execute(
                """UPDATE crawler_sources
                   SET last_crawled_at = ?, next_crawl_at = ?, updated_at = CURRENT_TIMESTAMP
                   WHERE id = ?""",
                (to_db_timestamp(crawled_at), to_db_timestamp(next_crawl), source_id)
            )
