"""
History repository - every candidate a job saw, submitted or not.
"""

from datetime import datetime

from .connection import DatabaseConnection
from .converters import row_to_history, to_db_timestamp
from .models import DBHistoryEntry


class HistoryRepository:
    """Repository for crawl history."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def record(
        self,
        source_id: int,
        job_id: int,
        url: str,
        title: str | None,
        submitted: bool,
        now: datetime,
        error_message: str | None = None,
    ) -> int:
        with self._db.conn() as conn:
            cursor = conn.execute(
                """INSERT INTO crawler_history
                   (source_id, job_id, url, title, discovered_at, submitted, error_message)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (source_id, job_id, url, title, to_db_timestamp(now), submitted, error_message)
            )
            return cursor.lastrowid

    def get_for_source(self, source_id: int, limit: int = 100) -> list[DBHistoryEntry]:
        with self._db.conn() as conn:
            rows = conn.execute(
                """SELECT * FROM crawler_history WHERE source_id = ?
                   ORDER BY discovered_at DESC, id DESC LIMIT ?""",
                (source_id, limit)
            ).fetchall()
            return [row_to_history(row) for row in rows]

    def get_for_job(self, job_id: int) -> list[DBHistoryEntry]:
        with self._db.conn() as conn:
            rows = conn.execute(
                "SELECT * FROM crawler_history WHERE job_id = ? ORDER BY id",
                (job_id,)
            ).fetchall()
            return [row_to_history(row) for row in rows]
