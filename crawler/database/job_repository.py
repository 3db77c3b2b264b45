"""
Job repository - crawl attempts and their outcome.

Status only moves forward: pending -> running -> completed | failed.
Every transition is a single guarded UPDATE, so a late or repeated write
can never move a job backwards.
"""

from datetime import datetime

from .connection import DatabaseConnection
from .converters import row_to_job, to_db_timestamp
from .models import DBJob, SourceStats


class JobRepository:
    """Repository for crawler job operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def create(self, source_id: int, now: datetime) -> int:
        """Create a pending job. Returns job ID."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                "INSERT INTO crawler_jobs (source_id, status, created_at) VALUES (?, 'pending', ?)",
                (source_id, to_db_timestamp(now))
            )
            return cursor.lastrowid

    def start(self, job_id: int, now: datetime) -> bool:
        """pending -> running. Returns False if the job was not pending."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                "UPDATE crawler_jobs SET status = 'running', started_at = ? WHERE id = ? AND status = 'pending'",
                (to_db_timestamp(now), job_id)
            )
            return cursor.rowcount == 1

    def set_items_found(self, job_id: int, items_found: int):
        """Record items found on a running job. Counters never decrease."""
        with self._db.conn() as conn:
            conn.execute(
                """UPDATE crawler_jobs SET items_found = ?
                   WHERE id = ? AND status = 'running' AND items_found <= ?""",
                (items_found, job_id, items_found)
            )

    def complete(self, job_id: int, items_submitted: int, items_failed: int, now: datetime) -> bool:
        """running -> completed with final counters."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                """UPDATE crawler_jobs
                   SET status = 'completed', completed_at = ?,
                       items_submitted = MAX(items_submitted, ?),
                       items_failed = MAX(items_failed, ?)
                   WHERE id = ? AND status = 'running'""",
                (to_db_timestamp(now), items_submitted, items_failed, job_id)
            )
            return cursor.rowcount == 1

    def fail(self, job_id: int, error_message: str, now: datetime) -> bool:
        """pending|running -> failed with an error message."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                """UPDATE crawler_jobs
                   SET status = 'failed', completed_at = ?, error_message = ?
                   WHERE id = ? AND status IN ('pending', 'running')""",
                (to_db_timestamp(now), error_message, job_id)
            )
            return cursor.rowcount == 1

    def fail_unfinished(self, error_message: str, now: datetime) -> int:
        """Fail every job left pending/running by a previous process. Returns count."""
        with self._db.conn() as conn:
            cursor = conn.execute(
                """UPDATE crawler_jobs
                   SET status = 'failed', completed_at = ?, error_message = ?
                   WHERE status IN ('pending', 'running')""",
                (to_db_timestamp(now), error_message)
            )
            return cursor.rowcount

    def get(self, job_id: int) -> DBJob | None:
        with self._db.conn() as conn:
            row = conn.execute("SELECT * FROM crawler_jobs WHERE id = ?", (job_id,)).fetchone()
            return row_to_job(row) if row else None

    def get_all(
        self,
        source_id: int | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[DBJob]:
        """List jobs, newest first."""
        query = "SELECT * FROM crawler_jobs WHERE 1=1"
        params: list = []
        if source_id is not None:
            query += " AND source_id = ?"
            params.append(source_id)
        if status is not None:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self._db.conn() as conn:
            rows = conn.execute(query, params).fetchall()
            return [row_to_job(row) for row in rows]

    def has_active(self, source_id: int) -> bool:
        """Check if a source has a pending or running job."""
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT 1 FROM crawler_jobs WHERE source_id = ? AND status IN ('pending', 'running') LIMIT 1",
                (source_id,)
            ).fetchone()
            return row is not None

    def get_stats(self) -> list[SourceStats]:
        """Per-source crawl statistics."""
        with self._db.conn() as conn:
            rows = conn.execute("""
                SELECT s.id AS source_id, s.name AS source_name,
                       COUNT(j.id) AS total_crawls,
                       COUNT(CASE WHEN j.status = 'completed' THEN 1 END) AS completed_crawls,
                       COUNT(CASE WHEN j.status = 'failed' THEN 1 END) AS failed_crawls,
                       COALESCE(SUM(j.items_found), 0) AS total_items_found,
                       COALESCE(SUM(j.items_submitted), 0) AS total_items_submitted,
                       COALESCE(SUM(j.items_failed), 0) AS total_items_failed
                FROM crawler_sources s
                LEFT JOIN crawler_jobs j ON j.source_id = s.id
                GROUP BY s.id
                ORDER BY s.name
            """).fetchall()
            return [SourceStats(**dict(row)) for row in rows]
