"""
Queue repository - the deduplicating submission queue.

Rows are keyed by destination URL. Enqueueing an already-known URL is a
no-op apart from raising the priority of a still-pending row. Terminal
statuses are final: a processed/failed/duplicate row is never re-queued.
"""

import json
from datetime import datetime

from ..exceptions import QueueStateError
from .connection import DatabaseConnection
from .converters import row_to_queue_item, to_db_timestamp
from .models import (
    TERMINAL_QUEUE_STATUSES,
    DBQueueItem,
    EnqueueResult,
    NewQueueItem,
    QueueStatus,
)


class QueueRepository:
    """Repository for the extracted links queue."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def enqueue(self, item: NewQueueItem, now: datetime) -> EnqueueResult:
        """
        Stage a candidate, idempotently.

        On conflict the existing row keeps its data; if it is still pending
        and the new priority is higher, the priority is raised.
        """
        with self._db.conn() as conn:
            cursor = conn.execute(
                """INSERT INTO extracted_links_queue
                   (source_id, job_id, original_url, extracted_url, title, group_label,
                    context, priority, status, image_url, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'pending', ?, ?)
                   ON CONFLICT(extracted_url) DO NOTHING""",
                (
                    item.source_id, item.job_id, item.original_url, item.extracted_url,
                    item.title, item.group_label, json.dumps(item.context),
                    item.priority, item.image_url, to_db_timestamp(now),
                )
            )
            if cursor.rowcount == 1:
                return EnqueueResult(item_id=cursor.lastrowid, inserted=True)

            row = conn.execute(
                "SELECT id, priority, status FROM extracted_links_queue WHERE extracted_url = ?",
                (item.extracted_url,)
            ).fetchone()

            raised = False
            if row["status"] == QueueStatus.PENDING.value and row["priority"] < item.priority:
                conn.execute(
                    "UPDATE extracted_links_queue SET priority = ? WHERE id = ? AND status = 'pending'",
                    (item.priority, row["id"])
                )
                raised = True

            return EnqueueResult(item_id=row["id"], inserted=False, priority_raised=raised)

    def attach_media(self, item_id: int, image_url: str | None = None, favicon_url: str | None = None):
        """Store captured media URLs on a row, keeping existing values where none captured."""
        with self._db.conn() as conn:
            conn.execute(
                """UPDATE extracted_links_queue
                   SET image_url = COALESCE(?, image_url), favicon_url = COALESCE(?, favicon_url)
                   WHERE id = ?""",
                (image_url, favicon_url, item_id)
            )

    def get(self, item_id: int) -> DBQueueItem | None:
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT * FROM extracted_links_queue WHERE id = ?", (item_id,)
            ).fetchone()
            return row_to_queue_item(row) if row else None

    def get_by_url(self, extracted_url: str) -> DBQueueItem | None:
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT * FROM extracted_links_queue WHERE extracted_url = ?", (extracted_url,)
            ).fetchone()
            return row_to_queue_item(row) if row else None

    def get_pending(self, limit: int = 50) -> list[DBQueueItem]:
        """Pending rows, highest priority first, then oldest first."""
        with self._db.conn() as conn:
            rows = conn.execute(
                """SELECT * FROM extracted_links_queue
                   WHERE status = 'pending'
                   ORDER BY priority DESC, created_at ASC, id ASC
                   LIMIT ?""",
                (limit,)
            ).fetchall()
            return [row_to_queue_item(row) for row in rows]

    def mark(
        self,
        item_id: int,
        status: QueueStatus | str,
        now: datetime,
        error_message: str | None = None,
    ) -> DBQueueItem:
        """
        Move a pending row to a terminal status.

        Raises:
            QueueStateError: If the status is not terminal, a failure has no
                message, or the row is missing or already terminal
        """
        status = QueueStatus(status)
        if status not in TERMINAL_QUEUE_STATUSES:
            raise QueueStateError(f"'{status.value}' is not a terminal status")
        if status is QueueStatus.FAILED and not error_message:
            raise QueueStateError("A failed status requires an error message")

        with self._db.conn() as conn:
            cursor = conn.execute(
                """UPDATE extracted_links_queue
                   SET status = ?, processed_at = ?, error_message = ?
                   WHERE id = ? AND status = 'pending'""",
                (status.value, to_db_timestamp(now), error_message, item_id)
            )
            row = conn.execute(
                "SELECT * FROM extracted_links_queue WHERE id = ?", (item_id,)
            ).fetchone()

        if row is None:
            raise QueueStateError(f"Queue item {item_id} not found")
        if cursor.rowcount != 1:
            raise QueueStateError(f"Queue item {item_id} is already {row['status']}")
        return row_to_queue_item(row)

    def count_by_status(self) -> dict[str, int]:
        with self._db.conn() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS count FROM extracted_links_queue GROUP BY status"
            ).fetchall()
        counts = {s.value: 0 for s in QueueStatus}
        counts.update({row["status"]: row["count"] for row in rows})
        return counts
