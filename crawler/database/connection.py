"""
Database connection management and schema initialization.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


class DatabaseConnection:
    """Manages database connection and schema."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def conn(self) -> Iterator[sqlite3.Connection]:
        """Get database connection with row factory."""
        connection = sqlite3.connect(self.db_path, timeout=30)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _init_schema(self):
        """Initialize database schema."""
        with self.conn() as connection:
            connection.executescript("""
                CREATE TABLE IF NOT EXISTS crawler_sources (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL CHECK(type IN ('rss', 'sitemap', 'web')),
                    url TEXT UNIQUE NOT NULL,
                    domain TEXT NOT NULL,
                    enabled BOOLEAN NOT NULL DEFAULT TRUE,
                    crawl_frequency_hours INTEGER NOT NULL DEFAULT 24
                        CHECK(crawl_frequency_hours >= 1),
                    last_crawled_at TIMESTAMP,
                    next_crawl_at TIMESTAMP,
                    topics TEXT,
                    metadata TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS crawler_jobs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source_id INTEGER NOT NULL REFERENCES crawler_sources(id) ON DELETE CASCADE,
                    status TEXT NOT NULL DEFAULT 'pending'
                        CHECK(status IN ('pending', 'running', 'completed', 'failed')),
                    items_found INTEGER NOT NULL DEFAULT 0,
                    items_submitted INTEGER NOT NULL DEFAULT 0,
                    items_failed INTEGER NOT NULL DEFAULT 0,
                    started_at TIMESTAMP,
                    completed_at TIMESTAMP,
                    error_message TEXT,
                    created_at TIMESTAMP NOT NULL
                );

                CREATE TABLE IF NOT EXISTS crawler_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source_id INTEGER NOT NULL REFERENCES crawler_sources(id) ON DELETE CASCADE,
                    job_id INTEGER NOT NULL REFERENCES crawler_jobs(id) ON DELETE CASCADE,
                    url TEXT NOT NULL,
                    title TEXT,
                    discovered_at TIMESTAMP NOT NULL,
                    submitted BOOLEAN NOT NULL DEFAULT FALSE,
                    error_message TEXT
                );

                CREATE TABLE IF NOT EXISTS extracted_links_queue (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source_id INTEGER NOT NULL REFERENCES crawler_sources(id) ON DELETE CASCADE,
                    job_id INTEGER REFERENCES crawler_jobs(id) ON DELETE SET NULL,
                    original_url TEXT NOT NULL,
                    extracted_url TEXT UNIQUE NOT NULL,
                    title TEXT,
                    group_label TEXT,
                    context TEXT,
                    priority INTEGER NOT NULL DEFAULT 5,
                    status TEXT NOT NULL DEFAULT 'pending'
                        CHECK(status IN ('pending', 'processed', 'failed', 'duplicate')),
                    created_at TIMESTAMP NOT NULL,
                    processed_at TIMESTAMP,
                    error_message TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_sources_due ON crawler_sources(enabled, next_crawl_at);
                CREATE INDEX IF NOT EXISTS idx_jobs_source ON crawler_jobs(source_id, created_at DESC);
                CREATE INDEX IF NOT EXISTS idx_jobs_status ON crawler_jobs(status);
                CREATE INDEX IF NOT EXISTS idx_history_source ON crawler_history(source_id, discovered_at DESC);
                CREATE INDEX IF NOT EXISTS idx_queue_pending ON extracted_links_queue(status, priority DESC, created_at ASC);
            """)

            # Migrations
            self._migrate_add_column(connection, "extracted_links_queue", "image_url", "TEXT")
            self._migrate_add_column(connection, "extracted_links_queue", "favicon_url", "TEXT")

    def _migrate_add_column(
        self,
        conn: sqlite3.Connection,
        table: str,
        column: str,
        column_type: str
    ):
        """Add a column to a table if it doesn't exist."""
        cursor = conn.execute(f"PRAGMA table_info({table})")
        columns = [row[1] for row in cursor.fetchall()]
        if column not in columns:
            conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")
