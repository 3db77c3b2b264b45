"""
Configuration and application state management.
"""

import os
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv
from fastapi import HTTPException

if TYPE_CHECKING:
    from .database import Database
    from .engine import CrawlerEngine
    from .scheduler import CrawlerScheduler

# Load environment variables
load_dotenv()


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


class Config:
    """Application configuration from environment."""
    DB_PATH: Path = Path(os.getenv("DB_PATH", "./data/crawler.db"))
    PORT: int = int(os.getenv("PORT", "7004"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Optional API key for the admin/moderation endpoints
    AUTH_API_KEY: str = os.getenv("AUTH_API_KEY", "")

    # Object storage for captured media
    MEDIA_ROOT: Path = Path(os.getenv("MEDIA_ROOT", "./data/media"))
    MEDIA_PUBLIC_URL: str = os.getenv("MEDIA_PUBLIC_URL", "http://localhost:7004/media")
    CONTENT_IMAGES_BUCKET: str = os.getenv("CONTENT_IMAGES_BUCKET", "content-images")
    FAVICONS_BUCKET: str = os.getenv("FAVICONS_BUCKET", "favicons")

    # Outbound identity
    CRAWLER_USER_AGENT: str = os.getenv(
        "CRAWLER_USER_AGENT", "DiscoveryCrawler/1.0 (+https://discovery.example/bot)"
    )
    MEDIA_USER_AGENT: str = os.getenv(
        "MEDIA_USER_AGENT", "DiscoveryCrawler-Media/1.0 (+https://discovery.example/bot)"
    )

    # Scheduling
    SCHEDULER_ENABLED: bool = _parse_bool(os.getenv("SCHEDULER_ENABLED"), default=True)
    SCHEDULER_INTERVAL_MINUTES: int = int(os.getenv("SCHEDULER_INTERVAL_MINUTES", "15"))
    MAX_CONCURRENT_CRAWLS: int = int(os.getenv("MAX_CONCURRENT_CRAWLS", "5"))
    SHUTDOWN_TIMEOUT: float = float(os.getenv("SHUTDOWN_TIMEOUT", "30"))

    # Fetch limits
    FETCH_TIMEOUT: float = float(os.getenv("FETCH_TIMEOUT", "15"))
    FETCH_MAX_BYTES: int = int(os.getenv("FETCH_MAX_BYTES", str(10 * 1024 * 1024)))
    DEFAULT_CRAWL_DELAY_MS: int = int(os.getenv("DEFAULT_CRAWL_DELAY_MS", "1000"))
    MAX_CRAWL_DELAY_SECONDS: float = float(os.getenv("MAX_CRAWL_DELAY_SECONDS", "30"))
    SITEMAP_RECENCY_DAYS: int = int(os.getenv("SITEMAP_RECENCY_DAYS", "30"))

    # Pipeline behaviour
    CAPTURE_MEDIA: bool = _parse_bool(os.getenv("CAPTURE_MEDIA"), default=True)
    CHECK_CANDIDATE_ROBOTS: bool = _parse_bool(os.getenv("CHECK_CANDIDATE_ROBOTS"), default=True)


config = Config()


class AppState:
    """Shared application state."""
    db: "Database | None" = None
    engine: "CrawlerEngine | None" = None
    scheduler: "CrawlerScheduler | None" = None


state = AppState()


def get_db() -> "Database":
    """Dependency to get database instance."""
    if not state.db:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return state.db
