"""
Content Crawler API Server

FastAPI application hosting the crawl scheduler and providing endpoints for:
- Health and queue depth
- Crawl jobs (list, inspect, manual trigger)
- Crawl history and per-source statistics
- The submission queue consumed by moderation
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from . import __version__
from .config import config, state
from .database import Database
from .domain_policy import DomainPolicy
from .engine import CrawlerEngine
from .feeds import FeedFetcher
from .http import HttpClient
from .media import MediaCapture
from .robots import RobotsPolicy
from .routes import jobs_router, misc_router, queue_router
from .scheduler import CrawlerScheduler
from .sitemap import SitemapFetcher
from .storage import LocalObjectStore
from .web import WebFetcher

logger = logging.getLogger(__name__)


def build_engine(db: Database) -> CrawlerEngine:
    """Wire the fetchers, robots policy and media capture from config."""
    http = HttpClient(
        user_agent=config.CRAWLER_USER_AGENT,
        timeout=config.FETCH_TIMEOUT,
        max_bytes=config.FETCH_MAX_BYTES,
    )
    robots = RobotsPolicy(
        http,
        user_agent=config.CRAWLER_USER_AGENT,
        default_delay=config.DEFAULT_CRAWL_DELAY_MS / 1000,
        max_delay=config.MAX_CRAWL_DELAY_SECONDS,
    )
    feeds = FeedFetcher(http, robots, config.CRAWLER_USER_AGENT, timeout=config.FETCH_TIMEOUT)
    sitemaps = SitemapFetcher(
        http,
        robots,
        config.CRAWLER_USER_AGENT,
        timeout=config.FETCH_TIMEOUT,
        max_bytes=config.FETCH_MAX_BYTES,
    )
    web = WebFetcher(feeds, sitemaps, recency_days=config.SITEMAP_RECENCY_DAYS)

    media = None
    if config.CAPTURE_MEDIA:
        media = MediaCapture(
            HttpClient(user_agent=config.MEDIA_USER_AGENT),
            LocalObjectStore(config.MEDIA_ROOT, config.MEDIA_PUBLIC_URL),
            user_agent=config.MEDIA_USER_AGENT,
            images_bucket=config.CONTENT_IMAGES_BUCKET,
            favicons_bucket=config.FAVICONS_BUCKET,
        )

    return CrawlerEngine(
        db,
        feeds=feeds,
        sitemaps=sitemaps,
        web=web,
        robots=robots,
        media=media,
        policy=DomainPolicy(),
        recency_days=config.SITEMAP_RECENCY_DAYS,
        check_candidate_robots=config.CHECK_CANDIDATE_ROBOTS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup application resources."""
    # Startup - skip if already initialized (e.g., by tests)
    if state.db is None:
        state.db = Database(config.DB_PATH)
        state.engine = build_engine(state.db)
        state.scheduler = CrawlerScheduler(
            state.db,
            state.engine,
            interval_seconds=config.SCHEDULER_INTERVAL_MINUTES * 60,
            max_concurrent=config.MAX_CONCURRENT_CRAWLS,
            shutdown_timeout=config.SHUTDOWN_TIMEOUT,
        )

        if config.SCHEDULER_ENABLED:
            await state.scheduler.start()
        else:
            logger.info("Scheduler disabled, crawls run only when triggered")

    yield

    # Shutdown
    if state.scheduler:
        await state.scheduler.stop()


app = FastAPI(
    title="Content Crawler API",
    version=__version__,
    lifespan=lifespan
)

# Include routers
app.include_router(misc_router)
app.include_router(jobs_router)
app.include_router(queue_router)

# Captured images and favicons
app.mount("/media", StaticFiles(directory=config.MEDIA_ROOT, check_dir=False), name="media")


def main():
    """Run the service with uvicorn."""
    logging.basicConfig(
        level=config.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=config.PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
