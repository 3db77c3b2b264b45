"""
Crawler engine - run one crawl job for one source.

A job moves pending -> running -> completed|failed. Fetch failures end the
job as failed with the error recorded; robots rejections of the source
itself end it as completed with nothing found. Either way the source's
schedule advances so a broken source is not retried in a tight loop.
"""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any

from .clock import Clock, utc_now
from .database import Database, DBJob, DBSource, NewQueueItem
from .domain_policy import DomainPolicy, host_of
from .exceptions import FetchError, PolicyRejection, SourceBusyError
from .feeds import FeedFetcher, NormalizedItem
from .link_extractor import DIRECT_ITEM_PRIORITY, LinkExtractor
from .media import MediaCapture
from .profiles import SourceType
from .robots import RobotsPolicy
from .sitemap import SitemapEntry, SitemapFetcher, filter_by_recency
from .web import WebFetcher

logger = logging.getLogger(__name__)

SHUTDOWN_MESSAGE = "Crawl cancelled by scheduler shutdown"


@dataclass
class Candidate:
    """A URL found by a fetcher, before it is staged."""
    url: str
    original_url: str
    title: str | None = None
    group_label: str | None = None
    context: dict[str, Any] = field(default_factory=dict)
    priority: int = DIRECT_ITEM_PRIORITY
    image_url: str | None = None


@dataclass
class SubmitSummary:
    submitted: int = 0
    failed: int = 0
    skipped: int = 0


def item_candidate(item: NormalizedItem) -> Candidate:
    return Candidate(
        url=item.link,
        original_url=item.link,
        title=item.title,
        context={
            "description": item.description or "",
            "author": item.author or "",
            "pubDate": item.pub_date or "",
            "categories": item.categories,
        },
        image_url=item.image_url,
    )


def sitemap_candidate(entry: SitemapEntry) -> Candidate:
    return Candidate(
        url=entry.url,
        original_url=entry.url,
        context={
            "lastmod": entry.lastmod or "",
            "changefreq": entry.changefreq or "",
            "sitemapPriority": entry.priority,
        },
    )


class CrawlerEngine:
    """Runs crawl jobs and stages their results in the submission queue."""

    def __init__(
        self,
        db: Database,
        feeds: FeedFetcher,
        sitemaps: SitemapFetcher,
        web: WebFetcher,
        robots: RobotsPolicy,
        media: MediaCapture | None = None,
        policy: DomainPolicy | None = None,
        clock: Clock = utc_now,
        recency_days: int = 30,
        check_candidate_robots: bool = True,
    ):
        self.db = db
        self.feeds = feeds
        self.sitemaps = sitemaps
        self.web = web
        self.robots = robots
        self.media = media
        self.policy = policy or DomainPolicy()
        self.clock = clock
        self.recency_days = recency_days
        self.check_candidate_robots = check_candidate_robots
        self._active: set[int] = set()

    def is_crawling(self, source_id: int) -> bool:
        return source_id in self._active

    async def crawl_source(self, source: DBSource) -> DBJob:
        """
        Run one job for a source and return its final state.

        Raises:
            SourceBusyError: If this engine is already crawling the source
        """
        if source.id in self._active:
            raise SourceBusyError(f"Source {source.id} is already being crawled")
        self._active.add(source.id)
        try:
            job_id = self.db.create_job(source.id, self.clock())
            return await self._run_job(source, job_id)
        finally:
            self._active.discard(source.id)

    async def _run_job(self, source: DBSource, job_id: int) -> DBJob:
        try:
            self.db.start_job(job_id, self.clock())
            logger.info(f"Crawl job {job_id} started for {source.name} ({source.type})")

            try:
                candidates = await self.collect_candidates(source)
            except PolicyRejection as e:
                logger.info(f"Crawl of {source.name} skipped: {e.reason}")
                candidates = []

            self.db.set_job_items_found(job_id, len(candidates))
            summary = await self.submit_candidates(source, job_id, candidates)
            self.db.complete_job(job_id, summary.submitted, summary.failed, self.clock())
            logger.info(
                f"Crawl job {job_id} completed for {source.name}: {len(candidates)} found, "
                f"{summary.submitted} submitted, {summary.failed} failed, {summary.skipped} skipped"
            )
        except asyncio.CancelledError:
            self.db.fail_job(job_id, SHUTDOWN_MESSAGE, self.clock())
            logger.warning(f"Crawl job {job_id} for {source.name} cancelled")
            raise
        except FetchError as e:
            self.db.fail_job(job_id, str(e), self.clock())
            logger.warning(f"Crawl job {job_id} failed for {source.name}: {e}")
        except Exception as e:
            self.db.fail_job(job_id, str(e) or e.__class__.__name__, self.clock())
            logger.exception(f"Crawl job {job_id} failed unexpectedly for {source.name}: {e}")
        finally:
            self.db.record_crawl(source.id, self.clock())

        return self.db.get_job(job_id)

    async def collect_candidates(self, source: DBSource) -> list[Candidate]:
        """Dispatch to the fetcher matching the source's profile."""
        profile = source.profile

        if profile.source_type is SourceType.RSS:
            items = await self.feeds.fetch(source.url, profile)
            return self._from_items(source, items)

        if profile.source_type is SourceType.SITEMAP:
            entries = await self.sitemaps.fetch(source.url, profile)
            recent = filter_by_recency(entries, self.recency_days, now=self.clock())
            return [sitemap_candidate(e) for e in recent]

        result = await self.web.fetch(source.url, profile, now=self.clock())
        if result.entries:
            return [sitemap_candidate(e) for e in result.entries]
        return self._from_items(source, result.items)

    def _from_items(self, source: DBSource, items: list[NormalizedItem]) -> list[Candidate]:
        profile = source.profile
        if not profile.link_bearing:
            return [item_candidate(item) for item in items]

        extractor = LinkExtractor(
            self.policy.with_platform(profile.platform_domains),
            group=profile.group_label,
        )
        return [
            Candidate(
                url=link.extracted_url,
                original_url=link.original_url,
                title=link.title,
                group_label=link.group,
                context=link.extraction_context,
                priority=link.priority,
            )
            for link in extractor.extract_all(items)
        ]

    async def submit_candidates(self, source: DBSource, job_id: int, candidates: list[Candidate]) -> SubmitSummary:
        """Stage candidates in the queue; robots-disallowed URLs are skipped."""
        summary = SubmitSummary()

        for candidate in candidates:
            if self.check_candidate_robots and not await self.robots.is_allowed(candidate.url):
                logger.debug(f"Robots.txt disallows {candidate.url}")
                summary.skipped += 1
                self.db.record_history(
                    source.id, job_id, candidate.url, candidate.title, False, self.clock(),
                    "Disallowed by robots.txt",
                )
                continue

            item = NewQueueItem(
                source_id=source.id,
                job_id=job_id,
                original_url=candidate.original_url,
                extracted_url=candidate.url,
                title=candidate.title,
                group_label=candidate.group_label,
                context={**candidate.context, "topics": source.topics},
                priority=candidate.priority,
                image_url=candidate.image_url,
            )
            try:
                result = self.db.enqueue(item, self.clock())
            except sqlite3.Error as e:
                logger.error(f"Failed to queue {candidate.url}: {e}")
                summary.failed += 1
                self.db.record_history(
                    source.id, job_id, candidate.url, candidate.title, False, self.clock(), str(e)
                )
                continue

            self.db.record_history(
                source.id, job_id, candidate.url, candidate.title, result.inserted, self.clock()
            )
            if not result.inserted:
                summary.skipped += 1
                continue

            summary.submitted += 1
            await self._capture_media(result.item_id, candidate)

        return summary

    async def _capture_media(self, item_id: int, candidate: Candidate):
        """Best-effort media capture for a newly queued row."""
        if self.media is None:
            return
        domain = host_of(candidate.url)
        media = await self.media.capture_content_media(candidate.image_url, domain)
        if media.image_public_url or media.favicon_url:
            self.db.attach_media(item_id, media.image_public_url, media.favicon_url)
        else:
            logger.debug(f"No media captured for {candidate.url}")
