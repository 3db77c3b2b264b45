"""
Crawler Scheduler.

Background task that periodically dispatches crawl jobs for due sources.
"""

import asyncio
import logging
from typing import TYPE_CHECKING

from .clock import Clock, utc_now
from .exceptions import SourceBusyError, SourceNotFoundError

if TYPE_CHECKING:
    from .database import Database, DBSource
    from .engine import CrawlerEngine


logger = logging.getLogger(__name__)

ORPHANED_JOB_MESSAGE = "Job interrupted by service restart"


class CrawlerScheduler:
    """
    Background scheduler for source crawls.

    Every tick, each enabled source whose next crawl time has passed gets
    its own job, run concurrently with the others up to max_concurrent.
    A source never has two jobs running at once.
    """

    def __init__(
        self,
        db: "Database",
        engine: "CrawlerEngine",
        interval_seconds: float = 900,
        max_concurrent: int = 5,
        clock: Clock = utc_now,
        shutdown_timeout: float = 30,
    ):
        self.db = db
        self.engine = engine
        self.clock = clock
        self.shutdown_timeout = shutdown_timeout
        self._interval_seconds = interval_seconds
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._task: asyncio.Task | None = None
        self._running = False
        self._active: set[int] = set()
        self._jobs: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def active_sources(self) -> set[int]:
        return set(self._active)

    async def start(self):
        """Start the scheduler. Jobs left running by a previous process are failed first."""
        if self._running:
            return

        orphaned = self.db.fail_unfinished_jobs(ORPHANED_JOB_MESSAGE, self.clock())
        if orphaned:
            logger.warning(f"Marked {orphaned} orphaned crawl jobs as failed")

        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Crawler scheduler started (interval: {self._interval_seconds / 60:g} minutes)")

    async def stop(self):
        """Stop the scheduler and wind down in-flight crawls."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._jobs:
            pending = set(self._jobs)
            logger.info(f"Waiting up to {self.shutdown_timeout}s for {len(pending)} crawls to finish")
            _, still_running = await asyncio.wait(pending, timeout=self.shutdown_timeout)
            for task in still_running:
                task.cancel()
            if still_running:
                logger.warning(f"Cancelled {len(still_running)} crawls at shutdown")
                await asyncio.gather(*still_running, return_exceptions=True)

        logger.info("Crawler scheduler stopped")

    async def __aenter__(self) -> "CrawlerScheduler":
        await self.start()
        return self

    async def __aexit__(self, *exc_info):
        await self.stop()

    async def _loop(self):
        """Main scheduling loop. The first tick runs immediately."""
        while self._running:
            try:
                self.dispatch_due()
            except Exception as e:
                logger.exception(f"Error in crawler scheduling loop: {e}")

            await asyncio.sleep(self._interval_seconds)

    def dispatch_due(self) -> list[asyncio.Task]:
        """Start a crawl task for every due source that is not already being crawled."""
        now = self.clock()
        tasks = []
        for source in self.db.get_sources_due(now):
            if source.id in self._active or self.db.has_active_job(source.id):
                logger.debug(f"Source {source.name} still crawling, skipping this tick")
                continue
            tasks.append(self._spawn(source))

        if tasks:
            logger.info(f"Dispatched {len(tasks)} crawl jobs")
        return tasks

    async def run_due_crawls(self) -> list:
        """Dispatch due sources and wait for their jobs to finish."""
        tasks = self.dispatch_due()
        if not tasks:
            return []
        return await asyncio.gather(*tasks)

    def trigger_crawl(self, source_id: int) -> asyncio.Task:
        """
        Crawl one source now, regardless of its schedule.

        Raises:
            SourceNotFoundError: If the source doesn't exist
            SourceBusyError: If the source already has a job in flight
        """
        source = self.db.get_source(source_id)
        if source is None:
            raise SourceNotFoundError(f"Source {source_id} not found")
        if source_id in self._active or self.db.has_active_job(source_id):
            raise SourceBusyError(f"Source {source_id} is already being crawled")

        logger.info(f"Manual crawl triggered for {source.name}")
        return self._spawn(source)

    def _spawn(self, source: "DBSource") -> asyncio.Task:
        # Marked before the task exists so the next tick can't double-dispatch
        self._active.add(source.id)
        task = asyncio.create_task(self._run(source))
        self._jobs.add(task)
        task.add_done_callback(self._jobs.discard)
        return task

    async def _run(self, source: "DBSource"):
        try:
            async with self._semaphore:
                return await self.engine.crawl_source(source)
        except SourceBusyError as e:
            logger.warning(str(e))
        except Exception as e:
            logger.exception(f"Crawl of {source.name} could not start: {e}")
        finally:
            self._active.discard(source.id)
