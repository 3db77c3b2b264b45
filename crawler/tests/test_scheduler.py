"""
Tests for the crawl scheduler: due selection, isolation, triggers and shutdown.
"""

import asyncio
import sqlite3
from datetime import timedelta
from unittest.mock import patch

import pytest

from crawler.database import JobStatus
from crawler.exceptions import SourceBusyError, SourceNotFoundError
from crawler.scheduler import ORPHANED_JOB_MESSAGE, CrawlerScheduler

FEED = """<rss version="2.0"><channel><title>Feed</title>
<item><title>Item</title><link>{link}</link></item>
</channel></rss>"""


def add_feed_source(test_db, fake_http, host: str, **kwargs) -> int:
    url = f"https://{host}/feed"
    fake_http.add(url, FEED.format(link=f"https://{host}/item"))
    return test_db.add_source(host, "rss", url, **kwargs)


class TestDueSelection:
    """Tests for which sources a tick dispatches."""

    @pytest.mark.asyncio
    async def test_source_due_only_after_frequency(self, test_db, fake_http, scheduler, clock):
        source_id = add_feed_source(test_db, fake_http, "a.example.com", crawl_frequency_hours=6)

        jobs = await scheduler.run_due_crawls()
        assert len(jobs) == 1
        assert jobs[0].status is JobStatus.COMPLETED

        clock.advance(hours=5)
        assert await scheduler.run_due_crawls() == []

        clock.advance(hours=1)
        jobs = await scheduler.run_due_crawls()
        assert [job.source_id for job in jobs] == [source_id]

    @pytest.mark.asyncio
    async def test_disabled_sources_skipped(self, test_db, fake_http, scheduler):
        source_id = add_feed_source(test_db, fake_http, "a.example.com")
        test_db.set_source_enabled(source_id, False)

        assert await scheduler.run_due_crawls() == []

    @pytest.mark.asyncio
    async def test_sources_with_active_jobs_skipped(self, test_db, fake_http, scheduler, clock):
        source_id = add_feed_source(test_db, fake_http, "a.example.com")
        job_id = test_db.create_job(source_id, clock())
        test_db.start_job(job_id, clock())

        assert scheduler.dispatch_due() == []


class TestIsolation:
    """Tests that one source's failure doesn't affect others."""

    @pytest.mark.asyncio
    async def test_failing_source_does_not_block_others(self, test_db, fake_http, scheduler):
        good = add_feed_source(test_db, fake_http, "good.example.com")
        bad = test_db.add_source("bad", "rss", "https://bad.example.com/feed")

        jobs = await scheduler.run_due_crawls()

        by_source = {job.source_id: job for job in jobs}
        assert by_source[good].status is JobStatus.COMPLETED
        assert by_source[bad].status is JobStatus.FAILED
        assert test_db.queue.get_by_url("https://good.example.com/item") is not None

    @pytest.mark.asyncio
    async def test_job_insert_failure_does_not_stall_source(self, test_db, fake_http, scheduler, engine):
        source_id = add_feed_source(test_db, fake_http, "a.example.com")

        with patch.object(test_db, "create_job", side_effect=sqlite3.OperationalError("database is locked")):
            assert await scheduler.run_due_crawls() == [None]

        assert source_id not in scheduler.active_sources
        assert not engine.is_crawling(source_id)
        jobs = await scheduler.run_due_crawls()
        assert [job.status for job in jobs] == [JobStatus.COMPLETED]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, test_db, engine, clock):
        for i in range(4):
            test_db.add_source(f"s{i}", "rss", f"https://s{i}.example.com/feed")

        running = 0
        peak = 0

        async def crawl(source):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return source.id

        engine.crawl_source = crawl
        scheduler = CrawlerScheduler(test_db, engine, max_concurrent=2, clock=clock)

        results = await scheduler.run_due_crawls()

        assert sorted(results) == [1, 2, 3, 4]
        assert peak == 2


class TestManualTrigger:
    """Tests for trigger_crawl."""

    @pytest.mark.asyncio
    async def test_trigger_runs_regardless_of_schedule(self, test_db, fake_http, scheduler, clock):
        source_id = add_feed_source(test_db, fake_http, "a.example.com")
        test_db.record_crawl(source_id, clock())

        job = await scheduler.trigger_crawl(source_id)

        assert job.status is JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_trigger_unknown_source(self, scheduler):
        with pytest.raises(SourceNotFoundError):
            scheduler.trigger_crawl(42)

    @pytest.mark.asyncio
    async def test_trigger_busy_source(self, test_db, fake_http, scheduler):
        source_id = add_feed_source(test_db, fake_http, "a.example.com")

        task = scheduler.trigger_crawl(source_id)
        with pytest.raises(SourceBusyError):
            scheduler.trigger_crawl(source_id)
        await task

        assert scheduler.active_sources == set()


class TestLifecycle:
    """Tests for start/stop behaviour."""

    @pytest.mark.asyncio
    async def test_start_fails_orphaned_jobs_and_ticks(self, test_db, fake_http, scheduler, clock):
        source_id = add_feed_source(test_db, fake_http, "a.example.com")
        orphan = test_db.create_job(source_id, clock())
        test_db.start_job(orphan, clock())

        async with scheduler:
            assert scheduler.running
            for _ in range(100):
                if test_db.get_jobs(source_id=source_id, status="completed"):
                    break
                await asyncio.sleep(0.01)

        assert not scheduler.running
        assert test_db.get_job(orphan).status is JobStatus.FAILED
        assert test_db.get_job(orphan).error_message == ORPHANED_JOB_MESSAGE
        assert len(test_db.get_jobs(source_id=source_id, status="completed")) == 1

    @pytest.mark.asyncio
    async def test_stop_cancels_stragglers(self, test_db, engine, clock):
        source_id = test_db.add_source("slow", "rss", "https://slow.example.com/feed")

        async def hang(source):
            await asyncio.sleep(3600)

        engine.collect_candidates = hang
        scheduler = CrawlerScheduler(test_db, engine, clock=clock, shutdown_timeout=0.05)

        tasks = scheduler.dispatch_due()
        await asyncio.sleep(0.01)
        await scheduler.stop()

        assert all(task.done() for task in tasks)
        job = test_db.get_jobs(source_id=source_id)[0]
        assert job.status is JobStatus.FAILED
        assert scheduler.active_sources == set()

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, scheduler):
        await scheduler.start()
        first_task = scheduler._task
        await scheduler.start()

        assert scheduler._task is first_task
        await scheduler.stop()
