"""
Pytest fixtures for crawler tests.
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from crawler.config import state
from crawler.database import Database
from crawler.engine import CrawlerEngine
from crawler.exceptions import PayloadTooLargeError, ProtocolError
from crawler.feeds import FeedFetcher
from crawler.http import HttpResponse
from crawler.media import MediaCapture
from crawler.robots import RobotsPolicy
from crawler.scheduler import CrawlerScheduler
from crawler.server import app
from crawler.sitemap import SitemapFetcher
from crawler.storage import LocalObjectStore
from crawler.web import WebFetcher

USER_AGENT = "TestCrawler/1.0"
T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeHttpClient:
    """
    Stands in for HttpClient. Responses are registered per URL; anything
    unregistered answers 404. Every request is recorded.
    """

    def __init__(self):
        self.routes: dict[str, HttpResponse | Exception] = {}
        self.requests: list[tuple[str, str, dict]] = []

    def add(
        self,
        url: str,
        body: bytes | str = b"",
        content_type: str = "application/xml",
        status: int = 200,
        headers: dict[str, str] | None = None,
    ):
        if isinstance(body, str):
            body = body.encode()
        all_headers = {"content-type": content_type}
        all_headers.update(headers or {})
        self.routes[url] = HttpResponse(url=url, status=status, headers=all_headers, body=body)

    def fail(self, url: str, error: Exception):
        self.routes[url] = error

    def requested(self, url: str) -> int:
        return sum(1 for _, u, _ in self.requests if u == url)

    def _lookup(self, url: str) -> HttpResponse:
        route = self.routes.get(url)
        if isinstance(route, Exception):
            raise route
        if route is None:
            return HttpResponse(url=url, status=404)
        return route

    async def get(self, url, *, headers=None, timeout=None, max_bytes=None, require_content_type=None):
        self.requests.append(("GET", url, headers or {}))
        response = self._lookup(url)
        if not response.ok:
            raise ProtocolError(url, f"HTTP {response.status}", status=response.status)
        if require_content_type and not response.content_type.startswith(require_content_type):
            raise ProtocolError(url, f"unexpected content type '{response.content_type}'", status=response.status)
        if max_bytes is not None and len(response.body) > max_bytes:
            raise PayloadTooLargeError(url, f"body exceeds {max_bytes} bytes")
        return response

    async def head(self, url, *, headers=None, timeout=None):
        self.requests.append(("HEAD", url, headers or {}))
        return self._lookup(url)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def temp_db_path():
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        yield Path(f.name)
    # Cleanup
    if os.path.exists(f.name):
        os.unlink(f.name)


@pytest.fixture
def test_db(temp_db_path):
    """Create a test database instance."""
    db = Database(temp_db_path)
    yield db


@pytest.fixture
def fake_http():
    return FakeHttpClient()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def robots(fake_http):
    """Robots policy with no politeness delay so tests don't sleep."""
    return RobotsPolicy(fake_http, USER_AGENT, default_delay=0)


@pytest.fixture
def feed_fetcher(fake_http, robots):
    return FeedFetcher(fake_http, robots, USER_AGENT)


@pytest.fixture
def sitemap_fetcher(fake_http, robots):
    return SitemapFetcher(fake_http, robots, USER_AGENT)


@pytest.fixture
def web_fetcher(feed_fetcher, sitemap_fetcher):
    return WebFetcher(feed_fetcher, sitemap_fetcher)


@pytest.fixture
def object_store(tmp_path):
    return LocalObjectStore(tmp_path / "media", "https://media.test")


@pytest.fixture
def media_capture(fake_http, object_store):
    return MediaCapture(fake_http, object_store, USER_AGENT)


@pytest.fixture
def engine(test_db, feed_fetcher, sitemap_fetcher, web_fetcher, robots, media_capture, clock):
    return CrawlerEngine(
        test_db,
        feeds=feed_fetcher,
        sitemaps=sitemap_fetcher,
        web=web_fetcher,
        robots=robots,
        media=media_capture,
        clock=clock,
    )


@pytest.fixture
def scheduler(test_db, engine, clock):
    return CrawlerScheduler(test_db, engine, interval_seconds=3600, max_concurrent=5, clock=clock)


@pytest.fixture
def client(test_db, engine, scheduler):
    """Create a test client with an isolated database and a scheduler that isn't started."""
    # Store original state
    original_db = state.db
    original_engine = state.engine
    original_scheduler = state.scheduler

    state.db = test_db
    state.engine = engine
    state.scheduler = scheduler

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    # Restore original state
    state.db = original_db
    state.engine = original_engine
    state.scheduler = original_scheduler
