"""
Robots policy - robots.txt rules, crawl delays and advertised sitemaps.

Rules are cached per origin for a day. When robots.txt cannot be fetched
the origin is treated as open; 401/403 closes it entirely.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

from .exceptions import FetchError, ProtocolError, RobotsDisallowedError
from .http import HttpClient

logger = logging.getLogger(__name__)

ROBOTS_TIMEOUT = 5
ROBOTS_MAX_BYTES = 512 * 1024
CACHE_TTL_SECONDS = 24 * 60 * 60


@dataclass
class RobotsRules:
    """Parsed robots.txt for one origin."""
    parser: RobotFileParser
    user_agent: str
    default_delay: float

    def is_allowed(self, url: str) -> bool:
        return self.parser.can_fetch(self.user_agent, url)

    def crawl_delay(self) -> float:
        delay = self.parser.crawl_delay(self.user_agent)
        return float(delay) if delay is not None else self.default_delay

    def sitemaps(self) -> list[str]:
        return list(self.parser.site_maps() or [])


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme or 'https'}://{parsed.netloc.lower()}"


class RobotsPolicy:
    """Answers allow/deny, crawl-delay and sitemap questions per site."""

    def __init__(
        self,
        http: HttpClient,
        user_agent: str,
        default_delay: float = 1.0,
        max_delay: float = 30.0,
        cache_ttl: float = CACHE_TTL_SECONDS,
    ):
        self.http = http
        self.user_agent = user_agent
        self.default_delay = default_delay
        self.max_delay = max_delay
        self.cache_ttl = cache_ttl
        self._cache: dict[str, tuple[RobotsRules, float]] = {}
        self._last_request: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _rules_from_text(self, robots_url: str, text: str) -> RobotsRules:
        parser = RobotFileParser(robots_url)
        parser.parse(text.splitlines())
        return RobotsRules(parser, self.user_agent, self.default_delay)

    def _closed_rules(self, robots_url: str) -> RobotsRules:
        parser = RobotFileParser(robots_url)
        parser.disallow_all = True
        return RobotsRules(parser, self.user_agent, self.default_delay)

    async def get_rules(self, url: str) -> RobotsRules:
        """Fetch (or reuse) the rules governing a URL's origin."""
        origin = _origin(url)
        cached = self._cache.get(origin)
        if cached and cached[1] > time.monotonic():
            return cached[0]

        robots_url = f"{origin}/robots.txt"
        try:
            response = await self.http.get(
                robots_url,
                headers={"User-Agent": self.user_agent},
                timeout=ROBOTS_TIMEOUT,
                max_bytes=ROBOTS_MAX_BYTES,
            )
            rules = self._rules_from_text(robots_url, response.text())
        except ProtocolError as e:
            if e.status in (401, 403):
                rules = self._closed_rules(robots_url)
            else:
                rules = self._rules_from_text(robots_url, "")
        except FetchError as e:
            logger.warning(f"Could not fetch robots.txt for {origin}: {e.message}")
            rules = self._rules_from_text(robots_url, "")

        self._cache[origin] = (rules, time.monotonic() + self.cache_ttl)
        return rules

    async def is_allowed(self, url: str) -> bool:
        """Check if a URL may be fetched. Malformed URLs are never allowed."""
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return False
        rules = await self.get_rules(url)
        return rules.is_allowed(url)

    async def crawl_delay(self, url: str) -> float:
        """Seconds to wait between requests to the URL's origin."""
        rules = await self.get_rules(url)
        return min(rules.crawl_delay(), self.max_delay)

    async def sitemaps(self, url: str) -> list[str]:
        """Sitemap URLs advertised in the origin's robots.txt."""
        rules = await self.get_rules(url)
        return rules.sitemaps()

    async def acquire(self, url: str):
        """
        Gate a fetch: raise if robots.txt forbids it, otherwise wait out the
        origin's crawl delay before returning.

        Raises:
            RobotsDisallowedError: If the URL is disallowed
        """
        if not await self.is_allowed(url):
            raise RobotsDisallowedError(url)

        origin = _origin(url)
        delay = await self.crawl_delay(url)
        lock = self._locks.setdefault(origin, asyncio.Lock())
        async with lock:
            last = self._last_request.get(origin)
            if last is not None:
                elapsed = time.monotonic() - last
                if elapsed < delay:
                    await asyncio.sleep(delay - elapsed)
            self._last_request[origin] = time.monotonic()
