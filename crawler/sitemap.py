"""
Sitemap Fetcher - Fetch and parse XML sitemaps into URL entries.

Supports <urlset> documents, <sitemapindex> documents (children are
followed up to a limit) and gzip-compressed sitemaps. Page content is
not fetched here.
"""

import logging
import zlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from .exceptions import FetchError, ParseError, PayloadTooLargeError
from .http import HttpClient
from .profiles import SourceProfile, SourceType
from .robots import RobotsPolicy

logger = logging.getLogger(__name__)

COMMON_SITEMAP_PATHS = [
    "/sitemap.xml",
    "/sitemap_index.xml",
    "/sitemap-index.xml",
    "/sitemap1.xml",
    "/sitemaps/sitemap.xml",
]
DISCOVERY_PROBE_TIMEOUT = 5
MAX_CHILD_SITEMAPS = 5
GZIP_MAGIC = b"\x1f\x8b"


@dataclass
class SitemapEntry:
    """One <url> element of a sitemap."""
    url: str
    lastmod: str | None = None
    changefreq: str | None = None
    priority: float | None = None


def _text(node, name: str) -> str | None:
    child = node.find(name, recursive=False)
    if child is None:
        return None
    value = child.get_text(strip=True)
    return value or None


def _parse_priority(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def parse_lastmod(value: str | None) -> datetime | None:
    """Parse a W3C datetime (date or full timestamp) into an aware datetime."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _gunzip(content: bytes, url: str, max_bytes: int | None) -> bytes:
    """Inflate a gzip body, stopping once the output passes max_bytes."""
    decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
    limit = max_bytes + 1 if max_bytes is not None else 0
    try:
        data = decompressor.decompress(content, limit)
    except zlib.error as e:
        raise ParseError(url, f"Invalid gzip sitemap: {e}")
    if max_bytes is not None and len(data) > max_bytes:
        raise PayloadTooLargeError(url, f"Decompressed sitemap exceeds {max_bytes} bytes")
    if not decompressor.eof:
        raise ParseError(url, "Invalid gzip sitemap: truncated stream")
    return data


def parse_sitemap(
    content: bytes,
    url: str = "",
    max_bytes: int | None = None,
) -> tuple[list[SitemapEntry], list[str]]:
    """
    Parse a sitemap document. Gzip bodies are inflated up to max_bytes.

    Returns:
        (entries, child_sitemap_urls) - one of the two is empty

    Raises:
        ParseError: If the document is neither a urlset nor a sitemapindex
        PayloadTooLargeError: If a gzip body inflates past max_bytes
    """
    if content.startswith(GZIP_MAGIC):
        content = _gunzip(content, url, max_bytes)

    soup = BeautifulSoup(content, "xml")

    index = soup.find("sitemapindex")
    if index is not None:
        children = [_text(node, "loc") for node in index.find_all("sitemap")]
        return [], [c for c in children if c]

    urlset = soup.find("urlset")
    if urlset is None:
        raise ParseError(url, "Failed to parse sitemap: no <urlset> or <sitemapindex> root")

    entries = []
    for node in urlset.find_all("url"):
        loc = _text(node, "loc")
        if not loc:
            continue
        entries.append(SitemapEntry(
            url=loc,
            lastmod=_text(node, "lastmod"),
            changefreq=_text(node, "changefreq"),
            priority=_parse_priority(_text(node, "priority")),
        ))
    return entries, []


def filter_by_recency(
    entries: list[SitemapEntry],
    days: int = 30,
    now: datetime | None = None,
) -> list[SitemapEntry]:
    """Drop entries whose lastmod is older than `days`. Undated entries are kept."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
    recent = []
    for entry in entries:
        lastmod = parse_lastmod(entry.lastmod)
        if lastmod is None or lastmod >= cutoff:
            recent.append(entry)
    return recent


class SitemapFetcher:
    """Fetches sitemaps, following sitemap indexes."""

    def __init__(
        self,
        http: HttpClient,
        robots: RobotsPolicy,
        user_agent: str,
        timeout: float = 15,
        max_bytes: int | None = None,
        max_children: int = MAX_CHILD_SITEMAPS,
    ):
        self.http = http
        self.robots = robots
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.max_children = max_children

    async def fetch(self, url: str, profile: SourceProfile | None = None) -> list[SitemapEntry]:
        """
        Fetch a sitemap (or sitemap index) and return its URL entries.

        Raises:
            RobotsDisallowedError: If robots.txt forbids the sitemap
            FetchError: On transport, protocol or parse failure
        """
        profile = profile or SourceProfile(SourceType.SITEMAP)
        entries, children = await self._fetch_one(url, profile)

        for child_url in children[:self.max_children]:
            # A broken child should not discard the rest of the index
            try:
                child_entries, _ = await self._fetch_one(child_url, profile)
            except FetchError as e:
                logger.warning(f"Skipping child sitemap {child_url}: {e.message}")
                continue
            entries.extend(child_entries)

        if len(children) > self.max_children:
            logger.info(f"Sitemap index {url} lists {len(children)} sitemaps, read {self.max_children}")

        return entries

    async def _fetch_one(self, url: str, profile: SourceProfile) -> tuple[list[SitemapEntry], list[str]]:
        await self.robots.acquire(url)
        response = await self.http.get(
            url,
            headers=profile.headers(self.user_agent),
            timeout=self.timeout,
            max_bytes=self.max_bytes,
        )
        return parse_sitemap(response.body, url, self.max_bytes)

    async def discover_sitemaps(self, site_url: str) -> list[str]:
        """
        Find sitemaps for a site: those advertised in robots.txt first, then
        conventional paths that answer a HEAD request successfully.
        """
        sitemaps = list(await self.robots.sitemaps(site_url))
        parsed = urlparse(site_url)
        origin = f"{parsed.scheme}://{parsed.netloc}"

        for path in COMMON_SITEMAP_PATHS:
            candidate = f"{origin}{path}"
            if candidate in sitemaps or not await self.robots.is_allowed(candidate):
                continue
            try:
                response = await self.http.head(candidate, timeout=DISCOVERY_PROBE_TIMEOUT)
            except FetchError:
                continue
            if response.ok:
                sitemaps.append(candidate)

        return list(dict.fromkeys(sitemaps))
