"""
Feed Fetcher - Fetch and parse RSS/Atom feeds into normalized items.

Handles:
- RSS 2.0 and Atom 1.0 formats
- Per-source header profiles (bot or browser)
- Description cleanup (tags stripped, entities decoded, truncated)
- Feed autodiscovery from HTML pages and conventional feed paths
"""

import logging
import re
from dataclasses import dataclass, field
from urllib.parse import urljoin, urlparse

import feedparser
from bs4 import BeautifulSoup

from .exceptions import FetchError, ParseError
from .http import HttpClient
from .profiles import SourceProfile, SourceType
from .robots import RobotsPolicy

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 500
DISCOVERY_PROBE_TIMEOUT = 3
COMMON_FEED_PATHS = ["/feed", "/rss", "/rss.xml", "/feed.xml", "/atom.xml"]
FEED_LINK_TYPES = ("application/rss+xml", "application/atom+xml")

TAG_PATTERN = re.compile(r"<[^>]*>")
ENTITY_REPLACEMENTS = {
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&nbsp;": " ",
}
ENTITY_PATTERN = re.compile("|".join(re.escape(e) for e in ENTITY_REPLACEMENTS))


@dataclass
class NormalizedItem:
    """A single feed entry reduced to a common shape."""
    title: str
    link: str
    description: str | None = None
    pub_date: str | None = None
    author: str | None = None
    categories: list[str] = field(default_factory=list)
    content: str = ""  # full HTML body, used for link extraction
    image_url: str | None = None


def clean_description(text: str | None) -> str | None:
    """Strip tags, decode common entities and cap at 500 characters."""
    if not text:
        return None

    cleaned = TAG_PATTERN.sub("", text)
    cleaned = ENTITY_PATTERN.sub(lambda m: ENTITY_REPLACEMENTS[m.group(0)], cleaned)
    cleaned = cleaned.strip()

    if len(cleaned) > MAX_DESCRIPTION_LENGTH:
        cleaned = cleaned[:MAX_DESCRIPTION_LENGTH - 3] + "..."

    return cleaned


def _entry_link(entry) -> str:
    link = entry.get("link", "")
    if not link:
        for candidate in entry.get("links", []):
            if candidate.get("rel") == "alternate" or candidate.get("type") == "text/html":
                link = candidate.get("href", "")
                break
    return link.strip()


def _entry_content(entry) -> str:
    if entry.get("content"):
        return entry.content[0].get("value", "")
    return entry.get("summary", "") or entry.get("description", "")


def _entry_image(entry) -> str | None:
    for thumb in entry.get("media_thumbnail", []):
        if thumb.get("url"):
            return thumb["url"]
    for media in entry.get("media_content", []):
        if media.get("url") and media.get("medium", "image") == "image":
            return media["url"]
    for enclosure in entry.get("enclosures", []):
        if enclosure.get("type", "").startswith("image/") and enclosure.get("href"):
            return enclosure["href"]
    return None


def parse_feed(content: bytes | str, url: str = "") -> list[NormalizedItem]:
    """
    Parse feed content into normalized items.

    Items without a link are dropped.

    Raises:
        ParseError: If the document is not a usable feed
    """
    parsed = feedparser.parse(content)

    if parsed.bozo and not parsed.entries:
        raise ParseError(url, f"Failed to parse feed: {parsed.get('bozo_exception')}")
    if not parsed.entries and not parsed.get("version"):
        raise ParseError(url, "Document is not an RSS or Atom feed")

    items = []
    for entry in parsed.entries:
        link = _entry_link(entry)
        if not link:
            continue

        content = _entry_content(entry)
        summary = entry.get("summary") or content

        items.append(NormalizedItem(
            title=entry.get("title") or "Untitled",
            link=link,
            description=clean_description(summary),
            pub_date=entry.get("published") or entry.get("updated"),
            author=entry.get("author") or entry.get("dc_creator"),
            categories=[t.get("term") for t in entry.get("tags", []) if t.get("term")],
            content=content,
            image_url=_entry_image(entry),
        ))

    return items


class FeedFetcher:
    """Fetches RSS/Atom feeds with robots checks and per-source headers."""

    def __init__(
        self,
        http: HttpClient,
        robots: RobotsPolicy,
        user_agent: str,
        timeout: float = 15,
        max_bytes: int | None = None,
    ):
        self.http = http
        self.robots = robots
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_bytes = max_bytes

    async def fetch(self, url: str, profile: SourceProfile | None = None) -> list[NormalizedItem]:
        """
        Fetch and parse a feed URL.

        Raises:
            RobotsDisallowedError: If robots.txt forbids the feed
            FetchError: On transport, protocol or parse failure
        """
        profile = profile or SourceProfile(SourceType.RSS)
        await self.robots.acquire(url)

        response = await self.http.get(
            url,
            headers=profile.headers(self.user_agent),
            timeout=self.timeout,
            max_bytes=self.max_bytes,
        )
        items = parse_feed(response.body, url)
        logger.debug(f"Parsed {len(items)} items from {url}")
        return items

    async def discover_feeds(self, url: str, profile: SourceProfile | None = None) -> list[str]:
        """
        Find feed URLs for a site.

        Scans the page for <link type="application/rss+xml|atom+xml"> tags and
        probes conventional feed paths with HEAD requests. Returns the
        de-duplicated union in discovery order.

        Raises:
            RobotsDisallowedError: If robots.txt forbids the page
            FetchError: If the page itself cannot be fetched
        """
        profile = profile or SourceProfile(SourceType.WEB)
        await self.robots.acquire(url)

        response = await self.http.get(
            url,
            headers=profile.headers(self.user_agent),
            timeout=self.timeout,
            max_bytes=self.max_bytes,
        )
        feeds = self._feeds_from_html(response.text(), url)

        parsed = urlparse(url)
        for path in COMMON_FEED_PATHS:
            probe_url = f"{parsed.scheme}://{parsed.netloc}{path}"
            if probe_url in feeds:
                continue
            if await self._probe(probe_url):
                feeds.append(probe_url)

        return list(dict.fromkeys(feeds))

    def _feeds_from_html(self, html: str, base_url: str) -> list[str]:
        """Extract feed URLs from <link> tags, resolved against the page URL."""
        soup = BeautifulSoup(html, "html.parser")
        feeds = []
        for link in soup.find_all("link", href=True):
            link_type = (link.get("type") or "").lower()
            if link_type in FEED_LINK_TYPES:
                feeds.append(urljoin(base_url, link["href"]))
        return feeds

    async def _probe(self, url: str) -> bool:
        """HEAD a candidate feed path; accept only XML responses."""
        if not await self.robots.is_allowed(url):
            return False
        try:
            response = await self.http.head(url, timeout=DISCOVERY_PROBE_TIMEOUT)
        except FetchError:
            return False
        return response.ok and "xml" in response.headers.get("content-type", "").lower()
