"""
Web Fetcher - turn a bare site URL into crawlable items.

Tries, in order: a discovered RSS/Atom feed, a discovered sitemap, and
finally the homepage itself as a single item.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from .exceptions import FetchError
from .feeds import FeedFetcher, NormalizedItem
from .profiles import SourceProfile, SourceType
from .sitemap import SitemapEntry, SitemapFetcher, filter_by_recency

logger = logging.getLogger(__name__)


@dataclass
class WebCrawlResult:
    """What a web source yielded and how it was found."""
    strategy: str  # "feed", "sitemap" or "homepage"
    items: list[NormalizedItem] = field(default_factory=list)
    entries: list[SitemapEntry] = field(default_factory=list)
    discovered_url: str | None = None


class WebFetcher:
    """Discovers feeds or sitemaps for a site and fetches the first usable one."""

    def __init__(
        self,
        feeds: FeedFetcher,
        sitemaps: SitemapFetcher,
        recency_days: int = 30,
    ):
        self.feeds = feeds
        self.sitemaps = sitemaps
        self.recency_days = recency_days

    async def fetch(
        self,
        url: str,
        profile: SourceProfile | None = None,
        now: datetime | None = None,
    ) -> WebCrawlResult:
        """
        Crawl a site URL.

        Raises:
            RobotsDisallowedError: If the homepage is disallowed
            FetchError: If the homepage or the chosen feed/sitemap fails
        """
        profile = profile or SourceProfile(SourceType.WEB)

        feed_urls = await self.feeds.discover_feeds(url, profile)
        if feed_urls:
            logger.info(f"Discovered {len(feed_urls)} feeds for {url}, using {feed_urls[0]}")
            items = await self.feeds.fetch(feed_urls[0], profile)
            return WebCrawlResult(strategy="feed", items=items, discovered_url=feed_urls[0])

        sitemap_urls = await self.sitemaps.discover_sitemaps(url)
        for sitemap_url in sitemap_urls:
            try:
                entries = await self.sitemaps.fetch(sitemap_url, profile)
            except FetchError as e:
                logger.warning(f"Discovered sitemap {sitemap_url} unusable: {e.message}")
                continue
            logger.info(f"Using sitemap {sitemap_url} for {url}")
            return WebCrawlResult(
                strategy="sitemap",
                entries=filter_by_recency(entries, self.recency_days, now=now),
                discovered_url=sitemap_url,
            )

        logger.info(f"No feeds or sitemaps found for {url}, using homepage")
        return WebCrawlResult(
            strategy="homepage",
            items=[NormalizedItem(title="Untitled", link=url)],
        )
