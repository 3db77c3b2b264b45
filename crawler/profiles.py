"""
Source profiles - per-source fetch strategy resolved once when a source loads.

A profile decides which header set a source gets, whether its feed items
are mined for outbound links, and which domains count as the source's own
platform.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlparse


class SourceType(str, Enum):
    RSS = "rss"
    SITEMAP = "sitemap"
    WEB = "web"


class HeaderProfile(str, Enum):
    BOT = "bot"
    BROWSER = "browser"


BOT_ACCEPT = "application/rss+xml, application/atom+xml, application/xml;q=0.9, text/xml;q=0.9, */*;q=0.8"

# Aggregators that reject obvious bot traffic on their feeds
BROWSER_HEADER_HOSTS = ("reddit.com",)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "application/rss+xml, application/xml, text/xml, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "DNT": "1",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Cache-Control": "max-age=0",
}

# Link-bearing platforms and every domain that belongs to them
LINK_BEARING_PLATFORMS: dict[str, frozenset[str]] = {
    "reddit.com": frozenset({"reddit.com", "redd.it", "redditgifts.com", "redditmedia.com", "redditstatic.com"}),
}

SUBREDDIT_PATTERN = re.compile(r"/r/([^/]+)")


@dataclass(frozen=True)
class SourceProfile:
    """Fetch strategy for one source."""
    source_type: SourceType
    header_profile: HeaderProfile = HeaderProfile.BOT
    link_bearing: bool = False
    platform_domains: frozenset[str] = field(default_factory=frozenset)
    group_label: str = ""

    def headers(self, user_agent: str) -> dict[str, str]:
        """Request headers for this source's feed/page fetches."""
        if self.header_profile is HeaderProfile.BROWSER:
            return dict(BROWSER_HEADERS)
        return {"User-Agent": user_agent, "Accept": BOT_ACCEPT}


def _matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith(f".{domain}")


def _group_label(host: str, path: str, platform: str | None, metadata: dict[str, Any]) -> str:
    if metadata.get("group_label"):
        return str(metadata["group_label"])
    if platform == "reddit.com":
        match = SUBREDDIT_PATTERN.search(path)
        return f"r/{match.group(1)}" if match else "r/unknown"
    return host.removeprefix("www.")


def resolve_profile(
    source_type: str,
    url: str,
    metadata: dict[str, Any] | None = None,
) -> SourceProfile:
    """
    Build the profile for a source from its type, URL and metadata.

    Metadata keys honoured:
        header_profile: "bot" or "browser" to override URL-based selection
        extract_links: force link mining on or off
        platform_domains: extra domains treated as the source's own platform
        group_label: label used when annotating extracted link titles
    """
    metadata = metadata or {}
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()

    platform = next((p for p in LINK_BEARING_PLATFORMS if _matches(host, p)), None)

    if "header_profile" in metadata:
        header_profile = HeaderProfile(metadata["header_profile"])
    elif any(_matches(host, h) for h in BROWSER_HEADER_HOSTS):
        header_profile = HeaderProfile.BROWSER
    else:
        header_profile = HeaderProfile.BOT

    link_bearing = bool(metadata.get("extract_links", platform is not None))

    platform_domains = set(LINK_BEARING_PLATFORMS.get(platform, ()))
    if link_bearing and host:
        platform_domains.add(host.removeprefix("www."))
    platform_domains.update(d.lower() for d in metadata.get("platform_domains", []))

    return SourceProfile(
        source_type=SourceType(source_type),
        header_profile=header_profile,
        link_bearing=link_bearing,
        platform_domains=frozenset(platform_domains),
        group_label=_group_label(host, parsed.path, platform, metadata),
    )
