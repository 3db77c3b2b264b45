"""
Domain exclusion policy - which destination links are worth ingesting.

The deny-list is a single table keyed by category so policy changes and
tests target one structure. A host matches an entry when it equals the
entry or is a subdomain of it.
"""

from urllib.parse import urlparse

EXCLUDED_DOMAINS: dict[str, frozenset[str]] = {
    "social": frozenset({
        "facebook.com", "twitter.com", "x.com", "instagram.com",
        "youtube.com", "tiktok.com", "linkedin.com", "snapchat.com",
        "discord.com", "telegram.org",
    }),
    "ecommerce": frozenset({
        "amazon.com", "ebay.com", "alibaba.com", "shopify.com",
        "etsy.com", "walmart.com",
    }),
    "shortener": frozenset({
        "bit.ly", "tinyurl.com", "shorturl.at", "t.co", "goo.gl",
        "ow.ly", "buff.ly", "cutt.ly",
    }),
    "advertising": frozenset({
        "doubleclick.net", "googleadservices.com", "googlesyndication.com",
        "outbrain.com", "taboola.com", "adsystem.com",
    }),
    "file_sharing": frozenset({
        "dropbox.com", "drive.google.com", "mega.nz", "mediafire.com",
    }),
    "platform": frozenset({
        "reddit.com", "redd.it", "redditgifts.com",
    }),
    "content_farm": frozenset({
        "clickhole.com", "theonion.com", "buzzfeed.com",
    }),
    "adult": frozenset({
        "pornhub.com", "xvideos.com", "xhamster.com",
    }),
}


def host_of(url: str) -> str | None:
    """Lowercased hostname of a URL, or None if it has none."""
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    return host.lower().rstrip(".") if host else None


def host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith(f".{domain}")


class DomainPolicy:
    """Classifies URLs against the deny-list plus a source's own platform."""

    def __init__(
        self,
        excluded: dict[str, frozenset[str]] | None = None,
        platform_domains: frozenset[str] | set[str] = frozenset(),
    ):
        self.excluded = excluded if excluded is not None else EXCLUDED_DOMAINS
        self.platform_domains = frozenset(d.lower() for d in platform_domains)

    def with_platform(self, platform_domains: frozenset[str] | set[str]) -> "DomainPolicy":
        """Same deny-list, different originating platform."""
        return DomainPolicy(self.excluded, platform_domains)

    def is_platform_url(self, url: str) -> bool:
        host = host_of(url)
        return host is not None and any(host_matches(host, d) for d in self.platform_domains)

    def classify(self, url: str) -> str | None:
        """
        Return the exclusion category for a URL, or None if it passes.

        Unparseable URLs are classified as "invalid".
        """
        host = host_of(url)
        if not host:
            return "invalid"
        if any(host_matches(host, d) for d in self.platform_domains):
            return "origin_platform"
        for category, domains in self.excluded.items():
            if any(host_matches(host, d) for d in domains):
                return category
        return None

    def is_external_content_site(self, url: str) -> bool:
        return self.classify(url) is None


default_policy = DomainPolicy()


def is_external_content_site(url: str) -> bool:
    """Check a URL against the default deny-list."""
    return default_policy.is_external_content_site(url)
