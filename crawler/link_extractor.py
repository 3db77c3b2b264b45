"""
Link Extractor - mine outbound destination links from feed item bodies.

Works on the item's full HTML and the domain policy only, so any
link-bearing feed (discussion boards, newsletters, link blogs) can use it.
"""

import logging
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from .domain_policy import DomainPolicy
from .feeds import NormalizedItem

logger = logging.getLogger(__name__)

EXTERNAL_LINK_PRIORITY = 8
DIRECT_ITEM_PRIORITY = 5


@dataclass
class ExtractedLink:
    """A destination URL found inside a feed item."""
    original_url: str  # the item's own URL, for provenance
    extracted_url: str
    title: str
    group: str
    extraction_context: dict[str, str] = field(default_factory=dict)
    priority: int = EXTERNAL_LINK_PRIORITY


class LinkExtractor:
    """Extracts and filters outbound links from HTML item bodies."""

    def __init__(self, policy: DomainPolicy, group: str = ""):
        self.policy = policy
        self.group = group

    def candidate_urls(self, html: str) -> list[str]:
        """
        Absolute anchor hrefs and image srcs that do not point back at the
        originating platform, in document order, without duplicates.
        """
        if not html:
            return []

        soup = BeautifulSoup(html, "html.parser")
        found: dict[str, None] = {}

        for anchor in soup.find_all("a", href=True):
            href = anchor["href"].strip()
            if href.startswith("http") and not self.policy.is_platform_url(href):
                found.setdefault(href)

        for image in soup.find_all("img", src=True):
            src = image["src"].strip()
            if src.startswith("http") and not self.policy.is_platform_url(src):
                found.setdefault(src)

        return list(found)

    def extract(self, item: NormalizedItem) -> list[ExtractedLink]:
        """Extract links from one item that pass the domain policy."""
        links = []
        title = item.title or "Untitled"
        label = f" (via {self.group})" if self.group else ""

        for url in self.candidate_urls(item.content):
            category = self.policy.classify(url)
            if category is not None:
                logger.debug(f"Excluded {url} ({category})")
                continue
            links.append(ExtractedLink(
                original_url=item.link,
                extracted_url=url,
                title=f"{title}{label}",
                group=self.group,
                extraction_context={
                    "postTitle": item.title or "",
                    "postDescription": item.description or "",
                    "postAuthor": item.author or "",
                    "postDate": item.pub_date or "",
                },
                priority=EXTERNAL_LINK_PRIORITY,
            ))
        return links

    def extract_all(self, items: list[NormalizedItem]) -> list[ExtractedLink]:
        """Extract links from every item; the first occurrence of a URL wins."""
        seen: set[str] = set()
        links = []
        for item in items:
            for link in self.extract(item):
                if link.extracted_url in seen:
                    continue
                seen.add(link.extracted_url)
                links.append(link)
        return links
