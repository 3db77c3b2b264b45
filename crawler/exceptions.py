"""
Crawler error taxonomy and HTTP helpers for the route layer.

Fetch failures (transport, protocol, parse, capacity) abort a crawl job.
Policy rejections are normal filtering outcomes and never fail a job.
"""

from typing import TypeVar

from fastapi import HTTPException

T = TypeVar("T")


class CrawlerError(Exception):
    """Base class for all crawler errors."""


class FetchError(CrawlerError):
    """A remote resource could not be retrieved or understood."""

    def __init__(self, url: str, message: str):
        self.url = url
        self.message = message
        super().__init__(f"{url}: {message}")


class TransportError(FetchError):
    """Timeout, DNS failure, refused connection."""


class ProtocolError(FetchError):
    """Non-2xx status or disallowed content type."""

    def __init__(self, url: str, message: str, status: int | None = None):
        self.status = status
        super().__init__(url, message)


class ParseError(FetchError):
    """Malformed feed, sitemap or HTML document."""


class PayloadTooLargeError(FetchError):
    """Response body exceeds the configured byte ceiling."""


class UnsafeURLError(FetchError):
    """URL targets a scheme or address the crawler must never contact."""


class PolicyRejection(CrawlerError):
    """URL filtered out by crawl policy. Not a failure."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"{url}: {reason}")


class RobotsDisallowedError(PolicyRejection):
    """robots.txt forbids fetching the URL."""

    def __init__(self, url: str):
        super().__init__(url, "disallowed by robots.txt")


class SourceNotFoundError(CrawlerError):
    pass


class SourceBusyError(CrawlerError):
    """A job for this source is already running."""


class QueueStateError(CrawlerError):
    """Illegal status transition on a queue row."""


def require_resource(resource: T | None, detail: str = "Resource not found") -> T:
    """
    Raise 404 if resource is None, otherwise return the resource.

    Usage:
        job = require_resource(db.get_job(id), "Job not found")
    """
    if resource is None:
        raise HTTPException(status_code=404, detail=detail)
    return resource


def require_job(job: T | None) -> T:
    """Raise 404 if job is None."""
    return require_resource(job, "Job not found")


def require_source(source: T | None) -> T:
    """Raise 404 if source is None."""
    return require_resource(source, "Source not found")


def require_queue_item(item: T | None) -> T:
    """Raise 404 if queue item is None."""
    return require_resource(item, "Queue item not found")
