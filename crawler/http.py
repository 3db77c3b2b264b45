"""
HTTP client - bounded outbound requests for fetchers and media capture.

Every request carries an explicit timeout and a byte ceiling, and redirect
targets are validated like the original URL. Errors are mapped onto the
crawler error taxonomy so callers never see aiohttp types.
"""

import asyncio
from dataclasses import dataclass, field
from urllib.parse import urljoin

import aiohttp

from .exceptions import (
    PayloadTooLargeError,
    ProtocolError,
    TransportError,
)
from .url_validator import ensure_public_url

CHUNK_SIZE = 64 * 1024


async def _check_redirect(session, trace_config_ctx, params):
    """Refuse a redirect hop whose target fails URL validation."""
    location = params.response.headers.get("Location")
    if location:
        await ensure_public_url(urljoin(str(params.url), location))


@dataclass
class HttpResponse:
    """A fully-read HTTP response."""
    url: str
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        """Media type without parameters, lowercased."""
        value = self.headers.get("content-type", "")
        return value.split(";")[0].strip().lower()

    def text(self) -> str:
        charset = "utf-8"
        for param in self.headers.get("content-type", "").split(";")[1:]:
            key, _, value = param.strip().partition("=")
            if key.lower() == "charset" and value:
                charset = value.strip('"')
        try:
            return self.body.decode(charset, errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")


class HttpClient:
    """Async HTTP client with SSRF protection, timeouts and size limits."""

    def __init__(
        self,
        user_agent: str,
        timeout: float = 15,
        max_bytes: int = 10 * 1024 * 1024,
        validate_urls: bool = True,
    ):
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.validate_urls = validate_urls

    def _session(self, headers: dict[str, str] | None) -> aiohttp.ClientSession:
        trace_configs = None
        if self.validate_urls:
            trace = aiohttp.TraceConfig()
            trace.on_request_redirect.append(_check_redirect)
            trace_configs = [trace]
        return aiohttp.ClientSession(headers=self._headers(headers), trace_configs=trace_configs)

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        merged = {"User-Agent": self.user_agent}
        if headers:
            merged.update(headers)
        return merged

    async def get(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        max_bytes: int | None = None,
        require_content_type: str | None = None,
    ) -> HttpResponse:
        """
        GET a URL and read the body.

        Args:
            url: Target URL
            headers: Extra headers (override the default User-Agent)
            timeout: Total timeout in seconds
            max_bytes: Body ceiling, checked against Content-Length and while reading
            require_content_type: Content-type prefix the response must have

        Raises:
            UnsafeURLError, TransportError, ProtocolError, PayloadTooLargeError
        """
        limit = max_bytes if max_bytes is not None else self.max_bytes
        if self.validate_urls:
            await ensure_public_url(url)

        try:
            async with self._session(headers) as session:
                async with session.get(
                    url,
                    timeout=aiohttp.ClientTimeout(total=timeout or self.timeout),
                    allow_redirects=True,
                ) as resp:
                    if not 200 <= resp.status < 300:
                        raise ProtocolError(url, f"HTTP {resp.status}: {resp.reason}", status=resp.status)

                    declared = resp.content_length
                    if declared is not None and declared > limit:
                        raise PayloadTooLargeError(url, f"declared size {declared} exceeds {limit} bytes")

                    content_type = resp.headers.get("Content-Type", "")
                    if require_content_type and not content_type.lower().startswith(require_content_type):
                        raise ProtocolError(url, f"unexpected content type '{content_type}'", status=resp.status)

                    body = bytearray()
                    async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                        body.extend(chunk)
                        if len(body) > limit:
                            raise PayloadTooLargeError(url, f"body exceeds {limit} bytes")

                    return HttpResponse(
                        url=str(resp.url),
                        status=resp.status,
                        headers={k.lower(): v for k, v in resp.headers.items()},
                        body=bytes(body),
                    )
        except asyncio.TimeoutError:
            raise TransportError(url, f"timed out after {timeout or self.timeout}s")
        except aiohttp.ClientError as e:
            raise TransportError(url, str(e) or e.__class__.__name__)

    async def head(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> HttpResponse:
        """
        HEAD a URL. Non-2xx responses are returned, not raised.

        Raises:
            UnsafeURLError, TransportError
        """
        if self.validate_urls:
            await ensure_public_url(url)

        try:
            async with self._session(headers) as session:
                async with session.head(
                    url,
                    timeout=aiohttp.ClientTimeout(total=timeout or self.timeout),
                    allow_redirects=True,
                ) as resp:
                    return HttpResponse(
                        url=str(resp.url),
                        status=resp.status,
                        headers={k.lower(): v for k, v in resp.headers.items()},
                    )
        except asyncio.TimeoutError:
            raise TransportError(url, f"timed out after {timeout or self.timeout}s")
        except aiohttp.ClientError as e:
            raise TransportError(url, str(e) or e.__class__.__name__)
