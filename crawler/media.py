"""
Media capture - download images and favicons into content-addressed storage.

Capture is best-effort: every failure is logged and reported in the
returned CaptureResult, never raised, so ingestion of the item continues
without media.
"""

import hashlib
import logging
from dataclasses import dataclass
from pathlib import PurePosixPath
from urllib.parse import quote, urlparse

from .exceptions import FetchError
from .http import HttpClient
from .storage import ObjectStore

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 30
MAX_IMAGE_BYTES = 5 * 1024 * 1024
MAX_FAVICON_BYTES = 1 * 1024 * 1024

CONTENT_TYPE_EXTENSIONS = {
    "jpeg": "jpg",
    "jpg": "jpg",
    "pjpeg": "jpg",
    "png": "png",
    "webp": "webp",
    "gif": "gif",
    "avif": "avif",
    "svg+xml": "svg",
    "x-icon": "ico",
    "vnd.microsoft.icon": "ico",
}


@dataclass
class DownloadedImage:
    url: str
    data: bytes
    content_type: str


@dataclass
class CaptureResult:
    success: bool
    storage_path: str | None = None
    public_url: str | None = None
    error: str | None = None


@dataclass
class MediaResult:
    """Combined outcome of capturing a candidate's image and favicon."""
    image_storage_path: str | None = None
    image_public_url: str | None = None
    favicon_url: str | None = None


def file_extension(url: str, content_type: str | None = None) -> str:
    """Extension from content type, else from the URL path, else jpg."""
    if content_type:
        subtype = content_type.split(";")[0].strip().lower().partition("/")[2]
        if subtype in CONTENT_TYPE_EXTENSIONS:
            return CONTENT_TYPE_EXTENSIONS[subtype]

    suffix = PurePosixPath(urlparse(url).path).suffix.lower().lstrip(".")
    if suffix.isalnum():
        return "jpg" if suffix == "jpeg" else suffix

    return "jpg"


def content_filename(data: bytes, url: str, content_type: str | None = None) -> str:
    """Storage key derived from the image bytes, not the URL."""
    digest = hashlib.sha256(data).hexdigest()[:16]
    return f"{digest}.{file_extension(url, content_type)}"


def domain_key(domain: str) -> str:
    """Stable storage key prefix for a domain's favicon."""
    return hashlib.md5(domain.lower().encode()).hexdigest()[:8]


def favicon_candidates(domain: str) -> list[str]:
    """Favicon URLs to try, in order of preference."""
    return [
        f"https://{domain}/favicon.ico",
        f"https://www.{domain}/favicon.ico",
        f"https://{domain}/favicon.png",
        f"https://www.google.com/s2/favicons?domain={quote(domain)}&sz=64",
    ]


class MediaCapture:
    """Captures remote images into an object store."""

    def __init__(
        self,
        http: HttpClient,
        store: ObjectStore,
        user_agent: str,
        images_bucket: str = "content-images",
        favicons_bucket: str = "favicons",
    ):
        self.http = http
        self.store = store
        self.user_agent = user_agent
        self.images_bucket = images_bucket
        self.favicons_bucket = favicons_bucket

    async def download_image(self, url: str, max_bytes: int = MAX_IMAGE_BYTES) -> DownloadedImage | None:
        """
        Download an image, or return None on any violation.

        Enforces a 30s timeout, the declared Content-Length ceiling, an image/*
        content type and the actual downloaded size.
        """
        try:
            response = await self.http.get(
                url,
                headers={"User-Agent": self.user_agent},
                timeout=DOWNLOAD_TIMEOUT,
                max_bytes=max_bytes,
                require_content_type="image/",
            )
        except FetchError as e:
            logger.warning(f"Failed to download image {url}: {e.message}")
            return None

        if not response.content_type.startswith("image/"):
            logger.warning(f"Not an image content type for {url}: {response.content_type}")
            return None

        if len(response.body) > max_bytes:
            logger.warning(f"Image too large after download: {url} ({len(response.body)} bytes)")
            return None

        return DownloadedImage(url=url, data=response.body, content_type=response.content_type)

    def _stored(self, bucket: str, key: str) -> CaptureResult:
        return CaptureResult(
            success=True,
            storage_path=f"{bucket}/{key}",
            public_url=self.store.public_url(bucket, key),
        )

    def _upload(self, bucket: str, key: str, image: DownloadedImage) -> CaptureResult:
        try:
            path = self.store.upload(bucket, key, image.data, image.content_type)
        except OSError as e:
            logger.error(f"Failed to store {image.url} as {bucket}/{key}: {e}")
            return CaptureResult(success=False, error=str(e))
        return CaptureResult(success=True, storage_path=path, public_url=self.store.public_url(bucket, key))

    async def capture_content_image(self, image_url: str) -> CaptureResult:
        """Download an image and store it under a hash of its bytes."""
        image = await self.download_image(image_url, MAX_IMAGE_BYTES)
        if image is None:
            return CaptureResult(success=False, error="Failed to download image")

        filename = content_filename(image.data, image_url, image.content_type)
        if self.store.exists(self.images_bucket, filename):
            logger.info(f"Image {filename} already in storage, reusing")
            return self._stored(self.images_bucket, filename)

        result = self._upload(self.images_bucket, filename, image)
        if result.success:
            logger.info(f"Captured image {image_url} as {result.storage_path}")
        return result

    async def capture_favicon(self, domain: str) -> CaptureResult:
        """
        Store a favicon for a domain under a key derived from the domain.

        An already-stored favicon for the domain is reused without any
        network request.
        """
        domain = domain.lower().removeprefix("www.")
        prefix = domain_key(domain)

        existing = self.store.find(self.favicons_bucket, f"{prefix}.")
        if existing:
            return self._stored(self.favicons_bucket, existing[0])

        image = None
        for url in favicon_candidates(domain):
            image = await self.download_image(url, MAX_FAVICON_BYTES)
            if image is not None:
                break

        if image is None:
            return CaptureResult(success=False, error="Failed to download favicon from any source")

        filename = f"{prefix}.{file_extension(image.url, image.content_type)}"
        if self.store.exists(self.favicons_bucket, filename):
            return self._stored(self.favicons_bucket, filename)

        result = self._upload(self.favicons_bucket, filename, image)
        if result.success:
            logger.info(f"Captured favicon for {domain} from {image.url}")
        return result

    async def capture_content_media(self, image_url: str | None, domain: str | None) -> MediaResult:
        """Capture a candidate's image (if any) and its domain's favicon."""
        result = MediaResult()

        if image_url:
            image = await self.capture_content_image(image_url)
            if image.success:
                result.image_storage_path = image.storage_path
                result.image_public_url = image.public_url

        if domain:
            favicon = await self.capture_favicon(domain)
            if favicon.success:
                result.favicon_url = favicon.public_url

        return result
