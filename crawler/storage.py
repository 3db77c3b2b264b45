"""
Object storage - buckets of content-addressed media objects.

LocalObjectStore keeps each bucket as a directory and serves objects from
a public base URL; other backends implement the same interface.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path


class ObjectStore(ABC):
    """Abstract base class for object storage backends."""

    @abstractmethod
    def exists(self, bucket: str, key: str) -> bool:
        """Check whether an object exists."""
        pass

    @abstractmethod
    def find(self, bucket: str, prefix: str) -> list[str]:
        """List keys in a bucket starting with prefix."""
        pass

    @abstractmethod
    def upload(self, bucket: str, key: str, data: bytes, content_type: str) -> str:
        """Store an object. Returns its storage path."""
        pass

    @abstractmethod
    def public_url(self, bucket: str, key: str) -> str:
        """Public URL for an object."""
        pass


class LocalObjectStore(ObjectStore):
    """Filesystem-backed object store."""

    def __init__(self, root: Path, public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, bucket: str, key: str) -> Path:
        if "/" in key or key.startswith("."):
            raise ValueError(f"Invalid object key: {key}")
        return self.root / bucket / key

    def exists(self, bucket: str, key: str) -> bool:
        return self._path(bucket, key).exists()

    def find(self, bucket: str, prefix: str) -> list[str]:
        bucket_dir = self.root / bucket
        if not bucket_dir.exists():
            return []
        return sorted(
            p.name for p in bucket_dir.glob(f"{prefix}*")
            if p.is_file() and not p.name.endswith(".meta.json")
        )

    def upload(self, bucket: str, key: str, data: bytes, content_type: str) -> str:
        path = self._path(bucket, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        path.with_name(f"{key}.meta.json").write_text(
            json.dumps({"content_type": content_type, "cache_control": "max-age=31536000"})
        )
        return f"{bucket}/{key}"

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self.public_base_url}/{bucket}/{key}"
