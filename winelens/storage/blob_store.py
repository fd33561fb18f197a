"""Image blob storage: Supabase Storage bucket or a local directory with TTL cleanup."""

import asyncio
import os
import shutil
import tempfile
import time
from abc import ABC, abstractmethod
from typing import Optional

from winelens.config import Settings
from winelens.db.supabase_client import get_supabase
from winelens.errors import BlobStoreError

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


def extension_for(content_type: str) -> str:
    return _EXTENSIONS.get(content_type, ".jpg")


class BlobStore(ABC):
    """put(bytes) -> fetchable URL."""

    @abstractmethod
    async def put(self, name: str, data: bytes, content_type: str = "image/jpeg") -> str:
        ...


class LocalBlobStore(BlobStore):
    """Stores images on local disk; served back by GET /api/v1/images/{name}."""

    def __init__(
        self,
        base_dir: Optional[str] = None,
        public_base_url: str = "http://localhost:8001",
        ttl_seconds: int = 3600,
    ):
        if base_dir:
            self._base_dir = base_dir
        else:
            self._base_dir = os.path.join(tempfile.gettempdir(), "winelens_images")
        os.makedirs(self._base_dir, exist_ok=True)
        self._public_base_url = public_base_url.rstrip("/")
        self._ttl_seconds = ttl_seconds

    async def put(self, name: str, data: bytes, content_type: str = "image/jpeg") -> str:
        path = self.get_path(name)
        try:
            with open(path, "wb") as dst:
                dst.write(data)
        except OSError as exc:
            raise BlobStoreError(f"Failed to save image: {exc}") from exc
        return f"{self._public_base_url}/api/v1/images/{name}"

    def get_path(self, name: str) -> str:
        # Names are generated server-side, but never let one escape the base dir
        return os.path.join(self._base_dir, os.path.basename(name))

    def file_exists(self, name: str) -> bool:
        return os.path.isfile(self.get_path(name))

    def cleanup_expired(self) -> int:
        """Remove images older than TTL. Returns count of removed files."""
        now = time.time()
        removed = 0
        if not os.path.exists(self._base_dir):
            return 0
        for entry in os.listdir(self._base_dir):
            path = os.path.join(self._base_dir, entry)
            if now - os.path.getmtime(path) <= self._ttl_seconds:
                continue
            if os.path.isdir(path):
                shutil.rmtree(path, ignore_errors=True)
            else:
                os.remove(path)
            removed += 1
        return removed


class SupabaseBlobStore(BlobStore):
    """Uploads into a public Supabase Storage bucket."""

    def __init__(self, bucket: str, prefix: str = "wine-images"):
        self._bucket = bucket
        self._prefix = prefix

    def _upload(self, path: str, data: bytes, content_type: str) -> str:
        bucket = get_supabase().storage.from_(self._bucket)
        bucket.upload(path, data, {"content-type": content_type})
        return bucket.get_public_url(path)

    async def put(self, name: str, data: bytes, content_type: str = "image/jpeg") -> str:
        path = f"{self._prefix}/{name}"
        loop = asyncio.get_running_loop()
        try:
            # supabase-py storage calls are blocking
            return await loop.run_in_executor(None, self._upload, path, data, content_type)
        except Exception as exc:
            raise BlobStoreError(f"Supabase upload failed: {exc}") from exc


def build_blob_store(settings: Settings) -> BlobStore:
    if settings.blob_backend == "supabase":
        return SupabaseBlobStore(bucket=settings.supabase_bucket)
    if settings.blob_backend == "local":
        return LocalBlobStore(
            base_dir=settings.local_blob_dir or None,
            public_base_url=settings.public_base_url,
            ttl_seconds=settings.job_ttl_seconds,
        )
    raise ValueError(f"Unknown blob_backend '{settings.blob_backend}'. Valid: local, supabase")
