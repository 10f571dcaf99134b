"""Receipt image storage.

Supports two backends selected via ``settings.STORAGE_BACKEND``:

1. **filesystem** (default): Stores files under ``settings.STORAGE_DIRECTORY``.
2. **minio**: Uses a MinIO / S3-compatible bucket.

Every saved image gets a *relative key* (``owner_id/uuid_filename``)
which is persisted as ``Receipt.image_path``.  Blocking client and disk
calls run in worker threads so concurrent uploads do not stall the
event loop.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from io import BytesIO
from pathlib import Path, PurePosixPath
from typing import Optional

from minio import Minio
from minio.error import S3Error

from snapcart.core.config import settings
from snapcart.core.exceptions import ReceiptNotFound
from snapcart.models.schemas import UploadedImage
from snapcart.utils.helpers import normalise_filename

logger = logging.getLogger(__name__)


class StorageService:
    """Unified storage service (filesystem or MinIO)."""

    def __init__(self, base_dir: str | None = None, backend: str | None = None, client: Optional[Minio] = None) -> None:
        self.backend = (backend or settings.STORAGE_BACKEND or "filesystem").lower()
        if self.backend == "minio":
            self._client = client or Minio(
                settings.MINIO_ENDPOINT,
                access_key=settings.MINIO_ACCESS_KEY,
                secret_key=settings.MINIO_SECRET_KEY,
                secure=bool(settings.MINIO_USE_SSL),
            )
            self.bucket = settings.MINIO_BUCKET_NAME
            if not self._client.bucket_exists(self.bucket):
                self._client.make_bucket(self.bucket)
            logger.info("[storage] MinIO bucket: %s", self.bucket)
            return

        if self.backend != "filesystem":
            raise ValueError(f"Unknown storage backend: {self.backend}")
        base_path = Path(base_dir or settings.STORAGE_DIRECTORY)
        if not base_path.is_absolute():
            repo_root = Path(__file__).resolve().parents[3]
            base_path = (repo_root / base_path).resolve()
        self.base_dir = base_path
        self.base_dir.mkdir(parents=True, exist_ok=True)
        logger.info("[storage] Filesystem base_dir: %s", self.base_dir)

    def _full_path(self, key: str) -> Path:
        """Resolve a key below ``base_dir``, refusing anything that escapes it."""
        relative = PurePosixPath(key)
        if relative.is_absolute() or ".." in relative.parts:
            raise ReceiptNotFound(f"Invalid image key: {key}")
        return self.base_dir.joinpath(*relative.parts)

    def new_key(self, image: UploadedImage, owner_id: str) -> str:
        """Return a fresh ``owner/uuid_filename`` key for ``image``."""
        safe_name = normalise_filename(image.filename)
        safe_owner = normalise_filename(str(owner_id))
        return f"{safe_owner}/{uuid.uuid4().hex}_{safe_name}"

    async def save(self, image: UploadedImage, owner_id: str, key: Optional[str] = None) -> str:
        """Persist the upload's bytes and return its storage key.

        Callers that must be able to clean up an interrupted write pass a
        ``key`` obtained from ``new_key`` beforehand.
        """
        if not image.content:
            raise ValueError("Empty upload payload")
        key = key or self.new_key(image, owner_id)

        if self.backend == "minio":
            await asyncio.to_thread(
                self._client.put_object,
                self.bucket,
                key,
                BytesIO(image.content),
                len(image.content),
                content_type=image.content_type or "application/octet-stream",
            )
            logger.info("[storage] MinIO object put: %s size=%d", key, len(image.content))
            return key

        path = self._full_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, image.content)
        logger.info("[storage] FS saved: %s bytes=%d", path, len(image.content))
        return key

    async def load(self, key: str) -> bytes:
        """Return the stored bytes for ``key``."""
        if self.backend == "minio":
            return await asyncio.to_thread(self._load_object, key)
        path = self._full_path(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise ReceiptNotFound(f"Image not found: {key}") from exc

    def _load_object(self, key: str) -> bytes:
        try:
            resp = self._client.get_object(self.bucket, key)
        except S3Error as exc:
            raise ReceiptNotFound(f"Image not found: {key}") from exc
        try:
            return resp.read()
        finally:
            resp.close()
            resp.release_conn()

    async def delete(self, key: str) -> None:
        """Remove a stored image; a missing object is not an error."""
        if self.backend == "minio":
            try:
                await asyncio.to_thread(self._client.remove_object, self.bucket, key)
            except S3Error as exc:
                logger.warning("[storage] MinIO delete failed key=%s: %s", key, exc)
            return
        path = self._full_path(key)
        await asyncio.to_thread(path.unlink, True)
        logger.info("[storage] FS deleted: %s", path)
