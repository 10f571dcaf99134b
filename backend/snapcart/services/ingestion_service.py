"""End-to-end receipt ingestion.

``IngestionService.ingest`` validates an upload, extracts its text via
``OCRService``, parses it, assigns identity, ownership and timestamps
and stores the result.  Three errors can escape it:

* ``InvalidUpload`` raised before any extraction work is done,
* ``UnparsableReceipt`` when the text has no usable total (nothing is
  stored, the caller must tell the user the photo was unreadable),
* ``ExtractionFailed`` when even the fallback provider broke.

Each call is independent; the only shared collaborator is the
repository, whose ``create`` is atomic.  If the calling task is
cancelled mid-flight nothing is persisted and any image already saved
is removed again.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import uuid
from typing import Callable, Iterable, Optional

from snapcart.core.exceptions import InvalidUpload, UnparsableReceipt
from snapcart.core.observability import sentry_breadcrumb, sentry_metric_inc
from snapcart.models.schemas import ParsedReceipt, UploadedImage
from snapcart.models.tables import Receipt
from snapcart.services.ocr_service import OCRService
from snapcart.services.receipt_parser import ReceiptParser, suggest_category
from snapcart.services.receipt_repository import ReceiptRepository
from snapcart.services.storage_service import StorageService

logger = logging.getLogger(__name__)

Categorizer = Callable[[ParsedReceipt, str], Optional[str]]


class IngestionService:
    """Turn one uploaded receipt photo into one stored ``Receipt``."""

    def __init__(
        self,
        ocr: OCRService,
        repository: ReceiptRepository,
        storage: Optional[StorageService] = None,
        parser: Optional[ReceiptParser] = None,
        max_upload_size: int = 10 * 1024 * 1024,
        allowed_mime_types: Iterable[str] = ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"),
        categorizer: Optional[Categorizer] = suggest_category,
    ) -> None:
        self.ocr = ocr
        self.repository = repository
        self.storage = storage
        self.parser = parser or ReceiptParser()
        self.max_upload_size = max_upload_size
        self.allowed_mime_types = {m.lower() for m in allowed_mime_types}
        self.categorizer = categorizer

    def validate(self, image: UploadedImage) -> None:
        """Reject uploads that are not images or are too large."""
        mime_type = (image.content_type or "").split(";", 1)[0].strip().lower()
        if mime_type not in self.allowed_mime_types:
            raise InvalidUpload(f"Only image files are allowed (got {image.content_type or 'unknown type'})")
        size = max(image.size, len(image.content))
        if size == 0:
            raise InvalidUpload("Uploaded file is empty")
        if size > self.max_upload_size:
            limit_mb = self.max_upload_size / (1024 * 1024)
            raise InvalidUpload(f"File too large. Maximum size is {limit_mb:g}MB")

    async def ingest(self, image: UploadedImage, owner_id: str) -> Receipt:
        self.validate(image)
        sentry_breadcrumb(category="ingest", message="ingest.start", data={"size": image.size})

        extraction = await self.ocr.extract(image)
        try:
            parsed = self.parser.parse(extraction.text)
        except UnparsableReceipt:
            logger.info("Unparsable receipt text from %s provider (%s)", extraction.provenance.value, image.filename)
            sentry_metric_inc("ingest.unparsable", tags={"provenance": extraction.provenance.value})
            raise

        category = parsed.category
        if category is None and self.categorizer is not None:
            category = self.categorizer(parsed, extraction.text)

        image_key: Optional[str] = None
        if self.storage is not None:
            image_key = await self._save_image(image, owner_id)

        now = dt.datetime.now(dt.timezone.utc)
        receipt = Receipt(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            merchant_name=parsed.merchant_name,
            date=parsed.date,
            items=[item.model_dump() for item in parsed.items],
            subtotal=parsed.subtotal,
            tax=parsed.tax,
            total=parsed.total,
            category=category,
            confidence=parsed.confidence,
            provenance=extraction.provenance,
            raw_text=extraction.text,
            image_path=image_key,
            original_filename=image.filename,
            created_at=now,
            updated_at=now,
        )
        try:
            stored = await self.repository.create(receipt)
        except BaseException:
            if image_key is not None:
                await self._discard_image(image_key)
            raise

        logger.info(
            "Receipt %s stored for owner %s (provenance=%s, total=%s)",
            stored.id,
            owner_id,
            extraction.provenance.value,
            stored.total,
        )
        sentry_breadcrumb(category="ingest", message="ingest.stored", data={"provenance": extraction.provenance.value})
        return stored

    async def _save_image(self, image: UploadedImage, owner_id: str) -> str:
        key = self.storage.new_key(image, owner_id)
        # A cancelled write can still finish in its worker thread
        saving = asyncio.ensure_future(self.storage.save(image, owner_id, key=key))
        try:
            return await asyncio.shield(saving)
        except BaseException:
            await self._discard_image(key, pending=saving)
            raise

    async def _discard_image(self, key: str, pending: Optional[asyncio.Future] = None) -> None:
        if pending is not None and not pending.done():
            await asyncio.wait({pending})
        try:
            await self.storage.delete(key)
        except Exception as exc:
            logger.warning("Could not remove orphaned image %s: %s", key, exc)
