from __future__ import annotations

import asyncio

import pytest

from snapcart.core.exceptions import ExtractionError, ExtractionFailed, InvalidUpload, UnparsableReceipt
from snapcart.models.enums import Confidence, Provenance
from snapcart.services.ingestion_service import IngestionService
from snapcart.services.ocr_service import OCRService
from snapcart.services.receipt_repository import ReceiptRepository
from snapcart.services.storage_service import StorageService


class RecordingRepository:
    """Repository double that keeps created receipts in memory."""

    def __init__(self, exc: BaseException | None = None):
        self.exc = exc
        self.created = []

    async def create(self, receipt):
        if self.exc is not None:
            raise self.exc
        self.created.append(receipt)
        return receipt


@pytest.fixture
def storage(tmp_path):
    return StorageService(base_dir=str(tmp_path), backend="filesystem")


def _stored_files(storage):
    return [p for p in storage.base_dir.rglob("*") if p.is_file()]


@pytest.mark.asyncio
async def test_timeout_degrades_to_fallback_receipt(counting_provider, make_image, storage):
    ai = counting_provider(exc=ExtractionError("vision model timed out after 30s"))
    repo = RecordingRepository()
    service = IngestionService(ocr=OCRService(ai_provider=ai), repository=repo, storage=storage)

    receipt = await service.ingest(make_image(size=2048), owner_id="user-1")

    assert receipt.provenance is Provenance.FALLBACK
    assert receipt.merchant_name == "GROCERY STORE"
    assert receipt.total == 18.29
    assert receipt.tax == 0.83
    assert receipt.confidence is Confidence.HIGH
    assert receipt.category == "Groceries"
    assert receipt.owner_id == "user-1"
    assert len(receipt.id) == 32
    assert receipt.created_at.tzinfo is not None
    assert [item["description"] for item in receipt.items] == ["Milk 2%", "Bread Wheat", "Bananas", "Chicken Breast"]
    assert "GROCERY STORE" in receipt.raw_text
    assert repo.created == [receipt]
    assert receipt.image_path and len(_stored_files(storage)) == 1


@pytest.mark.asyncio
async def test_oversized_upload_is_rejected_before_extraction(counting_provider, make_image):
    ai = counting_provider(text="SHOP\nTOTAL $1.00")
    fallback = counting_provider(text="SHOP\nTOTAL $1.00")
    repo = RecordingRepository()
    service = IngestionService(ocr=OCRService(ai_provider=ai, fallback_provider=fallback), repository=repo)

    with pytest.raises(InvalidUpload, match="too large"):
        await service.ingest(make_image(size=15 * 1024 * 1024), owner_id="user-1")

    assert ai.calls == 0
    assert fallback.calls == 0
    assert repo.created == []


@pytest.mark.asyncio
@pytest.mark.parametrize("content_type", ["text/plain", "application/pdf", ""])
async def test_non_image_upload_is_rejected(counting_provider, make_image, content_type):
    ai = counting_provider(text="SHOP\nTOTAL $1.00")
    service = IngestionService(ocr=OCRService(ai_provider=ai), repository=RecordingRepository())
    with pytest.raises(InvalidUpload):
        await service.ingest(make_image(content_type=content_type), owner_id="user-1")
    assert ai.calls == 0


@pytest.mark.asyncio
async def test_empty_upload_is_rejected(make_image):
    service = IngestionService(ocr=OCRService(), repository=RecordingRepository())
    with pytest.raises(InvalidUpload, match="empty"):
        await service.ingest(make_image(size=0), owner_id="user-1")


@pytest.mark.asyncio
async def test_content_type_parameters_are_ignored(make_image):
    repo = RecordingRepository()
    service = IngestionService(ocr=OCRService(), repository=repo)
    await service.ingest(make_image(content_type="IMAGE/PNG; charset=binary"), owner_id="user-1")
    assert len(repo.created) == 1


@pytest.mark.asyncio
async def test_unparsable_text_is_never_stored(counting_provider, make_image, storage):
    ai = counting_provider(text="Sorry, I can't read the image clearly.")
    repo = RecordingRepository()
    service = IngestionService(ocr=OCRService(ai_provider=ai), repository=repo, storage=storage)

    with pytest.raises(UnparsableReceipt):
        await service.ingest(make_image(), owner_id="user-1")

    assert ai.calls == 1
    assert repo.created == []
    assert _stored_files(storage) == []


@pytest.mark.asyncio
async def test_broken_fallback_surfaces_extraction_failed(counting_provider, make_image):
    ocr = OCRService(fallback_provider=counting_provider(exc=RuntimeError("defect")))
    repo = RecordingRepository()
    service = IngestionService(ocr=ocr, repository=repo)
    with pytest.raises(ExtractionFailed):
        await service.ingest(make_image(), owner_id="user-1")
    assert repo.created == []


@pytest.mark.asyncio
@pytest.mark.parametrize("exc", [RuntimeError("db down"), asyncio.CancelledError()])
async def test_saved_image_is_removed_when_create_fails(make_image, storage, exc):
    service = IngestionService(ocr=OCRService(), repository=RecordingRepository(exc=exc), storage=storage)
    with pytest.raises(type(exc)):
        await service.ingest(make_image(), owner_id="user-1")
    assert _stored_files(storage) == []


@pytest.mark.asyncio
async def test_ai_text_is_parsed_without_categorizer(counting_provider, make_image):
    ai = counting_provider(text="Blue Bottle Coffee\n2024-06-01\nLatte $5.25\nTOTAL $5.25")
    repo = RecordingRepository()
    service = IngestionService(ocr=OCRService(ai_provider=ai), repository=repo, categorizer=None)

    receipt = await service.ingest(make_image(), owner_id="user-2")

    assert receipt.provenance is Provenance.AI
    assert receipt.merchant_name == "Blue Bottle Coffee"
    assert receipt.total == 5.25
    assert receipt.category is None
    assert receipt.image_path is None


@pytest.mark.asyncio
async def test_each_ingest_stores_its_own_receipt(make_image, db_session):
    service = IngestionService(ocr=OCRService(), repository=ReceiptRepository(db_session))

    first = await service.ingest(make_image(filename="a.jpg"), owner_id="user-1")
    second = await service.ingest(make_image(filename="b.jpg"), owner_id="user-1")

    assert first.id != second.id
    stored = await ReceiptRepository(db_session).list_all_by_owner("user-1")
    assert {r.id for r in stored} == {first.id, second.id}


@pytest.mark.asyncio
async def test_cancel_during_extraction_persists_nothing(counting_provider, make_image, storage):
    ai = counting_provider(text="SHOP\nTOTAL $1.00", delay=10)
    fallback = counting_provider(text="SHOP\nTOTAL $1.00")
    repo = RecordingRepository()
    service = IngestionService(
        ocr=OCRService(ai_provider=ai, fallback_provider=fallback),
        repository=repo,
        storage=storage,
    )

    task = asyncio.create_task(service.ingest(make_image(), owner_id="user-1"))
    await ai.started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert fallback.calls == 0
    assert repo.created == []
    assert _stored_files(storage) == []


class SlowStorage(StorageService):
    """Filesystem storage whose writes take a while to land."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.started = asyncio.Event()

    async def save(self, image, owner_id, key=None):
        self.started.set()
        await asyncio.sleep(0.05)
        return await super().save(image, owner_id, key=key)


@pytest.mark.asyncio
async def test_cancel_during_image_save_leaves_no_file(make_image, tmp_path):
    storage = SlowStorage(base_dir=str(tmp_path), backend="filesystem")
    repo = RecordingRepository()
    service = IngestionService(ocr=OCRService(), repository=repo, storage=storage)

    task = asyncio.create_task(service.ingest(make_image(), owner_id="user-1"))
    await storage.started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert repo.created == []
    assert _stored_files(storage) == []
