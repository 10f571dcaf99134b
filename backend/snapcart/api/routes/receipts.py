"""API routes for receipt upload, retrieval and analytics."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import Response

from snapcart.api.dependencies import (
    get_current_owner,
    get_ingestion_service,
    get_ocr_service,
    get_receipt_repository,
    get_storage_service,
)
from snapcart.core.exceptions import ReceiptNotFound
from snapcart.models.enums import AnalyticsPeriod
from snapcart.models.schemas import (
    AnalyticsSummary,
    HealthRead,
    ReceiptFilters,
    ReceiptListResponse,
    ReceiptRead,
    ReceiptUpdate,
    UploadedImage,
)
from snapcart.services.analytics_service import summarize
from snapcart.services.ingestion_service import IngestionService
from snapcart.services.ocr_service import OCRService
from snapcart.services.receipt_repository import ReceiptRepository
from snapcart.services.storage_service import StorageService
from snapcart.utils.helpers import mime_type_for_filename

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/receipts", tags=["receipts"])


@router.get("/health", response_model=HealthRead)
async def receipts_health(ocr: OCRService = Depends(get_ocr_service)) -> HealthRead:
    """Pipeline health, including whether the vision provider is configured."""
    return HealthRead(status="healthy", ai_provider_available=ocr.ai_available)


# Declared before /{receipt_id} so "analytics" is not taken for an id
@router.get("/analytics", response_model=AnalyticsSummary)
async def receipts_analytics(
    period: AnalyticsPeriod = Query(AnalyticsPeriod.MONTH),
    owner_id: str = Depends(get_current_owner),
    repository: ReceiptRepository = Depends(get_receipt_repository),
) -> AnalyticsSummary:
    receipts = await repository.list_all_by_owner(owner_id)
    return summarize(receipts, period=period)


@router.post("/upload", response_model=ReceiptRead, status_code=status.HTTP_201_CREATED)
async def upload_receipt(
    receipt: UploadFile = File(...),
    owner_id: str = Depends(get_current_owner),
    ingestion: IngestionService = Depends(get_ingestion_service),
) -> ReceiptRead:
    """Upload a receipt photo and return the extracted, stored receipt."""
    contents = await receipt.read()
    image = UploadedImage(
        content=contents,
        content_type=receipt.content_type or "",
        filename=receipt.filename or "receipt",
        size=len(contents),
    )
    stored = await ingestion.ingest(image, owner_id)
    return ReceiptRead.model_validate(stored)


@router.get("", response_model=ReceiptListResponse)
async def list_receipts(
    category: Optional[str] = Query(None),
    start_date: Optional[dt.date] = Query(None),
    end_date: Optional[dt.date] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    owner_id: str = Depends(get_current_owner),
    repository: ReceiptRepository = Depends(get_receipt_repository),
) -> ReceiptListResponse:
    """List the caller's receipts, newest first."""
    filters = ReceiptFilters(category=category, start_date=start_date, end_date=end_date, limit=limit, offset=offset)
    receipts = await repository.list_by_owner(owner_id, filters)
    return ReceiptListResponse(
        receipts=[ReceiptRead.model_validate(r) for r in receipts],
        count=len(receipts),
    )


@router.get("/{receipt_id}", response_model=ReceiptRead)
async def get_receipt(
    receipt_id: str,
    owner_id: str = Depends(get_current_owner),
    repository: ReceiptRepository = Depends(get_receipt_repository),
) -> ReceiptRead:
    receipt = await repository.get_by_id(receipt_id, owner_id)
    return ReceiptRead.model_validate(receipt)


@router.get("/{receipt_id}/image")
async def get_receipt_image(
    receipt_id: str,
    owner_id: str = Depends(get_current_owner),
    repository: ReceiptRepository = Depends(get_receipt_repository),
    storage: StorageService = Depends(get_storage_service),
) -> Response:
    """Stream back the original receipt photo."""
    receipt = await repository.get_by_id(receipt_id, owner_id)
    if not receipt.image_path:
        raise ReceiptNotFound(f"Receipt {receipt_id} has no stored image")
    data = await storage.load(receipt.image_path)
    return Response(content=data, media_type=mime_type_for_filename(receipt.original_filename))


@router.patch("/{receipt_id}", response_model=ReceiptRead)
async def update_receipt(
    receipt_id: str,
    changes: ReceiptUpdate,
    owner_id: str = Depends(get_current_owner),
    repository: ReceiptRepository = Depends(get_receipt_repository),
) -> ReceiptRead:
    """Edit the user-owned fields (notes, category, merchant name)."""
    receipt = await repository.update(receipt_id, owner_id, changes)
    return ReceiptRead.model_validate(receipt)


@router.delete("/{receipt_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_receipt(
    receipt_id: str,
    owner_id: str = Depends(get_current_owner),
    repository: ReceiptRepository = Depends(get_receipt_repository),
    storage: StorageService = Depends(get_storage_service),
) -> Response:
    receipt = await repository.delete_by_id(receipt_id, owner_id)
    if receipt.image_path:
        try:
            await storage.delete(receipt.image_path)
        except OSError as exc:
            logger.warning("Receipt %s deleted but image %s was not: %s", receipt_id, receipt.image_path, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
