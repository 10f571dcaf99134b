"""Pydantic schemas for the receipt pipeline and the API.

The first group of models are the values flowing through the
extraction pipeline (``UploadedImage`` → ``ExtractionResult`` →
``ParsedReceipt``).  The second group describes what crosses the HTTP
boundary.  Pydantic schemas are intentionally separate from the ORM
models in ``snapcart.models.tables`` so that the shape stored in the
database can differ from the shape exposed through the API.
"""

from __future__ import annotations

import datetime as dt
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import AnalyticsPeriod, Confidence, Provenance


# ---------------------------------------------------------------------------
# Pipeline values


class UploadedImage(BaseModel):
    """A materialised upload handed over by the transport layer.

    Transient: it is consumed once by the OCR service and never stored
    as such (the image bytes are persisted separately, by key).
    """

    model_config = ConfigDict(frozen=True)

    content: bytes = Field(repr=False)
    content_type: str
    filename: str
    size: int = Field(ge=0)

    @classmethod
    def from_bytes(cls, content: bytes, filename: str, content_type: str) -> "UploadedImage":
        return cls(content=content, filename=filename, content_type=content_type, size=len(content))


class ExtractionResult(BaseModel):
    """Raw receipt text plus the provider that produced it."""

    model_config = ConfigDict(frozen=True)

    text: str
    provenance: Provenance


class LineItem(BaseModel):
    """Individual line item on a receipt."""

    description: str
    quantity: float = Field(default=1, ge=0)
    unit_price: float = Field(ge=0)


class ParsedReceipt(BaseModel):
    """Structured receipt candidate produced by the parser.

    ``items`` keep the order in which they appear on the receipt.  A
    present ``total`` is never reconciled against the item sum.
    """

    merchant_name: Optional[str] = None
    date: Optional[dt.date] = None
    items: List[LineItem] = Field(default_factory=list)
    subtotal: Optional[float] = Field(default=None, ge=0)
    tax: Optional[float] = Field(default=None, ge=0)
    total: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = None
    confidence: Confidence = Confidence.LOW


# ---------------------------------------------------------------------------
# API request/response schemas


class ReceiptRead(BaseModel):
    id: str
    owner_id: str
    merchant_name: Optional[str] = None
    date: Optional[dt.date] = None
    items: List[LineItem] = Field(default_factory=list)
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    total: Optional[float] = None
    category: Optional[str] = None
    confidence: Confidence
    provenance: Provenance
    original_filename: Optional[str] = None
    has_image: bool = False
    notes: Optional[str] = None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("items", mode="before")
    def _none_items_to_empty(cls, v):
        return v or []


class ReceiptListResponse(BaseModel):
    receipts: List[ReceiptRead]
    count: int


class ReceiptUpdate(BaseModel):
    """User-editable fields; anything left unset is not touched."""

    notes: Optional[str] = None
    category: Optional[str] = None
    merchant_name: Optional[str] = None

    @field_validator("notes", mode="before")
    def sanitize_notes(cls, v):
        from snapcart.utils.sanitization import sanitize_string
        return sanitize_string(v, max_length=2000) if v is not None else v

    @field_validator("category", "merchant_name", mode="before")
    def sanitize_short_fields(cls, v):
        from snapcart.utils.sanitization import sanitize_string
        return sanitize_string(v, max_length=120) if v is not None else v


class ReceiptFilters(BaseModel):
    """Filters accepted by ``ReceiptRepository.list_by_owner``."""

    category: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    limit: int = Field(default=100, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


class AnalyticsSummary(BaseModel):
    """Aggregate spending figures over a caller's receipts."""

    total_spent: float = 0.0
    receipt_count: int = 0
    count_by_category: Dict[str, int] = Field(default_factory=dict)
    spent_by_category: Dict[str, float] = Field(default_factory=dict)
    average_per_receipt: float = 0.0
    period: AnalyticsPeriod = AnalyticsPeriod.MONTH
    spent_this_period: float = 0.0


class HealthRead(BaseModel):
    status: str
    ai_provider_available: bool
