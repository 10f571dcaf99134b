"""SQLAlchemy ORM models for the receipt API.

A receipt row holds the parsed receipt fields plus the ownership,
provenance and audit columns assigned by the ingestion workflow.
Line items are stored as a JSON list of ``{description, quantity,
unit_price}`` objects in appearance order.

If you extend or modify these models remember to recreate the tables
during development (``init_db`` only creates missing tables).
"""

from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    Index,
    JSON,
    String,
    Text,
)

from snapcart.core.database import Base
from .enums import Confidence, Provenance


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Receipt(Base):
    """A stored receipt belonging to a single owner."""

    __tablename__ = "receipts"

    id = Column(String(32), primary_key=True, default=_new_id)
    owner_id = Column(String, nullable=False, index=True)

    merchant_name = Column(String, nullable=True)
    date = Column(Date, nullable=True)
    items = Column(JSON, nullable=False, default=list)
    subtotal = Column(Float, nullable=True)
    tax = Column(Float, nullable=True)
    total = Column(Float, nullable=True)
    category = Column(String, nullable=True, index=True)
    confidence = Column(Enum(Confidence), nullable=False, default=Confidence.LOW)

    # Extraction audit trail
    provenance = Column(Enum(Provenance), nullable=False)
    raw_text = Column(Text, nullable=True)

    image_path = Column(String, nullable=True)
    original_filename = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_receipts_owner_created_at", "owner_id", "created_at"),
    )

    @property
    def has_image(self) -> bool:
        return bool(self.image_path)

    def __repr__(self) -> str:
        return f"<Receipt id={self.id} owner={self.owner_id} total={self.total}>"
