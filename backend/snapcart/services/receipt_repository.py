"""Receipt persistence on top of an async SQLAlchemy session.

The repository is the storage boundary of the pipeline: receipts are
created, listed by owner, fetched, updated and deleted here and
nowhere else.  Each ``create`` commits exactly one row, so a receipt is
either fully visible or not stored at all.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from snapcart.core.exceptions import ReceiptNotFound
from snapcart.models.schemas import ReceiptFilters, ReceiptUpdate
from snapcart.models.tables import Receipt


class ReceiptRepository:
    """CRUD access to stored receipts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, receipt: Receipt) -> Receipt:
        self.db.add(receipt)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(receipt)
        return receipt

    async def list_by_owner(self, owner_id: str, filters: Optional[ReceiptFilters] = None) -> List[Receipt]:
        """Return the owner's receipts, newest first."""
        filters = filters or ReceiptFilters()
        query = select(Receipt).where(Receipt.owner_id == owner_id)
        if filters.category:
            query = query.where(Receipt.category == filters.category)
        if filters.start_date:
            query = query.where(Receipt.date >= filters.start_date)
        if filters.end_date:
            query = query.where(Receipt.date <= filters.end_date)
        query = (
            query.order_by(Receipt.created_at.desc(), Receipt.id)
            .offset(filters.offset)
            .limit(filters.limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_all_by_owner(self, owner_id: str) -> List[Receipt]:
        """Return every receipt of the owner (used for analytics)."""
        result = await self.db.execute(select(Receipt).where(Receipt.owner_id == owner_id))
        return list(result.scalars().all())

    async def get_by_id(self, receipt_id: str, owner_id: Optional[str] = None) -> Receipt:
        """Fetch one receipt; someone else's receipt is reported as missing."""
        receipt = await self.db.get(Receipt, receipt_id)
        if receipt is None or (owner_id is not None and receipt.owner_id != owner_id):
            raise ReceiptNotFound(f"Receipt {receipt_id} not found")
        return receipt

    async def update(self, receipt_id: str, owner_id: str, changes: ReceiptUpdate) -> Receipt:
        receipt = await self.get_by_id(receipt_id, owner_id)
        for field, value in changes.model_dump(exclude_unset=True).items():
            setattr(receipt, field, value)
        await self.db.commit()
        await self.db.refresh(receipt)
        return receipt

    async def delete_by_id(self, receipt_id: str, owner_id: Optional[str] = None) -> Receipt:
        """Delete a receipt and return the removed row."""
        receipt = await self.get_by_id(receipt_id, owner_id)
        await self.db.delete(receipt)
        await self.db.commit()
        return receipt
