"""Spending analytics over stored receipts.

``summarize`` is a pure projection: it takes receipts that were already
fetched and computes totals without any I/O.  Receipts are read by
attribute, so ORM rows and ``ReceiptRead`` objects both work.

Rules:

* a missing ``total`` counts as 0 towards every sum;
* the average excludes receipts with no monetary data at all (no total,
  subtotal, tax or priced item); a receipt whose total is 0 still counts;
* uncategorised receipts are grouped under ``"Uncategorized"``;
* "this period" is judged on the receipt date, falling back to the
  upload date when the receipt carried none.
"""

from __future__ import annotations

import datetime as dt
from collections import Counter, defaultdict
from typing import Any, Iterable, Optional

from snapcart.models.enums import AnalyticsPeriod
from snapcart.models.schemas import AnalyticsSummary

UNCATEGORIZED = "Uncategorized"


def _has_monetary_data(receipt: Any) -> bool:
    if any(getattr(receipt, field, None) is not None for field in ("total", "subtotal", "tax")):
        return True
    for item in getattr(receipt, "items", None) or []:
        price = item.get("unit_price") if isinstance(item, dict) else getattr(item, "unit_price", None)
        if price is not None:
            return True
    return False


def _reference_date(receipt: Any) -> Optional[dt.date]:
    receipt_date = getattr(receipt, "date", None)
    if receipt_date is not None:
        return receipt_date
    created_at = getattr(receipt, "created_at", None)
    return created_at.date() if created_at is not None else None


def _in_period(day: Optional[dt.date], period: AnalyticsPeriod, today: dt.date) -> bool:
    if period is AnalyticsPeriod.ALL:
        return True
    if day is None:
        return False
    if period is AnalyticsPeriod.YEAR:
        return day.year == today.year
    return (day.year, day.month) == (today.year, today.month)


def summarize(
    receipts: Iterable[Any],
    period: AnalyticsPeriod | str = AnalyticsPeriod.MONTH,
    today: Optional[dt.date] = None,
) -> AnalyticsSummary:
    """Aggregate spending figures; an empty input yields a zeroed summary."""
    period = AnalyticsPeriod(period)
    today = today or dt.date.today()

    total_spent = 0.0
    spent_this_period = 0.0
    counted = 0
    receipt_count = 0
    count_by_category: Counter[str] = Counter()
    spent_by_category: defaultdict[str, float] = defaultdict(float)

    for receipt in receipts:
        receipt_count += 1
        amount = float(getattr(receipt, "total", None) or 0.0)
        category = getattr(receipt, "category", None) or UNCATEGORIZED

        total_spent += amount
        count_by_category[category] += 1
        spent_by_category[category] += amount
        if _has_monetary_data(receipt):
            counted += 1
        if _in_period(_reference_date(receipt), period, today):
            spent_this_period += amount

    return AnalyticsSummary(
        total_spent=round(total_spent, 2),
        receipt_count=receipt_count,
        count_by_category=dict(count_by_category),
        spent_by_category={k: round(v, 2) for k, v in spent_by_category.items()},
        average_per_receipt=round(total_spent / counted, 2) if counted else 0.0,
        period=period,
        spent_this_period=round(spent_this_period, 2),
    )
