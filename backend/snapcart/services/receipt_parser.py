"""Receipt text parser.

Turns the free-form text produced by an extraction provider into a
``ParsedReceipt``.  Parsing is line oriented and tolerant:

* money tokens are amounts next to a currency symbol (``$3.99``,
  ``3.99 €``) or bare amounts with exactly two decimals (``18.29``);
* a line whose label mentions "subtotal", "tax" or "total" feeds the
  matching summary field; for the total the last labelled line wins
  because running totals print before the final one;
* other lines with a text label and a trailing amount become items
  with quantity 1;
* the first non-money line is the merchant, the first date-like token
  anywhere is the date.

When no line is labelled "total" the largest amount in the text stands
in for it.  Text without any amount raises ``UnparsableReceipt``; a
fabricated zero total would be indistinguishable from a real one.
A labelled total that is negative (a refund) is unparsable as well.
Amounts with a leading or trailing minus (``-$5.00``, ``5.00-``) are
discounts and never become items.

``ReceiptParser`` holds no state between calls, so the same text always
yields an equal ``ParsedReceipt``.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from snapcart.core.exceptions import UnparsableReceipt
from snapcart.models.enums import Confidence
from snapcart.models.schemas import LineItem, ParsedReceipt

logger = logging.getLogger(__name__)


_CURRENCY = r"[$€£]"
_AMOUNT = r"\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?"
_AMOUNT_2DP = r"\d{1,3}(?:,\d{3})+\.\d{2}|\d+\.\d{2}"

MONEY_PATTERN = re.compile(
    rf"(?<![\d.,])(?P<neg>-)?"
    rf"(?:"
    rf"{_CURRENCY}\s?(?P<pre>{_AMOUNT})"
    rf"|(?P<bare>{_AMOUNT_2DP})(?:\s?{_CURRENCY})?"
    rf"|(?P<post>{_AMOUNT})\s?{_CURRENCY}"
    rf")(?P<trail>-(?!\d))?(?![\d.,]?\d|\s?%)"
)

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH_NAME = (
    r"(?P<mon>jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?"
)

# (pattern, order of the captured day/month/year groups)
DATE_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\b(?P<y>\d{4})[-/.](?P<m>\d{1,2})[-/.](?P<d>\d{1,2})\b"), "ymd"),
    (re.compile(r"\b(?P<m>\d{1,2})/(?P<d>\d{1,2})/(?P<y>\d{4}|\d{2})\b"), "mdy"),
    (re.compile(r"\b(?P<m>\d{1,2})-(?P<d>\d{1,2})-(?P<y>\d{4})\b"), "mdy"),
    (re.compile(r"\b(?P<d>\d{1,2})\.(?P<m>\d{1,2})\.(?P<y>\d{4}|\d{2})\b"), "dmy"),
    (re.compile(rf"\b{_MONTH_NAME}\s+(?P<d>\d{{1,2}})(?:st|nd|rd|th)?,?\s+(?P<y>\d{{4}})\b", re.IGNORECASE), "name"),
    (re.compile(rf"\b(?P<d>\d{{1,2}})(?:st|nd|rd|th)?\s+{_MONTH_NAME},?\s+(?P<y>\d{{4}})\b", re.IGNORECASE), "name"),
]

_SUBTOTAL_LABEL = re.compile(r"sub[\s-]?total", re.IGNORECASE)
# "tax" anywhere in the label (TAX1, SALESTAX) but not "taxi"
_TAX_LABEL = re.compile(r"tax(?!i)|\bvat\b|\bgst\b|\bhst", re.IGNORECASE)
_TAX_INCLUSIVE = re.compile(r"\b(?:incl\w*|including|with|after)\.?\s+tax", re.IGNORECASE)
_TOTAL_LABEL = re.compile(r"total", re.IGNORECASE)
# Payment and tender lines carry amounts but are not purchases.
_NON_ITEM_LABEL = re.compile(
    r"\b(?:change|cash|tender\w*|balance|amount\s+due|payment|paid|visa|mastercard|amex|debit|credit\s+card)\b",
    re.IGNORECASE,
)
_MARKUP = re.compile(r"[*_#`|]+")
_LIST_MARKER = re.compile(r"^\s*(?:[-•·]+|\d{1,2}[.)])\s+")
_FIELD_PREFIX = re.compile(
    r"^(?:store(?:\s+name)?(?:\s+and\s+address)?|merchant(?:\s+name)?|name)\s*:\s*",
    re.IGNORECASE,
)
_LABEL_TAIL = re.compile(r"[\s:=@.\-–]+$")


@dataclass(frozen=True)
class MoneyToken:
    value: float
    negative: bool
    start: int
    end: int


def parse_amount(raw: str) -> float:
    """Convert ``"1,234.50"`` to ``1234.5``."""
    return round(float(raw.replace(",", "")), 2)


def find_money(line: str) -> list[MoneyToken]:
    """Return the money-like tokens of ``line`` in order of appearance."""
    tokens: list[MoneyToken] = []
    for match in MONEY_PATTERN.finditer(line):
        raw = match.group("pre") or match.group("bare") or match.group("post")
        tokens.append(
            MoneyToken(
                value=parse_amount(raw),
                negative=bool(match.group("neg") or match.group("trail")),
                start=match.start(),
                end=match.end(),
            )
        )
    return tokens


def _build_date(year: str, month: int, day: str) -> Optional[dt.date]:
    y = int(year)
    if len(year) == 2:
        y += 2000
    try:
        return dt.date(y, month, int(day))
    except ValueError:
        return None


def find_date(line: str) -> Optional[tuple[int, dt.date]]:
    """Return ``(position, date)`` of the earliest valid date in ``line``."""
    best: Optional[tuple[int, dt.date]] = None
    for pattern, order in DATE_PATTERNS:
        for match in pattern.finditer(line):
            if best is not None and match.start() >= best[0]:
                break
            if order == "name":
                month = _MONTHS[match.group("mon").lower()[:3]]
                value = _build_date(match.group("y"), month, match.group("d"))
            else:
                value = _build_date(match.group("y"), int(match.group("m")), match.group("d"))
                if value is None and order == "mdy":
                    # 15/01/2024: day-first receipts
                    value = _build_date(match.group("y"), int(match.group("d")), match.group("m"))
            if value is not None:
                best = (match.start(), value)
                break
    return best


def clean_line(line: str) -> str:
    """Strip markdown emphasis and list markers a model may add."""
    line = _MARKUP.sub("", line)
    line = _LIST_MARKER.sub("", line)
    return line.strip()


def _label_before(line: str, token: MoneyToken) -> str:
    return _LABEL_TAIL.sub("", line[: token.start]).strip()


class ReceiptParser:
    """Heuristic, line-oriented receipt text parser."""

    def parse(self, text: str) -> ParsedReceipt:
        lines = [clean_line(raw) for raw in (text or "").splitlines()]
        lines = [line for line in lines if line]

        merchant: Optional[str] = None
        receipt_date: Optional[dt.date] = None
        items: list[LineItem] = []
        subtotal = tax = total = None
        largest: Optional[float] = None
        first_date_index: Optional[int] = None
        negative_total = False
        money_lines: set[int] = set()

        for index, line in enumerate(lines):
            if receipt_date is None:
                found = find_date(line)
                if found is not None:
                    receipt_date = found[1]
                    first_date_index = index

            tokens = find_money(line)
            if not tokens:
                continue
            money_lines.add(index)
            amounts = [t.value for t in tokens if not t.negative]
            if amounts:
                largest = max(amounts) if largest is None else max(largest, *amounts)
            last = tokens[-1]
            label = _label_before(line, last)
            if last.negative:
                # discounts, and refunds when the label is a total
                if self._is_total_label(label):
                    negative_total = True
                continue

            if _SUBTOTAL_LABEL.search(label):
                subtotal = last.value
            elif _TAX_LABEL.search(label) and not _TAX_INCLUSIVE.search(label):
                tax = last.value
            elif self._is_total_label(label):
                total = last.value
            elif _NON_ITEM_LABEL.search(label):
                continue
            elif re.search(r"[^\W\d_]", label) and find_date(label) is None:
                items.append(LineItem(description=label, quantity=1, unit_price=last.value))

        merchant = self._find_merchant(lines, money_lines, first_date_index)

        if total is None:
            if negative_total:
                raise UnparsableReceipt("receipt total is negative (refund)")
            if largest is None:
                raise UnparsableReceipt("no total amount found in receipt text")
            logger.debug("No labelled total; using largest amount %.2f", largest)
            total = largest

        confidence = Confidence.HIGH if merchant and receipt_date else Confidence.LOW
        return ParsedReceipt(
            merchant_name=merchant,
            date=receipt_date,
            items=items,
            subtotal=subtotal,
            tax=tax,
            total=total,
            category=None,
            confidence=confidence,
        )

    @staticmethod
    def _is_total_label(label: str) -> bool:
        if _SUBTOTAL_LABEL.search(label):
            return False
        if _TAX_LABEL.search(label) and not _TAX_INCLUSIVE.search(label):
            return False
        return bool(_TOTAL_LABEL.search(label))

    @staticmethod
    def _find_merchant(lines: list[str], money_lines: set[int], first_date_index: Optional[int]) -> Optional[str]:
        candidates: list[int] = []
        if lines:
            candidates.append(0)
        if first_date_index:
            candidates.append(first_date_index - 1)
        for index in candidates:
            if index in money_lines:
                continue
            name = _FIELD_PREFIX.sub("", lines[index]).strip()
            if name and find_date(name) is None:
                return name[:120]
        return None


# ---------------------------------------------------------------------------
# Category suggestion (applied by the ingestion workflow, not by ``parse``)

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Groceries": ("grocery", "groceries", "market", "supermarket", "foods", "produce", "whole foods", "trader joe", "aldi", "kroger", "safeway"),
    "Dining": ("restaurant", "cafe", "café", "coffee", "bistro", "grill", "pizza", "burger", "bar ", "diner", "starbucks", "mcdonald"),
    "Transportation": ("fuel", "gas station", "petrol", "shell", "chevron", "exxon", "parking", "uber", "lyft", "taxi", "transit"),
    "Pharmacy": ("pharmacy", "drug", "cvs", "walgreens", "rite aid", "chemist"),
    "Household": ("hardware", "home depot", "lowe's", "ikea", "home goods"),
    "Electronics": ("electronics", "best buy", "apple store", "computer"),
    "Clothing": ("apparel", "clothing", "fashion", "shoes", "boutique"),
}


def suggest_category(parsed: ParsedReceipt, text: str = "", keywords: Iterable[tuple[str, tuple[str, ...]]] | None = None) -> Optional[str]:
    """Best-effort category from merchant name, then full text."""
    table = list(keywords) if keywords is not None else list(CATEGORY_KEYWORDS.items())
    for haystack in (parsed.merchant_name or "", text or ""):
        lowered = f" {haystack.lower()} "
        for category, words in table:
            if any(word in lowered for word in words):
                return category
    return None
