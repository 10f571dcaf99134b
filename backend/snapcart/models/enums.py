"""Enumeration types used throughout the receipt pipeline.

Enumerations constrain the values stored on a receipt row and passed
through the API.  When modifying these enums update the corresponding
database columns so that new values are accepted.
"""

from enum import Enum


class Provenance(str, Enum):
    """Which extraction provider produced a receipt's raw text."""

    AI = "ai"
    FALLBACK = "fallback"


class Confidence(str, Enum):
    """How much of a receipt the parser could read.

    ``LOW`` means a required field (merchant or date) was not found.
    """

    HIGH = "high"
    LOW = "low"


class AnalyticsPeriod(str, Enum):
    """Window used for the ``spent_this_period`` analytics figure."""

    MONTH = "month"
    YEAR = "year"
    ALL = "all"
