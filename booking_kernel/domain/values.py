"""
Value objects for the allocation core.

Pure, immutable types shared by models, selectors and services:
resource kinds, ledger transaction kinds, and the half-open event window.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ResourceKind(str, Enum):
    """Tagged variant selecting a resource's admission rule."""

    EXCLUSIVE = "exclusive"
    SHAREABLE = "shareable"
    CONSUMABLE = "consumable"


class TransactionType(str, Enum):
    """
    Kind of ledger transaction.

    Sign convention: RESTOCK and RETURN are positive, ALLOCATION is
    negative, ADJUSTMENT carries whatever delta it corrects (may be zero).
    """

    RESTOCK = "restock"
    ALLOCATION = "allocation"
    ADJUSTMENT = "adjustment"
    RETURN = "return"


@dataclass(frozen=True)
class TimeWindow:
    """
    Half-open interval ``[start, end)`` occupied by an event.

    Two windows that only touch at an endpoint do not overlap.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if not self.end > self.start:
            raise ValueError(
                f"TimeWindow end ({self.end}) must be after start ({self.start})"
            )

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and self.end > other.start

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end
