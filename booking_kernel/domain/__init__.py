"""Pure domain layer: value types, DTOs, admission rules, clock."""

from booking_kernel.domain.clock import Clock, DeterministicClock, SystemClock, as_utc_naive
from booking_kernel.domain.values import ResourceKind, TimeWindow, TransactionType

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "as_utc_naive",
    "ResourceKind",
    "TimeWindow",
    "TransactionType",
]
