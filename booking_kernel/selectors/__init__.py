"""Read-only selectors for the booking kernel."""

from booking_kernel.selectors.allocation_selector import AllocationSelector
from booking_kernel.selectors.base import BaseSelector
from booking_kernel.selectors.ledger_selector import LedgerSelector

__all__ = [
    "AllocationSelector",
    "BaseSelector",
    "LedgerSelector",
]
