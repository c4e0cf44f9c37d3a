"""Domain models for the booking kernel."""

from booking_kernel.models.allocation import ResourceAllocation
from booking_kernel.models.event import Event
from booking_kernel.models.inventory_transaction import LedgerTransaction
from booking_kernel.models.resource import Resource

__all__ = [
    "Event",
    "LedgerTransaction",
    "Resource",
    "ResourceAllocation",
]
