"""Kernel services -- the write path and the in-process facade."""

from booking_kernel.services.admission_service import AdmissionService
from booking_kernel.services.allocation_service import AllocationService
from booking_kernel.services.catalog_service import CatalogService
from booking_kernel.services.inventory_service import InventoryService
from booking_kernel.services.kernel import BookingKernel
from booking_kernel.services.ledger_service import LedgerService
from booking_kernel.services.resource_lock import (
    FairLock,
    KeyedLockRegistry,
    ResourceLockCoordinator,
)

__all__ = [
    "AdmissionService",
    "AllocationService",
    "BookingKernel",
    "CatalogService",
    "FairLock",
    "InventoryService",
    "KeyedLockRegistry",
    "LedgerService",
    "ResourceLockCoordinator",
]
