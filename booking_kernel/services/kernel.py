"""
BookingKernel -- in-process facade over the allocation and inventory core.

Responsibility:
    Wires one ResourceLockCoordinator, clock and session factory into the
    services and exposes the operations the outer layers call.  One
    instance per process; every call is safe to make from any thread.

Architecture position:
    Kernel > Services -- outermost kernel surface.  booking_config.bootstrap
    builds it from configuration; tests build it directly.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from booking_kernel.domain.clock import Clock, SystemClock
from booking_kernel.domain.dtos import (
    AllocationRecord,
    CacheReconciliation,
    EventRecord,
    LedgerTransactionRecord,
    RemovalResult,
    ResourceRecord,
    RunningBalancePoint,
    ShortagePoint,
)
from booking_kernel.domain.values import ResourceKind
from booking_kernel.services.allocation_service import AllocationService
from booking_kernel.services.catalog_service import CatalogService
from booking_kernel.services.inventory_service import InventoryService
from booking_kernel.services.resource_lock import ResourceLockCoordinator


class BookingKernel:
    """
    Facade for the booking core.

    All services share one lock coordinator, so an allocation and a restock
    of the same resource exclude each other.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        lock_timeout: float | None = None,
        shortage_alerts: bool = True,
    ):
        self.clock = clock or SystemClock()
        self.locks = ResourceLockCoordinator(session_factory, lock_timeout=lock_timeout)
        self.catalog = CatalogService(session_factory, self.clock)
        self.allocations = AllocationService(session_factory, self.locks, self.clock)
        self.inventory = InventoryService(
            session_factory,
            self.locks,
            self.clock,
            shortage_alerts=shortage_alerts,
        )

    # Allocation lifecycle

    def allocate(
        self,
        event_id: UUID | str,
        resource_id: UUID | str,
        quantity: int = 1,
        actor_id: str | None = None,
    ) -> AllocationRecord:
        return self.allocations.allocate(event_id, resource_id, quantity, actor_id)

    def update_quantity(
        self,
        allocation_id: UUID | str,
        new_quantity: int,
        actor_id: str | None = None,
    ) -> AllocationRecord:
        return self.allocations.update_quantity(allocation_id, new_quantity, actor_id)

    def remove(self, allocation_id: UUID | str, actor_id: str | None = None) -> RemovalResult:
        return self.allocations.remove(allocation_id, actor_id)

    def get_allocation(self, allocation_id: UUID | str) -> AllocationRecord:
        return self.allocations.get(allocation_id)

    def list_allocations(
        self,
        event_id: UUID | str | None = None,
        resource_id: UUID | str | None = None,
    ) -> list[AllocationRecord]:
        return self.allocations.list_allocations(event_id=event_id, resource_id=resource_id)

    # Inventory

    def current_balance(self, resource_id: UUID | str) -> int:
        return self.inventory.current_balance(resource_id)

    def projected_balance(self, resource_id: UUID | str, at: datetime) -> int:
        return self.inventory.projected_balance(resource_id, at)

    def restock(
        self,
        resource_id: UUID | str,
        quantity: int,
        effective_date: datetime | None = None,
        note: str | None = None,
        actor_id: str | None = None,
    ) -> LedgerTransactionRecord:
        return self.inventory.restock(resource_id, quantity, effective_date, note, actor_id)

    def adjust(
        self,
        resource_id: UUID | str,
        target_quantity: int,
        is_privileged: bool,
        note: str | None = None,
        actor_id: str | None = None,
    ) -> LedgerTransactionRecord:
        return self.inventory.adjust(resource_id, target_quantity, is_privileged, note, actor_id)

    def transaction_history(
        self,
        resource_id: UUID | str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[LedgerTransactionRecord]:
        return self.inventory.transaction_history(resource_id, start, end)

    def running_balance(
        self,
        resource_id: UUID | str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[RunningBalancePoint]:
        return self.inventory.running_balance(resource_id, start, end)

    def detect_shortages(self, resource_id: UUID | str | None = None) -> list[ShortagePoint]:
        return self.inventory.detect_shortages(resource_id)

    def reconcile_cached_stock(self, resource_id: UUID | str) -> CacheReconciliation:
        return self.inventory.reconcile_cached_stock(resource_id)

    def reconcile_all(self) -> list[CacheReconciliation]:
        return self.inventory.reconcile_all()

    # Catalog

    def register_resource(
        self,
        name: str,
        kind: ResourceKind | str,
        organization_id: UUID | str | None = None,
        is_global: bool = False,
        max_concurrent_usage: int | None = None,
        initial_stock: int | None = None,
        description: str | None = None,
        actor_id: str | None = None,
    ) -> ResourceRecord:
        return self.catalog.register_resource(
            name,
            kind,
            organization_id=organization_id,
            is_global=is_global,
            max_concurrent_usage=max_concurrent_usage,
            initial_stock=initial_stock,
            description=description,
            actor_id=actor_id,
        )

    def register_event(
        self,
        title: str,
        organization_id: UUID | str,
        start_time: datetime,
        end_time: datetime,
        capacity: int = 0,
    ) -> EventRecord:
        return self.catalog.register_event(title, organization_id, start_time, end_time, capacity)

    def get_resource(self, resource_id: UUID | str) -> ResourceRecord:
        return self.catalog.get_resource(resource_id)
