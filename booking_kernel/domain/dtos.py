"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable records returned across the kernel boundary: bindings, ledger
    transactions, balance points, shortage reports, reconciliation results
    and admission decisions.  Callers never receive live ORM instances, so
    nothing they hold can be flushed back by accident.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods are boundary converters invoked only from the
    service and selector layers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from booking_kernel.domain.values import ResourceKind, TransactionType

if TYPE_CHECKING:
    from booking_kernel.models.allocation import ResourceAllocation
    from booking_kernel.models.event import Event
    from booking_kernel.models.inventory_transaction import LedgerTransaction
    from booking_kernel.models.resource import Resource


@dataclass(frozen=True)
class ResourceRecord:
    """Read-only view of a resource."""

    id: UUID
    name: str
    kind: ResourceKind
    organization_id: UUID | None
    is_global: bool
    max_concurrent_usage: int | None
    cached_current_stock: int | None

    @classmethod
    def from_model(cls, model: Resource) -> ResourceRecord:
        return cls(
            id=model.id,
            name=model.name,
            kind=ResourceKind(model.kind),
            organization_id=model.organization_id,
            is_global=model.is_global,
            max_concurrent_usage=model.max_concurrent_usage,
            cached_current_stock=model.cached_current_stock,
        )


@dataclass(frozen=True)
class EventRecord:
    """Read-only view of the event window consumed by the core."""

    id: UUID
    title: str
    organization_id: UUID
    start_time: datetime
    end_time: datetime

    @classmethod
    def from_model(cls, model: Event) -> EventRecord:
        return cls(
            id=model.id,
            title=model.title,
            organization_id=model.organization_id,
            start_time=model.start_time,
            end_time=model.end_time,
        )


@dataclass(frozen=True)
class AllocationRecord:
    """An active event-resource binding."""

    id: UUID
    event_id: UUID
    resource_id: UUID
    quantity: int
    allocated_at: datetime

    @classmethod
    def from_model(cls, model: ResourceAllocation) -> AllocationRecord:
        return cls(
            id=model.id,
            event_id=model.event_id,
            resource_id=model.resource_id,
            quantity=model.quantity,
            allocated_at=model.allocated_at,
        )


@dataclass(frozen=True)
class RemovalResult:
    """Outcome of removing a binding."""

    allocation_id: UUID
    resource_id: UUID
    released_quantity: int
    return_transaction_id: UUID | None = None


@dataclass(frozen=True)
class LedgerTransactionRecord:
    """A signed, dated, immutable quantity delta."""

    id: UUID
    resource_id: UUID
    quantity: int
    transaction_type: TransactionType
    effective_date: datetime
    related_event_id: UUID | None
    notes: str | None
    created_by: str | None
    created_at: datetime

    @classmethod
    def from_model(cls, model: LedgerTransaction) -> LedgerTransactionRecord:
        return cls(
            id=model.id,
            resource_id=model.resource_id,
            quantity=model.quantity,
            transaction_type=TransactionType(model.transaction_type),
            effective_date=model.effective_date,
            related_event_id=model.related_event_id,
            notes=model.notes,
            created_by=model.created_by,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class RunningBalancePoint:
    """Running balance after one ledger transaction, in effective order."""

    transaction_id: UUID
    effective_date: datetime
    quantity: int
    transaction_type: TransactionType
    running_balance: int


@dataclass(frozen=True)
class ShortagePoint:
    """A moment at which a resource's running balance was negative."""

    resource_id: UUID
    resource_name: str
    effective_date: datetime
    running_balance: int
    transaction_type: TransactionType


@dataclass(frozen=True)
class CacheReconciliation:
    """Result of recomputing a cached balance from the ledger."""

    resource_id: UUID
    cached: int | None
    ledger: int
    corrected: bool = False

    @property
    def drifted(self) -> bool:
        return self.cached != self.ledger


@dataclass(frozen=True)
class AdmissionDecision:
    """
    A positive admission decision.

    ``available`` is what the rule compared against: remaining concurrent
    slots for shareable resources, projected balance (plus the binding's
    own old quantity on updates) for consumables, and 1 for a free
    exclusive resource.
    """

    kind: ResourceKind
    requested: int
    available: int
