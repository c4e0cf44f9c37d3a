"""
Module: booking_kernel.domain.admission
Responsibility:
    Per-kind admission rules for binding a quantity of a resource to an
    event.  Given the facts gathered under the resource lock, decide
    whether the request is admissible or raise a typed rejection.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    The facts (overlapping bookings, projected balance) are gathered by
    services/admission_service.py inside the locked unit of work; this
    module only applies the rule.

Invariants enforced:
    - Exclusive: no other binding whose event window overlaps ``[start, end)``.
    - Shareable: overlapping quantity + requested <= max_concurrent_usage.
    - Consumable: requested <= projected balance at event start (+ the
      binding's own previous quantity on update, since that is already
      booked against the projection).
    - Quantities are positive integers; checked before any lock is taken.

Failure modes:
    - InvalidQuantityError for zero, negative, or non-integer quantities.
    - ExclusiveOverlapError / ConcurrentUsageExceededError (Conflict).
    - MissingCapacityError for a shareable resource without a usable cap.
    - InsufficientInventoryError with available and requested amounts.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from booking_kernel.domain.dtos import AdmissionDecision
from booking_kernel.domain.values import ResourceKind
from booking_kernel.exceptions import (
    ConcurrentUsageExceededError,
    ExclusiveOverlapError,
    InsufficientInventoryError,
    InvalidQuantityError,
    MissingCapacityError,
)


def validate_quantity(quantity: object) -> int:
    """Return ``quantity`` if it is a positive int, else raise InvalidQuantityError."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantityError(quantity, "Quantity must be an integer")
    if quantity <= 0:
        raise InvalidQuantityError(quantity)
    return quantity


@dataclass(frozen=True)
class AdmissionFacts:
    """
    Everything a rule needs, gathered under the resource lock.

    ``previous_quantity`` is zero for a fresh allocation and the binding's
    current quantity when re-admitting a quantity change.  Overlap facts
    already exclude the binding being updated.
    """

    resource_id: str
    kind: ResourceKind
    requested: int
    max_concurrent_usage: int | None = None
    overlapping_event_ids: tuple[str, ...] = field(default_factory=tuple)
    overlapping_quantity: int = 0
    projected_balance: int = 0
    previous_quantity: int = 0


def evaluate(facts: AdmissionFacts) -> AdmissionDecision:
    """Apply the rule for ``facts.kind``; raise on rejection."""
    validate_quantity(facts.requested)

    match facts.kind:
        case ResourceKind.EXCLUSIVE:
            return _admit_exclusive(facts)
        case ResourceKind.SHAREABLE:
            return _admit_shareable(facts)
        case ResourceKind.CONSUMABLE:
            return _admit_consumable(facts)
        case _:
            raise ValueError(f"Unknown resource kind: {facts.kind}")


def _admit_exclusive(facts: AdmissionFacts) -> AdmissionDecision:
    if facts.overlapping_event_ids:
        raise ExclusiveOverlapError(
            resource_id=facts.resource_id,
            conflicting_event_ids=sorted(facts.overlapping_event_ids),
        )
    return AdmissionDecision(
        kind=ResourceKind.EXCLUSIVE,
        requested=facts.requested,
        available=1,
    )


def _admit_shareable(facts: AdmissionFacts) -> AdmissionDecision:
    cap = facts.max_concurrent_usage
    # A missing cap is a definition problem, not a capacity violation.
    if cap is None or cap <= 0:
        raise MissingCapacityError(facts.resource_id)

    total = facts.overlapping_quantity + facts.requested
    if total > cap:
        raise ConcurrentUsageExceededError(
            resource_id=facts.resource_id,
            requested_total=total,
            max_concurrent_usage=cap,
        )
    return AdmissionDecision(
        kind=ResourceKind.SHAREABLE,
        requested=facts.requested,
        available=cap - facts.overlapping_quantity,
    )


def _admit_consumable(facts: AdmissionFacts) -> AdmissionDecision:
    available = facts.projected_balance + facts.previous_quantity
    if facts.requested > available:
        raise InsufficientInventoryError(
            resource_id=facts.resource_id,
            available=available,
            requested=facts.requested,
        )
    return AdmissionDecision(
        kind=ResourceKind.CONSUMABLE,
        requested=facts.requested,
        available=available,
    )
