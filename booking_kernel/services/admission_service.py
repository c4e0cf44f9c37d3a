"""
AdmissionService -- gathers admission facts and applies the per-kind rule.

Responsibility:
    Reads, inside the caller's locked unit of work, everything the pure
    admission rule in domain/admission.py needs (overlapping bookings,
    projected balance at the event start) and evaluates it.

Architecture position:
    Kernel > Services -- imperative shell around a pure core.
    Called only from AllocationService while the resource lock is held.

Invariants enforced:
    - Facts are read in the same session that will write the binding, after
      the resource row was locked, so no other admission for the resource
      can interleave between the check and the write.
    - The binding being re-admitted never counts against itself: overlap
      queries exclude its event and the consumable rule adds back its old
      quantity.

Failure modes:
    - Whatever domain.admission.evaluate raises (Conflict, InvalidRequest,
      InsufficientInventory).  Rejections are logged as
      ``allocation_rejected`` before they propagate.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from booking_kernel.domain.admission import AdmissionFacts, evaluate
from booking_kernel.domain.dtos import AdmissionDecision
from booking_kernel.domain.values import ResourceKind
from booking_kernel.exceptions import BookingKernelError
from booking_kernel.logging_config import get_logger
from booking_kernel.models.event import Event
from booking_kernel.models.resource import Resource
from booking_kernel.selectors.allocation_selector import AllocationSelector
from booking_kernel.selectors.ledger_selector import LedgerSelector

logger = get_logger("services.admission")


class AdmissionService:
    """Evaluates whether ``requested`` units of a resource fit an event."""

    def __init__(self, session: Session):
        self._allocations = AllocationSelector(session)
        self._ledger = LedgerSelector(session)

    def gather_facts(
        self,
        resource: Resource,
        event: Event,
        requested: int,
        previous_quantity: int = 0,
    ) -> AdmissionFacts:
        kind = resource.resource_kind
        window = event.window

        match kind:
            case ResourceKind.EXCLUSIVE:
                return AdmissionFacts(
                    resource_id=str(resource.id),
                    kind=kind,
                    requested=requested,
                    overlapping_event_ids=self._allocations.overlapping_event_ids(
                        resource.id, window, exclude_event_id=event.id
                    ),
                )
            case ResourceKind.SHAREABLE:
                return AdmissionFacts(
                    resource_id=str(resource.id),
                    kind=kind,
                    requested=requested,
                    max_concurrent_usage=resource.max_concurrent_usage,
                    overlapping_quantity=self._allocations.overlapping_quantity(
                        resource.id, window, exclude_event_id=event.id
                    ),
                )
            case _:
                return AdmissionFacts(
                    resource_id=str(resource.id),
                    kind=kind,
                    requested=requested,
                    projected_balance=self._ledger.projected_balance(
                        resource.id, event.start_time
                    ),
                    previous_quantity=previous_quantity,
                )

    def admit(
        self,
        resource: Resource,
        event: Event,
        requested: int,
        previous_quantity: int = 0,
        allocation_id: UUID | None = None,
    ) -> AdmissionDecision:
        """
        Admit ``requested`` units or raise the rule's rejection.

        Args:
            resource: Locked resource row.
            event: Event the binding belongs to.
            requested: New total quantity for the binding.
            previous_quantity: Current quantity when re-admitting an update.
            allocation_id: Binding being updated, for logging only.
        """
        facts = self.gather_facts(resource, event, requested, previous_quantity)
        try:
            decision = evaluate(facts)
        except BookingKernelError as exc:
            logger.info(
                "allocation_rejected",
                extra={
                    "resource_id": str(resource.id),
                    "event_id": str(event.id),
                    "allocation_id": str(allocation_id) if allocation_id else None,
                    "kind": resource.resource_kind.value,
                    "requested": requested,
                    "reason_code": exc.code,
                },
            )
            raise

        logger.debug(
            "allocation_admitted",
            extra={
                "resource_id": str(resource.id),
                "event_id": str(event.id),
                "kind": decision.kind.value,
                "requested": decision.requested,
                "available": decision.available,
            },
        )
        return decision
