"""
Module: booking_kernel.selectors.allocation_selector
Responsibility: Read-only queries over event-resource bindings: overlap facts
    for admission and display listings.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.  MUST NOT import from services/.

Invariants enforced:
    - Overlap is half-open: an existing binding overlaps the candidate window
      iff existing.start < candidate.end AND existing.end > candidate.start.
      Touching endpoints do not overlap.
    - The candidate's own event is always excluded, so re-admitting a
      quantity change never counts the binding against itself.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from booking_kernel.domain.clock import as_utc_naive
from booking_kernel.domain.dtos import AllocationRecord
from booking_kernel.domain.values import TimeWindow
from booking_kernel.models.allocation import ResourceAllocation
from booking_kernel.models.event import Event
from booking_kernel.selectors.base import BaseSelector


class AllocationSelector(BaseSelector[ResourceAllocation]):
    """Selector for bindings and the overlap facts admission consumes."""

    def __init__(self, session: Session):
        super().__init__(session)

    def _overlap_filter(
        self,
        resource_id: UUID,
        window: TimeWindow,
        exclude_event_id: UUID | None,
    ):
        clauses = [
            ResourceAllocation.resource_id == resource_id,
            Event.start_time < as_utc_naive(window.end),
            Event.end_time > as_utc_naive(window.start),
        ]
        if exclude_event_id is not None:
            clauses.append(ResourceAllocation.event_id != exclude_event_id)
        return clauses

    def overlapping_event_ids(
        self,
        resource_id: UUID,
        window: TimeWindow,
        exclude_event_id: UUID | None = None,
    ) -> tuple[str, ...]:
        """IDs of events bound to the resource whose window overlaps ``window``."""
        rows = self.session.execute(
            select(ResourceAllocation.event_id)
            .join(Event, ResourceAllocation.event_id == Event.id)
            .where(*self._overlap_filter(resource_id, window, exclude_event_id))
            .order_by(Event.start_time)
        ).scalars()
        return tuple(str(event_id) for event_id in rows)

    def overlapping_quantity(
        self,
        resource_id: UUID,
        window: TimeWindow,
        exclude_event_id: UUID | None = None,
    ) -> int:
        """SUM(quantity) of bindings on the resource that overlap ``window``."""
        total = self.session.execute(
            select(func.coalesce(func.sum(ResourceAllocation.quantity), 0))
            .join(Event, ResourceAllocation.event_id == Event.id)
            .where(*self._overlap_filter(resource_id, window, exclude_event_id))
        ).scalar_one()
        return int(total)

    def find_binding(self, event_id: UUID, resource_id: UUID) -> ResourceAllocation | None:
        return self.session.execute(
            select(ResourceAllocation).where(
                ResourceAllocation.event_id == event_id,
                ResourceAllocation.resource_id == resource_id,
            )
        ).scalar_one_or_none()

    def get(self, allocation_id: UUID) -> AllocationRecord | None:
        row = self.session.get(ResourceAllocation, allocation_id)
        return AllocationRecord.from_model(row) if row is not None else None

    def list_allocations(
        self,
        event_id: UUID | None = None,
        resource_id: UUID | None = None,
    ) -> list[AllocationRecord]:
        """
        Bindings filtered by event and/or resource, oldest first.

        Args:
            event_id: Only bindings for this event.
            resource_id: Only bindings for this resource.
        """
        query = select(ResourceAllocation)
        if event_id is not None:
            query = query.where(ResourceAllocation.event_id == event_id)
        if resource_id is not None:
            query = query.where(ResourceAllocation.resource_id == resource_id)
        query = query.order_by(ResourceAllocation.allocated_at, ResourceAllocation.id)

        rows = self.session.execute(query).scalars().unique().all()
        return [AllocationRecord.from_model(row) for row in rows]
