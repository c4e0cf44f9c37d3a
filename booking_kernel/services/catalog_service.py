"""
CatalogService -- registration of resources and events.

Responsibility:
    Creates the resource and event rows the allocation core works on,
    enforcing the definition invariants at the door.  Stands in for the
    CRUD layer of the surrounding application.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Shareable resources carry max_concurrent_usage > 0; other kinds carry
      none.
    - A resource is either global (no organization) or owned by exactly one
      organization.
    - A consumable's opening stock is written as a Restock ledger row, so
      the ledger is authoritative from the first unit.  The cache starts at
      0 and follows the ledger.
    - Events satisfy end_time > start_time.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from booking_kernel.db.engine import session_scope
from booking_kernel.domain.clock import Clock, as_utc_naive
from booking_kernel.domain.dtos import EventRecord, ResourceRecord
from booking_kernel.domain.values import ResourceKind
from booking_kernel.exceptions import (
    EventNotFoundError,
    InvalidQuantityError,
    InvalidOrganizationError,
    InvalidResourceDefinitionError,
    InvalidTimeWindowError,
    MissingCapacityError,
    ResourceNotFoundError,
)
from booking_kernel.logging_config import get_logger
from booking_kernel.models.event import Event
from booking_kernel.models.resource import Resource
from booking_kernel.services.base import as_uuid
from booking_kernel.services.ledger_service import LedgerService

logger = get_logger("services.catalog")


class CatalogService:
    """Registers resources and events."""

    def __init__(self, session_factory: sessionmaker[Session], clock: Clock):
        self._session_factory = session_factory
        self._clock = clock

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
        """
        Register a resource.

        Args:
            name: Display name.
            kind: exclusive, shareable or consumable.
            organization_id: Owning organization; None for global resources.
            is_global: Available to every organization.
            max_concurrent_usage: Cap for shareable resources only.
            initial_stock: Opening stock for consumables only.
            description: Free text.
            actor_id: Recorded on the opening Restock row.

        Raises:
            InvalidResourceDefinitionError: Fields don't match the kind, or
                ownership is ambiguous.
            MissingCapacityError: Shareable without a positive cap.
        """
        try:
            resource_kind = ResourceKind(kind)
        except ValueError as exc:
            raise InvalidResourceDefinitionError(str(kind), "unknown resource kind") from exc

        match resource_kind:
            case ResourceKind.SHAREABLE:
                if (
                    isinstance(max_concurrent_usage, bool)
                    or not isinstance(max_concurrent_usage, int)
                    or max_concurrent_usage <= 0
                ):
                    raise MissingCapacityError(name)
            case _:
                if max_concurrent_usage is not None:
                    raise InvalidResourceDefinitionError(
                        resource_kind.value,
                        "max_concurrent_usage applies to shareable resources only",
                    )

        if initial_stock is not None:
            if resource_kind != ResourceKind.CONSUMABLE:
                raise InvalidResourceDefinitionError(
                    resource_kind.value, "initial_stock applies to consumables only"
                )
            if isinstance(initial_stock, bool) or not isinstance(initial_stock, int) or initial_stock < 0:
                raise InvalidQuantityError(
                    initial_stock, "Initial stock must be a non-negative integer"
                )

        org_id = None
        if organization_id is not None:
            org_id = as_uuid(organization_id)
            if org_id is None:
                raise InvalidResourceDefinitionError(
                    resource_kind.value, f"invalid organization id {organization_id!r}"
                )
        if is_global and org_id is not None:
            raise InvalidResourceDefinitionError(
                resource_kind.value, "a global resource has no owning organization"
            )
        if not is_global and org_id is None:
            raise InvalidResourceDefinitionError(
                resource_kind.value, "a non-global resource needs an organization"
            )

        with session_scope(self._session_factory) as session:
            resource = Resource(
                name=name,
                description=description,
                kind=resource_kind.value,
                organization_id=org_id,
                is_global=is_global,
                max_concurrent_usage=(
                    max_concurrent_usage if resource_kind == ResourceKind.SHAREABLE else None
                ),
                cached_current_stock=0 if resource_kind == ResourceKind.CONSUMABLE else None,
                created_at=self._clock.now_naive_utc(),
            )
            session.add(resource)
            session.flush()

            if initial_stock:
                LedgerService(session, self._clock).record_restock(
                    resource,
                    initial_stock,
                    note="Opening stock",
                    actor_id=actor_id,
                )

            record = ResourceRecord.from_model(resource)

        logger.info(
            "resource_registered",
            extra={
                "resource_id": str(record.id),
                "kind": record.kind.value,
                "is_global": record.is_global,
                "initial_stock": initial_stock or 0,
            },
        )
        return record

    def register_event(
        self,
        title: str,
        organization_id: UUID | str,
        start_time: datetime,
        end_time: datetime,
        capacity: int = 0,
    ) -> EventRecord:
        """Register an event occupying ``[start_time, end_time)``."""
        start = as_utc_naive(start_time)
        end = as_utc_naive(end_time)
        if end <= start:
            raise InvalidTimeWindowError(start_time, end_time)
        org_id = as_uuid(organization_id)
        if org_id is None:
            raise InvalidOrganizationError(organization_id)

        with session_scope(self._session_factory) as session:
            event = Event(
                title=title,
                organization_id=org_id,
                start_time=start,
                end_time=end,
                capacity=capacity,
                created_at=self._clock.now_naive_utc(),
            )
            session.add(event)
            session.flush()
            record = EventRecord.from_model(event)

        logger.info(
            "event_registered",
            extra={
                "event_id": str(record.id),
                "start_time": record.start_time,
                "end_time": record.end_time,
            },
        )
        return record

    def get_resource(self, resource_id: UUID | str) -> ResourceRecord:
        rid = as_uuid(resource_id)
        with self._session_factory() as session:
            resource = session.get(Resource, rid) if rid is not None else None
            if resource is None:
                raise ResourceNotFoundError(str(resource_id))
            return ResourceRecord.from_model(resource)

    def get_event(self, event_id: UUID | str) -> EventRecord:
        eid = as_uuid(event_id)
        with self._session_factory() as session:
            event = session.get(Event, eid) if eid is not None else None
            if event is None:
                raise EventNotFoundError(str(event_id))
            return EventRecord.from_model(event)
