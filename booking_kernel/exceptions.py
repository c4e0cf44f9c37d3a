"""
Typed Exception Hierarchy for the Booking Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Admission decisions have to be rendered precisely to the caller: "the room is
already booked", "only 40 units left at 10:00", "this is not a consumable".
Parsing message strings for that is fragile, so:

  1. Every rejection has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (current values, requested values)

Example:

    try:
        kernel.allocate(event_id, resource_id, quantity=50)
    except InsufficientInventoryError as e:
        return {"error": e.code, "available": e.available, "requested": e.requested}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BookingKernelError (base)
    |
    +-- NotFoundError
    |   +-- ResourceNotFoundError
    |   +-- EventNotFoundError
    |   +-- AllocationNotFoundError
    |
    +-- ConflictError
    |   +-- AllocationAlreadyExistsError
    |   +-- ExclusiveOverlapError
    |   +-- ConcurrentUsageExceededError
    |
    +-- InvalidRequestError
    |   +-- InvalidQuantityError
    |   +-- MissingCapacityError
    |   +-- InvalidResourceDefinitionError
    |   +-- WrongResourceKindError
    |   +-- PrivilegeRequiredError
    |   +-- InvalidTimeWindowError
    |   +-- InvalidOrganizationError
    |   +-- ResourceOwnershipError
    |
    +-- InsufficientInventoryError
    |
    +-- ConsistencyFailureError
    |
    +-- InfrastructureError
    |   +-- LockTimeoutError
    |   +-- ReentrantLockError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
NotFound        | RESOURCE_NOT_FOUND            | Resource ID doesn't exist
                | EVENT_NOT_FOUND               | Event ID doesn't exist
                | ALLOCATION_NOT_FOUND          | Allocation ID doesn't exist
----------------|-------------------------------|---------------------------------------
Conflict        | ALLOCATION_ALREADY_EXISTS     | (event, resource) already bound
                | EXCLUSIVE_OVERLAP             | Exclusive resource booked in window
                | CONCURRENT_USAGE_EXCEEDED     | Shareable cap would be exceeded
----------------|-------------------------------|---------------------------------------
InvalidRequest  | INVALID_QUANTITY              | Quantity is zero or negative
                | MISSING_CAPACITY              | Shareable without maxConcurrentUsage
                | INVALID_RESOURCE_DEFINITION   | Capacity fields don't match the kind
                | WRONG_RESOURCE_KIND           | e.g. restock on an exclusive resource
                | PRIVILEGE_REQUIRED            | Adjustment by a non-privileged actor
                | INVALID_TIME_WINDOW           | Event end is not after its start
                | INVALID_ORGANIZATION          | Organization id is not a UUID
                | RESOURCE_OWNERSHIP            | Resource belongs to another org
----------------|-------------------------------|---------------------------------------
Inventory       | INSUFFICIENT_INVENTORY        | Projected balance can't cover request
----------------|-------------------------------|---------------------------------------
Consistency     | CONSISTENCY_FAILURE           | Compensating ledger write failed
----------------|-------------------------------|---------------------------------------
Infrastructure  | LOCK_TIMEOUT                  | Resource lock not acquired in time
                | REENTRANT_LOCK                | Same thread re-locked a resource
----------------|-------------------------------|---------------------------------------
Immutability    | IMMUTABILITY_VIOLATION        | UPDATE/DELETE on a ledger row

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY INHERIT FROM Exception (not ValueError, etc.)?
   Domain rejections should be catchable as a group without also catching
   programming errors.

2. WHY A code CLASS ATTRIBUTE?
   Codes are static per type: ExclusiveOverlapError.code works without an
   instance, which is what the HTTP layer maps to status codes.

3. WHY SEPARATE CATEGORIES?
   The caller treats them differently:
   - NotFoundError / InvalidRequestError -> never retried
   - ConflictError / InsufficientInventoryError -> retry with other parameters
   - InfrastructureError -> the only "internal error" a caller ever sees

===============================================================================
"""


class BookingKernelError(Exception):
    """
    Base exception for all booking kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BOOKING_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(BookingKernelError):
    """Base exception for missing resources, events, and allocations."""

    code: str = "NOT_FOUND"


class ResourceNotFoundError(NotFoundError):
    """Resource with given ID was not found."""

    code: str = "RESOURCE_NOT_FOUND"

    def __init__(self, resource_id: str):
        self.resource_id = resource_id
        super().__init__(f"Resource not found: {resource_id}")


class EventNotFoundError(NotFoundError):
    """Event with given ID was not found."""

    code: str = "EVENT_NOT_FOUND"

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event not found: {event_id}")


class AllocationNotFoundError(NotFoundError):
    """Allocation with given ID was not found."""

    code: str = "ALLOCATION_NOT_FOUND"

    def __init__(self, allocation_id: str):
        self.allocation_id = allocation_id
        super().__init__(f"Allocation not found: {allocation_id}")


# Conflict exceptions


class ConflictError(BookingKernelError):
    """Base exception for admission conflicts."""

    code: str = "CONFLICT"


class AllocationAlreadyExistsError(ConflictError):
    """The (event, resource) pair already has a binding."""

    code: str = "ALLOCATION_ALREADY_EXISTS"

    def __init__(self, event_id: str, resource_id: str):
        self.event_id = event_id
        self.resource_id = resource_id
        super().__init__(
            f"Resource {resource_id} is already allocated to event {event_id}"
        )


class ExclusiveOverlapError(ConflictError):
    """An exclusive resource is already bound to an overlapping event."""

    code: str = "EXCLUSIVE_OVERLAP"

    def __init__(self, resource_id: str, conflicting_event_ids: list[str]):
        self.resource_id = resource_id
        self.conflicting_event_ids = conflicting_event_ids
        super().__init__(
            f"Exclusive resource {resource_id} is already allocated to an "
            f"overlapping event: {', '.join(conflicting_event_ids)}"
        )


class ConcurrentUsageExceededError(ConflictError):
    """A shareable resource would exceed its concurrent usage cap."""

    code: str = "CONCURRENT_USAGE_EXCEEDED"

    def __init__(
        self,
        resource_id: str,
        requested_total: int,
        max_concurrent_usage: int,
    ):
        self.resource_id = resource_id
        self.requested_total = requested_total
        self.max_concurrent_usage = max_concurrent_usage
        super().__init__(
            f"Concurrent usage ({requested_total}) exceeds max concurrent "
            f"usage ({max_concurrent_usage}) for resource {resource_id}"
        )


# Invalid-request exceptions


class InvalidRequestError(BookingKernelError):
    """Base exception for requests that can never succeed as issued."""

    code: str = "INVALID_REQUEST"


class InvalidQuantityError(InvalidRequestError):
    """Quantity must be a positive integer (or non-negative for targets)."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object, reason: str = "Quantity must be positive"):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"{reason}: {quantity!r}")


class MissingCapacityError(InvalidRequestError):
    """A shareable resource has no usable maxConcurrentUsage."""

    code: str = "MISSING_CAPACITY"

    def __init__(self, resource_id: str):
        self.resource_id = resource_id
        super().__init__(
            f"Shareable resource {resource_id} must have max_concurrent_usage defined"
        )


class InvalidResourceDefinitionError(InvalidRequestError):
    """Capacity fields don't match the resource kind."""

    code: str = "INVALID_RESOURCE_DEFINITION"

    def __init__(self, kind: str, reason: str):
        self.kind = kind
        self.reason = reason
        super().__init__(f"Invalid {kind} resource: {reason}")


class WrongResourceKindError(InvalidRequestError):
    """Operation is not supported for this resource kind."""

    code: str = "WRONG_RESOURCE_KIND"

    def __init__(self, resource_id: str, kind: str, operation: str):
        self.resource_id = resource_id
        self.kind = kind
        self.operation = operation
        super().__init__(
            f"{operation} is only supported for consumable resources "
            f"(resource {resource_id} is {kind})"
        )


class PrivilegeRequiredError(InvalidRequestError):
    """A privileged-only operation was requested without privilege."""

    code: str = "PRIVILEGE_REQUIRED"

    def __init__(self, operation: str, actor_id: str | None = None):
        self.operation = operation
        self.actor_id = actor_id
        super().__init__(f"{operation} requires a privileged actor")


class InvalidTimeWindowError(InvalidRequestError):
    """Event end time is not strictly after its start time."""

    code: str = "INVALID_TIME_WINDOW"

    def __init__(self, start_time: object, end_time: object):
        self.start_time = start_time
        self.end_time = end_time
        super().__init__(
            f"End time {end_time} must be after start time {start_time}"
        )


class InvalidOrganizationError(InvalidRequestError):
    """An organization id that cannot be read as a UUID."""

    code: str = "INVALID_ORGANIZATION"

    def __init__(self, organization_id: object):
        self.organization_id = organization_id
        super().__init__(f"Invalid organization id: {organization_id!r}")


class ResourceOwnershipError(InvalidRequestError):
    """The resource is neither global nor owned by the event's organization."""

    code: str = "RESOURCE_OWNERSHIP"

    def __init__(self, resource_id: str, organization_id: str):
        self.resource_id = resource_id
        self.organization_id = organization_id
        super().__init__(
            f"Resource {resource_id} is not available to organization {organization_id}"
        )


# Inventory exceptions


class InsufficientInventoryError(BookingKernelError):
    """The projected balance at the event start cannot cover the request."""

    code: str = "INSUFFICIENT_INVENTORY"

    def __init__(self, resource_id: str, available: int, requested: int):
        self.resource_id = resource_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient inventory at event time. Available: {available}, "
            f"Requested: {requested}"
        )


# Consistency exceptions


class ConsistencyFailureError(BookingKernelError):
    """
    A compensating ledger write failed after admission passed.

    The whole operation is aborted; the binding is left untouched.
    """

    code: str = "CONSISTENCY_FAILURE"

    def __init__(self, operation: str, resource_id: str, reason: str):
        self.operation = operation
        self.resource_id = resource_id
        self.reason = reason
        super().__init__(
            f"{operation} aborted for resource {resource_id}: {reason}"
        )


# Infrastructure exceptions


class InfrastructureError(BookingKernelError):
    """Base exception for lock and storage failures."""

    code: str = "INFRASTRUCTURE_ERROR"


class LockTimeoutError(InfrastructureError):
    """The resource lock could not be acquired within the timeout."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, resource_id: str, timeout_seconds: float):
        self.resource_id = resource_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timed out after {timeout_seconds}s waiting for lock on resource {resource_id}"
        )


class ReentrantLockError(InfrastructureError):
    """The current thread already holds the lock for this resource."""

    code: str = "REENTRANT_LOCK"

    def __init__(self, resource_id: str):
        self.resource_id = resource_id
        super().__init__(
            f"Resource {resource_id} is already locked by the current operation"
        )


# Immutability exceptions


class ImmutabilityError(BookingKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only ledger record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
