"""
BaseService -- abstract base for flush-only kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for the
    services that write inside a unit of work they do not own (the ledger
    store).  They use ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: flush-only services never commit or roll back.
      The unit of work opened by ResourceLockCoordinator owns commit and
      rollback, so a ledger entry and its binding change land together or
      not at all.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from booking_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for flush-only services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
    """

    def __init__(self, session: Session):
        self.session = session


def as_uuid(value: UUID | str) -> UUID | None:
    """
    Coerce a caller-supplied identifier to a UUID.

    Returns None for strings that are not UUIDs; callers turn that into the
    matching not-found error, since no row can carry such an id.
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None
