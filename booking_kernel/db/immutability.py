"""
ORM-Level Append-Only Enforcement for the Inventory Ledger.

===============================================================================
WHY THIS EXISTS
===============================================================================

Consumable balances are derived by summing ledger rows.  A ledger row that
is edited or deleted after the fact silently rewrites every balance after
its effective date, and with it every admission decision that relied on it.
Corrections therefore go through NEW rows (Return, Adjustment), never
through UPDATE or DELETE.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database:

    session.flush()
         |
         v
    [before_update event] --> _check_ledger_transaction_update() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_ledger_transaction_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

If a check fails the flush aborts and the caller's transaction rolls back.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                 | When Immutable          | Why
-----------------------|-------------------------|------------------------------
LedgerTransaction      | ALWAYS (from creation)  | Balances are sums over rows

Resource.cached_current_stock is NOT protected: it is a cache, rewritten on
every ledger write and by the reconciliation entrypoint.

===============================================================================
USAGE
===============================================================================

    from booking_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event

from booking_kernel.exceptions import ImmutabilityViolationError
from booking_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_ledger_transaction_update(mapper, connection, target):
    """Prevent any updates to ledger transactions."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "LedgerTransaction",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="LedgerTransaction",
        entity_id=str(target.id),
        reason="Ledger transactions are append-only and cannot be modified",
    )


def _check_ledger_transaction_delete(mapper, connection, target):
    """Prevent deletion of ledger transactions."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "LedgerTransaction",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="LedgerTransaction",
        entity_id=str(target.id),
        reason="Ledger transactions are append-only and cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register the ledger append-only listeners (idempotent).

    Call after models are imported and before any database operations.
    """
    from booking_kernel.models.inventory_transaction import LedgerTransaction

    if not event.contains(LedgerTransaction, "before_update", _check_ledger_transaction_update):
        event.listen(LedgerTransaction, "before_update", _check_ledger_transaction_update)
    if not event.contains(LedgerTransaction, "before_delete", _check_ledger_transaction_delete):
        event.listen(LedgerTransaction, "before_delete", _check_ledger_transaction_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if it was never registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the append-only listeners.

    WARNING: Only use this in tests that need to violate the rule on purpose.
    """
    from booking_kernel.models.inventory_transaction import LedgerTransaction

    _safe_remove_listener(LedgerTransaction, "before_update", _check_ledger_transaction_update)
    _safe_remove_listener(LedgerTransaction, "before_delete", _check_ledger_transaction_delete)
