"""
ORM-level immutability enforcement for ledger records.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners below inspect the pending change and raise
ImmutabilityViolationError if it breaks a ledger rule:

    session.flush()
         |
         v
    [before_update] --> _check_*_update() --> ImmutabilityViolationError
         |
         v
    [before_delete] --> _check_*_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

The flush is aborted and the enclosing transaction rolls back.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity         | Rule
---------------|---------------------------------------------------------------
HistoryEntry   | Never updated, never deleted
Reservation    | Only ACTIVE -> RELEASED with its release fields; never deleted
Batch          | Only quantity_damaged may change, and only upward; never deleted
Inventory      | product_id / warehouse_id fixed; never deleted
Warehouse      | Never deleted (deactivate instead)

===============================================================================
USAGE
===============================================================================

    from stock_ledger.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    ...
    register_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from stock_ledger.domain.values import ReservationStatus
from stock_ledger.exceptions import ImmutabilityViolationError
from stock_ledger.invariants import LedgerInvariant
from stock_ledger.logging_config import get_logger

logger = get_logger("db.immutability")

RESERVATION_RELEASE_FIELDS = frozenset({
    "status",
    "released_at",
    "release_reason",
    "released_by_id",
})

INVENTORY_IDENTITY_FIELDS = frozenset({"product_id", "warehouse_id"})


def _changed_fields(target) -> set[str]:
    state = inspect(target)
    return {attr.key for attr in state.attrs if attr.history.has_changes()}


def _block(entity_type: str, target, operation: str, reason: str, invariant=None):
    extra = {
        "entity_type": entity_type,
        "entity_id": str(target.id),
        "operation": operation,
        "reason": reason,
    }
    if invariant is not None:
        extra["invariant"] = invariant.value
    logger.error("immutability_violation_blocked", extra=extra)
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


# History


def _check_history_update(mapper, connection, target):
    _block(
        "HistoryEntry", target, "UPDATE",
        "History entries are append-only and cannot be modified",
        LedgerInvariant.APPEND_ONLY_HISTORY,
    )


def _check_history_delete(mapper, connection, target):
    _block(
        "HistoryEntry", target, "DELETE",
        "History entries cannot be deleted",
        LedgerInvariant.APPEND_ONLY_HISTORY,
    )


# Reservation


def _check_reservation_update(mapper, connection, target):
    """
    Allow exactly one transition, ACTIVE -> RELEASED, touching only the
    release fields.

    status history.deleted holds the value loaded from the database; if that
    was RELEASED the row was already terminal before this flush.
    """
    status_history = get_history(target, "status")
    if status_history.deleted:
        previous = status_history.deleted[0]
    else:
        previous = target.status

    if previous == ReservationStatus.RELEASED.value:
        _block(
            "Reservation", target, "UPDATE",
            "Released reservations are terminal",
            LedgerInvariant.TERMINAL_RELEASE,
        )

    illegal = _changed_fields(target) - RESERVATION_RELEASE_FIELDS
    if illegal:
        _block(
            "Reservation", target, "UPDATE",
            f"Only release fields may change, got: {', '.join(sorted(illegal))}",
        )

    if status_history.added and target.status != ReservationStatus.RELEASED.value:
        _block(
            "Reservation", target, "UPDATE",
            f"Reservations may only move to released, not {target.status}",
            LedgerInvariant.TERMINAL_RELEASE,
        )


def _check_reservation_delete(mapper, connection, target):
    _block("Reservation", target, "DELETE", "Reservations cannot be deleted")


# Batch


def _check_batch_update(mapper, connection, target):
    illegal = _changed_fields(target) - {"quantity_damaged"}
    if illegal:
        _block(
            "Batch", target, "UPDATE",
            f"Batch receipt fields are frozen, got: {', '.join(sorted(illegal))}",
        )

    damaged = get_history(target, "quantity_damaged")
    if damaged.deleted and damaged.added and damaged.added[0] < damaged.deleted[0]:
        _block(
            "Batch", target, "UPDATE",
            "quantity_damaged can only increase",
        )


def _check_batch_delete(mapper, connection, target):
    _block("Batch", target, "DELETE", "Batches cannot be deleted")


# Inventory


def _check_inventory_update(mapper, connection, target):
    illegal = _changed_fields(target) & INVENTORY_IDENTITY_FIELDS
    if illegal:
        _block(
            "Inventory", target, "UPDATE",
            f"Inventory identity is fixed, got: {', '.join(sorted(illegal))}",
            LedgerInvariant.UNIQUE_INVENTORY,
        )


def _check_inventory_delete(mapper, connection, target):
    _block("Inventory", target, "DELETE", "Inventory rows cannot be deleted")


# Warehouse


def _check_warehouse_delete(mapper, connection, target):
    _block(
        "Warehouse", target, "DELETE",
        "Warehouses cannot be deleted; deactivate them instead",
    )


def _listeners():
    from stock_ledger.models import Batch, HistoryEntry, Inventory, Reservation, Warehouse

    return (
        (HistoryEntry, "before_update", _check_history_update),
        (HistoryEntry, "before_delete", _check_history_delete),
        (Reservation, "before_update", _check_reservation_update),
        (Reservation, "before_delete", _check_reservation_delete),
        (Batch, "before_update", _check_batch_update),
        (Batch, "before_delete", _check_batch_delete),
        (Inventory, "before_update", _check_inventory_update),
        (Inventory, "before_delete", _check_inventory_delete),
        (Warehouse, "before_delete", _check_warehouse_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent; call once after the models are importable and before any
    ledger operation runs.
    """
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that deliberately violate the rules.
    """
    for target, event_name, fn in _listeners():
        _safe_remove_listener(target, event_name, fn)
