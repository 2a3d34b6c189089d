"""
Append-only history and terminal-state persistence tests.

Verifies:
- HistoryEntry rows can never be updated or deleted
- Released reservations never change again
- Batch receipts are frozen apart from an increasing damage count
- Inventory identity is fixed and rows, batches and warehouses are never deleted

Rows are created through the ledger, then tampered with through a raw
session; the ORM listeners must abort the flush.
"""

from contextlib import contextmanager
from decimal import Decimal

import pytest
from sqlalchemy import select

from stock_ledger.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from stock_ledger.domain.values import ReservationStatus
from stock_ledger.exceptions import ImmutabilityViolationError
from stock_ledger.models import Batch, HistoryEntry, Inventory, Reservation, Warehouse


@contextmanager
def disabled_immutability():
    """Disable the ORM immutability listeners for the duration of the block."""
    unregister_immutability_listeners()
    try:
        yield
    finally:
        register_immutability_listeners()


def _first_history(session, inventory_id) -> HistoryEntry:
    return session.execute(
        select(HistoryEntry)
        .where(HistoryEntry.inventory_id == inventory_id)
        .order_by(HistoryEntry.seq)
    ).scalars().first()


class TestHistoryImmutability:
    def test_update_blocked(self, ledger, inventory, session):
        entry = _first_history(session, inventory.id)
        entry.quantity_delta = 1_000

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.entity_type == "HistoryEntry"

    def test_reason_update_blocked(self, ledger, inventory, session):
        entry = _first_history(session, inventory.id)
        entry.reason = "rewritten"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_blocked(self, ledger, inventory, session):
        entry = _first_history(session, inventory.id)
        session.delete(entry)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_is_logged(self, ledger, inventory, session, captured_logs):
        entry = _first_history(session, inventory.id)
        entry.quantity_after = 0

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["invariant"] == "append_only_history"
        assert blocked[0]["level"] == "ERROR"

    def test_tampering_detected_by_replay(self, ledger, inventory, session):
        """With the guard off, a rewritten delta breaks conservation."""
        with disabled_immutability():
            entry = _first_history(session, inventory.id)
            entry.quantity_delta = 90
            session.commit()

        rebuilt = ledger.reconstruct_balances(inventory.id)
        assert rebuilt.quantity_on_hand == 90
        assert not rebuilt.matches(ledger.get_inventory(inventory.id).inventory)


class TestReservationImmutability:
    def test_release_transition_allowed(self, ledger, inventory, session, deterministic_clock):
        created = ledger.reserve_inventory(inventory.id, "ORD-I", 5).reservation
        reservation = session.get(Reservation, created.id)

        reservation.status = ReservationStatus.RELEASED.value
        reservation.released_at = deterministic_clock.now()
        reservation.release_reason = "manual"
        session.flush()

        assert reservation.status == "released"

    def test_released_reservation_is_terminal(self, ledger, inventory, session):
        created = ledger.reserve_inventory(inventory.id, "ORD-I", 5).reservation
        ledger.unreserve_inventory(created.id)
        reservation = session.get(Reservation, created.id)

        reservation.release_reason = "changed my mind"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_cannot_reactivate(self, ledger, inventory, session):
        created = ledger.reserve_inventory(inventory.id, "ORD-I", 5).reservation
        ledger.unreserve_inventory(created.id)
        reservation = session.get(Reservation, created.id)

        reservation.status = ReservationStatus.ACTIVE.value

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_active_quantity_frozen(self, ledger, inventory, session):
        created = ledger.reserve_inventory(inventory.id, "ORD-I", 5).reservation
        reservation = session.get(Reservation, created.id)

        reservation.quantity = 50

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_blocked(self, ledger, inventory, session):
        created = ledger.reserve_inventory(inventory.id, "ORD-I", 5).reservation
        session.delete(session.get(Reservation, created.id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestBatchImmutability:
    def _batch(self, ledger, inventory, session) -> Batch:
        created = ledger.stock_in(inventory.id, 10, "B-IMM", Decimal("1.00")).batch
        return session.get(Batch, created.id)

    def test_damage_increase_allowed(self, ledger, inventory, session):
        batch = self._batch(ledger, inventory, session)
        batch.quantity_damaged = 2
        session.flush()

    def test_damage_decrease_blocked(self, ledger, inventory, session):
        created = ledger.stock_in(inventory.id, 10, "B-IMM", Decimal("1.00")).batch
        ledger.record_damage(inventory.id, created.id, 4, "wet")
        batch = session.get(Batch, created.id)

        batch.quantity_damaged = 1

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_receipt_fields_frozen(self, ledger, inventory, session):
        batch = self._batch(ledger, inventory, session)
        batch.cost_per_unit = Decimal("0.01")

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_blocked(self, ledger, inventory, session):
        session.delete(self._batch(ledger, inventory, session))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestInventoryAndWarehouseImmutability:
    def test_identity_fixed(self, ledger, inventory, session):
        row = session.get(Inventory, inventory.id)
        row.product_id = "SKU-RENAMED"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_inventory_delete_blocked(self, ledger, inventory, session):
        session.delete(session.get(Inventory, inventory.id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_warehouse_delete_blocked(self, ledger, warehouse, session):
        session.delete(session.get(Warehouse, warehouse.id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_register_is_idempotent(self, db_engine):
        register_immutability_listeners()
        register_immutability_listeners()
        unregister_immutability_listeners()
        register_immutability_listeners()
