"""Tests for the inventory read side (InventorySelector via the ledger)."""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_ledger.exceptions import (
    InventoryNotFoundError,
    ReservationNotFoundError,
    ValidationError,
    WarehouseNotFoundError,
)


class TestGetInventory:
    def test_detail_includes_warehouse_batches_and_alerts(self, ledger, inventory, warehouse):
        ledger.stock_in(inventory.id, 10, "B-A", Decimal("1"))
        ledger.stock_out(inventory.id, 105)

        detail = ledger.get_inventory(inventory.id)

        assert detail.inventory.quantity_on_hand == 5
        assert detail.warehouse == warehouse
        assert [b.batch_number for b in detail.recent_batches] == ["B-A"]
        assert len(detail.recent_alerts) == 1

    def test_unknown_inventory(self, ledger):
        with pytest.raises(InventoryNotFoundError):
            ledger.get_inventory(uuid4())


class TestLowStockItems:
    def test_rows_at_or_below_reorder_level(self, ledger, inventory, warehouse):
        ledger.initialize_inventory("SKU-LOW", warehouse.id, initial_quantity=3, reorder_level=5)
        ledger.initialize_inventory("SKU-EDGE", warehouse.id, initial_quantity=5, reorder_level=5)
        ledger.initialize_inventory("SKU-OK", warehouse.id, initial_quantity=6, reorder_level=5)

        low = ledger.get_low_stock_items()

        assert [r.product_id for r in low] == ["SKU-LOW", "SKU-EDGE"]
        assert all(r.is_low_stock for r in low)

    def test_filtered_by_warehouse(self, ledger, warehouse):
        other = ledger.create_warehouse("Other", "WH-2")
        ledger.initialize_inventory("SKU-A", warehouse.id, initial_quantity=1, reorder_level=5)
        ledger.initialize_inventory("SKU-B", other.id, initial_quantity=1, reorder_level=5)

        assert [r.product_id for r in ledger.get_low_stock_items(other.id)] == ["SKU-B"]


class TestWarehouseSummary:
    def test_totals(self, ledger, inventory, warehouse):
        ledger.initialize_inventory(
            "SKU-B", warehouse.id, initial_quantity=4, reorder_level=5,
            cost_per_unit=Decimal("10.00"),
        )
        ledger.initialize_inventory("SKU-C", warehouse.id, initial_quantity=0)
        ledger.reserve_inventory(inventory.id, "ORD-S", 30)
        ledger.record_damage(inventory.id, None, 2, "crushed")

        summary = ledger.get_warehouse_inventory_summary(warehouse.id)

        assert summary.total_items == 3
        assert summary.total_quantity == 98 + 4
        assert summary.total_reserved == 30
        assert summary.total_defective == 2
        assert summary.total_available == 72
        assert summary.total_value == Decimal("98") * Decimal("2.50") + Decimal("40.00")
        assert summary.low_stock_count == 1
        assert summary.out_of_stock_count == 1
        assert summary.capacity_utilization == Decimal("0.0102")

    def test_empty_warehouse(self, ledger, warehouse):
        summary = ledger.get_warehouse_inventory_summary(warehouse.id)

        assert summary.total_items == 0
        assert summary.total_value == Decimal("0")

    def test_unknown_warehouse(self, ledger):
        with pytest.raises(WarehouseNotFoundError):
            ledger.get_warehouse_inventory_summary(uuid4())


class TestExpiringBatches:
    def test_window(self, ledger, inventory, deterministic_clock):
        now = deterministic_clock.now()
        ledger.stock_in(inventory.id, 5, "B-SOON", Decimal("1"), expiry_date=now + timedelta(days=3))
        ledger.stock_in(inventory.id, 5, "B-EDGE", Decimal("1"), expiry_date=now + timedelta(days=30))
        ledger.stock_in(inventory.id, 5, "B-LATER", Decimal("1"), expiry_date=now + timedelta(days=31))
        ledger.stock_in(inventory.id, 5, "B-NONE", Decimal("1"))

        expiring = ledger.get_expiring_batches(days=30)

        assert [b.batch_number for b in expiring] == ["B-SOON", "B-EDGE"]

    def test_already_expired_excluded(self, ledger, inventory, deterministic_clock):
        ledger.stock_in(
            inventory.id, 5, "B-OLD", Decimal("1"),
            expiry_date=deterministic_clock.now() + timedelta(days=1),
        )
        deterministic_clock.advance(days=2)

        assert ledger.get_expiring_batches(days=30) == []

    def test_fully_damaged_batch_excluded(self, ledger, inventory, deterministic_clock):
        batch = ledger.stock_in(
            inventory.id, 5, "B-BROKEN", Decimal("1"),
            expiry_date=deterministic_clock.now() + timedelta(days=2),
        ).batch
        ledger.record_damage(inventory.id, batch.id, 5, "dropped")

        assert ledger.get_expiring_batches(days=7) == []

    @pytest.mark.parametrize("days", [-1, 1.5, True])
    def test_invalid_days(self, ledger, days):
        with pytest.raises(ValidationError):
            ledger.get_expiring_batches(days=days)


class TestReservationLookups:
    def test_get_reservation(self, ledger, inventory):
        created = ledger.reserve_inventory(inventory.id, "ORD-L", 2).reservation

        fetched = ledger.get_reservation(created.id)

        assert fetched.id == created.id
        assert fetched.quantity == 2
        assert fetched.is_active

    def test_unknown_reservation(self, ledger):
        with pytest.raises(ReservationNotFoundError):
            ledger.get_reservation(uuid4())

    def test_unknown_order_is_empty(self, ledger):
        assert ledger.get_order_reservations("ORD-NOPE") == []
