"""
Tests for inventory initialization.

Initialization creates the one Inventory row for a (product, warehouse)
pair and always opens its history with a stock_in entry.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_ledger.domain.values import HistoryEventType, StockStatus
from stock_ledger.exceptions import (
    DuplicateInventoryError,
    ValidationError,
    WarehouseInactiveError,
    WarehouseNotFoundError,
)


class TestInitializeInventory:
    """Happy path and defaults."""

    def test_creates_row_with_opening_balance(self, ledger, warehouse, test_actor_id):
        result = ledger.initialize_inventory(
            "SKU-INIT",
            warehouse.id,
            initial_quantity=40,
            reorder_level=5,
            reorder_quantity=60,
            cost_per_unit=Decimal("1.25"),
            actor_id=test_actor_id,
        )

        snapshot = result.inventory
        assert snapshot.product_id == "SKU-INIT"
        assert snapshot.warehouse_id == warehouse.id
        assert snapshot.quantity_on_hand == 40
        assert snapshot.quantity_reserved == 0
        assert snapshot.quantity_defective == 0
        assert snapshot.cost_per_unit == Decimal("1.25")
        assert snapshot.stock_status == StockStatus.IN_STOCK

    def test_opening_history_entry(self, ledger, warehouse, test_actor_id):
        result = ledger.initialize_inventory(
            "SKU-INIT", warehouse.id, initial_quantity=40, actor_id=test_actor_id
        )

        (entry,) = result.history
        assert entry.seq == 1
        assert entry.event_type == HistoryEventType.STOCK_IN
        assert entry.quantity_delta == 40
        assert entry.quantity_before == 0
        assert entry.quantity_after == 40
        assert entry.reason == "Initial stock"
        assert entry.actor_id == test_actor_id
        assert entry.warehouse_id == warehouse.id

    def test_zero_quantity_is_out_of_stock_with_history(self, ledger, warehouse):
        result = ledger.initialize_inventory("SKU-EMPTY", warehouse.id)

        assert result.inventory.quantity_on_hand == 0
        assert result.inventory.stock_status == StockStatus.OUT_OF_STOCK
        assert len(result.history) == 1
        assert result.history[0].quantity_delta == 0

    def test_reorder_defaults_from_settings(self, ledger, warehouse, settings):
        result = ledger.initialize_inventory("SKU-DEFAULTS", warehouse.id, initial_quantity=1)

        assert result.inventory.reorder_level == settings.default_reorder_level
        assert result.inventory.reorder_quantity == settings.default_reorder_quantity

    def test_same_product_in_two_warehouses(self, ledger, warehouse):
        other = ledger.create_warehouse("Overflow", "WH-OVER", warehouse_type="secondary")

        first = ledger.initialize_inventory("SKU-MULTI", warehouse.id, initial_quantity=5)
        second = ledger.initialize_inventory("SKU-MULTI", other.id, initial_quantity=9)

        assert first.inventory.id != second.inventory.id
        rows = ledger.get_product_inventory("SKU-MULTI")
        assert [r.quantity_on_hand for r in rows] == [9, 5]


class TestInitializeRejections:
    """Uniqueness, warehouse state and input validation."""

    def test_duplicate_pair_rejected(self, ledger, inventory, warehouse):
        with pytest.raises(DuplicateInventoryError) as exc_info:
            ledger.initialize_inventory("SKU-001", warehouse.id, initial_quantity=1)

        assert exc_info.value.product_id == "SKU-001"
        # Original row untouched
        assert ledger.get_inventory(inventory.id).inventory.quantity_on_hand == 100

    def test_unknown_warehouse(self, ledger):
        with pytest.raises(WarehouseNotFoundError):
            ledger.initialize_inventory("SKU-X", uuid4(), initial_quantity=1)

    def test_inactive_warehouse(self, ledger, warehouse):
        ledger.deactivate_warehouse(warehouse.id)

        with pytest.raises(WarehouseInactiveError):
            ledger.initialize_inventory("SKU-X", warehouse.id, initial_quantity=1)

    @pytest.mark.parametrize("kwargs,field", [
        ({"product_id": "  "}, "product_id"),
        ({"initial_quantity": -1}, "initial_quantity"),
        ({"initial_quantity": 2.5}, "initial_quantity"),
        ({"reorder_level": -3}, "reorder_level"),
        ({"cost_per_unit": Decimal("-0.01")}, "cost_per_unit"),
        ({"cost_per_unit": 1.5}, "cost_per_unit"),
        ({"cost_per_unit": Decimal("NaN")}, "cost_per_unit"),
    ])
    def test_invalid_input(self, ledger, warehouse, kwargs, field):
        args = {"product_id": "SKU-BAD", "initial_quantity": 1}
        args.update(kwargs)

        with pytest.raises(ValidationError) as exc_info:
            ledger.initialize_inventory(warehouse_id=warehouse.id, **args)

        assert exc_info.value.field == field
        assert ledger.get_product_inventory("SKU-BAD") == []

    def test_rejection_logs_rollback(self, ledger, inventory, warehouse, captured_logs):
        with pytest.raises(DuplicateInventoryError):
            ledger.initialize_inventory("SKU-001", warehouse.id)

        rollback = [r for r in captured_logs() if r["message"] == "transaction_rolled_back"]
        assert len(rollback) == 1
        assert rollback[0]["exc_code"] == "DUPLICATE_INVENTORY"
        assert rollback[0]["operation"] == "initialize_inventory"
