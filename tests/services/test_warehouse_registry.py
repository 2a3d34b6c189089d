"""Tests for warehouse registration and deactivation."""

from uuid import uuid4

import pytest

from stock_ledger.domain.values import WarehouseType
from stock_ledger.exceptions import (
    DuplicateWarehouseCodeError,
    ValidationError,
    WarehouseInactiveError,
    WarehouseNotFoundError,
)


class TestCreateWarehouse:
    def test_create_with_details(self, ledger, test_actor_id):
        record = ledger.create_warehouse(
            "  Regional North ",
            "WH-N",
            warehouse_type=WarehouseType.REGIONAL,
            max_capacity=2500,
            actor_id=test_actor_id,
            city="Leeds",
            country="GB",
            metadata={"timezone": "Europe/London"},
        )

        assert record.name == "Regional North"
        assert record.code == "WH-N"
        assert record.warehouse_type == WarehouseType.REGIONAL
        assert record.max_capacity == 2500
        assert record.is_active
        assert record.city == "Leeds"
        assert ledger.get_warehouse(record.id) == record

    def test_duplicate_code_rejected(self, ledger, warehouse):
        with pytest.raises(DuplicateWarehouseCodeError) as exc_info:
            ledger.create_warehouse("Another", "WH-MAIN")
        assert exc_info.value.warehouse_code == "WH-MAIN"

    @pytest.mark.parametrize("kwargs,field", [
        ({"name": ""}, "name"),
        ({"code": "   "}, "code"),
        ({"warehouse_type": "moon_base"}, "warehouse_type"),
        ({"max_capacity": -1}, "max_capacity"),
    ])
    def test_invalid_input(self, ledger, kwargs, field):
        args = {"name": "Valid", "code": "WH-VALID"}
        args.update(kwargs)

        with pytest.raises(ValidationError) as exc_info:
            ledger.create_warehouse(**args)

        assert exc_info.value.field == field
        assert ledger.list_warehouses(include_inactive=True) == []


class TestDeactivateWarehouse:
    def test_deactivate(self, ledger, warehouse):
        record = ledger.deactivate_warehouse(warehouse.id)

        assert not record.is_active
        assert ledger.list_warehouses() == []
        assert [w.code for w in ledger.list_warehouses(include_inactive=True)] == ["WH-MAIN"]

    def test_deactivate_twice_rejected(self, ledger, warehouse):
        ledger.deactivate_warehouse(warehouse.id)

        with pytest.raises(WarehouseInactiveError):
            ledger.deactivate_warehouse(warehouse.id)

    def test_unknown_warehouse(self, ledger):
        with pytest.raises(WarehouseNotFoundError):
            ledger.deactivate_warehouse(uuid4())

    def test_existing_stock_still_movable(self, ledger, inventory, warehouse):
        """Deactivation blocks new stock only; existing units can still leave."""
        ledger.deactivate_warehouse(warehouse.id)

        result = ledger.stock_out(inventory.id, 10)

        assert result.inventory.quantity_on_hand == 90


class TestListWarehouses:
    def test_ordered_by_code(self, ledger):
        ledger.create_warehouse("B", "WH-B")
        ledger.create_warehouse("A", "WH-A")
        ledger.create_warehouse("C", "WH-C", warehouse_type="distribution")

        assert [w.code for w in ledger.list_warehouses()] == ["WH-A", "WH-B", "WH-C"]
