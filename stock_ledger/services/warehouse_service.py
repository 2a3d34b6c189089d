"""
WarehouseService -- registry of storage locations.

Creates warehouses and soft-deactivates them.  Warehouses are never deleted:
inventory rows and history keep referencing them after deactivation.
Lookups live in InventorySelector.
"""

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from stock_ledger.domain.dtos import WarehouseRecord
from stock_ledger.domain.values import WarehouseType
from stock_ledger.exceptions import (
    DuplicateWarehouseCodeError,
    ValidationError,
    WarehouseInactiveError,
    WarehouseNotFoundError,
)
from stock_ledger.logging_config import get_logger
from stock_ledger.models.warehouse import Warehouse
from stock_ledger.services.base import BaseService

logger = get_logger("services.warehouse")


class WarehouseService(BaseService):
    def create_warehouse(
        self,
        name: str,
        code: str,
        warehouse_type: WarehouseType | str = WarehouseType.PRIMARY,
        max_capacity: int | None = None,
        actor_id: UUID | None = None,
        address: str | None = None,
        city: str | None = None,
        country: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> WarehouseRecord:
        """
        Register a new warehouse.

        Raises:
            ValidationError: Blank name/code, unknown type, negative capacity.
            DuplicateWarehouseCodeError: Code already in use.
        """
        if not name or not name.strip():
            raise ValidationError("name", "must not be blank")
        if not code or not code.strip():
            raise ValidationError("code", "must not be blank")
        try:
            resolved_type = WarehouseType(warehouse_type)
        except ValueError:
            raise ValidationError(
                "warehouse_type", f"unknown warehouse type {warehouse_type!r}"
            ) from None
        if max_capacity is not None and max_capacity < 0:
            raise ValidationError("max_capacity", "must not be negative")

        code = code.strip()
        existing = self.session.execute(
            select(Warehouse.id).where(Warehouse.code == code)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateWarehouseCodeError(code)

        warehouse = Warehouse(
            id=uuid4(),
            name=name.strip(),
            code=code,
            warehouse_type=resolved_type.value,
            max_capacity=max_capacity,
            is_active=True,
            address=address,
            city=city,
            country=country,
            warehouse_metadata=dict(metadata) if metadata else None,
            created_at=self.clock.now(),
            created_by_id=actor_id,
        )
        try:
            with self.session.begin_nested():
                self.session.add(warehouse)
                self.session.flush()
        except IntegrityError as exc:
            raise DuplicateWarehouseCodeError(code) from exc

        logger.info(
            "warehouse_created",
            extra={
                "warehouse_id": str(warehouse.id),
                "code": code,
                "warehouse_type": resolved_type.value,
            },
        )
        return WarehouseRecord.from_model(warehouse)

    def deactivate_warehouse(
        self,
        warehouse_id: UUID,
        actor_id: UUID | None = None,
    ) -> WarehouseRecord:
        warehouse = self.session.execute(
            select(Warehouse)
            .where(Warehouse.id == warehouse_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if warehouse is None:
            raise WarehouseNotFoundError(str(warehouse_id))
        if not warehouse.is_active:
            raise WarehouseInactiveError(str(warehouse_id))

        warehouse.is_active = False
        warehouse.deactivated_at = self.clock.now()
        self.session.flush()

        logger.info(
            "warehouse_deactivated",
            extra={
                "warehouse_id": str(warehouse_id),
                "deactivated_by": str(actor_id) if actor_id else None,
            },
        )
        return WarehouseRecord.from_model(warehouse)
