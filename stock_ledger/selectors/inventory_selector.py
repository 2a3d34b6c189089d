"""
InventorySelector -- warehouse aggregates and stock views.

All queries are read-only and take no locks; under concurrent writes they
return a committed snapshot that may be slightly stale.  Monetary totals are
summed in Python over Decimal values so they stay exact on every backend.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_ledger.domain import stock_rules
from stock_ledger.domain.clock import Clock, SystemClock
from stock_ledger.domain.dtos import (
    AlertRecord,
    BatchRecord,
    InventoryDetail,
    InventorySnapshot,
    ReservationRecord,
    WarehouseInventorySummary,
    WarehouseRecord,
)
from stock_ledger.domain.values import AlertStatus, ReservationStatus
from stock_ledger.exceptions import (
    InventoryNotFoundError,
    ReservationNotFoundError,
    ValidationError,
    WarehouseNotFoundError,
)
from stock_ledger.models.alert import InventoryAlert
from stock_ledger.models.batch import Batch
from stock_ledger.models.inventory import Inventory
from stock_ledger.models.reservation import Reservation
from stock_ledger.models.warehouse import Warehouse
from stock_ledger.selectors.base import BaseSelector

RECENT_BATCH_LIMIT = 10
RECENT_ALERT_LIMIT = 5


class InventorySelector(BaseSelector):
    """Read models over Inventory, Batch, Reservation, Warehouse and alerts."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # -- Inventory ---------------------------------------------------------

    def get_inventory(self, inventory_id: UUID) -> InventoryDetail:
        """
        Snapshot of one row with its warehouse, the most recent batches and
        the most recent alerts.

        Raises:
            InventoryNotFoundError: No such row.
        """
        inventory = self.session.get(Inventory, inventory_id)
        if inventory is None:
            raise InventoryNotFoundError(str(inventory_id))

        warehouse = self.session.get(Warehouse, inventory.warehouse_id)
        batches = self.session.execute(
            select(Batch)
            .where(Batch.inventory_id == inventory_id)
            .order_by(Batch.received_date.desc(), Batch.created_at.desc())
            .limit(RECENT_BATCH_LIMIT)
        ).scalars().all()
        alerts = self.session.execute(
            select(InventoryAlert)
            .where(InventoryAlert.inventory_id == inventory_id)
            .order_by(InventoryAlert.triggered_at.desc())
            .limit(RECENT_ALERT_LIMIT)
        ).scalars().all()

        return InventoryDetail(
            inventory=InventorySnapshot.from_model(inventory),
            warehouse=WarehouseRecord.from_model(warehouse),
            recent_batches=tuple(BatchRecord.from_model(b) for b in batches),
            recent_alerts=tuple(AlertRecord.from_model(a) for a in alerts),
        )

    def get_product_inventory(self, product_id: str) -> list[InventorySnapshot]:
        """All rows for a product across warehouses, largest stock first."""
        rows = self.session.execute(
            select(Inventory)
            .where(Inventory.product_id == product_id)
            .order_by(Inventory.quantity_on_hand.desc(), Inventory.warehouse_id)
        ).scalars().all()
        return [InventorySnapshot.from_model(r) for r in rows]

    def get_low_stock_items(
        self,
        warehouse_id: UUID | None = None,
    ) -> list[InventorySnapshot]:
        """Rows at or below their reorder level, emptiest first."""
        stmt = (
            select(Inventory)
            .where(Inventory.quantity_on_hand <= Inventory.reorder_level)
            .order_by(Inventory.quantity_on_hand.asc(), Inventory.product_id)
        )
        if warehouse_id is not None:
            stmt = stmt.where(Inventory.warehouse_id == warehouse_id)
        rows = self.session.execute(stmt).scalars().all()
        return [InventorySnapshot.from_model(r) for r in rows]

    def get_warehouse_inventory_summary(
        self,
        warehouse_id: UUID,
    ) -> WarehouseInventorySummary:
        """
        Totals over every inventory row in a warehouse.

        Raises:
            WarehouseNotFoundError: Unknown warehouse.
        """
        warehouse = self.session.get(Warehouse, warehouse_id)
        if warehouse is None:
            raise WarehouseNotFoundError(str(warehouse_id))

        rows = self.session.execute(
            select(
                Inventory.product_id,
                Inventory.quantity_on_hand,
                Inventory.quantity_reserved,
                Inventory.quantity_defective,
                Inventory.reorder_level,
                Inventory.cost_per_unit,
            ).where(Inventory.warehouse_id == warehouse_id)
        ).all()

        products: set[str] = set()
        total_quantity = 0
        total_reserved = 0
        total_defective = 0
        total_value = Decimal("0")
        low_stock = 0
        out_of_stock = 0
        for product_id, on_hand, reserved, defective, reorder_level, cost in rows:
            products.add(product_id)
            total_quantity += on_hand
            total_reserved += reserved
            total_defective += defective
            total_value += Decimal(on_hand) * Decimal(cost)
            if on_hand <= 0:
                out_of_stock += 1
            elif stock_rules.is_low_stock(on_hand, reorder_level):
                low_stock += 1

        return WarehouseInventorySummary(
            warehouse=WarehouseRecord.from_model(warehouse),
            total_items=len(products),
            total_quantity=total_quantity,
            total_reserved=total_reserved,
            total_defective=total_defective,
            total_value=total_value,
            low_stock_count=low_stock,
            out_of_stock_count=out_of_stock,
        )

    # -- Batches -----------------------------------------------------------

    def get_expiring_batches(self, days: int = 30) -> list[BatchRecord]:
        """
        Batches with units remaining whose expiry falls in [now, now + days].

        Raises:
            ValidationError: days is negative.
        """
        if isinstance(days, bool) or not isinstance(days, int) or days < 0:
            raise ValidationError("days", f"must be a non-negative integer, got {days!r}")

        now = self._clock.now()
        horizon = now + timedelta(days=days)
        rows = self.session.execute(
            select(Batch)
            .where(Batch.expiry_date.is_not(None))
            .where(Batch.expiry_date >= now)
            .where(Batch.expiry_date <= horizon)
            .where(Batch.quantity - Batch.quantity_damaged > 0)
            .order_by(Batch.expiry_date.asc(), Batch.batch_number)
        ).scalars().all()
        return [BatchRecord.from_model(b) for b in rows]

    # -- Reservations ------------------------------------------------------

    def get_reservation(self, reservation_id: UUID) -> ReservationRecord:
        reservation = self.session.get(Reservation, reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(str(reservation_id))
        return ReservationRecord.from_model(reservation)

    def get_order_reservations(self, order_id: str) -> list[ReservationRecord]:
        rows = self.session.execute(
            select(Reservation)
            .where(Reservation.order_id == order_id)
            .order_by(Reservation.created_at, Reservation.id)
        ).scalars().all()
        return [ReservationRecord.from_model(r) for r in rows]

    def expired_reservation_ids(self, as_of: datetime | None = None) -> list[UUID]:
        """Active reservations whose hold window ended at or before ``as_of``."""
        cutoff = as_of or self._clock.now()
        return list(
            self.session.execute(
                select(Reservation.id)
                .where(Reservation.status == ReservationStatus.ACTIVE.value)
                .where(Reservation.expires_at <= cutoff)
                .order_by(Reservation.expires_at, Reservation.id)
            ).scalars().all()
        )

    # -- Warehouses --------------------------------------------------------

    def get_warehouse(self, warehouse_id: UUID) -> WarehouseRecord:
        warehouse = self.session.get(Warehouse, warehouse_id)
        if warehouse is None:
            raise WarehouseNotFoundError(str(warehouse_id))
        return WarehouseRecord.from_model(warehouse)

    def list_warehouses(self, include_inactive: bool = False) -> list[WarehouseRecord]:
        stmt = select(Warehouse).order_by(Warehouse.code)
        if not include_inactive:
            stmt = stmt.where(Warehouse.is_active.is_(True))
        return [WarehouseRecord.from_model(w) for w in self.session.execute(stmt).scalars()]

    # -- Alerts ------------------------------------------------------------

    def get_pending_alerts(self, warehouse_id: UUID | None = None) -> list[AlertRecord]:
        stmt = (
            select(InventoryAlert)
            .where(InventoryAlert.status == AlertStatus.PENDING.value)
            .order_by(InventoryAlert.triggered_at.desc(), InventoryAlert.id)
        )
        if warehouse_id is not None:
            stmt = stmt.join(Inventory, Inventory.id == InventoryAlert.inventory_id).where(
                Inventory.warehouse_id == warehouse_id
            )
        return [AlertRecord.from_model(a) for a in self.session.execute(stmt).scalars()]
