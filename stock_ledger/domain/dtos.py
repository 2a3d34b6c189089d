"""
DTOs -- immutable records returned across the ledger boundary.

Responsibility:
    Frozen dataclasses that the engine, facade and selectors hand back to
    callers. Sessions close at the end of every facade call, so callers never
    receive ORM instances.

Architecture position:
    Domain -- free of ORM imports. ``from_model()`` class methods are
    boundary converters that read attributes by name; they are invoked from
    the service and selector layers only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from stock_ledger.domain import stock_rules
from stock_ledger.domain.values import (
    AlertStatus,
    AlertType,
    HistoryEventType,
    ReservationStatus,
    StockStatus,
    WarehouseType,
)


@dataclass(frozen=True)
class WarehouseRecord:
    id: UUID
    name: str
    code: str
    warehouse_type: WarehouseType
    max_capacity: int | None
    is_active: bool
    city: str | None = None
    country: str | None = None

    @classmethod
    def from_model(cls, row: Any) -> WarehouseRecord:
        return cls(
            id=row.id,
            name=row.name,
            code=row.code,
            warehouse_type=WarehouseType(row.warehouse_type),
            max_capacity=row.max_capacity,
            is_active=row.is_active,
            city=row.city,
            country=row.country,
        )


@dataclass(frozen=True)
class InventorySnapshot:
    """Point-in-time view of one Inventory row."""

    id: UUID
    product_id: str
    warehouse_id: UUID
    quantity_on_hand: int
    quantity_reserved: int
    quantity_defective: int
    reorder_level: int
    reorder_quantity: int
    cost_per_unit: Decimal
    stock_status: StockStatus
    updated_at: datetime | None = None

    @property
    def quantity_available(self) -> int:
        return stock_rules.available(self.quantity_on_hand, self.quantity_reserved)

    @property
    def is_low_stock(self) -> bool:
        return stock_rules.is_low_stock(self.quantity_on_hand, self.reorder_level)

    @classmethod
    def from_model(cls, row: Any) -> InventorySnapshot:
        return cls(
            id=row.id,
            product_id=row.product_id,
            warehouse_id=row.warehouse_id,
            quantity_on_hand=row.quantity_on_hand,
            quantity_reserved=row.quantity_reserved,
            quantity_defective=row.quantity_defective,
            reorder_level=row.reorder_level,
            reorder_quantity=row.reorder_quantity,
            cost_per_unit=Decimal(row.cost_per_unit),
            # Recomputed on read rather than trusting the stored column.
            stock_status=stock_rules.derive_stock_status(row.quantity_on_hand),
            updated_at=row.updated_at,
        )


@dataclass(frozen=True)
class ReservationRecord:
    id: UUID
    inventory_id: UUID
    order_id: str
    quantity: int
    reserved_price: Decimal | None
    status: ReservationStatus
    created_at: datetime
    expires_at: datetime
    released_at: datetime | None = None
    release_reason: str | None = None
    reserved_by_id: UUID | None = None

    @property
    def is_active(self) -> bool:
        return self.status == ReservationStatus.ACTIVE

    @classmethod
    def from_model(cls, row: Any) -> ReservationRecord:
        return cls(
            id=row.id,
            inventory_id=row.inventory_id,
            order_id=row.order_id,
            quantity=row.quantity,
            reserved_price=(
                Decimal(row.reserved_price) if row.reserved_price is not None else None
            ),
            status=ReservationStatus(row.status),
            created_at=row.created_at,
            expires_at=row.expires_at,
            released_at=row.released_at,
            release_reason=row.release_reason,
            reserved_by_id=row.reserved_by_id,
        )


@dataclass(frozen=True)
class BatchRecord:
    id: UUID
    inventory_id: UUID
    batch_number: str
    quantity: int
    quantity_damaged: int
    cost_per_unit: Decimal
    received_date: datetime
    supplier: str | None = None
    reference: str | None = None
    expiry_date: datetime | None = None
    metadata: dict = field(default_factory=dict)

    @property
    def quantity_remaining(self) -> int:
        return self.quantity - self.quantity_damaged

    @property
    def total_cost(self) -> Decimal:
        return self.cost_per_unit * self.quantity

    @classmethod
    def from_model(cls, row: Any) -> BatchRecord:
        return cls(
            id=row.id,
            inventory_id=row.inventory_id,
            batch_number=row.batch_number,
            quantity=row.quantity,
            quantity_damaged=row.quantity_damaged,
            cost_per_unit=Decimal(row.cost_per_unit),
            received_date=row.received_date,
            supplier=row.supplier,
            reference=row.reference,
            expiry_date=row.expiry_date,
            metadata=dict(row.batch_metadata or {}),
        )


@dataclass(frozen=True)
class HistoryRecord:
    id: UUID
    inventory_id: UUID
    seq: int
    event_type: HistoryEventType
    quantity_delta: int
    quantity_before: int
    quantity_after: int
    reason: str | None
    actor_id: UUID | None
    created_at: datetime
    warehouse_id: UUID | None = None
    order_id: str | None = None
    reservation_id: UUID | None = None
    batch_id: UUID | None = None
    unit_cost: Decimal | None = None
    reference: str | None = None
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_model(cls, row: Any) -> HistoryRecord:
        return cls(
            id=row.id,
            inventory_id=row.inventory_id,
            seq=row.seq,
            event_type=HistoryEventType(row.event_type),
            quantity_delta=row.quantity_delta,
            quantity_before=row.quantity_before,
            quantity_after=row.quantity_after,
            reason=row.reason,
            actor_id=row.actor_id,
            created_at=row.created_at,
            warehouse_id=row.warehouse_id,
            order_id=row.order_id,
            reservation_id=row.reservation_id,
            batch_id=row.batch_id,
            unit_cost=Decimal(row.unit_cost) if row.unit_cost is not None else None,
            reference=row.reference,
            metadata=dict(row.event_metadata or {}),
        )


@dataclass(frozen=True)
class AlertRecord:
    id: UUID
    inventory_id: UUID
    alert_type: AlertType
    current_quantity: int
    threshold: int
    status: AlertStatus
    triggered_at: datetime
    acknowledged_at: datetime | None = None
    acknowledged_by_id: UUID | None = None
    resolution_action: str | None = None

    @classmethod
    def from_model(cls, row: Any) -> AlertRecord:
        return cls(
            id=row.id,
            inventory_id=row.inventory_id,
            alert_type=AlertType(row.alert_type),
            current_quantity=row.current_quantity,
            threshold=row.threshold,
            status=AlertStatus(row.status),
            triggered_at=row.triggered_at,
            acknowledged_at=row.acknowledged_at,
            acknowledged_by_id=row.acknowledged_by_id,
            resolution_action=row.resolution_action,
        )


# ---------------------------------------------------------------------------
# Operation results and read models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockMovementResult:
    """Outcome of one engine mutation, as committed."""

    inventory: InventorySnapshot
    history: tuple[HistoryRecord, ...]
    batch: BatchRecord | None = None
    reservation: ReservationRecord | None = None
    alert: AlertRecord | None = None


@dataclass(frozen=True)
class InventoryDetail:
    inventory: InventorySnapshot
    warehouse: WarehouseRecord
    recent_batches: tuple[BatchRecord, ...] = ()
    recent_alerts: tuple[AlertRecord, ...] = ()


@dataclass(frozen=True)
class WarehouseInventorySummary:
    warehouse: WarehouseRecord
    total_items: int
    total_quantity: int
    total_reserved: int
    total_defective: int
    total_value: Decimal
    low_stock_count: int
    out_of_stock_count: int

    @property
    def total_available(self) -> int:
        return self.total_quantity - self.total_reserved

    @property
    def capacity_utilization(self) -> Decimal | None:
        """Fraction of max_capacity occupied by on-hand units, if capped."""
        capacity = self.warehouse.max_capacity
        if not capacity:
            return None
        return (Decimal(self.total_quantity) / Decimal(capacity)).quantize(Decimal("0.0001"))


@dataclass(frozen=True)
class HistoryPage:
    entries: tuple[HistoryRecord, ...]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.entries) < self.total


@dataclass(frozen=True)
class ReconstructedBalances:
    """Quantities rebuilt by replaying history from zero in seq order."""

    inventory_id: UUID
    quantity_on_hand: int
    quantity_reserved: int
    entry_count: int

    def matches(self, snapshot: InventorySnapshot) -> bool:
        return (
            self.quantity_on_hand == snapshot.quantity_on_hand
            and self.quantity_reserved == snapshot.quantity_reserved
        )
