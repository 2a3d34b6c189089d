"""Low-stock and out-of-stock alerts raised by ledger mutations."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_ledger.db.base import Base, UUIDString


class InventoryAlert(Base):
    """
    Operator notification that an inventory row fell to its reorder level.

    Status moves PENDING -> ACKNOWLEDGED -> RESOLVED (PENDING may resolve
    directly); see AlertService.
    """

    __tablename__ = "inventory_alerts"

    __table_args__ = (
        # Query: dedup lookup and pending-alert listing
        Index("idx_alert_inventory_status", "inventory_id", "status", "alert_type"),
    )

    inventory_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory.id"),
        nullable=False,
    )

    alert_type: Mapped[str] = mapped_column(String(20), nullable=False)

    current_quantity: Mapped[int] = mapped_column(nullable=False)

    threshold: Mapped[int] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False)

    triggered_at: Mapped[datetime] = mapped_column(nullable=False)

    acknowledged_at: Mapped[datetime | None] = mapped_column(nullable=True)

    acknowledged_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    resolution_action: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<InventoryAlert {self.alert_type} {self.status}: qty={self.current_quantity}>"
