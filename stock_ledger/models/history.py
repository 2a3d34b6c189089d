"""
Module: stock_ledger.models.history
Responsibility: ORM persistence for the append-only stock movement log.
Architecture position: Models.  May import from db/base.py only.

Invariants enforced:
    APPEND_ONLY_HISTORY -- rows are never updated or deleted
        (db/immutability.py).
    (inventory_id, seq) is unique; seq comes from Inventory.last_history_seq
    advanced under the row lock.

Audit relevance:
    For on-hand events (stock_in, stock_out, adjust, damage) the before/after
    columns are on-hand counts; for reserve/unreserve they are reserved
    counts.  Replaying the deltas per family from zero rebuilds both
    balances (see HistorySelector.reconstruct_balances).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_ledger.db.base import Base, UUIDString


class HistoryEntry(Base):
    """One quantity-changing event on one inventory row."""

    __tablename__ = "inventory_history"

    __table_args__ = (
        UniqueConstraint("inventory_id", "seq", name="uq_history_inventory_seq"),
        Index("idx_history_created_at", "created_at"),
        Index("idx_history_order", "order_id"),
    )

    inventory_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory.id"),
        nullable=False,
    )

    seq: Mapped[int] = mapped_column(nullable=False)

    event_type: Mapped[str] = mapped_column(String(20), nullable=False)

    quantity_delta: Mapped[int] = mapped_column(nullable=False)

    quantity_before: Mapped[int] = mapped_column(nullable=False)

    quantity_after: Mapped[int] = mapped_column(nullable=False)

    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    actor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Referenced by id only, without foreign keys.
    order_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    reservation_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    batch_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    warehouse_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)

    event_metadata: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<HistoryEntry {self.inventory_id}#{self.seq}: "
            f"{self.event_type} {self.quantity_delta:+d}>"
        )
