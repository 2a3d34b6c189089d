"""
Module: stock_ledger.models.batch
Responsibility: ORM persistence for traceable stock receipts.
Architecture position: Models.  May import from db/base.py only.

Invariants enforced:
    - batch_number is unique across the ledger.
    - quantity > 0 and 0 <= quantity_damaged <= quantity (CHECK).
    - Receipt fields are frozen after creation; only quantity_damaged may
      change, and only upward (db/immutability.py).

Audit relevance:
    Each stock_in HistoryEntry carries the batch_id it created, so every
    unit received can be traced to a supplier and reference document.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_ledger.db.base import Base, UUIDString


class Batch(Base):
    """
    One receipt of stock into an inventory row.

    Contract:
        quantity is what was received.  quantity_remaining is derived as
        quantity - quantity_damaged; it does not track consumption by
        stock_out, which is not batch-addressed.
    """

    __tablename__ = "inventory_batches"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_batch_quantity_positive"),
        CheckConstraint(
            "quantity_damaged >= 0 AND quantity_damaged <= quantity",
            name="ck_batch_damaged_within_quantity",
        ),
        Index("idx_batch_inventory_received", "inventory_id", "received_date"),
        # Query: batches expiring within a window
        Index("idx_batch_expiry", "expiry_date"),
    )

    inventory_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory.id"),
        nullable=False,
    )

    batch_number: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    quantity: Mapped[int] = mapped_column(nullable=False)

    quantity_damaged: Mapped[int] = mapped_column(nullable=False, default=0)

    cost_per_unit: Mapped[Decimal] = mapped_column(nullable=False)

    received_date: Mapped[datetime] = mapped_column(nullable=False)

    supplier: Mapped[str | None] = mapped_column(String(200), nullable=True)

    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)

    expiry_date: Mapped[datetime | None] = mapped_column(nullable=True)

    batch_metadata: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    created_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    @property
    def quantity_remaining(self) -> int:
        return self.quantity - self.quantity_damaged

    def __repr__(self) -> str:
        return (
            f"<Batch {self.batch_number}: qty={self.quantity} "
            f"damaged={self.quantity_damaged} @ {self.cost_per_unit}>"
        )
