"""
Module: stock_ledger.models.inventory
Responsibility: ORM persistence for the per-(product, warehouse) stock record.
Architecture position: Models.  May import from db/base.py and domain/ only.

Invariants enforced:
    NON_NEGATIVE_ON_HAND    -- CHECK quantity_on_hand >= 0.
    RESERVED_WITHIN_ON_HAND -- CHECK 0 <= quantity_reserved <= quantity_on_hand.
    UNIQUE_INVENTORY        -- UNIQUE (product_id, warehouse_id).
    quantity_defective >= 0 -- CHECK.

    The CHECK constraints are the backstop.  StockLedgerService validates the
    same rules under the row lock and raises typed errors before a
    constraint could fire.

Failure modes:
    - IntegrityError on a concurrent duplicate initialization (translated to
      DuplicateInventoryError by the engine).

Audit relevance:
    last_history_seq is the per-row counter for HistoryEntry.seq.  It is only
    ever advanced while the row lock is held, so history sequence numbers
    are gap-free and strictly increasing per inventory row.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_ledger.db.base import Base, UUIDString
from stock_ledger.domain import stock_rules


class Inventory(Base):
    """
    Stock levels for one product in one warehouse.

    Contract:
        Mutated only by StockLedgerService while holding this row's lock.
        quantity_available is derived, never stored.

    Non-goals:
        - Does not enforce quantity rules in Python; that is the engine's
          job, backed by the CHECK constraints below.
    """

    __tablename__ = "inventory"

    __table_args__ = (
        UniqueConstraint("product_id", "warehouse_id", name="uq_inventory_product_warehouse"),
        CheckConstraint("quantity_on_hand >= 0", name="ck_inventory_on_hand_non_negative"),
        CheckConstraint(
            "quantity_reserved >= 0 AND quantity_reserved <= quantity_on_hand",
            name="ck_inventory_reserved_within_on_hand",
        ),
        CheckConstraint("quantity_defective >= 0", name="ck_inventory_defective_non_negative"),
        Index("idx_inventory_warehouse", "warehouse_id"),
        Index("idx_inventory_product", "product_id"),
    )

    product_id: Mapped[str] = mapped_column(String(100), nullable=False)

    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=False,
    )

    quantity_on_hand: Mapped[int] = mapped_column(nullable=False, default=0)

    quantity_reserved: Mapped[int] = mapped_column(nullable=False, default=0)

    quantity_defective: Mapped[int] = mapped_column(nullable=False, default=0)

    reorder_level: Mapped[int] = mapped_column(nullable=False)

    reorder_quantity: Mapped[int] = mapped_column(nullable=False)

    cost_per_unit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    stock_status: Mapped[str] = mapped_column(String(20), nullable=False)

    # Highest HistoryEntry.seq written for this row.
    last_history_seq: Mapped[int] = mapped_column(nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    created_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    @property
    def quantity_available(self) -> int:
        return stock_rules.available(self.quantity_on_hand, self.quantity_reserved)

    def __repr__(self) -> str:
        return (
            f"<Inventory {self.product_id}@{self.warehouse_id}: "
            f"on_hand={self.quantity_on_hand} reserved={self.quantity_reserved}>"
        )
