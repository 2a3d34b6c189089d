"""
Module: stock_ledger.models.reservation
Responsibility: ORM persistence for holds placed against available stock.
Architecture position: Models.  May import from db/base.py only.

Invariants enforced:
    TERMINAL_RELEASE -- ACTIVE -> RELEASED exactly once.  The engine checks
        it under the inventory row lock; db/immutability.py blocks any other
        update at flush time.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_ledger.db.base import Base, UUIDString


class Reservation(Base):
    """Units of one inventory row promised to one order."""

    __tablename__ = "reservations"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_reservation_quantity_positive"),
        Index("idx_reservation_inventory", "inventory_id"),
        Index("idx_reservation_order", "order_id"),
        # Query: active reservations past their hold window
        Index("idx_reservation_status_expiry", "status", "expires_at"),
    )

    inventory_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory.id"),
        nullable=False,
    )

    order_id: Mapped[str] = mapped_column(String(100), nullable=False)

    quantity: Mapped[int] = mapped_column(nullable=False)

    reserved_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    expires_at: Mapped[datetime] = mapped_column(nullable=False)

    released_at: Mapped[datetime | None] = mapped_column(nullable=True)

    release_reason: Mapped[str | None] = mapped_column(String(200), nullable=True)

    reserved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    released_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<Reservation {self.id}: order={self.order_id} qty={self.quantity} {self.status}>"
