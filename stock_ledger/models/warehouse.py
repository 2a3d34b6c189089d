"""
Module: stock_ledger.models.warehouse
Responsibility: ORM persistence for storage locations.
Architecture position: Models.  May import from db/base.py only.

Invariants enforced:
    - code is unique across all warehouses.
    - Warehouses are never hard-deleted; is_active=False is the soft delete
      (delete blocked by db/immutability.py).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, Boolean, CheckConstraint, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_ledger.db.base import Base, UUIDString


class Warehouse(Base):
    """
    A physical or logical storage location.

    Contract:
        Inventory rows reference a warehouse by id.  Deactivated warehouses
        keep their existing inventory but accept no new rows and no stock-in.
    """

    __tablename__ = "warehouses"

    __table_args__ = (
        CheckConstraint(
            "max_capacity IS NULL OR max_capacity >= 0",
            name="ck_warehouse_capacity_non_negative",
        ),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    warehouse_type: Mapped[str] = mapped_column(String(20), nullable=False)

    max_capacity: Mapped[int | None] = mapped_column(nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    city: Mapped[str | None] = mapped_column(String(100), nullable=True)

    country: Mapped[str | None] = mapped_column(String(100), nullable=True)

    warehouse_metadata: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    created_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    deactivated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"<Warehouse {self.code} ({self.warehouse_type}, {state})>"
