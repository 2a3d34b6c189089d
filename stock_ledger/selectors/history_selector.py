"""
HistorySelector -- read side of the stock movement log.

Paginates history newest-first and rebuilds balances by replaying it.
``reconstruct_balances`` is the audit check behind HISTORY_CONSERVATION:
on-hand events replayed from zero must land on quantity_on_hand, and
reservation events on quantity_reserved.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stock_ledger.domain.dtos import HistoryPage, HistoryRecord, ReconstructedBalances
from stock_ledger.domain.values import ON_HAND_EVENTS, RESERVATION_EVENTS, HistoryEventType
from stock_ledger.exceptions import InventoryNotFoundError, ValidationError
from stock_ledger.logging_config import get_logger
from stock_ledger.models.history import HistoryEntry
from stock_ledger.models.inventory import Inventory
from stock_ledger.selectors.base import BaseSelector

logger = get_logger("selectors.history")


class HistorySelector(BaseSelector):
    def __init__(self, session: Session, max_page_size: int = 500):
        super().__init__(session)
        self._max_page_size = max_page_size

    def _require_inventory(self, inventory_id: UUID) -> None:
        exists = self.session.execute(
            select(Inventory.id).where(Inventory.id == inventory_id)
        ).scalar_one_or_none()
        if exists is None:
            raise InventoryNotFoundError(str(inventory_id))

    def get_inventory_history(
        self,
        inventory_id: UUID,
        limit: int = 50,
        offset: int = 0,
    ) -> HistoryPage:
        """
        One page of history, newest first, with the total entry count.

        Raises:
            ValidationError: limit outside [1, max_page_size] or offset < 0.
            InventoryNotFoundError: No such row.
        """
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ValidationError("limit", f"expected an integer, got {limit!r}")
        if not 1 <= limit <= self._max_page_size:
            raise ValidationError(
                "limit", f"must be between 1 and {self._max_page_size}, got {limit}"
            )
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise ValidationError("offset", f"must be a non-negative integer, got {offset!r}")

        self._require_inventory(inventory_id)

        total = self.session.execute(
            select(func.count(HistoryEntry.id)).where(HistoryEntry.inventory_id == inventory_id)
        ).scalar_one()
        rows = self.session.execute(
            select(HistoryEntry)
            .where(HistoryEntry.inventory_id == inventory_id)
            .order_by(HistoryEntry.seq.desc())
            .limit(limit)
            .offset(offset)
        ).scalars().all()

        return HistoryPage(
            entries=tuple(HistoryRecord.from_model(r) for r in rows),
            total=total,
            limit=limit,
            offset=offset,
        )

    def reconstruct_balances(self, inventory_id: UUID) -> ReconstructedBalances:
        """Replay every entry in seq order starting from zero."""
        self._require_inventory(inventory_id)

        rows = self.session.execute(
            select(HistoryEntry.seq, HistoryEntry.event_type, HistoryEntry.quantity_delta)
            .where(HistoryEntry.inventory_id == inventory_id)
            .order_by(HistoryEntry.seq.asc())
        ).all()

        on_hand = 0
        reserved = 0
        for _seq, event_type, delta in rows:
            kind = HistoryEventType(event_type)
            if kind in ON_HAND_EVENTS:
                on_hand += delta
            elif kind in RESERVATION_EVENTS:
                reserved += delta

        logger.debug(
            "balances_reconstructed",
            extra={
                "entry_count": len(rows),
                "on_hand": on_hand,
                "reserved": reserved,
            },
        )
        return ReconstructedBalances(
            inventory_id=inventory_id,
            quantity_on_hand=on_hand,
            quantity_reserved=reserved,
            entry_count=len(rows),
        )
