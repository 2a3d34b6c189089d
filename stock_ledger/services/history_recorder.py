"""
HistoryRecorder -- appends entries to the stock movement log.

Responsibility:
    Allocates the next per-inventory sequence number and writes one
    HistoryEntry.  Called only by StockLedgerService, inside the same
    transaction as the quantity mutation it records.

Invariants enforced:
    APPEND_ONLY_HISTORY -- this is the only writer of HistoryEntry rows and
        it only ever inserts.
    Sequence monotonicity -- seq comes from Inventory.last_history_seq,
        incremented on the locked inventory row.  MAX(seq)+1 is never used.

Failure modes:
    - IntegrityError on (inventory_id, seq) if a caller records history
      without holding the row lock.
    - HistoryArithmeticError if quantity_before + quantity_delta does not
      equal quantity_after.
"""

from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from stock_ledger.domain.values import HistoryEventType
from stock_ledger.exceptions import HistoryArithmeticError
from stock_ledger.logging_config import get_logger
from stock_ledger.models.history import HistoryEntry
from stock_ledger.models.inventory import Inventory
from stock_ledger.services.base import BaseService

logger = get_logger("services.history")


class HistoryRecorder(BaseService):
    """
    Writer for HistoryEntry rows.

    Preconditions (all methods):
        The caller holds the lock on ``inventory``.
    """

    def record(
        self,
        inventory: Inventory,
        event_type: HistoryEventType,
        quantity_delta: int,
        quantity_before: int,
        quantity_after: int,
        *,
        reason: str | None = None,
        actor_id: UUID | None = None,
        order_id: str | None = None,
        reservation_id: UUID | None = None,
        batch_id: UUID | None = None,
        unit_cost: Decimal | None = None,
        reference: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> HistoryEntry:
        # before + delta == after is what makes replay reconstruct balances.
        if quantity_before + quantity_delta != quantity_after:
            raise HistoryArithmeticError(
                inventory.id, quantity_before, quantity_delta, quantity_after
            )

        inventory.last_history_seq += 1
        entry = HistoryEntry(
            id=uuid4(),
            inventory_id=inventory.id,
            seq=inventory.last_history_seq,
            event_type=event_type.value,
            quantity_delta=quantity_delta,
            quantity_before=quantity_before,
            quantity_after=quantity_after,
            reason=reason,
            actor_id=actor_id,
            order_id=order_id,
            reservation_id=reservation_id,
            batch_id=batch_id,
            warehouse_id=inventory.warehouse_id,
            unit_cost=unit_cost,
            reference=reference,
            event_metadata=dict(metadata) if metadata else None,
            created_at=self.clock.now(),
        )
        self.session.add(entry)

        logger.debug(
            "history_recorded",
            extra={
                "seq": entry.seq,
                "event_type": entry.event_type,
                "quantity_delta": quantity_delta,
            },
        )
        return entry
