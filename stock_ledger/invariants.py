"""
Ledger Invariants Contract.

These invariants are structural law for every Inventory row. They are
enforced by StockLedgerService under the row lock, by database CHECK
constraints, and by the ORM immutability listeners. No configuration value
may switch them off.

This module exists to name them in one place; tests and log lines refer to
them by value.
"""

from enum import Enum, unique


@unique
class LedgerInvariant(str, Enum):
    """Non-configurable invariants enforced by the stock ledger."""

    NON_NEGATIVE_ON_HAND = "non_negative_on_hand"
    """quantity_on_hand >= 0. Enforced by the engine and a CHECK constraint."""

    RESERVED_WITHIN_ON_HAND = "reserved_within_on_hand"
    """0 <= quantity_reserved <= quantity_on_hand, so available is never
    negative. Enforced by the engine and a CHECK constraint."""

    UNIQUE_INVENTORY = "unique_inventory"
    """At most one Inventory row per (product_id, warehouse_id). Enforced by
    a unique constraint; initialization is one-shot."""

    APPEND_ONLY_HISTORY = "append_only_history"
    """HistoryEntry rows are never updated or deleted. Enforced by ORM
    listeners (stock_ledger.db.immutability)."""

    HISTORY_CONSERVATION = "history_conservation"
    """Replaying on-hand history deltas from zero yields quantity_on_hand;
    replaying reservation deltas yields quantity_reserved."""

    TERMINAL_RELEASE = "terminal_release"
    """A released Reservation never changes again."""

    ROW_LOCK_SERIALIZATION = "row_lock_serialization"
    """Every mutation locks its Inventory row before reading quantities and
    holds the lock until commit."""


ALL_LEDGER_INVARIANTS: frozenset[LedgerInvariant] = frozenset(LedgerInvariant)
