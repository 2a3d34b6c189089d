"""
Stock rules -- pure functions of stored counts.

Responsibility:
    The single definition of every derived inventory quantity: available
    balance, stock status, low-stock membership, alert type and the
    admissibility checks the engine runs under the row lock.

Architecture position:
    Domain -- zero I/O. Called by StockLedgerService (on write), by the DTO
    converters and selectors (on read), and by the property tests.

Invariants enforced:
    RESERVED_WITHIN_ON_HAND -- ``available()`` never has to be stored, so it
    cannot drift from on_hand/reserved.
"""

from stock_ledger.domain.values import AlertType, StockStatus


def available(on_hand: int, reserved: int) -> int:
    """Units eligible for new reservations or direct consumption."""
    return on_hand - reserved


def derive_stock_status(on_hand: int) -> StockStatus:
    """
    Stock status after an on-hand mutation.

    OUT_OF_STOCK at or below zero, IN_STOCK otherwise. Rows at or under their
    reorder level stay IN_STOCK and are surfaced by the low-stock view.
    """
    if on_hand <= 0:
        return StockStatus.OUT_OF_STOCK
    return StockStatus.IN_STOCK


def is_low_stock(on_hand: int, reorder_level: int) -> bool:
    return on_hand <= reorder_level


def alert_type_for(on_hand: int, reorder_level: int) -> AlertType | None:
    """Alert a row should raise at this on-hand level, if any."""
    if on_hand <= 0:
        return AlertType.OUT_OF_STOCK
    if is_low_stock(on_hand, reorder_level):
        return AlertType.LOW_STOCK
    return None


def adjustment_shortfall(on_hand: int, reserved: int, adjustment: int) -> str | None:
    """
    Reason an adjustment is inadmissible, or None if it may be applied.

    An adjustment may never take on_hand below zero or below what is already
    promised to orders.
    """
    new_on_hand = on_hand + adjustment
    if new_on_hand < 0:
        return f"adjustment would take on-hand to {new_on_hand}"
    if new_on_hand < reserved:
        return (
            f"adjustment would take on-hand to {new_on_hand}, "
            f"below the {reserved} units reserved"
        )
    return None
