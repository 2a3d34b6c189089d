"""
Enumerated values shared by the ORM models, the engine and the DTOs.

Each enum subclasses ``str`` so members persist as their plain string value
and compare equal to it.
"""

from enum import Enum


class StockStatus(str, Enum):
    """Stored stock status of an Inventory row.

    BACKORDER is reserved for future use; no ledger operation sets it.
    "Low stock" is a query concept, not a status.
    """

    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"
    BACKORDER = "backorder"


class HistoryEventType(str, Enum):
    """Kinds of quantity-changing events recorded in the history ledger."""

    STOCK_IN = "stock_in"
    STOCK_OUT = "stock_out"
    RESERVE = "reserve"
    UNRESERVE = "unreserve"
    ADJUST = "adjust"
    DAMAGE = "damage"


# Events whose delta applies to quantity_on_hand.
ON_HAND_EVENTS: frozenset[HistoryEventType] = frozenset({
    HistoryEventType.STOCK_IN,
    HistoryEventType.STOCK_OUT,
    HistoryEventType.ADJUST,
    HistoryEventType.DAMAGE,
})

# Events whose delta applies to quantity_reserved.
RESERVATION_EVENTS: frozenset[HistoryEventType] = frozenset({
    HistoryEventType.RESERVE,
    HistoryEventType.UNRESERVE,
})


class ReservationStatus(str, Enum):
    """ACTIVE -> RELEASED, once. RELEASED is terminal."""

    ACTIVE = "active"
    RELEASED = "released"


class WarehouseType(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    REGIONAL = "regional"
    DISTRIBUTION = "distribution"


class AlertType(str, Enum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


class AlertStatus(str, Enum):
    """PENDING -> ACKNOWLEDGED -> RESOLVED; PENDING may resolve directly."""

    PENDING = "pending"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


ALERT_TRANSITIONS: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.PENDING: frozenset({AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED}),
    AlertStatus.ACKNOWLEDGED: frozenset({AlertStatus.RESOLVED}),
    AlertStatus.RESOLVED: frozenset(),
}
