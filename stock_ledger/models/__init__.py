"""ORM models for the stock ledger."""

from stock_ledger.models.alert import InventoryAlert
from stock_ledger.models.batch import Batch
from stock_ledger.models.history import HistoryEntry
from stock_ledger.models.inventory import Inventory
from stock_ledger.models.reservation import Reservation
from stock_ledger.models.warehouse import Warehouse

__all__ = [
    "Warehouse",
    "Inventory",
    "Reservation",
    "Batch",
    "HistoryEntry",
    "InventoryAlert",
]
