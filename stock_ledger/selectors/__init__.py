"""Read-only selectors for the stock ledger."""

from stock_ledger.selectors.history_selector import HistorySelector
from stock_ledger.selectors.inventory_selector import InventorySelector

__all__ = ["HistorySelector", "InventorySelector"]
