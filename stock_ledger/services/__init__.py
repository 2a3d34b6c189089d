"""Write-side services for the stock ledger."""

from stock_ledger.services.alert_service import AlertService
from stock_ledger.services.history_recorder import HistoryRecorder
from stock_ledger.services.inventory_ledger import InventoryLedger
from stock_ledger.services.stock_ledger_service import StockLedgerService
from stock_ledger.services.warehouse_service import WarehouseService

__all__ = [
    "AlertService",
    "HistoryRecorder",
    "InventoryLedger",
    "StockLedgerService",
    "WarehouseService",
]
