"""
Stock Ledger

A multi-warehouse inventory ledger with:
- One stock record per (product, warehouse) pair
- Row-locked, atomic quantity mutations
- Reservations held against available stock
- Batch receipts with expiry tracking
- An append-only history trail for every change
"""

__version__ = "0.1.0"
