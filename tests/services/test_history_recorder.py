"""Tests for HistoryRecorder arithmetic checks."""

import pytest

from stock_ledger.domain.values import HistoryEventType
from stock_ledger.exceptions import HistoryArithmeticError, StockLedgerError
from stock_ledger.models.inventory import Inventory
from stock_ledger.services.history_recorder import HistoryRecorder


class TestHistoryArithmetic:
    def test_mismatch_raises_typed_error(self, inventory, session, deterministic_clock):
        row = session.get(Inventory, inventory.id)
        recorder = HistoryRecorder(session, deterministic_clock)

        with pytest.raises(HistoryArithmeticError) as exc_info:
            recorder.record(row, HistoryEventType.STOCK_OUT, -5, 100, 90)

        err = exc_info.value
        assert isinstance(err, StockLedgerError)
        assert err.code == "HISTORY_ARITHMETIC_MISMATCH"
        assert (err.before, err.delta, err.after) == (100, -5, 90)
        assert err.inventory_id == str(inventory.id)

    def test_mismatch_allocates_no_sequence(self, inventory, session, deterministic_clock):
        row = session.get(Inventory, inventory.id)
        seq_before = row.last_history_seq

        with pytest.raises(HistoryArithmeticError):
            HistoryRecorder(session, deterministic_clock).record(
                row, HistoryEventType.STOCK_IN, 10, 100, 100
            )

        assert row.last_history_seq == seq_before
