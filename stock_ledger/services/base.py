"""
BaseService -- abstract base for all ledger services.

Responsibility:
    Common constructor and session contract for every write-side service.
    Services receive a SQLAlchemy ``Session`` and a ``Clock`` and persist
    through ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    Transaction boundaries -- services flush within the caller's
    transaction and never commit or roll back the outer transaction
    themselves.  The caller (InventoryLedger, session_scope, or a test)
    owns commit/rollback.  Savepoints (``begin_nested``) are allowed so a
    failed operation leaves nothing behind in the caller's transaction.
"""

from abc import ABC

from sqlalchemy.orm import Session

from stock_ledger.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for ledger services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read models -- those belong in
          ``stock_ledger/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
