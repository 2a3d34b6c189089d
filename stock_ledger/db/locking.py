"""
Row-lock helpers shared by the ledger engine and the InventoryLedger facade.

PostgreSQL bounds each lock wait with ``SET LOCAL lock_timeout``, scoped to
the current transaction.  SQLite has no row locks; the BEGIN IMMEDIATE hook
in db/engine.py takes the database write lock and the driver busy timeout
bounds the wait.  Either way an expired wait surfaces as an
OperationalError, which ``translate_lock_timeout`` turns into
ConcurrencyTimeoutError.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from stock_ledger.exceptions import ConcurrencyTimeoutError
from stock_ledger.logging_config import get_logger

logger = get_logger("db.locking")

# lock_not_available
_PG_LOCK_NOT_AVAILABLE = "55P03"


def apply_lock_timeout(session: Session, timeout_ms: int) -> None:
    """Bound lock waits for the rest of the current transaction."""
    if session.get_bind().dialect.name == "postgresql":
        session.execute(text(f"SET LOCAL lock_timeout = {int(timeout_ms)}"))


def is_lock_timeout(exc: OperationalError) -> bool:
    orig = exc.orig
    if getattr(orig, "pgcode", None) == _PG_LOCK_NOT_AVAILABLE:
        return True
    return "database is locked" in str(orig).lower()


@contextmanager
def translate_lock_timeout(
    entity_type: str,
    entity_id: object,
    timeout_ms: int,
) -> Generator[None, None, None]:
    """Re-raise lock-wait expiry as ConcurrencyTimeoutError."""
    try:
        yield
    except OperationalError as exc:
        if not is_lock_timeout(exc):
            raise
        logger.warning(
            "lock_timeout",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "timeout_ms": timeout_ms,
            },
        )
        raise ConcurrencyTimeoutError(entity_type, str(entity_id), timeout_ms) from exc
