"""Database layer - engine, base classes, column types, locking and immutability."""

from stock_ledger.db.base import Base, UTCDateTime, UUIDString
from stock_ledger.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "Base",
    "UUIDString",
    "UTCDateTime",
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
]
