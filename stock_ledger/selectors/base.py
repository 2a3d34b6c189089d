"""
Module: stock_ledger.selectors.base
Responsibility: Base class for read-only query selectors.
Architecture position: Selectors.  May import from db/, models/ and domain/.
    MUST NOT import from services/.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - No locks: selectors never issue SELECT ... FOR UPDATE.
    - DTO return convention: results are frozen dataclasses, never ORM
      instances, so they stay valid after the session closes.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Accepts a Session from the caller; the caller owns its lifecycle.
    """

    def __init__(self, session: Session):
        self.session = session
