"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/ and models/.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - Selectors return frozen dataclasses, not ORM instances.
    - Balances are derived from journal lines at query time; nothing is
      stored.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Base class for all selectors; holds the caller's session."""

    def __init__(self, session: Session):
        self.session = session
