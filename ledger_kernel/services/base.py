"""
BaseService -- abstract base for all ledger services.

Responsibility:
    Common constructor and session-handling contract.  Concrete services
    receive a SQLAlchemy ``Session`` and persist via ``session.flush()``,
    never ``session.commit()``.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back the outer transaction.
      Savepoints (``session.begin_nested()``) are used where a unique
      constraint race must be absorbed without losing the caller's work.
"""

from abc import ABC

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for all ledger services.

    Non-goals:
        - Does NOT manage the transaction lifecycle; the caller (or
          ``session_scope()``) commits or rolls back.
        - Does NOT provide read-only query helpers; those belong in
          ``ledger_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
