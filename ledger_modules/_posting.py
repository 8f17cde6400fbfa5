"""
Shared posting glue for document modules (``ledger_modules._posting``).

Every module service posts through ``ModulePoster``: it resolves the
policy's well-known account codes to the tenant's accounts and hands the
lines to the kernel PostingEngine with the document id as idempotency key.
"""

from __future__ import annotations

from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config import get_active_policy
from ledger_config.schema import PostingPolicy
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import CallerIdentity, LineDescriptor
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.posting_service import PostingEngine, PostingResult


class ModulePoster:
    """Posting helper shared by the AR, AP, expense and asset services."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: PostingPolicy | None = None,
    ):
        self.clock = clock or SystemClock()
        self.policy = policy or get_active_policy()
        self.engine = PostingEngine(session, self.clock, self.policy)
        self._accounts = AccountService(session, self.clock, self.policy)

    @property
    def codes(self):
        return self.policy.accounts

    def account_id(self, tenant_id: UUID, code: str) -> UUID:
        """Raises AccountNotFoundError when the tenant lacks ``code``."""
        return self._accounts.get_by_code(tenant_id, code).id

    def post(
        self,
        caller: CallerIdentity,
        tenant_id: UUID,
        doc_type: str,
        doc_id: UUID,
        entry_date: date,
        memo: str | None,
        lines: Sequence[LineDescriptor],
    ) -> PostingResult:
        return self.engine.post(caller, tenant_id, doc_type, doc_id, entry_date, memo, lines)
