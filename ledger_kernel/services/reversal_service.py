"""
ReversalEngine -- corrects a posted entry by posting its mirror image.

Responsibility:
    Validates reversal preconditions and posts, through the PostingEngine,
    a new entry dated today whose lines swap debit and credit of the
    original.  The reversal is balanced by construction.

Invariants enforced:
    - The original entry is never mutated.  "Has been reversed" is
      derived from the reversal's ``reversed_entry_id``.
    - At most one reversal per entry: checked up front and backed by the
      unique constraint on ``reversed_entry_id`` (and the reversal's
      idempotency key), so a concurrent second reversal fails with
      AlreadyReversedError.
    - A reversal cannot itself be reversed.
    - The period covering today must be open.

Failure modes:
    - EntryNotFoundError, EntryNotPostedError, ReversalOfReversalError,
      AlreadyReversedError.
    - NoPeriodError / PeriodClosedError for today's date.
    - AuthorizationError / TenantBlockedError.

Audit relevance:
    Writes a JOURNAL_REVERSED record on the original entry in addition to
    the reversal's own JOURNAL_POSTED record.

Design principles:
    1. Posted rows never change.
    2. One canonical linkage -- ``reversed_entry_id`` on the reversal.
    3. Reversal is an ordinary posting routed through the PostingEngine.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_config.schema import PostingPolicy
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import CallerIdentity, Capability, LineDescriptor
from ledger_kernel.exceptions import (
    AlreadyReversedError,
    EntryNotFoundError,
    EntryNotPostedError,
    LedgerError,
    ReversalOfReversalError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.posting_service import PostingEngine

logger = get_logger("services.reversal")

REVERSAL_SOURCE_TYPE = "reversal"
REVERSAL_PREFIX = "REVERSAL: "


@dataclass(frozen=True)
class ReversalResult:
    """Immutable result of a successful reversal."""

    original_entry_id: UUID
    reversal_entry_id: UUID
    document_sequence_number: str | None
    reversal_date: date
    total: Decimal
    line_count: int


class ReversalEngine(BaseService):
    """Reversal orchestrator bound to one session."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        policy: PostingPolicy | None = None,
        posting_engine: PostingEngine | None = None,
    ):
        super().__init__(session, clock)
        self._posting = posting_engine or PostingEngine(session, self.clock, policy)

    def find_reversal_of(self, entry_id: UUID) -> JournalEntry | None:
        return self.session.execute(
            select(JournalEntry).where(JournalEntry.reversed_entry_id == entry_id)
        ).scalar_one_or_none()

    def reverse_journal_entry(self, caller: CallerIdentity, entry_id: UUID) -> ReversalResult:
        """
        Reverse a posted (or period-locked) entry as of today.

        Preconditions:
            - Entry exists, is POSTED or LOCKED, is not itself a reversal and
              has no reversal yet.
            - Caller holds FINANCE on the entry's tenant.
        Postconditions:
            - A new POSTED entry exists with source type ``reversal``,
              ``is_reversal=True`` and ``reversed_entry_id=entry_id``.
            - Every account's net balance is back to its value before the
              original was posted.
        """
        try:
            return self._reverse(caller, entry_id)
        except LedgerError as exc:
            logger.warning(
                "reversal_rejected",
                extra={"original_entry_id": str(entry_id), "error_code": exc.code},
            )
            raise

    def _reverse(self, caller: CallerIdentity, entry_id: UUID) -> ReversalResult:
        original = self.session.execute(
            select(JournalEntry)
            .where(JournalEntry.id == entry_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if original is None:
            raise EntryNotFoundError(str(entry_id))

        with LogContext.bind(tenant_id=original.tenant_id, actor_id=caller.actor_id, entry_id=entry_id):
            self._posting.guard.require(caller, original.tenant_id, Capability.FINANCE)

            if original.status not in (JournalEntryStatus.POSTED, JournalEntryStatus.LOCKED):
                raise EntryNotPostedError(str(entry_id), original.status.value)
            if original.is_reversal:
                raise ReversalOfReversalError(str(entry_id))

            existing = self.find_reversal_of(entry_id)
            if existing is not None:
                raise AlreadyReversedError(str(entry_id), str(existing.id))

            today = self.clock.today()
            mirrored = [
                LineDescriptor(
                    account_id=line.account_id,
                    debit=line.credit,
                    credit=line.debit,
                    description=REVERSAL_PREFIX + (line.description or original.source_type),
                    cost_center=line.cost_center,
                    department=line.department,
                    asset_id=line.asset_id,
                )
                for line in original.lines
            ]

            result, _ = self._posting.write_entry(
                caller,
                original.tenant_id,
                REVERSAL_SOURCE_TYPE,
                original.id,
                today,
                REVERSAL_PREFIX + (original.memo or original.source_type),
                mirrored,
                capability=Capability.FINANCE,
                allow_control=False,
                is_reversal=True,
                reversed_entry_id=original.id,
            )
            if result.idempotent:
                # Lost the race to a concurrent reversal
                raise AlreadyReversedError(str(entry_id), str(result.entry_id))

            self._posting.auditor.record_reversal(
                original.tenant_id, original.id, result.entry_id, caller.actor_id
            )
            logger.info(
                "reversal_completed",
                extra={
                    "original_entry_id": str(original.id),
                    "reversal_entry_id": str(result.entry_id),
                    "document_number": result.document_sequence_number,
                    "reversal_date": today,
                },
            )
            return ReversalResult(
                original_entry_id=original.id,
                reversal_entry_id=result.entry_id,
                document_sequence_number=result.document_sequence_number,
                reversal_date=today,
                total=result.total,
                line_count=result.line_count,
            )
