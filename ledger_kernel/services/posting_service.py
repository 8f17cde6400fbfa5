"""
PostingEngine -- the single write path into the ledger.

Responsibility:
    Validates a set of journal lines for one source document and, in the
    caller's transaction, issues a document number, inserts the entry and
    its lines in POSTED status, and appends a JOURNAL_POSTED audit record.
    Also hosts the control-account override path.

Architecture position:
    Kernel > Services.  Called by the reversal engine, the batch jobs in
    ``ledger_services`` and the document modules in ``ledger_modules``.

Invariants enforced:
    - Idempotency: one entry per (tenant, doc_type, doc_id).  A repeat call
      returns the existing entry id.  A concurrent duplicate loses on the
      unique constraint inside a savepoint and returns the winner's id.
    - Balance: sum(debit) == sum(credit) > 0 for every posted entry.
    - Line shape: both amounts >= 0, exactly one strictly positive.
    - Posting only into OPEN periods, only to active accounts of the
      entry's own tenant.
    - Control accounts are touched only by automated source types, or
      through the override path with a recorded justification.

Failure modes (all raised before anything is written):
    - AuthorizationError / TenantNotFoundError / TenantBlockedError
    - NoPeriodError / PeriodClosedError
    - MalformedLineError / InvalidAccountError / CrossTenantError
    - ControlAccountViolation / OverrideReasonError
    - UnbalancedEntryError

Audit relevance:
    Every posting is logged (``journal_posted``) and audit-chained
    (JOURNAL_POSTED); overrides add one ControlAccountOverride row per
    control-account line and a CONTROL_ACCOUNT_OVERRIDE record.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_config import get_active_policy
from ledger_config.schema import PostingPolicy
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import CallerIdentity, Capability, LineDescriptor
from ledger_kernel.exceptions import (
    ControlAccountViolation,
    CrossTenantError,
    InvalidAccountError,
    LedgerError,
    MalformedLineError,
    OverrideReasonError,
    UnbalancedEntryError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import LedgerAccount
from ledger_kernel.models.control_override import ControlAccountOverride
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.authority import TenantGuard
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.sequence_service import DocumentSequencer

logger = get_logger("services.posting")

ZERO = Decimal("0")


@dataclass(frozen=True)
class PostingResult:
    """Outcome of one posting call."""

    entry_id: UUID
    document_sequence_number: str | None
    fiscal_period_id: UUID | None
    total: Decimal
    line_count: int
    idempotent: bool = False


class PostingEngine(BaseService):
    """
    Posting engine bound to one session.

    Non-goals:
        - Does NOT commit; the caller owns the transaction.
        - Does NOT validate analytical tags (cost center, department,
          asset) on lines; they are stored as given.
    """

    def __init__(self, session, clock: Clock | None = None, policy: PostingPolicy | None = None):
        super().__init__(session, clock)
        self.policy = policy or get_active_policy()
        self.guard = TenantGuard(session)
        self.periods = PeriodService(session, self.clock)
        self.sequencer = DocumentSequencer(session, self.policy)
        self.auditor = AuditorService(session, self.clock, self.sequencer)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def post_journal_entry(
        self,
        caller: CallerIdentity,
        tenant_id: UUID,
        doc_type: str,
        doc_id: UUID | None,
        entry_date: date,
        memo: str | None,
        lines: Sequence[LineDescriptor],
    ) -> UUID:
        """Post a document's lines; returns the entry id (existing one on repeat)."""
        return self.post(caller, tenant_id, doc_type, doc_id, entry_date, memo, lines).entry_id

    def post(
        self,
        caller: CallerIdentity,
        tenant_id: UUID,
        doc_type: str,
        doc_id: UUID | None,
        entry_date: date,
        memo: str | None,
        lines: Sequence[LineDescriptor],
    ) -> PostingResult:
        """Same as ``post_journal_entry`` but returns the full PostingResult."""
        result, _ = self.write_entry(
            caller,
            tenant_id,
            doc_type,
            doc_id,
            entry_date,
            memo,
            lines,
            capability=Capability.FINANCE,
            allow_control=False,
        )
        return result

    def post_journal_with_override(
        self,
        caller: CallerIdentity,
        tenant_id: UUID,
        doc_type: str,
        doc_id: UUID | None,
        entry_date: date,
        memo: str | None,
        lines: Sequence[LineDescriptor],
        override_reason: str,
    ) -> UUID:
        """Post touching control accounts, with an admin's recorded justification."""
        return self.post_with_override(
            caller, tenant_id, doc_type, doc_id, entry_date, memo, lines, override_reason
        ).entry_id

    def post_with_override(
        self,
        caller: CallerIdentity,
        tenant_id: UUID,
        doc_type: str,
        doc_id: UUID | None,
        entry_date: date,
        memo: str | None,
        lines: Sequence[LineDescriptor],
        override_reason: str,
    ) -> PostingResult:
        self.guard.require(caller, tenant_id, Capability.ADMIN)

        reason = (override_reason or "").strip()
        min_length = self.policy.override.min_reason_length
        if len(reason) < min_length:
            logger.warning(
                "posting_rejected",
                extra={
                    "tenant_id": str(tenant_id),
                    "doc_type": doc_type,
                    "error_code": OverrideReasonError.code,
                },
            )
            raise OverrideReasonError(min_length, len(reason))

        source_type = f"{self.policy.override.source_prefix}{doc_type}"
        result, accounts = self.write_entry(
            caller,
            tenant_id,
            source_type,
            doc_id,
            entry_date,
            memo,
            lines,
            capability=Capability.ADMIN,
            allow_control=True,
        )
        if result.idempotent:
            return result

        overridden_codes = []
        for account in accounts:
            if not account.is_control_account:
                continue
            self.session.add(
                ControlAccountOverride(
                    tenant_id=tenant_id,
                    account_id=account.id,
                    journal_entry_id=result.entry_id,
                    override_reason=reason,
                    overridden_by_id=caller.actor_id,
                    created_by_id=caller.actor_id,
                )
            )
            overridden_codes.append(account.code)
        self.session.flush()

        if overridden_codes:
            self.auditor.record_override(
                tenant_id, result.entry_id, caller.actor_id, reason, overridden_codes
            )
            logger.warning(
                "control_account_override_posted",
                extra={
                    "tenant_id": str(tenant_id),
                    "entry_id": str(result.entry_id),
                    "account_codes": overridden_codes,
                },
            )
        return result

    # ------------------------------------------------------------------
    # Shared implementation
    # ------------------------------------------------------------------

    def find_existing(self, tenant_id: UUID, source_type: str, source_id: UUID) -> JournalEntry | None:
        return self.session.execute(
            select(JournalEntry).where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.source_type == source_type,
                JournalEntry.source_id == source_id,
            )
        ).scalar_one_or_none()

    @staticmethod
    def _existing_result(entry: JournalEntry) -> PostingResult:
        return PostingResult(
            entry_id=entry.id,
            document_sequence_number=entry.document_sequence_number,
            fiscal_period_id=entry.fiscal_period_id,
            total=entry.total_debits,
            line_count=len(entry.lines),
            idempotent=True,
        )

    def write_entry(
        self,
        caller: CallerIdentity,
        tenant_id: UUID,
        source_type: str,
        source_id: UUID | None,
        entry_date: date,
        memo: str | None,
        lines: Sequence[LineDescriptor],
        *,
        capability: Capability,
        allow_control: bool,
        is_reversal: bool = False,
        reversed_entry_id: UUID | None = None,
    ) -> tuple[PostingResult, list[LedgerAccount]]:
        """
        Validate and write one entry.

        Shared by the public posting calls, the override path and the
        reversal engine; ``capability`` and ``allow_control`` are decided by
        the caller.

        Returns:
            The result and the account of each line, in line order (empty
            for an idempotent hit).
        """
        with LogContext.bind(tenant_id=tenant_id, actor_id=caller.actor_id):
            self.guard.require(caller, tenant_id, capability)

            if source_id is not None:
                existing = self.find_existing(tenant_id, source_type, source_id)
                if existing is not None:
                    logger.info(
                        "journal_post_idempotent",
                        extra={
                            "source_type": source_type,
                            "source_id": str(source_id),
                            "existing_entry_id": str(existing.id),
                        },
                    )
                    return self._existing_result(existing), []

            logger.info(
                "journal_post_started",
                extra={
                    "source_type": source_type,
                    "source_id": str(source_id) if source_id else None,
                    "entry_date": entry_date,
                    "line_count": len(lines),
                },
            )

            try:
                period = self.periods.require_open_period(tenant_id, entry_date)
                accounts = self._validate_lines(
                    tenant_id, source_type, lines, allow_control, require_active=not is_reversal
                )
                total = self._check_balance(lines)
            except LedgerError as exc:
                logger.warning(
                    "posting_rejected",
                    extra={
                        "source_type": source_type,
                        "error_code": exc.code,
                        "reason": str(exc),
                    },
                )
                raise

            document_number = self.sequencer.next_document_number(tenant_id, source_type)
            now = self.clock.now()

            savepoint = self.session.begin_nested()
            try:
                entry = JournalEntry(
                    tenant_id=tenant_id,
                    entry_date=entry_date,
                    source_type=source_type,
                    source_id=source_id,
                    status=JournalEntryStatus.POSTED,
                    document_sequence_number=document_number,
                    fiscal_period_id=period.id,
                    is_reversal=is_reversal,
                    reversed_entry_id=reversed_entry_id,
                    memo=memo,
                    posted_at=now,
                    created_by_id=caller.actor_id,
                    lines=[
                        JournalLine(
                            account_id=line.account_id,
                            line_number=number,
                            debit=line.debit,
                            credit=line.credit,
                            description=line.description,
                            cost_center=line.cost_center,
                            department=line.department,
                            asset_id=line.asset_id,
                            created_by_id=caller.actor_id,
                        )
                        for number, line in enumerate(lines, start=1)
                    ],
                )
                self.session.add(entry)
                self.session.flush()
                savepoint.commit()
            except IntegrityError:
                savepoint.rollback()
                winner = (
                    self.find_existing(tenant_id, source_type, source_id)
                    if source_id is not None
                    else None
                )
                if winner is None:
                    raise
                logger.info(
                    "journal_post_idempotent",
                    extra={
                        "source_type": source_type,
                        "source_id": str(source_id),
                        "existing_entry_id": str(winner.id),
                        "race": True,
                    },
                )
                return self._existing_result(winner), []

            self.auditor.record_posting(
                tenant_id,
                entry.id,
                caller.actor_id,
                document_number,
                source_type,
                total,
                len(lines),
            )
            logger.info(
                "journal_posted",
                extra={
                    "entry_id": str(entry.id),
                    "document_number": document_number,
                    "source_type": source_type,
                    "fiscal_period_id": str(period.id),
                    "total": total,
                    "line_count": len(lines),
                },
            )
            return (
                PostingResult(
                    entry_id=entry.id,
                    document_sequence_number=document_number,
                    fiscal_period_id=period.id,
                    total=total,
                    line_count=len(lines),
                ),
                accounts,
            )

    def _validate_lines(
        self,
        tenant_id: UUID,
        source_type: str,
        lines: Sequence[LineDescriptor],
        allow_control: bool,
        require_active: bool = True,
    ) -> list[LedgerAccount]:
        if len(lines) < 2:
            raise MalformedLineError(f"an entry needs at least 2 lines, got {len(lines)}")

        account_ids = {line.account_id for line in lines}
        found = {
            account.id: account
            for account in self.session.execute(
                select(LedgerAccount).where(LedgerAccount.id.in_(account_ids))
            ).scalars()
        }

        accounts = []
        for line in lines:
            account = found.get(line.account_id)
            if account is None:
                raise InvalidAccountError(str(line.account_id), "account does not exist")
            if account.tenant_id != tenant_id:
                raise CrossTenantError(str(line.account_id), str(tenant_id))
            if require_active and not account.is_active:
                raise InvalidAccountError(str(line.account_id), "account is inactive")
            accounts.append(account)

        for index, line in enumerate(lines):
            if line.debit < ZERO or line.credit < ZERO:
                raise MalformedLineError("amounts must not be negative", index)
            if (line.debit > ZERO) == (line.credit > ZERO):
                raise MalformedLineError("exactly one of debit or credit must be positive", index)

        if not allow_control and not self.policy.is_automated(source_type):
            for account in accounts:
                if account.is_control_account:
                    module = account.control_module.value if account.control_module else None
                    raise ControlAccountViolation(account.code, module, source_type)

        return accounts

    @staticmethod
    def _check_balance(lines: Sequence[LineDescriptor]) -> Decimal:
        debits = sum((line.debit for line in lines), ZERO)
        credits = sum((line.credit for line in lines), ZERO)
        if debits != credits or debits == ZERO:
            raise UnbalancedEntryError(str(debits), str(credits))
        return debits
