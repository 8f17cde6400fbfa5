"""
ledger_services.period_close_service -- Fiscal period close with pre-flight checks.

Responsibility:
    Close one open fiscal period of one tenant.  Runs every pre-close check,
    appends a PeriodCloseLog row for the attempt and, only when all checks
    pass, moves the period to CLOSED and every POSTED entry dated in it to
    LOCKED.

Architecture position:
    Services -- stateful job over posted data.
    Composes TenantGuard, PeriodService and AuditorService from the kernel;
    reads the fixed-asset register from ``ledger_modules.assets``.

Invariants enforced:
    - The period row is read SELECT ... FOR UPDATE, so two concurrent close
      attempts on the same period serialize and the second sees CLOSED.
    - All four checks are evaluated on every attempt (no short-circuit) so
      the operator sees every blocker at once.
    - All-or-nothing: a failed close changes nothing except the append-only
      close log and audit trail.
    - Locked entries are moved through the ORM so the immutability guard
      validates the POSTED -> LOCKED transition.

Failure modes:
    - AuthorizationError / TenantBlockedError from TenantGuard.
    - PeriodNotFoundError if the period does not belong to the tenant.
    - PeriodNotOpenError if the period is already closed or locked.
    - Failed checks are returned in PeriodCloseResult, not raised.

Audit relevance:
    PERIOD_CLOSED or PERIOD_CLOSE_FAILED audit record per attempt; the
    PeriodCloseLog row keeps the individual check results.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import CallerIdentity, Capability
from ledger_kernel.domain.money import ZERO, as_decimal, quantize_cents
from ledger_kernel.exceptions import PeriodNotOpenError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.close_log import PeriodCloseLog
from ledger_kernel.models.fiscal_period import FinancialYear, FiscalPeriod, PeriodStatus
from ledger_kernel.models.journal import (
    BALANCE_STATUSES,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.authority import TenantGuard
from ledger_kernel.services.period_service import PeriodService
from ledger_modules.assets.helpers import monthly_charge
from ledger_modules.assets.orm import AssetDepreciationEntryModel, AssetModel, AssetStatus
from ledger_services._close_types import (
    CHECK_ORDER,
    DEPRECIATION_POSTED,
    DRAFT_ENTRIES,
    TRIAL_BALANCE,
    UNBALANCED_ENTRIES,
    CloseCheck,
    PeriodCloseResult,
)

logger = get_logger("services.period_close")


class PeriodCloseService:
    """
    Runs the period close for one session.

    Contract:
        The caller owns the transaction.  On success the caller commits
        the closed period, the locked entries and the log row together.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._guard = TenantGuard(session)
        self._periods = PeriodService(session, self._clock)
        self._auditor = AuditorService(session, self._clock)

    def close_fiscal_period(
        self,
        caller: CallerIdentity,
        tenant_id: UUID,
        period_id: UUID,
    ) -> PeriodCloseResult:
        with LogContext.bind(tenant_id=tenant_id, actor_id=caller.actor_id, period_id=period_id, job="period_close"):
            self._guard.require(caller, tenant_id, Capability.FINANCE)

            period = self._periods.get_period(tenant_id, period_id, for_update=True)
            if period.status != PeriodStatus.OPEN:
                logger.warning(
                    "period_close_rejected",
                    extra={"period_id": str(period_id), "status": period.status.value},
                )
                raise PeriodNotOpenError(str(period_id), period.status.value)

            logger.info(
                "period_close_started",
                extra={
                    "period_id": str(period_id),
                    "period_name": period.period_name,
                    "start_date": str(period.start_date),
                    "end_date": str(period.end_date),
                },
            )

            checks = [
                self._check_draft_entries(tenant_id, period),
                self._check_trial_balance(tenant_id, period),
                self._check_depreciation_posted(tenant_id, period),
                self._check_unbalanced_entries(tenant_id, period),
            ]
            results = {check.name: check.as_dict() for check in checks}
            all_passed = all(check.passed for check in checks)

            now = self._clock.now()
            close_log = PeriodCloseLog(
                tenant_id=tenant_id,
                fiscal_period_id=period.id,
                attempted_by_id=caller.actor_id,
                attempted_at=now,
                pre_close_checks=results,
                all_checks_passed=all_passed,
            )
            self._session.add(close_log)
            self._session.flush()

            if not all_passed:
                failed = [name for name in CHECK_ORDER if not results[name]["passed"]]
                logger.warning(
                    "period_close_checks_failed",
                    extra={
                        "period_id": str(period_id),
                        "failed_checks": failed,
                        "checks": results,
                    },
                )
                self._auditor.record_period_close_failed(
                    tenant_id, period.id, caller.actor_id, failed,
                )
                return PeriodCloseResult(
                    success=False,
                    period_id=period.id,
                    checks=results,
                    log_id=close_log.id,
                )

            period.status = PeriodStatus.CLOSED
            period.closed_at = now
            period.closed_by_id = caller.actor_id
            period.updated_by_id = caller.actor_id
            self._session.flush()

            locked = self._lock_entries(tenant_id, period, caller.actor_id)
            self._close_year_if_complete(period)

            self._auditor.record_period_closed(tenant_id, period.id, caller.actor_id, locked)
            logger.info(
                "period_closed",
                extra={
                    "period_id": str(period_id),
                    "period_name": period.period_name,
                    "locked_entries": locked,
                },
            )
            return PeriodCloseResult(
                success=True,
                period_id=period.id,
                checks=results,
                log_id=close_log.id,
                closed_at=now,
                locked_entry_count=locked,
            )

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    @staticmethod
    def _in_period(period: FiscalPeriod):
        return (
            JournalEntry.entry_date >= period.start_date,
            JournalEntry.entry_date <= period.end_date,
        )

    def _check_draft_entries(self, tenant_id: UUID, period: FiscalPeriod) -> CloseCheck:
        count = self._session.execute(
            select(func.count(JournalEntry.id)).where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.status == JournalEntryStatus.DRAFT,
                *self._in_period(period),
            )
        ).scalar_one()
        return CloseCheck(DRAFT_ENTRIES, count == 0, {"count": count})

    def _check_trial_balance(self, tenant_id: UUID, period: FiscalPeriod) -> CloseCheck:
        debit, credit = self._session.execute(
            select(
                func.coalesce(func.sum(JournalLine.debit), 0),
                func.coalesce(func.sum(JournalLine.credit), 0),
            )
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.status.in_(BALANCE_STATUSES),
                *self._in_period(period),
            )
        ).one()
        debit = quantize_cents(as_decimal(debit))
        credit = quantize_cents(as_decimal(credit))
        return CloseCheck(
            TRIAL_BALANCE,
            debit == credit,
            {"debit": str(debit), "credit": str(credit)},
        )

    def _check_depreciation_posted(self, tenant_id: UUID, period: FiscalPeriod) -> CloseCheck:
        unposted = self._session.execute(
            select(func.count(AssetDepreciationEntryModel.id)).where(
                AssetDepreciationEntryModel.tenant_id == tenant_id,
                AssetDepreciationEntryModel.is_posted.is_(False),
                AssetDepreciationEntryModel.period_date >= period.start_date,
                AssetDepreciationEntryModel.period_date <= period.end_date,
            )
        ).scalar_one()

        posted_in_period = (
            select(AssetDepreciationEntryModel.id)
            .where(
                AssetDepreciationEntryModel.asset_id == AssetModel.id,
                AssetDepreciationEntryModel.is_posted.is_(True),
                AssetDepreciationEntryModel.period_date >= period.start_date,
                AssetDepreciationEntryModel.period_date <= period.end_date,
            )
            .exists()
        )
        candidates = self._session.execute(
            select(AssetModel).where(
                AssetModel.tenant_id == tenant_id,
                AssetModel.status == AssetStatus.ACTIVE.value,
                AssetModel.useful_life_months > 0,
                (AssetModel.depreciation_start_date.is_(None))
                | (AssetModel.depreciation_start_date <= period.end_date),
                ~posted_in_period,
            )
        ).scalars().all()
        missing = sum(1 for asset in candidates if _charge_due(asset) > ZERO)

        pending = unposted + missing
        return CloseCheck(DEPRECIATION_POSTED, pending == 0, {"pending": pending})

    def _check_unbalanced_entries(self, tenant_id: UUID, period: FiscalPeriod) -> CloseCheck:
        unbalanced = (
            select(JournalLine.journal_entry_id)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalEntry.tenant_id == tenant_id, *self._in_period(period))
            .group_by(JournalLine.journal_entry_id)
            .having(func.sum(JournalLine.debit) != func.sum(JournalLine.credit))
            .subquery()
        )
        count = self._session.execute(
            select(func.count()).select_from(unbalanced)
        ).scalar_one()
        return CloseCheck(UNBALANCED_ENTRIES, count == 0, {"count": count})

    # ------------------------------------------------------------------
    # Close effects
    # ------------------------------------------------------------------

    def _lock_entries(self, tenant_id: UUID, period: FiscalPeriod, actor_id: UUID) -> int:
        entries = self._session.execute(
            select(JournalEntry).where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.status == JournalEntryStatus.POSTED,
                *self._in_period(period),
            )
        ).scalars().all()
        for entry in entries:
            entry.status = JournalEntryStatus.LOCKED
            entry.updated_by_id = actor_id
        self._session.flush()
        return len(entries)

    def _close_year_if_complete(self, period: FiscalPeriod) -> None:
        year = self._session.get(FinancialYear, period.financial_year_id)
        if year is None or year.is_closed:
            return
        still_open = self._session.execute(
            select(func.count(FiscalPeriod.id)).where(
                FiscalPeriod.financial_year_id == year.id,
                FiscalPeriod.status == PeriodStatus.OPEN,
            )
        ).scalar_one()
        if still_open == 0:
            year.is_closed = True
            self._session.flush()
            logger.info("financial_year_closed", extra={"financial_year_id": str(year.id)})


def _charge_due(asset: AssetModel):
    return monthly_charge(
        asset.depreciation_method,
        as_decimal(asset.purchase_price),
        as_decimal(asset.salvage_value),
        as_decimal(asset.current_book_value),
        asset.useful_life_months,
    )
