"""
ledger_services.reconciliation_service -- Subledger reconciliation and integrity score.

Responsibility:
    Compare each control account's ledger balance with the total of the
    subledger it mirrors (invoices, bills, fixed assets) and record the
    outcome per module.  ``run_full_reconciliation`` adds ledger-wide
    integrity checks and folds everything into a score out of 100.

Architecture position:
    Services -- read-mostly job over posted data.  Its only writes are the
    append-only SubledgerReconciliationLog rows and the audit record.

Invariants enforced:
    - Ledger balances count POSTED and LOCKED entries only.
    - ``is_reconciled`` is ``|variance| < tolerance`` (policy, 0.01).
    - Cash has no subledger: it is reported and always reconciled.
    - The score is 100 minus the policy penalties, clamped at 0.

Failure modes:
    - AuthorizationError / TenantBlockedError from TenantGuard.
    - Mismatches are reported, never raised.

Audit relevance:
    One RECONCILIATION_RUN audit record per run, with per-module variances.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_config import get_active_policy
from ledger_config.schema import PostingPolicy
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import CallerIdentity, Capability
from ledger_kernel.domain.money import ZERO, as_decimal, quantize_cents
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import AccountType, LedgerAccount
from ledger_kernel.models.journal import (
    BALANCE_STATUSES,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from ledger_kernel.models.reconciliation_log import SubledgerReconciliationLog
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.authority import TenantGuard
from ledger_modules.ap.orm import BillModel
from ledger_modules.ar.orm import InvoiceModel
from ledger_modules.assets.orm import AssetModel

logger = get_logger("services.reconciliation")

AR = "AR"
AP = "AP"
ASSET = "asset"
DEPRECIATION = "depreciation"
REVENUE = "revenue"
CASH = "cash"

MODULE_ORDER = (AR, AP, ASSET, DEPRECIATION, REVENUE, CASH)


@dataclass(frozen=True)
class ModuleReconciliation:
    module: str
    gl_balance: Decimal
    subledger_balance: Decimal | None
    variance: Decimal
    is_reconciled: bool
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ReconciliationReport:
    run_id: UUID
    tenant_id: UUID
    reconciled_at: datetime
    modules: tuple[ModuleReconciliation, ...]

    @property
    def all_reconciled(self) -> bool:
        return all(m.is_reconciled for m in self.modules)

    @property
    def mismatches(self) -> list[ModuleReconciliation]:
        return [m for m in self.modules if not m.is_reconciled]

    def module(self, name: str) -> ModuleReconciliation:
        for m in self.modules:
            if m.module == name:
                return m
        raise KeyError(name)


@dataclass(frozen=True)
class IntegrityReport:
    """Composite ledger health for one tenant."""
    score: int
    trial_balance: dict[str, Any]
    orphaned_count: int
    unbalanced_entry_count: int
    modules: tuple[ModuleReconciliation, ...]
    cash_balance: Decimal
    issues: tuple[dict[str, Any], ...]


class ReconciliationService:
    """Subledger reconciliation for one session."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: PostingPolicy | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._policy = policy or get_active_policy()
        self._guard = TenantGuard(session)
        self._auditor = AuditorService(session, self._clock)
        self._ledger = LedgerSelector(session)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def reconcile_subledgers(self, caller: CallerIdentity, tenant_id: UUID) -> ReconciliationReport:
        run_id = uuid4()
        with LogContext.bind(
            tenant_id=tenant_id,
            actor_id=caller.actor_id,
            correlation_id=run_id,
            job="reconciliation",
        ):
            self._guard.require(caller, tenant_id, Capability.FINANCE)
            return self._reconcile(caller, tenant_id, run_id)

    def run_full_reconciliation(self, caller: CallerIdentity, tenant_id: UUID) -> IntegrityReport:
        run_id = uuid4()
        with LogContext.bind(
            tenant_id=tenant_id,
            actor_id=caller.actor_id,
            correlation_id=run_id,
            job="reconciliation",
        ):
            self._guard.require(caller, tenant_id, Capability.FINANCE)
            report = self._reconcile(caller, tenant_id, run_id)
            penalties = self._policy.integrity_penalties

            score = 100
            issues: list[dict[str, Any]] = []

            trial_balance = self._ledger.trial_balance(tenant_id)
            debits = quantize_cents(trial_balance.total_debit)
            credits = quantize_cents(trial_balance.total_credit)
            tb_ok = debits == credits
            if not tb_ok:
                score -= penalties.trial_balance
                issues.append({
                    "check": "trial_balance",
                    "debits": str(debits),
                    "credits": str(credits),
                    "variance": str(debits - credits),
                })

            orphaned = self._orphan_count(tenant_id)
            if orphaned:
                score -= penalties.orphaned
                issues.append({"check": "orphaned", "count": orphaned})

            unbalanced = self._unbalanced_entry_count(tenant_id)
            if unbalanced:
                score -= penalties.unbalanced_entries
                issues.append({"check": "unbalanced_entries", "count": unbalanced})

            for mismatch in report.mismatches:
                score -= penalties.module_mismatch
                issues.append({
                    "check": f"{mismatch.module}_reconciliation",
                    "ledger": str(mismatch.gl_balance),
                    "subledger": str(mismatch.subledger_balance),
                    "variance": str(mismatch.variance),
                })

            score = max(score, 0)
            logger.info(
                "integrity_score_computed",
                extra={"score": score, "issue_count": len(issues)},
            )
            return IntegrityReport(
                score=score,
                trial_balance={
                    "total_debits": debits,
                    "total_credits": credits,
                    "balanced": tb_ok,
                },
                orphaned_count=orphaned,
                unbalanced_entry_count=unbalanced,
                modules=report.modules,
                cash_balance=report.module(CASH).gl_balance,
                issues=tuple(issues),
            )

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _reconcile(self, caller: CallerIdentity, tenant_id: UUID, run_id: UUID) -> ReconciliationReport:
        codes = self._policy.accounts
        rules = self._policy.reconciliation
        now = self._clock.now()

        live_assets = (
            AssetModel.tenant_id == tenant_id,
            AssetModel.status.not_in(rules.asset_excluded_statuses),
        )
        computed = [
            (AR, self._code_balance(tenant_id, codes.accounts_receivable),
             self._sum(InvoiceModel.total_amount, InvoiceModel.tenant_id == tenant_id,
                       InvoiceModel.status.in_(rules.ar_open_statuses)),
             {"account_code": codes.accounts_receivable, "statuses": list(rules.ar_open_statuses)}),
            (AP, ZERO - self._code_balance(tenant_id, codes.accounts_payable),
             self._sum(BillModel.total_amount, BillModel.tenant_id == tenant_id,
                       BillModel.status.in_(rules.ap_open_statuses)),
             {"account_code": codes.accounts_payable, "statuses": list(rules.ap_open_statuses)}),
            (ASSET, self._code_balance(tenant_id, codes.fixed_asset),
             self._sum(AssetModel.purchase_price, *live_assets),
             {"account_code": codes.fixed_asset}),
            (DEPRECIATION, ZERO - self._code_balance(tenant_id, codes.accumulated_depreciation),
             self._sum(AssetModel.accumulated_depreciation, *live_assets),
             {"account_code": codes.accumulated_depreciation}),
            (REVENUE, self._revenue_balance(tenant_id),
             self._sum(InvoiceModel.total_amount, InvoiceModel.tenant_id == tenant_id,
                       InvoiceModel.status.in_(rules.revenue_statuses)),
             {"account_type": AccountType.REVENUE.value, "statuses": list(rules.revenue_statuses)}),
            (CASH, self._code_balance(tenant_id, codes.cash), None,
             {"account_code": codes.cash}),
        ]

        results = []
        for module, gl_balance, subledger_balance, details in computed:
            gl_balance = quantize_cents(gl_balance)
            if subledger_balance is None:
                variance = ZERO
            else:
                subledger_balance = quantize_cents(subledger_balance)
                variance = gl_balance - subledger_balance
            reconciled = abs(variance) < rules.tolerance

            self._session.add(SubledgerReconciliationLog(
                tenant_id=tenant_id,
                reconciliation_date=now,
                module=module,
                gl_balance=gl_balance,
                subledger_balance=subledger_balance,
                variance=variance,
                is_reconciled=reconciled,
                details={**details, "run_id": str(run_id)},
            ))
            logger.info(
                "reconciliation_module_recorded",
                extra={
                    "recon_module": module,
                    "gl_balance": str(gl_balance),
                    "subledger_balance": None if subledger_balance is None else str(subledger_balance),
                    "variance": str(variance),
                    "is_reconciled": reconciled,
                },
            )
            results.append(ModuleReconciliation(
                module=module,
                gl_balance=gl_balance,
                subledger_balance=subledger_balance,
                variance=variance,
                is_reconciled=reconciled,
                details=details,
            ))
        self._session.flush()

        report = ReconciliationReport(
            run_id=run_id,
            tenant_id=tenant_id,
            reconciled_at=now,
            modules=tuple(results),
        )
        self._auditor.record_reconciliation(
            tenant_id,
            caller.actor_id,
            run_id,
            {
                m.module: {"variance": m.variance, "is_reconciled": m.is_reconciled}
                for m in report.modules
            },
        )
        if report.mismatches:
            logger.warning(
                "reconciliation_mismatch",
                extra={"modules": [m.module for m in report.mismatches]},
            )
        return report

    def _code_balance(self, tenant_id: UUID, account_code: str) -> Decimal:
        """Debit minus credit on one account."""
        return self._ledger.balance_by_code(tenant_id, account_code)

    def _revenue_balance(self, tenant_id: UUID) -> Decimal:
        """Credit minus debit over every revenue-type account."""
        debit, credit = self._session.execute(
            select(
                func.coalesce(func.sum(JournalLine.debit), 0),
                func.coalesce(func.sum(JournalLine.credit), 0),
            )
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .join(LedgerAccount, JournalLine.account_id == LedgerAccount.id)
            .where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.status.in_(BALANCE_STATUSES),
                LedgerAccount.account_type == AccountType.REVENUE,
            )
        ).one()
        return as_decimal(credit) - as_decimal(debit)

    def _sum(self, column, *criteria) -> Decimal:
        return as_decimal(
            self._session.execute(
                select(func.coalesce(func.sum(column), 0)).where(*criteria)
            ).scalar_one()
        )

    # ------------------------------------------------------------------
    # Integrity checks
    # ------------------------------------------------------------------

    def _orphan_count(self, tenant_id: UUID) -> int:
        """Lines without an entry, plus non-draft entries without lines."""
        orphan_lines = self._session.execute(
            select(func.count(JournalLine.id))
            .join(LedgerAccount, JournalLine.account_id == LedgerAccount.id)
            .outerjoin(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(LedgerAccount.tenant_id == tenant_id, JournalEntry.id.is_(None))
        ).scalar_one()

        has_lines = (
            select(JournalLine.id)
            .where(JournalLine.journal_entry_id == JournalEntry.id)
            .exists()
        )
        empty_entries = self._session.execute(
            select(func.count(JournalEntry.id)).where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.status != JournalEntryStatus.DRAFT,
                ~has_lines,
            )
        ).scalar_one()
        return orphan_lines + empty_entries

    def _unbalanced_entry_count(self, tenant_id: UUID) -> int:
        unbalanced = (
            select(JournalLine.journal_entry_id)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalEntry.tenant_id == tenant_id)
            .group_by(JournalLine.journal_entry_id)
            .having(func.sum(JournalLine.debit) != func.sum(JournalLine.credit))
            .subquery()
        )
        return self._session.execute(select(func.count()).select_from(unbalanced)).scalar_one()
