"""
ledger_services.depreciation_service -- Monthly depreciation batch.

Responsibility:
    For one tenant and one period date, compute the monthly charge of every
    eligible fixed asset, record an AssetDepreciationEntry, post
    Dr Depreciation Expense / Cr Accumulated Depreciation through the
    PostingEngine and roll the asset's accumulated depreciation and book
    value forward.

Architecture position:
    Services -- the one job that synthesizes its own journal lines.
    Composes the kernel PostingEngine; reads and writes the fixed-asset
    register in ``ledger_modules.assets``.

Invariants enforced:
    - At most one depreciation entry per (asset, period_date): assets that
      already have one are skipped, and a concurrent batch that loses the
      unique-constraint race skips the asset instead of failing.
    - A charge never takes book value below salvage value.
    - Each journal entry is keyed on the depreciation entry id, so the
      posting itself is idempotent.

Failure modes:
    - AuthorizationError / TenantBlockedError from TenantGuard.
    - NoPeriodError / PeriodClosedError if ``period_date`` is not in an
      open period.
    - DepreciationAccountsMissingError if the expense or contra account is
      missing or inactive.

Audit relevance:
    One JOURNAL_POSTED record per asset and one DEPRECIATION_BATCH_RUN
    record per batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_config import get_active_policy
from ledger_config.schema import PostingPolicy
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import CallerIdentity, Capability, LineDescriptor
from ledger_kernel.domain.money import ZERO, as_decimal, quantize_cents
from ledger_kernel.exceptions import DepreciationAccountsMissingError, LedgerError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import LedgerAccount
from ledger_kernel.services.posting_service import PostingEngine
from ledger_modules.assets.helpers import monthly_charge
from ledger_modules.assets.orm import AssetDepreciationEntryModel, AssetModel, AssetStatus

logger = get_logger("services.depreciation")

DEPRECIATION_DOC_TYPE = "depreciation"


@dataclass(frozen=True)
class DepreciationLine:
    """One asset's charge in a batch."""
    asset_id: UUID
    asset_tag: str
    depreciation_entry_id: UUID
    journal_entry_id: UUID
    amount: Decimal
    book_value_after: Decimal


@dataclass(frozen=True)
class DepreciationBatchResult:
    success: bool
    assets_processed: int
    period_date: date
    total_depreciation: Decimal
    entries: tuple[DepreciationLine, ...] = ()
    batch_id: UUID | None = None


class DepreciationService:
    """Runs the depreciation batch for one session."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: PostingPolicy | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._policy = policy or get_active_policy()
        self._engine = PostingEngine(session, self._clock, self._policy)

    def run_depreciation_batch(
        self,
        caller: CallerIdentity,
        tenant_id: UUID,
        period_date: date,
    ) -> DepreciationBatchResult:
        batch_id = uuid4()
        with LogContext.bind(
            tenant_id=tenant_id,
            actor_id=caller.actor_id,
            correlation_id=batch_id,
            job="depreciation",
        ):
            self._engine.guard.require(caller, tenant_id, Capability.FINANCE)
            try:
                self._engine.periods.require_open_period(tenant_id, period_date)
                expense_id, contra_id = self._resolve_accounts(tenant_id)
            except LedgerError as exc:
                logger.warning(
                    "depreciation_batch_rejected",
                    extra={"period_date": str(period_date), "error_code": exc.code},
                )
                raise

            logger.info("depreciation_batch_started", extra={"period_date": str(period_date)})

            lines: list[DepreciationLine] = []
            for asset in self._eligible_assets(tenant_id, period_date):
                line = self._depreciate(caller, asset, period_date, expense_id, contra_id)
                if line is not None:
                    lines.append(line)

            total = quantize_cents(sum((line.amount for line in lines), ZERO))
            self._engine.auditor.record_depreciation_batch(
                tenant_id,
                caller.actor_id,
                batch_id,
                {
                    "period_date": period_date,
                    "assets_processed": len(lines),
                    "total_depreciation": total,
                    "journal_entry_ids": [line.journal_entry_id for line in lines],
                },
            )
            logger.info(
                "depreciation_batch_completed",
                extra={
                    "period_date": str(period_date),
                    "assets_processed": len(lines),
                    "total_depreciation": str(total),
                },
            )
            return DepreciationBatchResult(
                success=True,
                assets_processed=len(lines),
                period_date=period_date,
                total_depreciation=total,
                entries=tuple(lines),
                batch_id=batch_id,
            )

    def _resolve_accounts(self, tenant_id: UUID) -> tuple[UUID, UUID]:
        codes = self._policy.accounts
        wanted = [codes.depreciation_expense, codes.accumulated_depreciation]
        found = {
            account.code: account
            for account in self._session.execute(
                select(LedgerAccount).where(
                    LedgerAccount.tenant_id == tenant_id,
                    LedgerAccount.code.in_(wanted),
                    LedgerAccount.is_active.is_(True),
                )
            ).scalars()
        }
        missing = [code for code in wanted if code not in found]
        if missing:
            raise DepreciationAccountsMissingError(str(tenant_id), missing)
        return found[codes.depreciation_expense].id, found[codes.accumulated_depreciation].id

    def _eligible_assets(self, tenant_id: UUID, period_date: date) -> list[AssetModel]:
        already_done = (
            select(AssetDepreciationEntryModel.id)
            .where(
                AssetDepreciationEntryModel.asset_id == AssetModel.id,
                AssetDepreciationEntryModel.period_date == period_date,
            )
            .exists()
        )
        return list(
            self._session.execute(
                select(AssetModel)
                .where(
                    AssetModel.tenant_id == tenant_id,
                    AssetModel.status == AssetStatus.ACTIVE.value,
                    AssetModel.useful_life_months > 0,
                    AssetModel.current_book_value > AssetModel.salvage_value,
                    (AssetModel.depreciation_start_date.is_(None))
                    | (AssetModel.depreciation_start_date <= period_date),
                    ~already_done,
                )
                .order_by(AssetModel.asset_tag)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def _depreciate(
        self,
        caller: CallerIdentity,
        asset: AssetModel,
        period_date: date,
        expense_id: UUID,
        contra_id: UUID,
    ) -> DepreciationLine | None:
        book_value = as_decimal(asset.current_book_value)
        accumulated = as_decimal(asset.accumulated_depreciation)
        amount = monthly_charge(
            asset.depreciation_method,
            as_decimal(asset.purchase_price),
            as_decimal(asset.salvage_value),
            book_value,
            asset.useful_life_months,
        )
        if amount <= ZERO:
            logger.info(
                "depreciation_asset_skipped",
                extra={"asset_id": str(asset.id), "reason": "zero_charge"},
            )
            return None

        new_accumulated = quantize_cents(accumulated + amount)
        new_book_value = quantize_cents(book_value - amount)
        dep_entry = AssetDepreciationEntryModel(
            tenant_id=asset.tenant_id,
            asset_id=asset.id,
            period_date=period_date,
            depreciation_amount=amount,
            accumulated_depreciation=new_accumulated,
            book_value_after=new_book_value,
            is_posted=False,
            created_by_id=caller.actor_id,
        )
        try:
            with self._session.begin_nested():
                self._session.add(dep_entry)
                self._session.flush()
        except IntegrityError:
            logger.info(
                "depreciation_asset_skipped",
                extra={"asset_id": str(asset.id), "reason": "already_recorded"},
            )
            return None

        result = self._engine.post(
            caller,
            asset.tenant_id,
            DEPRECIATION_DOC_TYPE,
            dep_entry.id,
            period_date,
            f"Depreciation: {asset.name} ({period_date:%b %Y})",
            [
                LineDescriptor.dr(expense_id, amount, f"Depreciation {asset.asset_tag}", asset_id=asset.id),
                LineDescriptor.cr(contra_id, amount, f"Accumulated depreciation {asset.asset_tag}", asset_id=asset.id),
            ],
        )

        asset.accumulated_depreciation = new_accumulated
        asset.current_book_value = new_book_value
        asset.updated_by_id = caller.actor_id
        dep_entry.is_posted = True
        dep_entry.journal_entry_id = result.entry_id
        self._session.flush()

        logger.info(
            "depreciation_asset_posted",
            extra={
                "asset_id": str(asset.id),
                "asset_tag": asset.asset_tag,
                "amount": str(amount),
                "book_value_after": str(new_book_value),
                "entry_id": str(result.entry_id),
            },
        )
        return DepreciationLine(
            asset_id=asset.id,
            asset_tag=asset.asset_tag,
            depreciation_entry_id=dep_entry.id,
            journal_entry_id=result.entry_id,
            amount=amount,
            book_value_after=new_book_value,
        )
