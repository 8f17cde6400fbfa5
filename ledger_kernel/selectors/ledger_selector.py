"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Balance reporting derived from posted journal lines --
    trial balance, single account balance and general ledger detail.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only POSTED and LOCKED entries count toward balances.
    - Totals of a trial balance over any date range satisfy
      sum(debit) == sum(credit), because every counted entry balances.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.domain.money import ZERO, as_decimal
from ledger_kernel.models.account import LedgerAccount, NormalBalance
from ledger_kernel.models.journal import BALANCE_STATUSES, JournalEntry, JournalLine
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class TrialBalanceRow:
    """Totals of one account over the reporting range."""

    account_id: UUID
    account_code: str
    account_name: str
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        """Net balance (debits - credits)."""
        return self.debit_total - self.credit_total


@dataclass(frozen=True)
class TrialBalance:
    start_date: date | None
    end_date: date | None
    rows: tuple[TrialBalanceRow, ...] = field(default_factory=tuple)

    @property
    def total_debit(self) -> Decimal:
        return sum((r.debit_total for r in self.rows), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((r.credit_total for r in self.rows), ZERO)

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit

    def row_for(self, account_code: str) -> TrialBalanceRow | None:
        for row in self.rows:
            if row.account_code == account_code:
                return row
        return None


@dataclass(frozen=True)
class AccountBalance:
    account_id: UUID
    account_code: str
    debit_total: Decimal
    credit_total: Decimal
    normal_balance: NormalBalance
    as_of: date | None

    @property
    def net(self) -> Decimal:
        """Balance signed by the account's normal side."""
        if self.normal_balance == NormalBalance.DEBIT:
            return self.debit_total - self.credit_total
        return self.credit_total - self.debit_total


@dataclass(frozen=True)
class GeneralLedgerLine:
    entry_id: UUID
    document_number: str | None
    entry_date: date
    description: str | None
    debit: Decimal
    credit: Decimal
    running_balance: Decimal


class LedgerSelector(BaseSelector):
    """Read-side balance queries."""

    def trial_balance(
        self,
        tenant_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> TrialBalance:
        """One row per account with activity in [start_date, end_date]."""
        query = (
            select(
                LedgerAccount.id,
                LedgerAccount.code,
                LedgerAccount.name,
                func.sum(JournalLine.debit).label("debit_total"),
                func.sum(JournalLine.credit).label("credit_total"),
            )
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .join(LedgerAccount, JournalLine.account_id == LedgerAccount.id)
            .where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.status.in_(BALANCE_STATUSES),
            )
            .group_by(LedgerAccount.id, LedgerAccount.code, LedgerAccount.name)
            .order_by(LedgerAccount.code)
        )
        if start_date is not None:
            query = query.where(JournalEntry.entry_date >= start_date)
        if end_date is not None:
            query = query.where(JournalEntry.entry_date <= end_date)

        rows = tuple(
            TrialBalanceRow(
                account_id=row.id,
                account_code=row.code,
                account_name=row.name,
                debit_total=as_decimal(row.debit_total),
                credit_total=as_decimal(row.credit_total),
            )
            for row in self.session.execute(query)
        )
        return TrialBalance(start_date=start_date, end_date=end_date, rows=rows)

    def account_balance(
        self,
        tenant_id: UUID,
        account_id: UUID,
        as_of: date | None = None,
    ) -> AccountBalance:
        account = self.session.execute(
            select(LedgerAccount).where(
                LedgerAccount.id == account_id,
                LedgerAccount.tenant_id == tenant_id,
            )
        ).scalar_one()

        query = (
            select(
                func.coalesce(func.sum(JournalLine.debit), 0),
                func.coalesce(func.sum(JournalLine.credit), 0),
            )
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.status.in_(BALANCE_STATUSES),
                JournalLine.account_id == account_id,
            )
        )
        if as_of is not None:
            query = query.where(JournalEntry.entry_date <= as_of)
        debit, credit = self.session.execute(query).one()

        return AccountBalance(
            account_id=account.id,
            account_code=account.code,
            debit_total=as_decimal(debit),
            credit_total=as_decimal(credit),
            normal_balance=account.normal_balance,
            as_of=as_of,
        )

    def balance_by_code(self, tenant_id: UUID, account_code: str, as_of: date | None = None) -> Decimal:
        """Net debit-minus-credit balance of an account looked up by code (0 if absent)."""
        account_id = self.session.execute(
            select(LedgerAccount.id).where(
                LedgerAccount.tenant_id == tenant_id,
                LedgerAccount.code == account_code,
            )
        ).scalar_one_or_none()
        if account_id is None:
            return ZERO
        balance = self.account_balance(tenant_id, account_id, as_of)
        return balance.debit_total - balance.credit_total

    def general_ledger(
        self,
        tenant_id: UUID,
        account_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[GeneralLedgerLine]:
        """
        Line-level detail of one account with a running debit-minus-credit
        balance.  The running balance starts from the balance before
        ``start_date``.
        """
        opening = ZERO
        if start_date is not None:
            before = self.session.execute(
                select(
                    func.coalesce(func.sum(JournalLine.debit), 0),
                    func.coalesce(func.sum(JournalLine.credit), 0),
                )
                .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
                .where(
                    JournalEntry.tenant_id == tenant_id,
                    JournalEntry.status.in_(BALANCE_STATUSES),
                    JournalLine.account_id == account_id,
                    JournalEntry.entry_date < start_date,
                )
            ).one()
            opening = as_decimal(before[0]) - as_decimal(before[1])

        query = (
            select(JournalLine, JournalEntry)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.status.in_(BALANCE_STATUSES),
                JournalLine.account_id == account_id,
            )
            .order_by(
                JournalEntry.entry_date,
                JournalEntry.posted_at,
                JournalEntry.document_sequence_number,
                JournalLine.line_number,
            )
        )
        if start_date is not None:
            query = query.where(JournalEntry.entry_date >= start_date)
        if end_date is not None:
            query = query.where(JournalEntry.entry_date <= end_date)

        running = opening
        result = []
        for line, entry in self.session.execute(query):
            debit = as_decimal(line.debit)
            credit = as_decimal(line.credit)
            running += debit - credit
            result.append(
                GeneralLedgerLine(
                    entry_id=entry.id,
                    document_number=entry.document_sequence_number,
                    entry_date=entry.entry_date,
                    description=line.description or entry.memo,
                    debit=debit,
                    credit=credit,
                    running_balance=running,
                )
            )
        return result
