"""Expense posting: Dr Operating Expenses 5100 / Cr Cash 1100."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config.schema import PostingPolicy
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import CallerIdentity, LineDescriptor
from ledger_kernel.domain.money import as_decimal
from ledger_modules._posting import ModulePoster
from ledger_modules.expense.orm import ExpenseModel

EXPENSE_DOC_TYPE = "expense"


class ExpensePostingService:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: PostingPolicy | None = None,
    ):
        self._poster = ModulePoster(session, clock, policy)

    def post_expense(self, caller: CallerIdentity, expense: ExpenseModel) -> UUID:
        codes = self._poster.codes
        amount = as_decimal(expense.amount)
        expense_id = self._poster.account_id(expense.tenant_id, codes.operating_expense)
        cash_id = self._poster.account_id(expense.tenant_id, codes.cash)
        label = expense.description or expense.category

        result = self._poster.post(
            caller,
            expense.tenant_id,
            EXPENSE_DOC_TYPE,
            expense.id,
            expense.expense_date,
            f"Expense: {label}",
            [
                LineDescriptor.dr(expense_id, amount, expense.category),
                LineDescriptor.cr(cash_id, amount, label),
            ],
        )
        return result.entry_id
