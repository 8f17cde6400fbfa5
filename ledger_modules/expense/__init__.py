from ledger_modules.expense.orm import ExpenseModel
from ledger_modules.expense.service import ExpensePostingService

__all__ = ["ExpenseModel", "ExpensePostingService"]
