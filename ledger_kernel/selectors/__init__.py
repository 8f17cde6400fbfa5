"""Read-only selectors of the ledger kernel."""

from ledger_kernel.selectors.journal_selector import (
    JournalEntryDTO,
    JournalLineDTO,
    JournalSelector,
)
from ledger_kernel.selectors.ledger_selector import (
    AccountBalance,
    GeneralLedgerLine,
    LedgerSelector,
    TrialBalance,
    TrialBalanceRow,
)

__all__ = [
    "AccountBalance",
    "GeneralLedgerLine",
    "JournalEntryDTO",
    "JournalLineDTO",
    "JournalSelector",
    "LedgerSelector",
    "TrialBalance",
    "TrialBalanceRow",
]
