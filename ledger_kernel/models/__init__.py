"""Persistence models for the ledger kernel."""

from ledger_kernel.models.account import (
    AccountType,
    ControlModule,
    LedgerAccount,
    NormalBalance,
)
from ledger_kernel.models.audit_event import AuditAction, AuditEvent
from ledger_kernel.models.close_log import PeriodCloseLog
from ledger_kernel.models.control_override import ControlAccountOverride
from ledger_kernel.models.document_sequence import DocumentSequence
from ledger_kernel.models.fiscal_period import FinancialYear, FiscalPeriod, PeriodStatus
from ledger_kernel.models.journal import (
    BALANCE_STATUSES,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from ledger_kernel.models.reconciliation_log import SubledgerReconciliationLog
from ledger_kernel.models.tenant import BLOCKED_ORG_STATES, OrgState, Tenant

__all__ = [
    "AccountType",
    "AuditAction",
    "AuditEvent",
    "BALANCE_STATUSES",
    "BLOCKED_ORG_STATES",
    "ControlAccountOverride",
    "ControlModule",
    "DocumentSequence",
    "FinancialYear",
    "FiscalPeriod",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "LedgerAccount",
    "NormalBalance",
    "OrgState",
    "PeriodCloseLog",
    "PeriodStatus",
    "SubledgerReconciliationLog",
    "Tenant",
]
