"""Write-side services of the ledger kernel."""

from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.authority import TenantGuard
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.posting_service import PostingEngine, PostingResult
from ledger_kernel.services.reversal_service import ReversalEngine, ReversalResult
from ledger_kernel.services.sequence_service import DocumentSequencer

__all__ = [
    "AccountService",
    "AuditorService",
    "DocumentSequencer",
    "PeriodService",
    "PostingEngine",
    "PostingResult",
    "ReversalEngine",
    "ReversalResult",
    "TenantGuard",
]
