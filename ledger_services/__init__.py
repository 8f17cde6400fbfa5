"""
Jobs over posted ledger data: period close, depreciation batch and
subledger reconciliation.
"""

from ledger_services._close_types import CloseCheck, PeriodCloseResult
from ledger_services.depreciation_service import (
    DepreciationBatchResult,
    DepreciationLine,
    DepreciationService,
)
from ledger_services.period_close_service import PeriodCloseService
from ledger_services.reconciliation_service import (
    IntegrityReport,
    ModuleReconciliation,
    ReconciliationReport,
    ReconciliationService,
)

__all__ = [
    "CloseCheck",
    "DepreciationBatchResult",
    "DepreciationLine",
    "DepreciationService",
    "IntegrityReport",
    "ModuleReconciliation",
    "PeriodCloseResult",
    "PeriodCloseService",
    "ReconciliationReport",
    "ReconciliationService",
]
