"""Accounts receivable: invoices, their postings and aging."""

from ledger_modules.ar.aging import STANDARD_BUCKETS, AgeBucket, ARAgingSelector, AgingReport
from ledger_modules.ar.orm import InvoiceModel, InvoiceStatus
from ledger_modules.ar.service import ARPostingService

__all__ = [
    "ARAgingSelector",
    "ARPostingService",
    "AgeBucket",
    "AgingReport",
    "InvoiceModel",
    "InvoiceStatus",
    "STANDARD_BUCKETS",
]
