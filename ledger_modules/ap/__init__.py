"""Accounts payable: vendor bills and their postings."""

from ledger_modules.ap.orm import BillModel, BillStatus
from ledger_modules.ap.service import APPostingService

__all__ = ["APPostingService", "BillModel", "BillStatus"]
