"""
ledger_services._close_types -- Period close DTOs.

Responsibility:
    Frozen dataclasses returned by ``PeriodCloseService``: one
    ``CloseCheck`` per pre-close check and the ``PeriodCloseResult`` that
    carries them.

Invariants enforced:
    - ``CloseCheck.as_dict()`` is JSON-safe (amounts rendered as strings)
      and is exactly what lands in ``PeriodCloseLog.pre_close_checks``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

DRAFT_ENTRIES = "draft_entries"
TRIAL_BALANCE = "trial_balance"
DEPRECIATION_POSTED = "depreciation_posted"
UNBALANCED_ENTRIES = "unbalanced_entries"

CHECK_ORDER = (DRAFT_ENTRIES, TRIAL_BALANCE, DEPRECIATION_POSTED, UNBALANCED_ENTRIES)


@dataclass(frozen=True)
class CloseCheck:
    """Outcome of one pre-close check."""
    name: str
    passed: bool
    fields: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {**self.fields, "passed": self.passed}


@dataclass(frozen=True)
class PeriodCloseResult:
    """
    Outcome of one close attempt.

    A failed close is a normal result, not an exception: ``success`` is
    False and ``checks`` says which checks blocked it.
    """
    success: bool
    period_id: UUID
    checks: dict[str, dict[str, Any]]
    log_id: UUID
    closed_at: datetime | None = None
    locked_entry_count: int = 0

    @property
    def failed_checks(self) -> list[str]:
        return [name for name in CHECK_ORDER if not self.checks[name]["passed"]]
