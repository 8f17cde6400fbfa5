"""
PostingPolicy schema.

The policy is the human-authored, versioned source of every rule the
engine must not infer from naming: which document types are automated,
which accounts are control accounts, how document numbers look, which
account codes the batch jobs use, and how the integrity score is
weighted.  YAML is parsed into these frozen types by ``loader.py``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class OverrideRules:
    """Control-account override path."""

    min_reason_length: int = 10
    source_prefix: str = "override_"


@dataclass(frozen=True)
class SequenceRules:
    """Document number format: ``prefix`` + zero-padded counter."""

    padding: int = 6
    default_prefix_pattern: str = "JE-{TYPE3}-"
    prefixes: dict[str, str] = field(default_factory=dict)

    def prefix_for(self, document_type: str) -> str:
        if document_type in self.prefixes:
            return self.prefixes[document_type]
        return self.default_prefix_pattern.replace("{TYPE3}", document_type[:3].upper())

    def format(self, prefix: str, number: int) -> str:
        return f"{prefix}{number:0{self.padding}d}"


@dataclass(frozen=True)
class AccountCodes:
    """Well-known account codes used by automated postings and jobs."""

    cash: str
    accounts_receivable: str
    accounts_payable: str
    revenue: str
    operating_expense: str
    cost_of_goods_sold: str
    fixed_asset: str
    accumulated_depreciation: str
    depreciation_expense: str
    gain_on_disposal: str
    loss_on_disposal: str


@dataclass(frozen=True)
class ReconciliationRules:
    """Subledger statuses counted per module and the match tolerance."""

    tolerance: Decimal
    ar_open_statuses: tuple[str, ...]
    ap_open_statuses: tuple[str, ...]
    revenue_statuses: tuple[str, ...]
    asset_excluded_statuses: tuple[str, ...]


@dataclass(frozen=True)
class IntegrityPenalties:
    """Points deducted from the integrity score of 100."""

    trial_balance: int = 30
    orphaned: int = 10
    unbalanced_entries: int = 20
    module_mismatch: int = 10


@dataclass(frozen=True)
class ChartAccountDef:
    """One account seeded into a new tenant's chart."""

    code: str
    name: str
    account_type: str
    control_module: str | None = None
    normal_balance: str | None = None


@dataclass(frozen=True)
class PostingPolicy:
    """
    Complete, versioned posting policy.

    ``checksum`` identifies the exact document the policy was parsed from.
    """

    version: int
    checksum: str
    automated_source_types: frozenset[str]
    control_accounts: dict[str, str]
    override: OverrideRules
    sequence: SequenceRules
    accounts: AccountCodes
    reconciliation: ReconciliationRules
    integrity_penalties: IntegrityPenalties
    default_chart: tuple[ChartAccountDef, ...] = ()
    source_path: str | None = None

    def is_automated(self, doc_type: str) -> bool:
        return doc_type in self.automated_source_types

    def control_module_for(self, account_code: str) -> str | None:
        return self.control_accounts.get(account_code)

    def describe(self) -> dict[str, Any]:
        return {"version": self.version, "checksum": self.checksum}
