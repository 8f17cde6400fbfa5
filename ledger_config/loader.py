"""
Policy loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML policy file and parses it into the frozen
``ledger_config.schema.PostingPolicy``.  Runtime callers should go through
``ledger_config.get_active_policy()``; ``load_policy`` is for tests and for
pinning an explicit version.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Control-account module or chart account type not recognised
  -> ``ValueError``.

Audit relevance
---------------
``compute_checksum`` is stamped on the parsed policy so every posting can be
tied to the exact configuration document that governed it.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    AccountCodes,
    ChartAccountDef,
    IntegrityPenalties,
    OverrideRules,
    PostingPolicy,
    ReconciliationRules,
    SequenceRules,
)

VALID_CONTROL_MODULES = frozenset({"AR", "AP", "asset", "depreciation"})
VALID_ACCOUNT_TYPES = frozenset({"asset", "liability", "equity", "revenue", "expense"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_override(data: dict[str, Any]) -> OverrideRules:
    return OverrideRules(
        min_reason_length=int(data.get("min_reason_length", 10)),
        source_prefix=data.get("source_prefix", "override_"),
    )


def parse_sequence(data: dict[str, Any]) -> SequenceRules:
    return SequenceRules(
        padding=int(data.get("padding", 6)),
        default_prefix_pattern=data.get("default_prefix_pattern", "JE-{TYPE3}-"),
        prefixes=dict(data.get("prefixes") or {}),
    )


def parse_accounts(data: dict[str, Any]) -> AccountCodes:
    return AccountCodes(**{key: str(value) for key, value in data.items()})


def parse_reconciliation(data: dict[str, Any]) -> ReconciliationRules:
    statuses = data["statuses"]
    return ReconciliationRules(
        tolerance=Decimal(str(data.get("tolerance", "0.01"))),
        ar_open_statuses=tuple(statuses["ar"]),
        ap_open_statuses=tuple(statuses["ap"]),
        revenue_statuses=tuple(statuses["revenue"]),
        asset_excluded_statuses=tuple(statuses["asset_excluded"]),
    )


def parse_penalties(data: dict[str, Any]) -> IntegrityPenalties:
    return IntegrityPenalties(**{key: int(value) for key, value in data.items()})


def parse_chart(items: list[dict[str, Any]]) -> tuple[ChartAccountDef, ...]:
    chart = []
    for item in items:
        if item["account_type"] not in VALID_ACCOUNT_TYPES:
            raise ValueError(
                f"Chart account {item['code']} has unknown type {item['account_type']!r}"
            )
        chart.append(
            ChartAccountDef(
                code=str(item["code"]),
                name=item["name"],
                account_type=item["account_type"],
                control_module=item.get("control_module"),
                normal_balance=item.get("normal_balance"),
            )
        )
    return tuple(chart)


def parse_policy(data: dict[str, Any], source_path: str | None = None) -> PostingPolicy:
    """
    Parse a ``PostingPolicy`` from a dict.

    Postconditions:
        - ``checksum`` is computed over ``data`` exactly as given.
    """
    control_accounts = {str(code): module for code, module in data["control_accounts"].items()}
    unknown = sorted(set(control_accounts.values()) - VALID_CONTROL_MODULES)
    if unknown:
        raise ValueError(f"Unknown control module(s) in policy: {unknown}")

    return PostingPolicy(
        version=int(data["version"]),
        checksum=compute_checksum(data),
        automated_source_types=frozenset(data["automated_source_types"]),
        control_accounts=control_accounts,
        override=parse_override(data.get("override") or {}),
        sequence=parse_sequence(data.get("sequence") or {}),
        accounts=parse_accounts(data["accounts"]),
        reconciliation=parse_reconciliation(data["reconciliation"]),
        integrity_penalties=parse_penalties(data.get("integrity_penalties") or {}),
        default_chart=parse_chart(data.get("default_chart") or []),
        source_path=source_path,
    )


def load_policy(path: Path | str) -> PostingPolicy:
    """Load and parse the policy document at ``path``."""
    path = Path(path)
    return parse_policy(load_yaml_file(path), source_path=str(path))
