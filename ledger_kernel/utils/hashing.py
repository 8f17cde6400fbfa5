"""
Deterministic hashing for the audit trail.

Every hash produced here must be reproducible from the stored row alone, so
payloads are canonicalized (sorted keys, no whitespace, normalized Decimals)
before digesting.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

GENESIS_MARKER = "GENESIS"


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        # 100.00 and 100 must hash identically
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """Render ``data`` as canonical JSON (sorted keys, compact separators)."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_json_default)


def hash_payload(payload: dict) -> str:
    """SHA-256 hex digest of the canonical form of ``payload``."""
    return hashlib.sha256(canonicalize_json(payload).encode("utf-8")).hexdigest()


def hash_audit_record(
    tenant_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Chain hash for one audit record.

    The previous record's hash is folded in, so altering any earlier record
    of the same tenant invalidates every later hash.  The first record of a
    tenant chains from ``GENESIS``.
    """
    components = [
        str(tenant_id),
        entity_type,
        str(entity_id),
        action,
        payload_hash,
        prev_hash or GENESIS_MARKER,
    ]
    return hashlib.sha256("|".join(components).encode("utf-8")).hexdigest()
