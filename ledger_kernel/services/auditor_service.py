"""
AuditorService -- per-tenant, hash-chained, append-only audit trail.

Responsibility:
    Records one AuditEvent per auditable ledger action and validates the
    chain on demand.  Each tenant has its own chain: the first record of a
    tenant chains from GENESIS and every later record folds in the hash of
    its predecessor.

Invariants enforced:
    - seq is allocated from a locked counter row per tenant, which also
      serializes concurrent appends to the same chain.
    - hash = H(tenant_id | entity_type | entity_id | action | payload_hash
      | prev_hash).
    - Records are append-only (ORM listeners).

Failure modes:
    - AuditChainBrokenError from validate_chain when a hash, payload hash
      or chain link does not recompute.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import AuditChainBrokenError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.audit_event import AuditAction, AuditEvent
from ledger_kernel.services.sequence_service import DocumentSequencer
from ledger_kernel.utils.hashing import canonicalize_json, hash_audit_record, hash_payload

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditTraceEntry:
    seq: int
    action: AuditAction
    actor_id: UUID
    occurred_at: datetime
    payload: dict[str, Any] | None


class AuditorService:
    """
    Writes and verifies the audit trail.

    Non-goals:
        - Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequencer: DocumentSequencer | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequencer = sequencer or DocumentSequencer(session)

    def _last_hash(self, tenant_id: UUID) -> str | None:
        return self._session.execute(
            select(AuditEvent.hash)
            .where(AuditEvent.tenant_id == tenant_id)
            .order_by(AuditEvent.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _record(
        self,
        tenant_id: UUID,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        seq = self._sequencer.next_value(tenant_id, DocumentSequencer.AUDIT_EVENT)
        prev_hash = self._last_hash(tenant_id)

        # Stored payload is the JSON-safe form of exactly what was hashed
        stored_payload = json.loads(canonicalize_json(payload or {}))
        payload_hash = hash_payload(stored_payload)
        record_hash = hash_audit_record(
            tenant_id=str(tenant_id),
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action.value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            tenant_id=tenant_id,
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            payload=stored_payload,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=record_hash,
        )
        self._session.add(audit_event)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "tenant_id": str(tenant_id),
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
                "seq": seq,
            },
        )
        return audit_event

    # Domain-specific recording methods

    def record_posting(
        self,
        tenant_id: UUID,
        entry_id: UUID,
        actor_id: UUID,
        document_number: str,
        source_type: str,
        total: Any,
        line_count: int,
    ) -> AuditEvent:
        return self._record(
            tenant_id,
            "JournalEntry",
            entry_id,
            AuditAction.JOURNAL_POSTED,
            actor_id,
            {
                "document_number": document_number,
                "source_type": source_type,
                "total": total,
                "line_count": line_count,
            },
        )

    def record_reversal(
        self,
        tenant_id: UUID,
        original_entry_id: UUID,
        reversal_entry_id: UUID,
        actor_id: UUID,
    ) -> AuditEvent:
        return self._record(
            tenant_id,
            "JournalEntry",
            original_entry_id,
            AuditAction.JOURNAL_REVERSED,
            actor_id,
            {"reversal_entry_id": reversal_entry_id},
        )

    def record_override(
        self,
        tenant_id: UUID,
        entry_id: UUID,
        actor_id: UUID,
        reason: str,
        account_codes: list[str],
    ) -> AuditEvent:
        return self._record(
            tenant_id,
            "JournalEntry",
            entry_id,
            AuditAction.CONTROL_ACCOUNT_OVERRIDE,
            actor_id,
            {"reason": reason, "account_codes": account_codes},
        )

    def record_period_closed(
        self,
        tenant_id: UUID,
        period_id: UUID,
        actor_id: UUID,
        locked_entries: int,
    ) -> AuditEvent:
        return self._record(
            tenant_id,
            "FiscalPeriod",
            period_id,
            AuditAction.PERIOD_CLOSED,
            actor_id,
            {"locked_entries": locked_entries},
        )

    def record_period_close_failed(
        self,
        tenant_id: UUID,
        period_id: UUID,
        actor_id: UUID,
        failed_checks: list[str],
    ) -> AuditEvent:
        return self._record(
            tenant_id,
            "FiscalPeriod",
            period_id,
            AuditAction.PERIOD_CLOSE_FAILED,
            actor_id,
            {"failed_checks": failed_checks},
        )

    def record_depreciation_batch(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        batch_id: UUID,
        payload: dict[str, Any],
    ) -> AuditEvent:
        return self._record(
            tenant_id,
            "DepreciationBatch",
            batch_id,
            AuditAction.DEPRECIATION_BATCH_RUN,
            actor_id,
            payload,
        )

    def record_reconciliation(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        run_id: UUID,
        payload: dict[str, Any],
    ) -> AuditEvent:
        return self._record(
            tenant_id,
            "ReconciliationRun",
            run_id,
            AuditAction.RECONCILIATION_RUN,
            actor_id,
            payload,
        )

    def record_account_event(
        self,
        tenant_id: UUID,
        account_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        code: str,
    ) -> AuditEvent:
        return self._record(tenant_id, "LedgerAccount", account_id, action, actor_id, {"code": code})

    # Chain validation

    def validate_chain(self, tenant_id: UUID) -> bool:
        """
        Re-verify the whole chain of one tenant.

        Raises:
            AuditChainBrokenError: at the first record that does not verify.
        """
        events = self._session.execute(
            select(AuditEvent)
            .where(AuditEvent.tenant_id == tenant_id)
            .order_by(AuditEvent.seq)
        ).scalars().all()

        prev_hash = None
        for event in events:
            if event.prev_hash != prev_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"tenant_id": str(tenant_id), "seq": event.seq, "reason": "link"},
                )
                raise AuditChainBrokenError(str(event.id), prev_hash or "None", event.prev_hash or "None")

            payload_hash = hash_payload(event.payload or {})
            if payload_hash != event.payload_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"tenant_id": str(tenant_id), "seq": event.seq, "reason": "payload"},
                )
                raise AuditChainBrokenError(str(event.id), payload_hash, event.payload_hash)

            expected = hash_audit_record(
                tenant_id=str(event.tenant_id),
                entity_type=event.entity_type,
                entity_id=str(event.entity_id),
                action=event.action.value,
                payload_hash=event.payload_hash,
                prev_hash=event.prev_hash,
            )
            if expected != event.hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"tenant_id": str(tenant_id), "seq": event.seq, "reason": "hash"},
                )
                raise AuditChainBrokenError(str(event.id), expected, event.hash)
            prev_hash = event.hash

        logger.info(
            "audit_chain_valid",
            extra={"tenant_id": str(tenant_id), "event_count": len(events)},
        )
        return True

    def get_trace(self, entity_type: str, entity_id: UUID) -> list[AuditTraceEntry]:
        """Audit history of one entity, oldest first."""
        events = self._session.execute(
            select(AuditEvent)
            .where(AuditEvent.entity_type == entity_type, AuditEvent.entity_id == entity_id)
            .order_by(AuditEvent.occurred_at, AuditEvent.seq)
        ).scalars().all()
        return [
            AuditTraceEntry(
                seq=e.seq,
                action=e.action,
                actor_id=e.actor_id,
                occurred_at=e.occurred_at,
                payload=e.payload,
            )
            for e in events
        ]
