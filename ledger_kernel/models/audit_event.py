"""
Module: ledger_kernel.models.audit_event
Responsibility: ORM persistence for the tamper-evident audit trail.  Each
    tenant has its own hash chain over its audit records.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: UPDATE/DELETE blocked by ORM listeners.
    - (tenant_id, seq) is unique and seq increases by one per record.
    - hash = H(tenant_id | entity_type | entity_id | action | payload_hash
      | prev_hash), with GENESIS standing in for the first record's
      prev_hash.

Failure modes:
    - ImmutabilityViolationError on UPDATE/DELETE.
    - AuditChainBrokenError from AuditorService.validate_chain when a hash
      does not recompute.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString, enum_column


class AuditAction(str, Enum):
    """Auditable actions.

    Contract: every member is produced by exactly one AuditorService
    ``record_*`` method.
    """

    JOURNAL_POSTED = "journal_posted"
    JOURNAL_REVERSED = "journal_reversed"
    CONTROL_ACCOUNT_OVERRIDE = "control_account_override"

    PERIOD_CLOSED = "period_closed"
    PERIOD_CLOSE_FAILED = "period_close_failed"

    DEPRECIATION_BATCH_RUN = "depreciation_batch_run"
    RECONCILIATION_RUN = "reconciliation_run"

    ACCOUNT_CREATED = "account_created"
    ACCOUNT_DEACTIVATED = "account_deactivated"
    ACCOUNT_LOCKED = "account_locked"


class AuditEvent(Base):
    """
    One record in a tenant's audit hash chain.

    Non-goals:
        - Hash correctness is not checked at INSERT time; AuditorService
          computes it and ``validate_chain`` re-verifies it.
    """

    __tablename__ = "audit_events"

    __table_args__ = (
        UniqueConstraint("tenant_id", "seq", name="uq_audit_tenant_seq"),
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    action: Mapped[AuditAction] = mapped_column(
        enum_column(AuditAction, length=50),
        nullable=False,
    )

    actor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    payload: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )

    payload_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    # None only for the first record of a tenant
    prev_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AuditEvent #{self.seq} {self.action.value} on {self.entity_type}:{self.entity_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
