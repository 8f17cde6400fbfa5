"""
Module: ledger_kernel.models.document_sequence
Responsibility: ORM persistence for per-(tenant, document type) document
    number counters.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One counter row per (tenant_id, document_type) (uq_document_sequence).
    - next_number only increases; the row is read with SELECT ... FOR UPDATE
      and incremented in place by DocumentSequencer.
"""

from uuid import UUID

from sqlalchemy import BigInteger, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class DocumentSequence(Base):
    """Counter row handing out document numbers for one document type."""

    __tablename__ = "document_sequences"

    __table_args__ = (
        UniqueConstraint("tenant_id", "document_type", name="uq_document_sequence"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    document_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    prefix: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    next_number: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=1,
    )

    def __repr__(self) -> str:
        return f"<DocumentSequence {self.document_type} next={self.next_number}>"
