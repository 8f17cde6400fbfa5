"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines -- the
    single source of financial truth for every tenant.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Idempotency: (tenant_id, source_type, source_id) is unique when
      source_id is set (uq_journal_source).
    - Document numbers: (tenant_id, source_type, document_sequence_number)
      is unique (uq_journal_doc_number).
    - Single reversal: reversed_entry_id is unique, so an entry can be the
      target of at most one reversal.
    - Line shape: debit >= 0, credit >= 0 and exactly one of them strictly
      positive (ck_journal_line_one_side).
    - Immutability after posting (ORM listeners in db/immutability.py).

Failure modes:
    - IntegrityError on a duplicate idempotency key (the posting engine
      treats this as "a concurrent caller won").
    - IntegrityError on a second reversal of the same entry (surfaced as
      AlreadyReversedError).
    - ImmutabilityViolationError on forbidden UPDATE/DELETE.

Audit relevance:
    JournalEntry and JournalLine rows are the authoritative financial record.
    Every report, close check and reconciliation derives from these rows.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString, enum_column

if TYPE_CHECKING:
    from ledger_kernel.models.account import LedgerAccount


class JournalEntryStatus(str, Enum):
    """Lifecycle status of a journal entry.

    Contract: DRAFT -> POSTED -> LOCKED (period close) or
    POSTED -> REVERSED.  LOCKED and REVERSED are terminal.
    """

    DRAFT = "draft"
    POSTED = "posted"
    LOCKED = "locked"
    REVERSED = "reversed"


# Statuses whose lines count toward balances
BALANCE_STATUSES = (JournalEntryStatus.POSTED, JournalEntryStatus.LOCKED)


class JournalEntry(TrackedBase):
    """
    Journal entry header -- the atomic unit of double-entry accounting.

    Contract:
        Created in POSTED status by the posting engine, with a document
        number, a resolved fiscal period and at least two lines whose debits
        and credits balance.  After posting only the status column may move
        (to LOCKED or REVERSED).

    Non-goals:
        - Balance is not enforced at the ORM level; ``is_balanced`` is a
          read-side convenience.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("tenant_id", "source_type", "source_id", name="uq_journal_source"),
        UniqueConstraint(
            "tenant_id",
            "source_type",
            "document_sequence_number",
            name="uq_journal_doc_number",
        ),
        UniqueConstraint("reversed_entry_id", name="uq_journal_reversed_entry"),
        Index("idx_journal_tenant_date", "tenant_id", "entry_date"),
        Index("idx_journal_status", "status"),
        Index("idx_journal_period", "fiscal_period_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    entry_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    source_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Idempotency key together with tenant_id and source_type
    source_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    status: Mapped[JournalEntryStatus] = mapped_column(
        enum_column(JournalEntryStatus, length=10),
        default=JournalEntryStatus.DRAFT,
        nullable=False,
    )

    document_sequence_number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    fiscal_period_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_periods.id"),
        nullable=True,
    )

    is_reversal: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    reversed_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    memo: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalLine.line_number",
        lazy="selectin",
    )

    reversed_entry: Mapped["JournalEntry | None"] = relationship(
        remote_side="JournalEntry.id",
        foreign_keys=[reversed_entry_id],
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.document_sequence_number or self.id} status={self.status.value}>"

    @property
    def is_draft(self) -> bool:
        return self.status == JournalEntryStatus.DRAFT

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        """True iff the entry's own lines balance."""
        return self.total_debits == self.total_credits


class JournalLine(TrackedBase):
    """
    One debit or credit leg of a journal entry.

    Contract:
        Exactly one of debit/credit is strictly positive; the other is zero.
        Lines are immutable once the parent entry leaves DRAFT.
        ``cost_center``, ``department`` and ``asset_id`` are analytical tags
        carried through unvalidated.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        CheckConstraint(
            "debit >= 0 AND credit >= 0 AND "
            "((debit > 0 AND credit = 0) OR (credit > 0 AND debit = 0))",
            name="ck_journal_line_one_side",
        ),
        UniqueConstraint("journal_entry_id", "line_number", name="uq_journal_line_number"),
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_accounts.id"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    cost_center: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    department: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    asset_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    entry: Mapped["JournalEntry"] = relationship(
        back_populates="lines",
    )

    account: Mapped["LedgerAccount"] = relationship()

    def __repr__(self) -> str:
        return f"<JournalLine #{self.line_number} Dr {self.debit} Cr {self.credit}>"
