"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read access to journal entries as frozen DTOs -- by id, by
    source document, and by reversal linkage.
Architecture position: Kernel > Selectors.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.money import ZERO, as_decimal
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class JournalLineDTO:
    line_number: int
    account_id: UUID
    debit: Decimal
    credit: Decimal
    description: str | None
    cost_center: str | None
    department: str | None
    asset_id: UUID | None


@dataclass(frozen=True)
class JournalEntryDTO:
    id: UUID
    tenant_id: UUID
    entry_date: date
    source_type: str
    source_id: UUID | None
    status: JournalEntryStatus
    document_sequence_number: str | None
    fiscal_period_id: UUID | None
    is_reversal: bool
    reversed_entry_id: UUID | None
    memo: str | None
    posted_at: datetime | None
    created_by_id: UUID
    lines: tuple[JournalLineDTO, ...]

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)


def _to_dto(entry: JournalEntry) -> JournalEntryDTO:
    return JournalEntryDTO(
        id=entry.id,
        tenant_id=entry.tenant_id,
        entry_date=entry.entry_date,
        source_type=entry.source_type,
        source_id=entry.source_id,
        status=entry.status,
        document_sequence_number=entry.document_sequence_number,
        fiscal_period_id=entry.fiscal_period_id,
        is_reversal=entry.is_reversal,
        reversed_entry_id=entry.reversed_entry_id,
        memo=entry.memo,
        posted_at=entry.posted_at,
        created_by_id=entry.created_by_id,
        lines=tuple(
            JournalLineDTO(
                line_number=line.line_number,
                account_id=line.account_id,
                debit=as_decimal(line.debit),
                credit=as_decimal(line.credit),
                description=line.description,
                cost_center=line.cost_center,
                department=line.department,
                asset_id=line.asset_id,
            )
            for line in entry.lines
        ),
    )


class JournalSelector(BaseSelector):
    """Journal entry lookups."""

    def get_entry(self, entry_id: UUID) -> JournalEntryDTO | None:
        entry = self.session.get(JournalEntry, entry_id)
        return _to_dto(entry) if entry is not None else None

    def find_by_source(
        self,
        tenant_id: UUID,
        source_type: str,
        source_id: UUID,
    ) -> JournalEntryDTO | None:
        entry = self.session.execute(
            select(JournalEntry).where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.source_type == source_type,
                JournalEntry.source_id == source_id,
            )
        ).scalar_one_or_none()
        return _to_dto(entry) if entry is not None else None

    def find_reversal_of(self, entry_id: UUID) -> JournalEntryDTO | None:
        """The entry that reverses ``entry_id``, if one was posted."""
        entry = self.session.execute(
            select(JournalEntry).where(JournalEntry.reversed_entry_id == entry_id)
        ).scalar_one_or_none()
        return _to_dto(entry) if entry is not None else None

    def list_entries(
        self,
        tenant_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        status: JournalEntryStatus | None = None,
    ) -> list[JournalEntryDTO]:
        query = (
            select(JournalEntry)
            .where(JournalEntry.tenant_id == tenant_id)
            .order_by(JournalEntry.entry_date, JournalEntry.document_sequence_number)
        )
        if start_date is not None:
            query = query.where(JournalEntry.entry_date >= start_date)
        if end_date is not None:
            query = query.where(JournalEntry.entry_date <= end_date)
        if status is not None:
            query = query.where(JournalEntry.status == status)
        return [_to_dto(e) for e in self.session.execute(query).scalars()]
