"""
Module: ledger_kernel.models.control_override
Responsibility: Append-only record of every control-account line posted
    through the override path, with the justification supplied.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class ControlAccountOverride(TrackedBase):
    """One overridden control-account line."""

    __tablename__ = "control_account_overrides"

    __table_args__ = (
        Index("idx_override_entry", "journal_entry_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_accounts.id"),
        nullable=False,
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    override_reason: Mapped[str] = mapped_column(
        String(1000),
        nullable=False,
    )

    overridden_by_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Reserved for a second-approver workflow
    approved_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )
