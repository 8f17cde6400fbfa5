"""
Module: ledger_kernel.models.fiscal_period
Responsibility: ORM persistence for the fiscal calendar -- financial years
    and the periods that decide which dates accept postings.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (tenant_id, financial_year_id, period_number) is unique.
    - Period ranges within a tenant do not overlap (checked by
      PeriodService at creation time).
    - OPEN -> CLOSED only through a successful close run, which stamps
      closed_at/closed_by_id.

Failure modes:
    - NoPeriodError when no period covers a posting date.
    - PeriodClosedError when the covering period is not OPEN.

Audit relevance:
    Closing a period locks every posted entry dated inside it and produces a
    PERIOD_CLOSED audit record.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString, enum_column


class PeriodStatus(str, Enum):
    """Lifecycle status of a fiscal period."""

    OPEN = "open"
    CLOSED = "closed"
    LOCKED = "locked"


class FinancialYear(TrackedBase):
    """A tenant's financial year, the parent of its monthly periods."""

    __tablename__ = "financial_years"

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_financial_year_name"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    start_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    end_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    is_closed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    periods: Mapped[list["FiscalPeriod"]] = relationship(
        back_populates="financial_year",
        order_by="FiscalPeriod.period_number",
    )

    def __repr__(self) -> str:
        return f"<FinancialYear {self.name} {self.start_date}..{self.end_date}>"


class FiscalPeriod(TrackedBase):
    """
    Fiscal period for posting control.

    Contract:
        Postings are accepted only for entry dates inside an OPEN period.
        Once CLOSED the period never reopens.
    """

    __tablename__ = "fiscal_periods"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "financial_year_id",
            "period_number",
            name="uq_period_year_number",
        ),
        Index("idx_period_tenant_dates", "tenant_id", "start_date", "end_date"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    financial_year_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("financial_years.id"),
        nullable=False,
    )

    period_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    period_name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    start_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    end_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    status: Mapped[PeriodStatus] = mapped_column(
        enum_column(PeriodStatus, length=10),
        default=PeriodStatus.OPEN,
        nullable=False,
    )

    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    closed_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    financial_year: Mapped["FinancialYear"] = relationship(
        back_populates="periods",
    )

    def __repr__(self) -> str:
        return f"<FiscalPeriod {self.period_name} ({self.status.value})>"

    @property
    def is_open(self) -> bool:
        return self.status == PeriodStatus.OPEN

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date
