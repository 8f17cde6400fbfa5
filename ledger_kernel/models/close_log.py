"""
Module: ledger_kernel.models.close_log
Responsibility: Append-only log of period-close attempts, successful or not,
    with the outcome of every pre-close check.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class PeriodCloseLog(Base):
    """One close attempt for one fiscal period."""

    __tablename__ = "period_close_logs"

    __table_args__ = (
        Index("idx_close_log_period", "fiscal_period_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    fiscal_period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_periods.id"),
        nullable=False,
    )

    attempted_by_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    attempted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # {check_name: {"passed": bool, ...check fields}}
    pre_close_checks: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
    )

    all_checks_passed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
    )
