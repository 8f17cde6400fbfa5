"""
Module: ledger_kernel.models.reconciliation_log
Responsibility: Append-only log of subledger-to-ledger reconciliation
    results, one row per module per run.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class SubledgerReconciliationLog(Base):
    """Ledger vs. subledger comparison for one module at one point in time."""

    __tablename__ = "subledger_reconciliation_logs"

    __table_args__ = (
        Index("idx_recon_tenant_module", "tenant_id", "module"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    reconciliation_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    module: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    gl_balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    subledger_balance: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    variance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    is_reconciled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
    )

    details: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )
