"""Expense ORM model (``ledger_modules.expense.orm``)."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class ExpenseModel(TrackedBase):
    """
    Paid-out-of-pocket business expense.

    Table: ``expenses``
    """

    __tablename__ = "expenses"

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), ForeignKey("tenants.id"))
    expense_date: Mapped[date] = mapped_column(Date)
    category: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9))

    __table_args__ = (
        Index("idx_expenses_tenant_date", "tenant_id", "expense_date"),
    )
