"""
Accounts Receivable ORM Models (``ledger_modules.ar.orm``).

Responsibility
--------------
Persistence for customer invoices.  Invoices with status ``sent`` or
``overdue`` make up the receivable balance the reconciliation job compares
with control account 1200.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    OVERDUE = "overdue"
    PAID = "paid"
    CANCELLED = "cancelled"


class InvoiceModel(TrackedBase):
    """
    Customer invoice.

    Table: ``ar_invoices``
    """

    __tablename__ = "ar_invoices"

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), ForeignKey("tenants.id"))
    invoice_number: Mapped[str] = mapped_column(String(50))
    client_name: Mapped[str] = mapped_column(String(200))
    invoice_date: Mapped[date] = mapped_column(Date)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9))
    status: Mapped[str] = mapped_column(String(20), default=InvoiceStatus.DRAFT.value)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_ar_invoices_number"),
        Index("idx_ar_invoices_tenant_status", "tenant_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} {self.status} {self.total_amount}>"
