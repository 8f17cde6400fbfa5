"""
Accounts Payable ORM Models (``ledger_modules.ap.orm``).

Responsibility
--------------
Persistence for vendor bills.  Bills with status ``pending`` or
``approved`` make up the payable balance compared with control account 2100.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class BillStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"


class BillModel(TrackedBase):
    """
    Vendor bill.

    Table: ``ap_bills``
    """

    __tablename__ = "ap_bills"

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), ForeignKey("tenants.id"))
    bill_number: Mapped[str] = mapped_column(String(50))
    vendor_name: Mapped[str] = mapped_column(String(200))
    bill_date: Mapped[date] = mapped_column(Date)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9))
    status: Mapped[str] = mapped_column(String(20), default=BillStatus.DRAFT.value)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "bill_number", name="uq_ap_bills_number"),
        Index("idx_ap_bills_tenant_status", "tenant_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Bill {self.bill_number} {self.status} {self.total_amount}>"
