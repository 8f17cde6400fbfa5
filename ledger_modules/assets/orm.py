"""
Fixed Assets ORM Models (``ledger_modules.assets.orm``).

Responsibility
--------------
Persistence for fixed assets and their monthly depreciation entries.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``ledger_kernel.db.base``.
MUST NOT be imported by ``ledger_kernel``.

Invariants enforced
-------------------
* At most one depreciation entry per (asset, period_date); the unique
  constraint makes a re-run of the batch for the same month a no-op.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString


class AssetStatus(str, Enum):
    ACTIVE = "active"
    DISPOSED = "disposed"
    WRITTEN_OFF = "written_off"


class DepreciationMethod(str, Enum):
    STRAIGHT_LINE = "straight_line"
    DECLINING_BALANCE = "declining_balance"


# ---------------------------------------------------------------------------
# AssetModel
# ---------------------------------------------------------------------------

class AssetModel(TrackedBase):
    """
    A depreciable fixed asset.

    Table: ``fixed_assets``
    """

    __tablename__ = "fixed_assets"

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), ForeignKey("tenants.id"))
    asset_tag: Mapped[str] = mapped_column(String(50))
    name: Mapped[str] = mapped_column(String(200))
    purchase_price: Mapped[Decimal] = mapped_column(Numeric(38, 9))
    salvage_value: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    useful_life_months: Mapped[int] = mapped_column(default=0)
    depreciation_method: Mapped[str] = mapped_column(
        String(30), default=DepreciationMethod.STRAIGHT_LINE.value,
    )
    depreciation_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    accumulated_depreciation: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))
    current_book_value: Mapped[Decimal] = mapped_column(Numeric(38, 9))
    status: Mapped[str] = mapped_column(String(20), default=AssetStatus.ACTIVE.value)
    disposal_price: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    disposal_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    depreciation_entries: Mapped[list["AssetDepreciationEntryModel"]] = relationship(
        back_populates="asset",
        order_by="AssetDepreciationEntryModel.period_date",
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "asset_tag", name="uq_fixed_assets_tag"),
        Index("idx_fixed_assets_tenant_status", "tenant_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Asset {self.asset_tag} {self.status} bv={self.current_book_value}>"


# ---------------------------------------------------------------------------
# AssetDepreciationEntryModel
# ---------------------------------------------------------------------------

class AssetDepreciationEntryModel(TrackedBase):
    """
    One month of depreciation for one asset.

    Table: ``asset_depreciation_entries``
    """

    __tablename__ = "asset_depreciation_entries"

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), ForeignKey("tenants.id"))
    asset_id: Mapped[UUID] = mapped_column(UUIDString(), ForeignKey("fixed_assets.id"))
    period_date: Mapped[date] = mapped_column(Date)
    depreciation_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9))
    accumulated_depreciation: Mapped[Decimal] = mapped_column(Numeric(38, 9))
    book_value_after: Mapped[Decimal] = mapped_column(Numeric(38, 9))
    is_posted: Mapped[bool] = mapped_column(default=False)
    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True,
    )

    asset: Mapped[AssetModel] = relationship(back_populates="depreciation_entries")

    __table_args__ = (
        UniqueConstraint("asset_id", "period_date", name="uq_asset_depreciation_period"),
        Index("idx_asset_depreciation_tenant_period", "tenant_id", "period_date"),
    )
