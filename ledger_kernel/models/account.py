"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the per-tenant chart of accounts.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Account code is unique within a tenant (uq_account_tenant_code).
    - Locked accounts cannot be deleted and their structural fields
      (code, name, account_type, normal_balance, is_system) cannot change.
    - Accounts referenced by journal lines cannot be deleted.
    The last two are enforced by ORM listeners in db/immutability.py.

Failure modes:
    - IntegrityError on duplicate code (surfaced as DuplicateAccountCodeError
      by AccountService).
    - ImmutabilityViolationError on structural edit/delete of a locked or
      referenced account.

Audit relevance:
    Control-account flags decide which accounts only automated postings may
    touch.  The authoritative list lives in the posting policy; the flags
    here mirror it for reporting.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString, enum_column


class AccountType(str, Enum):
    """Fundamental account classification."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Side on which the account normally carries its balance."""

    DEBIT = "debit"
    CREDIT = "credit"


class ControlModule(str, Enum):
    """Subledger that owns a control account."""

    AR = "AR"
    AP = "AP"
    ASSET = "asset"
    DEPRECIATION = "depreciation"


NATURAL_NORMAL_BALANCE: dict[AccountType, NormalBalance] = {
    AccountType.ASSET: NormalBalance.DEBIT,
    AccountType.EXPENSE: NormalBalance.DEBIT,
    AccountType.LIABILITY: NormalBalance.CREDIT,
    AccountType.EQUITY: NormalBalance.CREDIT,
    AccountType.REVENUE: NormalBalance.CREDIT,
}


class LedgerAccount(TrackedBase):
    """
    Chart-of-accounts node owned by one tenant.

    Contract:
        Journal lines may only reference active accounts of the entry's own
        tenant (checked by the posting engine).  ``is_locked`` freezes the
        account's structure; ``is_system`` marks accounts seeded by the
        default chart.
    """

    __tablename__ = "ledger_accounts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_account_tenant_code"),
        Index("idx_account_tenant_type", "tenant_id", "account_type"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    account_type: Mapped[AccountType] = mapped_column(
        enum_column(AccountType),
        nullable=False,
    )

    normal_balance: Mapped[NormalBalance] = mapped_column(
        enum_column(NormalBalance, length=10),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    is_system: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    is_locked: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    is_control_account: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    control_module: Mapped[ControlModule | None] = mapped_column(
        enum_column(ControlModule),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<LedgerAccount {self.code}: {self.name}>"
