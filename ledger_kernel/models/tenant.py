"""
Module: ledger_kernel.models.tenant
Responsibility: ORM persistence for tenants (organizations).  Every other
    ledger row is exclusively owned by exactly one tenant.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A tenant in a blocked lifecycle state (locked, archived, suspended)
      accepts no ledger writes; checked by TenantGuard.
"""

from enum import Enum

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, enum_column


class OrgState(str, Enum):
    """Tenant lifecycle state."""

    ACTIVE = "active"
    LOCKED = "locked"
    ARCHIVED = "archived"
    SUSPENDED = "suspended"


BLOCKED_ORG_STATES = frozenset({OrgState.LOCKED, OrgState.ARCHIVED, OrgState.SUSPENDED})


class Tenant(TrackedBase):
    """An organization whose books are kept in this ledger."""

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    org_state: Mapped[OrgState] = mapped_column(
        enum_column(OrgState),
        default=OrgState.ACTIVE,
        nullable=False,
    )

    @property
    def is_blocked(self) -> bool:
        return self.org_state in BLOCKED_ORG_STATES

    def __repr__(self) -> str:
        return f"<Tenant {self.name} ({self.org_state.value})>"
