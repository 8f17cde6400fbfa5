"""
Domain DTOs -- typed inputs crossing the service boundary.

Responsibility:
    ``LineDescriptor`` is the strongly-typed journal line handed to the
    posting engine; ``CallerIdentity`` is the authenticated caller with its
    per-tenant role grants.

Architecture position:
    Kernel > Domain -- pure frozen dataclasses, zero I/O.

Invariants enforced:
    - Amounts are ``Decimal``; ints and numeric strings are coerced in
      ``__post_init__`` and floats are rejected.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Mapping
from uuid import UUID


def _to_decimal(value: object, field_name: str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError(f"{field_name} must be Decimal, not float")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{field_name} is not a valid amount: {value!r}") from exc


@dataclass(frozen=True)
class LineDescriptor:
    """
    One debit or credit leg of a posting request.

    Exactly one of ``debit``/``credit`` must be strictly positive; that rule
    is checked by the posting engine so the failure carries the line index.
    Analytical tags are carried through to the stored line unvalidated.
    """

    account_id: UUID
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    description: str | None = None
    cost_center: str | None = None
    department: str | None = None
    asset_id: UUID | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", _to_decimal(self.debit, "debit"))
        object.__setattr__(self, "credit", _to_decimal(self.credit, "credit"))

    @classmethod
    def dr(cls, account_id: UUID, amount: Decimal, description: str | None = None, **tags) -> "LineDescriptor":
        return cls(account_id=account_id, debit=amount, description=description, **tags)

    @classmethod
    def cr(cls, account_id: UUID, amount: Decimal, description: str | None = None, **tags) -> "LineDescriptor":
        return cls(account_id=account_id, credit=amount, description=description, **tags)


class Capability(str, Enum):
    """Capabilities checked at the service boundary."""

    FINANCE = "finance"
    ADMIN = "admin"


# Role name -> capabilities it grants on its tenant
ROLE_CAPABILITIES: dict[str, frozenset[Capability]] = {
    "admin": frozenset({Capability.FINANCE, Capability.ADMIN}),
    "finance": frozenset({Capability.FINANCE}),
}


@dataclass(frozen=True)
class CallerIdentity:
    """
    Authenticated caller.

    ``roles`` maps tenant id to the role names granted on that tenant.
    A super-admin holds every capability on every tenant.
    """

    actor_id: UUID
    roles: Mapping[UUID, frozenset[str]] = field(default_factory=dict)
    is_super_admin: bool = False

    def roles_for(self, tenant_id: UUID) -> frozenset[str]:
        return frozenset(self.roles.get(tenant_id, frozenset()))

    def has_capability(self, tenant_id: UUID, capability: Capability) -> bool:
        if self.is_super_admin:
            return True
        for role in self.roles_for(tenant_id):
            if capability in ROLE_CAPABILITIES.get(role, frozenset()):
                return True
        return False

    @classmethod
    def system(cls, actor_id: UUID) -> "CallerIdentity":
        """Identity used by scheduled jobs running with full authority."""
        return cls(actor_id=actor_id, is_super_admin=True)
