"""
TenantGuard -- capability and tenant-lifecycle checks at the service boundary.

Responsibility:
    Every write operation starts with ``TenantGuard.require``.  It checks,
    in order, that the caller holds the capability on the tenant, that the
    tenant exists, and that the tenant is not in a blocked lifecycle state.

Failure modes:
    - AuthorizationError: capability missing.
    - TenantNotFoundError: unknown tenant id.
    - TenantBlockedError: tenant locked, archived or suspended.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import CallerIdentity, Capability
from ledger_kernel.exceptions import (
    AuthorizationError,
    TenantBlockedError,
    TenantNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.tenant import Tenant

logger = get_logger("services.authority")


class TenantGuard:
    """Stateless checker bound to a session."""

    def __init__(self, session: Session):
        self._session = session

    def check(
        self,
        caller: CallerIdentity,
        tenant_id: UUID,
        capability: Capability,
    ) -> tuple[bool, str]:
        """Return (allowed, reason) for the capability alone."""
        if caller.has_capability(tenant_id, capability):
            return True, "granted"
        return False, f"actor lacks {capability.value} capability on tenant"

    def require(
        self,
        caller: CallerIdentity,
        tenant_id: UUID,
        capability: Capability,
    ) -> Tenant:
        """
        Enforce capability and tenant lifecycle.

        Returns:
            The tenant row.

        Raises:
            AuthorizationError, TenantNotFoundError, TenantBlockedError.
        """
        allowed, reason = self.check(caller, tenant_id, capability)
        if not allowed:
            logger.warning(
                "authorization_denied",
                extra={
                    "actor_id": str(caller.actor_id),
                    "tenant_id": str(tenant_id),
                    "capability": capability.value,
                    "reason": reason,
                },
            )
            raise AuthorizationError(str(caller.actor_id), str(tenant_id), capability.value)

        tenant = self._session.get(Tenant, tenant_id)
        if tenant is None:
            raise TenantNotFoundError(str(tenant_id))

        if tenant.is_blocked:
            logger.warning(
                "tenant_blocked",
                extra={"tenant_id": str(tenant_id), "org_state": tenant.org_state.value},
            )
            raise TenantBlockedError(str(tenant_id), tenant.org_state.value)

        return tenant
