"""
AccountService -- chart-of-accounts maintenance.

Responsibility:
    Creates accounts, seeds a new tenant's default chart from the posting
    policy, and moves accounts through deactivation and locking.  Control
    flags on seeded accounts mirror the policy's control-account list.

Failure modes:
    - DuplicateAccountCodeError: code already used in the tenant.
    - AccountNotFoundError: lookup by code failed.
"""

from uuid import UUID

from sqlalchemy import select

from ledger_config import get_active_policy
from ledger_config.schema import PostingPolicy
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import CallerIdentity, Capability
from ledger_kernel.exceptions import AccountNotFoundError, DuplicateAccountCodeError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import (
    NATURAL_NORMAL_BALANCE,
    AccountType,
    ControlModule,
    LedgerAccount,
    NormalBalance,
)
from ledger_kernel.models.audit_event import AuditAction
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.authority import TenantGuard
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account")


class AccountService(BaseService):
    """Chart-of-accounts operations for one session."""

    def __init__(self, session, clock: Clock | None = None, policy: PostingPolicy | None = None):
        super().__init__(session, clock)
        self.policy = policy or get_active_policy()
        self._auditor = AuditorService(session, self.clock)

    def get_by_code(self, tenant_id: UUID, code: str) -> LedgerAccount:
        account = self.session.execute(
            select(LedgerAccount).where(
                LedgerAccount.tenant_id == tenant_id,
                LedgerAccount.code == code,
            )
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(str(tenant_id), code)
        return account

    def create_account(
        self,
        caller: CallerIdentity,
        tenant_id: UUID,
        code: str,
        name: str,
        account_type: AccountType | str,
        normal_balance: NormalBalance | str | None = None,
        control_module: ControlModule | str | None = None,
        is_system: bool = False,
    ) -> LedgerAccount:
        TenantGuard(self.session).require(caller, tenant_id, Capability.ADMIN)

        exists = self.session.execute(
            select(LedgerAccount.id).where(
                LedgerAccount.tenant_id == tenant_id,
                LedgerAccount.code == code,
            )
        ).first()
        if exists is not None:
            raise DuplicateAccountCodeError(str(tenant_id), code)

        account_type = AccountType(account_type)
        if normal_balance is None:
            normal_balance = NATURAL_NORMAL_BALANCE[account_type]
        if control_module is None:
            control_module = self.policy.control_module_for(code)

        account = LedgerAccount(
            tenant_id=tenant_id,
            code=code,
            name=name,
            account_type=account_type,
            normal_balance=NormalBalance(normal_balance),
            is_active=True,
            is_system=is_system,
            is_locked=False,
            is_control_account=control_module is not None,
            control_module=ControlModule(control_module) if control_module else None,
            created_by_id=caller.actor_id,
        )
        self.session.add(account)
        self.session.flush()
        self._auditor.record_account_event(
            tenant_id, account.id, AuditAction.ACCOUNT_CREATED, caller.actor_id, code
        )
        logger.info(
            "account_created",
            extra={"tenant_id": str(tenant_id), "code": code, "account_type": account_type.value},
        )
        return account

    def seed_default_chart(self, caller: CallerIdentity, tenant_id: UUID) -> dict[str, LedgerAccount]:
        """
        Create every policy default-chart account the tenant lacks.

        Returns:
            code -> account for the whole default chart.
        """
        seeded: dict[str, LedgerAccount] = {}
        for definition in self.policy.default_chart:
            try:
                seeded[definition.code] = self.get_by_code(tenant_id, definition.code)
                continue
            except AccountNotFoundError:
                pass
            seeded[definition.code] = self.create_account(
                caller,
                tenant_id,
                code=definition.code,
                name=definition.name,
                account_type=definition.account_type,
                normal_balance=definition.normal_balance,
                control_module=definition.control_module,
                is_system=True,
            )
        return seeded

    def deactivate_account(self, caller: CallerIdentity, account: LedgerAccount) -> LedgerAccount:
        TenantGuard(self.session).require(caller, account.tenant_id, Capability.ADMIN)
        account.is_active = False
        account.updated_by_id = caller.actor_id
        self.session.flush()
        self._auditor.record_account_event(
            account.tenant_id, account.id, AuditAction.ACCOUNT_DEACTIVATED, caller.actor_id, account.code
        )
        return account

    def lock_account(self, caller: CallerIdentity, account: LedgerAccount) -> LedgerAccount:
        """Freeze the account's structure; locking is permanent."""
        TenantGuard(self.session).require(caller, account.tenant_id, Capability.ADMIN)
        account.is_locked = True
        account.updated_by_id = caller.actor_id
        self.session.flush()
        self._auditor.record_account_event(
            account.tenant_id, account.id, AuditAction.ACCOUNT_LOCKED, caller.actor_id, account.code
        )
        return account
