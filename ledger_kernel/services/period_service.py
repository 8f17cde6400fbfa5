"""
PeriodService -- fiscal calendar setup and period resolution.

Responsibility:
    Creates financial years and their periods, and resolves which period
    governs a given date.  The posting engine, the reversal engine and the
    batch jobs all go through ``require_open_period``.

Invariants enforced:
    - Periods of one tenant never overlap (PeriodOverlapError).
    - Generated monthly periods are contiguous and numbered from 1.

Failure modes:
    - NoPeriodError: no period covers the date.
    - PeriodClosedError: the covering period is not open.
    - PeriodNotFoundError: period id unknown for the tenant.
"""

import calendar
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.dtos import CallerIdentity, Capability
from ledger_kernel.exceptions import (
    NoPeriodError,
    PeriodClosedError,
    PeriodNotFoundError,
    PeriodOverlapError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.fiscal_period import FinancialYear, FiscalPeriod, PeriodStatus
from ledger_kernel.services.authority import TenantGuard
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period")


def _month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


class PeriodService(BaseService):
    """Fiscal calendar operations for one session."""

    def create_financial_year(
        self,
        caller: CallerIdentity,
        tenant_id: UUID,
        name: str,
        start_date: date,
        end_date: date,
    ) -> FinancialYear:
        TenantGuard(self.session).require(caller, tenant_id, Capability.ADMIN)
        if end_date < start_date:
            raise ValueError(f"Financial year {name} ends before it starts")

        year = FinancialYear(
            tenant_id=tenant_id,
            name=name,
            start_date=start_date,
            end_date=end_date,
            created_by_id=caller.actor_id,
        )
        self.session.add(year)
        self.session.flush()
        logger.info(
            "financial_year_created",
            extra={"tenant_id": str(tenant_id), "year_name": name},
        )
        return year

    def generate_monthly_periods(
        self,
        caller: CallerIdentity,
        year: FinancialYear,
    ) -> list[FiscalPeriod]:
        """
        Split ``year`` into contiguous calendar-month periods.

        The last period is truncated at the year end; a year starting
        mid-month gets a short first period.
        """
        periods = []
        start = year.start_date
        number = 1
        while start <= year.end_date:
            end = min(_month_end(start), year.end_date)
            periods.append(
                self.create_period(
                    caller,
                    tenant_id=year.tenant_id,
                    financial_year_id=year.id,
                    period_number=number,
                    period_name=start.strftime("%b %Y"),
                    start_date=start,
                    end_date=end,
                )
            )
            start = end + timedelta(days=1)
            number += 1
        return periods

    def create_period(
        self,
        caller: CallerIdentity,
        tenant_id: UUID,
        financial_year_id: UUID,
        period_number: int,
        period_name: str,
        start_date: date,
        end_date: date,
    ) -> FiscalPeriod:
        TenantGuard(self.session).require(caller, tenant_id, Capability.ADMIN)
        if end_date < start_date:
            raise ValueError(f"Period {period_name} ends before it starts")

        overlapping = self.session.execute(
            select(FiscalPeriod)
            .where(
                FiscalPeriod.tenant_id == tenant_id,
                FiscalPeriod.start_date <= end_date,
                FiscalPeriod.end_date >= start_date,
            )
            .limit(1)
        ).scalar_one_or_none()
        if overlapping is not None:
            raise PeriodOverlapError(
                period_name,
                overlapping.period_name,
                str(max(start_date, overlapping.start_date)),
                str(min(end_date, overlapping.end_date)),
            )

        period = FiscalPeriod(
            tenant_id=tenant_id,
            financial_year_id=financial_year_id,
            period_number=period_number,
            period_name=period_name,
            start_date=start_date,
            end_date=end_date,
            status=PeriodStatus.OPEN,
            created_by_id=caller.actor_id,
        )
        self.session.add(period)
        self.session.flush()
        return period

    def resolve_period(self, tenant_id: UUID, day: date) -> FiscalPeriod | None:
        """Period of ``tenant_id`` whose range contains ``day``, if any."""
        return self.session.execute(
            select(FiscalPeriod).where(
                FiscalPeriod.tenant_id == tenant_id,
                FiscalPeriod.start_date <= day,
                FiscalPeriod.end_date >= day,
            )
        ).scalar_one_or_none()

    def require_open_period(self, tenant_id: UUID, day: date) -> FiscalPeriod:
        period = self.resolve_period(tenant_id, day)
        if period is None:
            raise NoPeriodError(str(tenant_id), str(day))
        if period.status != PeriodStatus.OPEN:
            raise PeriodClosedError(period.period_name, str(day), period.status.value)
        return period

    def get_period(self, tenant_id: UUID, period_id: UUID, for_update: bool = False) -> FiscalPeriod:
        stmt = select(FiscalPeriod).where(
            FiscalPeriod.id == period_id,
            FiscalPeriod.tenant_id == tenant_id,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        period = self.session.execute(stmt).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period
