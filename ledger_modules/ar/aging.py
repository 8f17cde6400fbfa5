"""
AR aging (``ledger_modules.ar.aging``).

Responsibility
--------------
Classify outstanding invoices (status ``sent`` or ``overdue``) into
days-past-due buckets.  Age is measured from the due date (or the invoice
date when no due date is set); an invoice not yet due is ``Current``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.money import ZERO, as_decimal
from ledger_kernel.selectors.base import BaseSelector
from ledger_modules.ar.orm import InvoiceModel, InvoiceStatus

OUTSTANDING_STATUSES = (InvoiceStatus.SENT.value, InvoiceStatus.OVERDUE.value)


@dataclass(frozen=True)
class AgeBucket:
    """A contiguous range of days past due; ``max_days=None`` is unbounded."""

    name: str
    min_days: int
    max_days: int | None

    def __post_init__(self) -> None:
        if self.min_days < 0:
            raise ValueError("min_days cannot be negative")
        if self.max_days is not None and self.max_days < self.min_days:
            raise ValueError("max_days cannot be less than min_days")

    def contains(self, age_days: int) -> bool:
        if age_days < self.min_days:
            return False
        return self.max_days is None or age_days <= self.max_days


STANDARD_BUCKETS: tuple[AgeBucket, ...] = (
    AgeBucket("Current", 0, 0),
    AgeBucket("1-30", 1, 30),
    AgeBucket("31-60", 31, 60),
    AgeBucket("61-90", 61, 90),
    AgeBucket("Over 90", 91, None),
)


def classify(age_days: int, buckets: tuple[AgeBucket, ...] = STANDARD_BUCKETS) -> AgeBucket:
    """Bucket for ``age_days``; negative ages (not yet due) are the first bucket."""
    if age_days < 0:
        return buckets[0]
    for bucket in buckets:
        if bucket.contains(age_days):
            return bucket
    raise ValueError(f"No aging bucket for {age_days} days")


@dataclass(frozen=True)
class AgedInvoice:
    invoice_id: UUID
    invoice_number: str
    client_name: str
    due_date: date
    amount: Decimal
    age_days: int
    bucket: str


@dataclass(frozen=True)
class AgingReport:
    as_of: date
    totals: dict[str, Decimal]
    items: tuple[AgedInvoice, ...] = field(default_factory=tuple)

    @property
    def total_outstanding(self) -> Decimal:
        return sum(self.totals.values(), ZERO)


class ARAgingSelector(BaseSelector):
    """Read-only aging over a tenant's outstanding invoices."""

    def aging(
        self,
        tenant_id: UUID,
        as_of: date,
        buckets: tuple[AgeBucket, ...] = STANDARD_BUCKETS,
    ) -> AgingReport:
        invoices = self.session.execute(
            select(InvoiceModel)
            .where(
                InvoiceModel.tenant_id == tenant_id,
                InvoiceModel.status.in_(OUTSTANDING_STATUSES),
            )
            .order_by(InvoiceModel.due_date, InvoiceModel.invoice_number)
        ).scalars()

        totals = {bucket.name: ZERO for bucket in buckets}
        items = []
        for invoice in invoices:
            due = invoice.due_date or invoice.invoice_date
            age_days = (as_of - due).days
            bucket = classify(age_days, buckets)
            amount = as_decimal(invoice.total_amount)
            totals[bucket.name] += amount
            items.append(
                AgedInvoice(
                    invoice_id=invoice.id,
                    invoice_number=invoice.invoice_number,
                    client_name=invoice.client_name,
                    due_date=due,
                    amount=amount,
                    age_days=max(age_days, 0),
                    bucket=bucket.name,
                )
            )
        return AgingReport(as_of=as_of, totals=totals, items=tuple(items))
