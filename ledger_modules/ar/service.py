"""
Accounts Receivable posting service (``ledger_modules.ar.service``).

Thin glue between invoice status transitions and the ledger:

* invoice sent   -> Dr Accounts Receivable 1200 / Cr Revenue 4100
* invoice paid   -> Dr Cash 1100 / Cr Accounts Receivable 1200

Both postings are keyed on the invoice id, so calling them again on a
later status transition is a no-op.

Usage:
    service = ARPostingService(session, clock)
    entry_id = service.mark_sent(caller, invoice)
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config.schema import PostingPolicy
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import CallerIdentity, LineDescriptor
from ledger_kernel.domain.money import as_decimal
from ledger_kernel.logging_config import get_logger
from ledger_modules._posting import ModulePoster
from ledger_modules.ar.orm import InvoiceModel, InvoiceStatus

logger = get_logger("modules.ar.service")

INVOICE_DOC_TYPE = "invoice"
INVOICE_PAYMENT_DOC_TYPE = "invoice_payment"


class ARPostingService:
    """Posts invoices and invoice payments."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: PostingPolicy | None = None,
    ):
        self._session = session
        self._poster = ModulePoster(session, clock, policy)

    def post_invoice(self, caller: CallerIdentity, invoice: InvoiceModel) -> UUID:
        """Recognize the receivable and the revenue on the invoice date."""
        codes = self._poster.codes
        amount = as_decimal(invoice.total_amount)
        ar_id = self._poster.account_id(invoice.tenant_id, codes.accounts_receivable)
        revenue_id = self._poster.account_id(invoice.tenant_id, codes.revenue)

        result = self._poster.post(
            caller,
            invoice.tenant_id,
            INVOICE_DOC_TYPE,
            invoice.id,
            invoice.invoice_date,
            f"Invoice {invoice.invoice_number} - {invoice.client_name}",
            [
                LineDescriptor.dr(ar_id, amount, f"Receivable {invoice.invoice_number}"),
                LineDescriptor.cr(revenue_id, amount, f"Revenue {invoice.invoice_number}"),
            ],
        )
        logger.info(
            "ar_invoice_posted",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "entry_id": str(result.entry_id),
                "idempotent": result.idempotent,
            },
        )
        return result.entry_id

    def post_invoice_payment(
        self,
        caller: CallerIdentity,
        invoice: InvoiceModel,
        payment_date: date | None = None,
    ) -> UUID:
        """Settle the receivable in cash, in full."""
        codes = self._poster.codes
        amount = as_decimal(invoice.total_amount)
        cash_id = self._poster.account_id(invoice.tenant_id, codes.cash)
        ar_id = self._poster.account_id(invoice.tenant_id, codes.accounts_receivable)
        when = payment_date or invoice.paid_date or self._poster.clock.today()

        result = self._poster.post(
            caller,
            invoice.tenant_id,
            INVOICE_PAYMENT_DOC_TYPE,
            invoice.id,
            when,
            f"Payment for invoice {invoice.invoice_number}",
            [
                LineDescriptor.dr(cash_id, amount, f"Receipt {invoice.invoice_number}"),
                LineDescriptor.cr(ar_id, amount, f"Settle {invoice.invoice_number}"),
            ],
        )
        return result.entry_id

    # Status transitions

    def mark_sent(self, caller: CallerIdentity, invoice: InvoiceModel) -> UUID:
        invoice.status = InvoiceStatus.SENT.value
        invoice.updated_by_id = caller.actor_id
        self._session.flush()
        return self.post_invoice(caller, invoice)

    def mark_paid(
        self,
        caller: CallerIdentity,
        invoice: InvoiceModel,
        paid_date: date | None = None,
    ) -> UUID:
        """Mark paid; posts the invoice too if it never went through ``sent``."""
        self.post_invoice(caller, invoice)
        invoice.status = InvoiceStatus.PAID.value
        invoice.paid_date = paid_date or self._poster.clock.today()
        invoice.updated_by_id = caller.actor_id
        self._session.flush()
        return self.post_invoice_payment(caller, invoice, invoice.paid_date)
