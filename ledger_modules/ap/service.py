"""
Accounts Payable posting service (``ledger_modules.ap.service``).

* bill approved -> Dr Cost of Goods Sold 5200 / Cr Accounts Payable 2100
* bill paid     -> Dr Accounts Payable 2100 / Cr Cash 1100
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
from ledger_modules.ap.orm import BillModel, BillStatus

logger = get_logger("modules.ap.service")

BILL_DOC_TYPE = "bill"
BILL_PAYMENT_DOC_TYPE = "bill_payment"


class APPostingService:
    """Posts bills and bill payments."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: PostingPolicy | None = None,
    ):
        self._session = session
        self._poster = ModulePoster(session, clock, policy)

    def post_bill(self, caller: CallerIdentity, bill: BillModel) -> UUID:
        codes = self._poster.codes
        amount = as_decimal(bill.total_amount)
        cogs_id = self._poster.account_id(bill.tenant_id, codes.cost_of_goods_sold)
        ap_id = self._poster.account_id(bill.tenant_id, codes.accounts_payable)

        result = self._poster.post(
            caller,
            bill.tenant_id,
            BILL_DOC_TYPE,
            bill.id,
            bill.bill_date,
            f"Bill {bill.bill_number} - {bill.vendor_name}",
            [
                LineDescriptor.dr(cogs_id, amount, f"Purchase {bill.bill_number}"),
                LineDescriptor.cr(ap_id, amount, f"Payable {bill.bill_number}"),
            ],
        )
        logger.info(
            "ap_bill_posted",
            extra={
                "bill_id": str(bill.id),
                "bill_number": bill.bill_number,
                "entry_id": str(result.entry_id),
                "idempotent": result.idempotent,
            },
        )
        return result.entry_id

    def post_bill_payment(
        self,
        caller: CallerIdentity,
        bill: BillModel,
        payment_date: date | None = None,
    ) -> UUID:
        codes = self._poster.codes
        amount = as_decimal(bill.total_amount)
        ap_id = self._poster.account_id(bill.tenant_id, codes.accounts_payable)
        cash_id = self._poster.account_id(bill.tenant_id, codes.cash)
        when = payment_date or bill.paid_date or self._poster.clock.today()

        result = self._poster.post(
            caller,
            bill.tenant_id,
            BILL_PAYMENT_DOC_TYPE,
            bill.id,
            when,
            f"Payment for bill {bill.bill_number}",
            [
                LineDescriptor.dr(ap_id, amount, f"Settle {bill.bill_number}"),
                LineDescriptor.cr(cash_id, amount, f"Disbursement {bill.bill_number}"),
            ],
        )
        return result.entry_id

    def approve(self, caller: CallerIdentity, bill: BillModel) -> UUID:
        bill.status = BillStatus.APPROVED.value
        bill.updated_by_id = caller.actor_id
        self._session.flush()
        return self.post_bill(caller, bill)

    def mark_paid(
        self,
        caller: CallerIdentity,
        bill: BillModel,
        paid_date: date | None = None,
    ) -> UUID:
        """Mark paid; posts the bill too if it was never approved."""
        self.post_bill(caller, bill)
        bill.status = BillStatus.PAID.value
        bill.paid_date = paid_date or self._poster.clock.today()
        bill.updated_by_id = caller.actor_id
        self._session.flush()
        return self.post_bill_payment(caller, bill, bill.paid_date)
