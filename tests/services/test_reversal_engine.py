"""
Tests for ReversalEngine.

A reversal is a new posted entry dated today that mirrors the original's
lines.  The original row is never touched; the link lives on the
reversal's ``reversed_entry_id``.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.dtos import CallerIdentity, LineDescriptor
from ledger_kernel.exceptions import (
    AlreadyReversedError,
    AuthorizationError,
    EntryNotFoundError,
    EntryNotPostedError,
    NoPeriodError,
    PeriodClosedError,
    ReversalOfReversalError,
)
from ledger_kernel.models.audit_event import AuditAction, AuditEvent
from ledger_kernel.models.fiscal_period import PeriodStatus
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.services.reversal_service import REVERSAL_SOURCE_TYPE


def _entry_count(session, tenant_id) -> int:
    return session.execute(
        select(func.count(JournalEntry.id)).where(JournalEntry.tenant_id == tenant_id)
    ).scalar_one()


class TestReversal:

    def test_reversal_entry_fields(self, post_entry, reversal_engine, journal_selector, caller):
        original = post_entry("1100", "4100", Decimal("250.00"), memo="Consulting fee")

        result = reversal_engine.reverse_journal_entry(caller, original.entry_id)

        reversal = journal_selector.get_entry(result.reversal_entry_id)
        assert reversal.status == JournalEntryStatus.POSTED
        assert reversal.is_reversal is True
        assert reversal.reversed_entry_id == original.entry_id
        assert reversal.source_type == REVERSAL_SOURCE_TYPE
        assert reversal.source_id == original.entry_id
        assert reversal.entry_date == date(2026, 1, 20)
        assert reversal.memo == "REVERSAL: Consulting fee"
        assert result.document_sequence_number == "JE-REV-000001"
        assert result.reversal_date == date(2026, 1, 20)
        assert result.total == Decimal("250.00")
        assert result.line_count == 2

    def test_lines_are_mirrored(self, post_entry, reversal_engine, journal_selector, caller, standard_accounts):
        original = post_entry("1100", "4100", Decimal("250.00"))

        result = reversal_engine.reverse_journal_entry(caller, original.entry_id)

        lines = journal_selector.get_entry(result.reversal_entry_id).lines
        assert lines[0].account_id == standard_accounts["1100"].id
        assert lines[0].debit == Decimal("0")
        assert lines[0].credit == Decimal("250.00")
        assert lines[0].description == "REVERSAL: Dr 1100"
        assert lines[1].account_id == standard_accounts["4100"].id
        assert lines[1].debit == Decimal("250.00")
        assert lines[1].credit == Decimal("0")

    def test_reversal_after_account_deactivated(
        self, post_entry, reversal_engine, journal_selector, caller, admin_caller, account_service, standard_accounts,
    ):
        original = post_entry("1100", "5100", Decimal("20.00"))
        account_service.deactivate_account(admin_caller, standard_accounts["5100"])

        result = reversal_engine.reverse_journal_entry(caller, original.entry_id)

        lines = journal_selector.get_entry(result.reversal_entry_id).lines
        assert lines[1].account_id == standard_accounts["5100"].id
        assert lines[1].debit == Decimal("20.00")

    def test_memo_falls_back_to_source_type(self, post_entry, reversal_engine, journal_selector, caller):
        original = post_entry("1100", "4100", Decimal("5.00"))
        result = reversal_engine.reverse_journal_entry(caller, original.entry_id)
        assert journal_selector.get_entry(result.reversal_entry_id).memo == "REVERSAL: manual"

    def test_tags_carried_over(
        self, posting_engine, reversal_engine, journal_selector, caller, tenant, standard_accounts, january_period,
    ):
        asset_ref = uuid4()
        original = posting_engine.post(
            caller, tenant.id, "manual", uuid4(), date(2026, 1, 12), "Tagged",
            [
                LineDescriptor.dr(standard_accounts["5100"].id, Decimal("80.00"), "Travel",
                                  cost_center="CC-9", department="SALES", asset_id=asset_ref),
                LineDescriptor.cr(standard_accounts["1100"].id, Decimal("80.00"), "Cash"),
            ],
        )

        result = reversal_engine.reverse_journal_entry(caller, original.entry_id)

        first = journal_selector.get_entry(result.reversal_entry_id).lines[0]
        assert first.cost_center == "CC-9"
        assert first.department == "SALES"
        assert first.asset_id == asset_ref
        assert first.credit == Decimal("80.00")

    def test_balances_restored(self, post_entry, reversal_engine, ledger_selector, caller, tenant):
        post_entry("1100", "4100", Decimal("100.00"))
        cash_before = ledger_selector.balance_by_code(tenant.id, "1100")
        revenue_before = ledger_selector.balance_by_code(tenant.id, "4100")

        original = post_entry("1100", "4100", Decimal("40.00"))
        reversal_engine.reverse_journal_entry(caller, original.entry_id)

        assert ledger_selector.balance_by_code(tenant.id, "1100") == cash_before
        assert ledger_selector.balance_by_code(tenant.id, "4100") == revenue_before

    def test_original_unchanged(self, post_entry, reversal_engine, journal_selector, caller):
        original = post_entry("1100", "4100", Decimal("100.00"), memo="Keep me")
        before = journal_selector.get_entry(original.entry_id)

        reversal_engine.reverse_journal_entry(caller, original.entry_id)

        after = journal_selector.get_entry(original.entry_id)
        assert after.status == JournalEntryStatus.POSTED
        assert after.memo == "Keep me"
        assert after.lines == before.lines
        assert journal_selector.find_reversal_of(original.entry_id) is not None

    def test_locked_entry_reversible(self, post_entry, reversal_engine, caller, session):
        original = post_entry("1100", "4100", Decimal("100.00"))
        session.get(JournalEntry, original.entry_id).status = JournalEntryStatus.LOCKED
        session.flush()

        result = reversal_engine.reverse_journal_entry(caller, original.entry_id)
        assert result.original_entry_id == original.entry_id

    def test_control_account_entry_reversible(self, post_entry, reversal_engine, ledger_selector, caller, tenant):
        original = post_entry("1200", "4100", Decimal("300.00"), doc_type="invoice")

        reversal_engine.reverse_journal_entry(caller, original.entry_id)
        assert ledger_selector.balance_by_code(tenant.id, "1200") == Decimal("0")

    def test_dated_in_todays_period(
        self, post_entry, reversal_engine, journal_selector, caller, deterministic_clock, fiscal_periods,
    ):
        original = post_entry("1100", "4100", Decimal("100.00"))
        deterministic_clock.set_date(date(2026, 2, 3))

        result = reversal_engine.reverse_journal_entry(caller, original.entry_id)

        reversal = journal_selector.get_entry(result.reversal_entry_id)
        assert reversal.entry_date == date(2026, 2, 3)
        assert reversal.fiscal_period_id == fiscal_periods[1].id

    def test_audit_records(self, post_entry, reversal_engine, caller, session, tenant):
        original = post_entry("1100", "4100", Decimal("100.00"))

        result = reversal_engine.reverse_journal_entry(caller, original.entry_id)

        reversed_event = session.execute(
            select(AuditEvent).where(
                AuditEvent.entity_id == original.entry_id,
                AuditEvent.action == AuditAction.JOURNAL_REVERSED,
            )
        ).scalar_one()
        assert reversed_event.payload["reversal_entry_id"] == str(result.reversal_entry_id)

        posted_event = session.execute(
            select(AuditEvent).where(AuditEvent.entity_id == result.reversal_entry_id)
        ).scalar_one()
        assert posted_event.action == AuditAction.JOURNAL_POSTED

    def test_completion_logged(self, post_entry, reversal_engine, caller, captured_logs):
        original = post_entry("1100", "4100", Decimal("100.00"))

        result = reversal_engine.reverse_journal_entry(caller, original.entry_id)

        completed = [r for r in captured_logs() if r["message"] == "reversal_completed"]
        assert len(completed) == 1
        assert completed[0]["reversal_entry_id"] == str(result.reversal_entry_id)
        assert completed[0]["document_number"] == "JE-REV-000001"
        assert completed[0]["entry_id"] == str(original.entry_id)


class TestReversalRejections:

    def test_second_reversal_rejected(self, post_entry, reversal_engine, caller, session, tenant):
        original = post_entry("1100", "4100", Decimal("100.00"))
        first = reversal_engine.reverse_journal_entry(caller, original.entry_id)
        count = _entry_count(session, tenant.id)

        with pytest.raises(AlreadyReversedError) as exc_info:
            reversal_engine.reverse_journal_entry(caller, original.entry_id)

        assert exc_info.value.reversal_entry_id == str(first.reversal_entry_id)
        assert _entry_count(session, tenant.id) == count

    def test_reversal_of_reversal_rejected(self, post_entry, reversal_engine, caller):
        original = post_entry("1100", "4100", Decimal("100.00"))
        reversal = reversal_engine.reverse_journal_entry(caller, original.entry_id)

        with pytest.raises(ReversalOfReversalError):
            reversal_engine.reverse_journal_entry(caller, reversal.reversal_entry_id)

    def test_unknown_entry(self, reversal_engine, caller):
        with pytest.raises(EntryNotFoundError):
            reversal_engine.reverse_journal_entry(caller, uuid4())

    def test_draft_entry_rejected(self, reversal_engine, caller, session, tenant, standard_accounts, test_actor_id):
        draft = JournalEntry(
            tenant_id=tenant.id,
            entry_date=date(2026, 1, 10),
            source_type="manual",
            status=JournalEntryStatus.DRAFT,
            created_by_id=test_actor_id,
            lines=[
                JournalLine(account_id=standard_accounts["1100"].id, line_number=1,
                            debit=Decimal("5.00"), credit=Decimal("0"), created_by_id=test_actor_id),
                JournalLine(account_id=standard_accounts["4100"].id, line_number=2,
                            debit=Decimal("0"), credit=Decimal("5.00"), created_by_id=test_actor_id),
            ],
        )
        session.add(draft)
        session.flush()

        with pytest.raises(EntryNotPostedError) as exc_info:
            reversal_engine.reverse_journal_entry(caller, draft.id)
        assert exc_info.value.status == "draft"

    def test_todays_period_closed(self, post_entry, reversal_engine, caller, january_period, session):
        original = post_entry("1100", "4100", Decimal("100.00"))
        january_period.status = PeriodStatus.CLOSED
        session.flush()

        with pytest.raises(PeriodClosedError) as exc_info:
            reversal_engine.reverse_journal_entry(caller, original.entry_id)
        assert exc_info.value.period_name == "Jan 2026"

    def test_no_period_for_today(self, post_entry, reversal_engine, caller, deterministic_clock):
        original = post_entry("1100", "4100", Decimal("100.00"))
        deterministic_clock.set_date(date(2027, 3, 1))

        with pytest.raises(NoPeriodError):
            reversal_engine.reverse_journal_entry(caller, original.entry_id)

    def test_caller_without_role(self, post_entry, reversal_engine, other_tenant, test_actor_id):
        original = post_entry("1100", "4100", Decimal("100.00"))
        outsider = CallerIdentity(actor_id=test_actor_id, roles={other_tenant.id: frozenset({"finance"})})

        with pytest.raises(AuthorizationError):
            reversal_engine.reverse_journal_entry(outsider, original.entry_id)

    def test_rejection_logged(self, post_entry, reversal_engine, caller, captured_logs):
        original = post_entry("1100", "4100", Decimal("100.00"))
        reversal_engine.reverse_journal_entry(caller, original.entry_id)

        with pytest.raises(AlreadyReversedError):
            reversal_engine.reverse_journal_entry(caller, original.entry_id)

        rejected = [r for r in captured_logs() if r["message"] == "reversal_rejected"]
        assert rejected[0]["error_code"] == "ALREADY_REVERSED"
        assert rejected[0]["original_entry_id"] == str(original.entry_id)
        assert rejected[0]["level"] == "WARNING"
