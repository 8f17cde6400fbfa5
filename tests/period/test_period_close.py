"""
Period close tests.

A close runs all four pre-close checks, always appends a PeriodCloseLog
row, and only when every check passes moves the period to CLOSED and
the period's posted entries to LOCKED.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from ledger_kernel.domain.dtos import CallerIdentity
from ledger_kernel.exceptions import (
    AuthorizationError,
    ImmutabilityViolationError,
    PeriodClosedError,
    PeriodNotFoundError,
    PeriodNotOpenError,
)
from ledger_kernel.models.audit_event import AuditAction, AuditEvent
from ledger_kernel.models.close_log import PeriodCloseLog
from ledger_kernel.models.fiscal_period import FinancialYear, PeriodStatus
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_modules.assets.orm import AssetStatus


def _insert_entry(session, tenant, accounts, actor_id, status, debit, credit, day=date(2026, 1, 12)):
    """Write an entry straight to the table, bypassing the posting engine."""
    entry = JournalEntry(
        tenant_id=tenant.id,
        entry_date=day,
        source_type="import",
        source_id=uuid4(),
        status=status,
        created_by_id=actor_id,
        lines=[
            JournalLine(account_id=accounts["1100"].id, line_number=1, debit=Decimal(debit),
                        credit=Decimal("0"), created_by_id=actor_id),
            JournalLine(account_id=accounts["4100"].id, line_number=2, debit=Decimal("0"),
                        credit=Decimal(credit), created_by_id=actor_id),
        ],
    )
    session.add(entry)
    session.flush()
    return entry


def _status(session, entry_id) -> JournalEntryStatus:
    return session.execute(
        select(JournalEntry.status).where(JournalEntry.id == entry_id)
    ).scalar_one()


class TestSuccessfulClose:

    def test_empty_period_closes(self, close_service, caller, tenant, january_period, standard_accounts):
        result = close_service.close_fiscal_period(caller, tenant.id, january_period.id)

        assert result.success is True
        assert result.failed_checks == []
        assert result.locked_entry_count == 0
        assert result.closed_at is not None
        assert january_period.status == PeriodStatus.CLOSED
        assert january_period.closed_by_id == caller.actor_id

    def test_entries_in_period_locked(self, close_service, post_entry, caller, tenant, january_period, session):
        jan_a = post_entry("1100", "4100", Decimal("100.00"))
        jan_b = post_entry("5100", "1100", Decimal("30.00"), entry_date=date(2026, 1, 31))
        feb = post_entry("1100", "4100", Decimal("50.00"), entry_date=date(2026, 2, 1))

        result = close_service.close_fiscal_period(caller, tenant.id, january_period.id)

        assert result.locked_entry_count == 2
        assert _status(session, jan_a.entry_id) == JournalEntryStatus.LOCKED
        assert _status(session, jan_b.entry_id) == JournalEntryStatus.LOCKED
        assert _status(session, feb.entry_id) == JournalEntryStatus.POSTED

    def test_check_details(self, close_service, post_entry, caller, tenant, january_period):
        post_entry("1100", "4100", Decimal("100.00"))

        result = close_service.close_fiscal_period(caller, tenant.id, january_period.id)

        assert result.checks["draft_entries"] == {"count": 0, "passed": True}
        assert result.checks["trial_balance"] == {"debit": "100.00", "credit": "100.00", "passed": True}
        assert result.checks["depreciation_posted"] == {"pending": 0, "passed": True}
        assert result.checks["unbalanced_entries"] == {"count": 0, "passed": True}

    def test_close_log_written(self, close_service, caller, tenant, january_period, standard_accounts, session):
        result = close_service.close_fiscal_period(caller, tenant.id, january_period.id)

        log = session.get(PeriodCloseLog, result.log_id)
        assert log.all_checks_passed is True
        assert log.fiscal_period_id == january_period.id
        assert log.attempted_by_id == caller.actor_id
        assert set(log.pre_close_checks) == {
            "draft_entries", "trial_balance", "depreciation_posted", "unbalanced_entries",
        }

    def test_audit_and_log(self, close_service, post_entry, caller, tenant, january_period, session, captured_logs):
        post_entry("1100", "4100", Decimal("100.00"))

        close_service.close_fiscal_period(caller, tenant.id, january_period.id)

        event = session.execute(
            select(AuditEvent).where(
                AuditEvent.entity_id == january_period.id,
                AuditEvent.action == AuditAction.PERIOD_CLOSED,
            )
        ).scalar_one()
        assert event.payload["locked_entries"] == 1

        closed = [r for r in captured_logs() if r["message"] == "period_closed"]
        assert closed[0]["period_name"] == "Jan 2026"
        assert closed[0]["locked_entries"] == 1

    def test_posting_blocked_after_close(self, close_service, post_entry, caller, tenant, january_period):
        close_service.close_fiscal_period(caller, tenant.id, january_period.id)

        with pytest.raises(PeriodClosedError):
            post_entry("1100", "4100", Decimal("10.00"))

    def test_closing_last_period_closes_year(
        self, close_service, caller, tenant, fiscal_periods, standard_accounts, session, captured_logs,
    ):
        year = session.get(FinancialYear, fiscal_periods[0].financial_year_id)
        for period in fiscal_periods[:-1]:
            assert close_service.close_fiscal_period(caller, tenant.id, period.id).success
        assert year.is_closed is False

        close_service.close_fiscal_period(caller, tenant.id, fiscal_periods[-1].id)

        assert year.is_closed is True
        assert any(r["message"] == "financial_year_closed" for r in captured_logs())


class TestFailedChecks:

    def test_draft_blocks_close(
        self, close_service, post_entry, caller, tenant, january_period, standard_accounts, session, test_actor_id,
    ):
        posted = post_entry("1100", "4100", Decimal("100.00"))
        _insert_entry(session, tenant, standard_accounts, test_actor_id, JournalEntryStatus.DRAFT, "20.00", "20.00")

        result = close_service.close_fiscal_period(caller, tenant.id, january_period.id)

        assert result.success is False
        assert result.failed_checks == ["draft_entries"]
        assert result.checks["draft_entries"]["count"] == 1
        assert january_period.status == PeriodStatus.OPEN
        assert _status(session, posted.entry_id) == JournalEntryStatus.POSTED

    def test_failed_attempt_logged_and_audited(
        self, close_service, caller, tenant, january_period, standard_accounts, session, test_actor_id, captured_logs,
    ):
        _insert_entry(session, tenant, standard_accounts, test_actor_id, JournalEntryStatus.DRAFT, "20.00", "20.00")

        result = close_service.close_fiscal_period(caller, tenant.id, january_period.id)

        log = session.get(PeriodCloseLog, result.log_id)
        assert log.all_checks_passed is False
        assert log.pre_close_checks["draft_entries"]["passed"] is False

        event = session.execute(
            select(AuditEvent).where(
                AuditEvent.entity_id == january_period.id,
                AuditEvent.action == AuditAction.PERIOD_CLOSE_FAILED,
            )
        ).scalar_one()
        assert event.payload["failed_checks"] == ["draft_entries"]

        failed = [r for r in captured_logs() if r["message"] == "period_close_checks_failed"]
        assert failed[0]["failed_checks"] == ["draft_entries"]

    def test_unbalanced_posted_entry(
        self, close_service, caller, tenant, january_period, standard_accounts, session, test_actor_id,
    ):
        _insert_entry(session, tenant, standard_accounts, test_actor_id, JournalEntryStatus.POSTED, "100.00", "90.00")

        result = close_service.close_fiscal_period(caller, tenant.id, january_period.id)

        assert result.failed_checks == ["trial_balance", "unbalanced_entries"]
        assert result.checks["trial_balance"]["debit"] == "100.00"
        assert result.checks["trial_balance"]["credit"] == "90.00"

    def test_every_check_reported(
        self, close_service, make_asset, caller, tenant, january_period, standard_accounts, session, test_actor_id,
    ):
        _insert_entry(session, tenant, standard_accounts, test_actor_id, JournalEntryStatus.DRAFT, "10.00", "7.00")
        _insert_entry(session, tenant, standard_accounts, test_actor_id, JournalEntryStatus.POSTED, "5.00", "4.00")
        make_asset()

        result = close_service.close_fiscal_period(caller, tenant.id, january_period.id)

        assert result.failed_checks == [
            "draft_entries", "trial_balance", "depreciation_posted", "unbalanced_entries",
        ]
        assert result.checks["unbalanced_entries"]["count"] == 2

    def test_entries_outside_period_ignored(
        self, close_service, caller, tenant, january_period, standard_accounts, session, test_actor_id,
    ):
        _insert_entry(session, tenant, standard_accounts, test_actor_id, JournalEntryStatus.DRAFT,
                      "10.00", "10.00", day=date(2026, 2, 10))

        assert close_service.close_fiscal_period(caller, tenant.id, january_period.id).success

    def test_other_tenant_drafts_ignored(
        self, close_service, caller, tenant, other_tenant, january_period, standard_accounts, session, test_actor_id,
    ):
        _insert_entry(session, other_tenant, standard_accounts, test_actor_id, JournalEntryStatus.DRAFT,
                      "10.00", "10.00")

        assert close_service.close_fiscal_period(caller, tenant.id, january_period.id).success


class TestDepreciationCheck:

    def test_undepreciated_asset_blocks(self, close_service, make_asset, caller, tenant, january_period,
                                        standard_accounts):
        make_asset()

        result = close_service.close_fiscal_period(caller, tenant.id, january_period.id)

        assert result.failed_checks == ["depreciation_posted"]
        assert result.checks["depreciation_posted"]["pending"] == 1

    def test_close_passes_after_batch(
        self, close_service, depreciation_service, make_asset, caller, tenant, january_period, standard_accounts,
    ):
        make_asset()
        depreciation_service.run_depreciation_batch(
            caller, tenant.id, date(2026, 1, 31),
        )

        result = close_service.close_fiscal_period(caller, tenant.id, january_period.id)

        assert result.success is True
        assert result.locked_entry_count == 1

    @pytest.mark.parametrize(
        "overrides",
        [
            {"start": date(2026, 3, 1)},
            {"status": AssetStatus.DISPOSED},
            {"life": 0},
            {"book": "100.00", "salvage": "100.00"},
        ],
        ids=["starts_later", "disposed", "no_life", "fully_depreciated"],
    )
    def test_assets_not_due(self, close_service, make_asset, caller, tenant, january_period, standard_accounts,
                            overrides):
        make_asset(**overrides)

        result = close_service.close_fiscal_period(caller, tenant.id, january_period.id)

        assert result.checks["depreciation_posted"] == {"pending": 0, "passed": True}


class TestCloseRejections:

    def test_already_closed(self, close_service, caller, tenant, january_period, standard_accounts, captured_logs):
        close_service.close_fiscal_period(caller, tenant.id, january_period.id)

        with pytest.raises(PeriodNotOpenError) as exc_info:
            close_service.close_fiscal_period(caller, tenant.id, january_period.id)

        assert exc_info.value.status == "closed"
        assert any(r["message"] == "period_close_rejected" for r in captured_logs())

    def test_unknown_period(self, close_service, caller, tenant):
        with pytest.raises(PeriodNotFoundError):
            close_service.close_fiscal_period(caller, tenant.id, uuid4())

    def test_period_of_other_tenant(self, close_service, other_tenant, january_period, test_actor_id):
        other_caller = CallerIdentity(actor_id=test_actor_id, roles={other_tenant.id: frozenset({"finance"})})

        with pytest.raises(PeriodNotFoundError):
            close_service.close_fiscal_period(other_caller, other_tenant.id, january_period.id)

    def test_caller_without_role(self, close_service, tenant, january_period):
        nobody = CallerIdentity(actor_id=uuid4(), roles={})

        with pytest.raises(AuthorizationError):
            close_service.close_fiscal_period(nobody, tenant.id, january_period.id)
        assert january_period.status == PeriodStatus.OPEN

    def test_close_log_is_append_only(self, close_service, caller, tenant, january_period, standard_accounts, session):
        result = close_service.close_fiscal_period(caller, tenant.id, january_period.id)
        log = session.get(PeriodCloseLog, result.log_id)

        with pytest.raises(ImmutabilityViolationError):
            with session.begin_nested():
                log.all_checks_passed = False
                session.flush()
