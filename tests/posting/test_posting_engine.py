"""
Posting engine validation and write-path tests.

Verifies:
- Validation order: period, line count, accounts, line shape, control
  accounts, balance
- A rejected posting writes nothing
- A successful posting writes the entry, its lines, a document number and
  a JOURNAL_POSTED audit record
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.dtos import CallerIdentity, LineDescriptor
from ledger_kernel.exceptions import (
    AuthorizationError,
    ControlAccountViolation,
    CrossTenantError,
    InvalidAccountError,
    MalformedLineError,
    NoPeriodError,
    PeriodClosedError,
    TenantBlockedError,
    TenantNotFoundError,
    UnbalancedEntryError,
)
from ledger_kernel.models.audit_event import AuditAction, AuditEvent
from ledger_kernel.models.fiscal_period import PeriodStatus
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.models.tenant import OrgState

JAN_15 = date(2026, 1, 15)


def _entry_count(session, tenant_id) -> int:
    return session.execute(
        select(func.count(JournalEntry.id)).where(JournalEntry.tenant_id == tenant_id)
    ).scalar_one()


def _pair(accounts, debit_code, credit_code, amount):
    return [
        LineDescriptor.dr(accounts[debit_code].id, amount),
        LineDescriptor.cr(accounts[credit_code].id, amount),
    ]


class TestSuccessfulPosting:
    """Happy path: what a posting writes."""

    def test_post_returns_entry_id(
        self, posting_engine, caller, tenant, standard_accounts, january_period, session,
    ):
        entry_id = posting_engine.post_journal_entry(
            caller, tenant.id, "manual", uuid4(), JAN_15, "Owner contribution",
            _pair(standard_accounts, "1100", "3000", Decimal("1000.00")),
        )

        entry = session.get(JournalEntry, entry_id)
        assert entry is not None
        assert entry.status == JournalEntryStatus.POSTED
        assert entry.entry_date == JAN_15
        assert entry.memo == "Owner contribution"
        assert entry.fiscal_period_id == january_period.id
        assert entry.posted_at is not None
        assert entry.is_reversal is False

    def test_lines_stored_in_order(self, post_entry, session):
        result = post_entry("1100", "4100", Decimal("250.00"))

        lines = session.execute(
            select(JournalLine)
            .where(JournalLine.journal_entry_id == result.entry_id)
            .order_by(JournalLine.line_number)
        ).scalars().all()
        assert [line.line_number for line in lines] == [1, 2]
        assert lines[0].debit == Decimal("250.00")
        assert lines[0].credit == Decimal("0")
        assert lines[1].credit == Decimal("250.00")

    def test_result_carries_totals_and_number(self, post_entry, january_period):
        result = post_entry("1100", "4100", Decimal("75.50"))

        assert result.total == Decimal("75.50")
        assert result.line_count == 2
        assert result.document_sequence_number == "JE-MAN-000001"
        assert result.fiscal_period_id == january_period.id
        assert result.idempotent is False

    def test_multi_line_entry(
        self, posting_engine, caller, tenant, standard_accounts, january_period,
    ):
        lines = [
            LineDescriptor.dr(standard_accounts["5100"].id, Decimal("60.00")),
            LineDescriptor.dr(standard_accounts["5200"].id, Decimal("40.00")),
            LineDescriptor.cr(standard_accounts["1100"].id, Decimal("100.00")),
        ]
        result = posting_engine.post(caller, tenant.id, "manual", uuid4(), JAN_15, None, lines)

        assert result.total == Decimal("100.00")
        assert result.line_count == 3

    def test_analytical_tags_carried_through(
        self, posting_engine, caller, tenant, standard_accounts, january_period, session,
    ):
        asset_ref = uuid4()
        lines = [
            LineDescriptor.dr(
                standard_accounts["5100"].id, Decimal("20.00"), "Office supplies",
                cost_center="CC-100", department="OPS", asset_id=asset_ref,
            ),
            LineDescriptor.cr(standard_accounts["1100"].id, Decimal("20.00")),
        ]
        result = posting_engine.post(caller, tenant.id, "manual", uuid4(), JAN_15, None, lines)

        first = session.execute(
            select(JournalLine).where(
                JournalLine.journal_entry_id == result.entry_id,
                JournalLine.line_number == 1,
            )
        ).scalar_one()
        assert first.cost_center == "CC-100"
        assert first.department == "OPS"
        assert first.asset_id == asset_ref
        assert first.description == "Office supplies"

    def test_audit_record_written(self, post_entry, session, tenant):
        result = post_entry("1100", "4100", Decimal("10.00"))

        events = session.execute(
            select(AuditEvent).where(
                AuditEvent.tenant_id == tenant.id,
                AuditEvent.entity_id == result.entry_id,
            )
        ).scalars().all()
        assert len(events) == 1
        assert events[0].action == AuditAction.JOURNAL_POSTED
        assert events[0].payload["document_number"] == "JE-MAN-000001"
        assert events[0].payload["line_count"] == 2

    def test_doc_id_may_be_none(
        self, posting_engine, caller, tenant, standard_accounts, january_period, session,
    ):
        """Without a document id there is no idempotency key."""
        before = _entry_count(session, tenant.id)
        for _ in range(2):
            posting_engine.post(
                caller, tenant.id, "manual", None, JAN_15, None,
                _pair(standard_accounts, "1100", "4100", Decimal("5.00")),
            )
        assert _entry_count(session, tenant.id) == before + 2

    def test_posted_log_event(self, post_entry, captured_logs):
        result = post_entry("1100", "4100", Decimal("500.00"))

        posted = [r for r in captured_logs() if r["message"] == "journal_posted"]
        assert len(posted) == 1
        assert posted[0]["entry_id"] == str(result.entry_id)
        assert posted[0]["document_number"] == "JE-MAN-000001"
        assert posted[0]["total"] == "500.00"
        assert posted[0]["line_count"] == 2


class TestPeriodGate:
    """Postings only land in open periods."""

    def test_no_period_for_date(self, post_entry):
        with pytest.raises(NoPeriodError) as exc_info:
            post_entry("1100", "4100", Decimal("10.00"), entry_date=date(2025, 12, 31))
        assert exc_info.value.entry_date == "2025-12-31"

    def test_closed_period_rejected(self, post_entry, fiscal_periods, session):
        february = fiscal_periods[1]
        february.status = PeriodStatus.CLOSED
        session.flush()

        with pytest.raises(PeriodClosedError) as exc_info:
            post_entry("1100", "4100", Decimal("10.00"), entry_date=date(2026, 2, 10))
        assert exc_info.value.period_name == "Feb 2026"
        assert exc_info.value.status == "closed"

    def test_period_checked_before_lines(
        self, posting_engine, caller, tenant, standard_accounts, january_period,
    ):
        """A bad line set on a date without a period reports the period."""
        lines = [LineDescriptor.dr(standard_accounts["1100"].id, Decimal("1.00"))]
        with pytest.raises(NoPeriodError):
            posting_engine.post(caller, tenant.id, "manual", uuid4(), date(2030, 1, 1), None, lines)


class TestLineValidation:
    """Line count, shape and account checks."""

    def test_single_line_rejected(
        self, posting_engine, caller, tenant, standard_accounts, january_period,
    ):
        lines = [LineDescriptor.dr(standard_accounts["1100"].id, Decimal("1.00"))]
        with pytest.raises(MalformedLineError):
            posting_engine.post(caller, tenant.id, "manual", uuid4(), JAN_15, None, lines)

    def test_empty_lines_rejected(self, posting_engine, caller, tenant, standard_accounts, january_period):
        with pytest.raises(MalformedLineError):
            posting_engine.post(caller, tenant.id, "manual", uuid4(), JAN_15, None, [])

    def test_negative_amount_rejected(
        self, posting_engine, caller, tenant, standard_accounts, january_period,
    ):
        lines = [
            LineDescriptor(account_id=standard_accounts["1100"].id, debit=Decimal("-10.00")),
            LineDescriptor.cr(standard_accounts["4100"].id, Decimal("10.00")),
        ]
        with pytest.raises(MalformedLineError) as exc_info:
            posting_engine.post(caller, tenant.id, "manual", uuid4(), JAN_15, None, lines)
        assert exc_info.value.line_index == 0

    def test_line_with_both_sides_rejected(
        self, posting_engine, caller, tenant, standard_accounts, january_period,
    ):
        lines = [
            LineDescriptor(
                account_id=standard_accounts["1100"].id,
                debit=Decimal("10.00"),
                credit=Decimal("10.00"),
            ),
            LineDescriptor.cr(standard_accounts["4100"].id, Decimal("10.00")),
            LineDescriptor.dr(standard_accounts["5100"].id, Decimal("10.00")),
        ]
        with pytest.raises(MalformedLineError) as exc_info:
            posting_engine.post(caller, tenant.id, "manual", uuid4(), JAN_15, None, lines)
        assert exc_info.value.line_index == 0

    def test_zero_line_rejected(
        self, posting_engine, caller, tenant, standard_accounts, january_period,
    ):
        lines = [
            LineDescriptor.dr(standard_accounts["1100"].id, Decimal("10.00")),
            LineDescriptor.cr(standard_accounts["4100"].id, Decimal("10.00")),
            LineDescriptor(account_id=standard_accounts["5100"].id),
        ]
        with pytest.raises(MalformedLineError) as exc_info:
            posting_engine.post(caller, tenant.id, "manual", uuid4(), JAN_15, None, lines)
        assert exc_info.value.line_index == 2

    def test_float_amount_refused_by_descriptor(self, standard_accounts):
        with pytest.raises(TypeError):
            LineDescriptor.dr(standard_accounts["1100"].id, 10.5)

    def test_unknown_account_rejected(
        self, posting_engine, caller, tenant, standard_accounts, january_period,
    ):
        lines = [
            LineDescriptor.dr(uuid4(), Decimal("10.00")),
            LineDescriptor.cr(standard_accounts["4100"].id, Decimal("10.00")),
        ]
        with pytest.raises(InvalidAccountError):
            posting_engine.post(caller, tenant.id, "manual", uuid4(), JAN_15, None, lines)

    def test_inactive_account_rejected(
        self, posting_engine, account_service, admin_caller, caller, tenant,
        standard_accounts, january_period,
    ):
        account_service.deactivate_account(admin_caller, standard_accounts["5100"])

        with pytest.raises(InvalidAccountError) as exc_info:
            posting_engine.post(
                caller, tenant.id, "manual", uuid4(), JAN_15, None,
                _pair(standard_accounts, "5100", "1100", Decimal("10.00")),
            )
        assert "inactive" in exc_info.value.reason

    def test_cross_tenant_account_rejected(
        self, posting_engine, account_service, caller, tenant, other_tenant,
        standard_accounts, january_period, test_actor_id,
    ):
        other_admin = CallerIdentity(actor_id=test_actor_id, roles={other_tenant.id: frozenset({"admin"})})
        other_chart = account_service.seed_default_chart(other_admin, other_tenant.id)

        lines = [
            LineDescriptor.dr(standard_accounts["1100"].id, Decimal("10.00")),
            LineDescriptor.cr(other_chart["4100"].id, Decimal("10.00")),
        ]
        with pytest.raises(CrossTenantError) as exc_info:
            posting_engine.post(caller, tenant.id, "manual", uuid4(), JAN_15, None, lines)
        assert exc_info.value.account_id == str(other_chart["4100"].id)

    def test_unbalanced_entry_rejected(
        self, posting_engine, caller, tenant, standard_accounts, january_period,
    ):
        lines = [
            LineDescriptor.dr(standard_accounts["1100"].id, Decimal("100.00")),
            LineDescriptor.cr(standard_accounts["4100"].id, Decimal("90.00")),
        ]
        with pytest.raises(UnbalancedEntryError) as exc_info:
            posting_engine.post(caller, tenant.id, "manual", uuid4(), JAN_15, None, lines)
        assert exc_info.value.debits == "100.00"
        assert exc_info.value.credits == "90.00"

    def test_control_account_checked_before_balance(
        self, posting_engine, caller, tenant, standard_accounts, january_period,
    ):
        lines = [
            LineDescriptor.dr(standard_accounts["1200"].id, Decimal("100.00")),
            LineDescriptor.cr(standard_accounts["4100"].id, Decimal("1.00")),
        ]
        with pytest.raises(ControlAccountViolation):
            posting_engine.post(caller, tenant.id, "manual", uuid4(), JAN_15, None, lines)


class TestAccessChecks:
    """Capability and tenant lifecycle at the service boundary."""

    def test_caller_without_role_rejected(self, post_entry, tenant):
        outsider = CallerIdentity(actor_id=uuid4())
        with pytest.raises(AuthorizationError) as exc_info:
            post_entry("1100", "4100", Decimal("10.00"), as_caller=outsider)
        assert exc_info.value.capability == "finance"

    def test_role_on_other_tenant_does_not_count(self, post_entry, other_tenant):
        elsewhere = CallerIdentity(actor_id=uuid4(), roles={other_tenant.id: frozenset({"admin"})})
        with pytest.raises(AuthorizationError):
            post_entry("1100", "4100", Decimal("10.00"), as_caller=elsewhere)

    def test_super_admin_may_post(self, post_entry):
        result = post_entry(
            "1100", "4100", Decimal("10.00"), as_caller=CallerIdentity.system(uuid4()),
        )
        assert result.entry_id is not None

    @pytest.mark.parametrize("state", [OrgState.LOCKED, OrgState.ARCHIVED, OrgState.SUSPENDED])
    def test_blocked_tenant_rejected(self, post_entry, tenant, session, state):
        tenant.org_state = state
        session.flush()

        with pytest.raises(TenantBlockedError) as exc_info:
            post_entry("1100", "4100", Decimal("10.00"))
        assert exc_info.value.org_state == state.value

    def test_unknown_tenant_rejected(self, posting_engine, test_actor_id, standard_accounts):
        ghost = uuid4()
        ghost_caller = CallerIdentity(actor_id=test_actor_id, roles={ghost: frozenset({"finance"})})
        with pytest.raises(TenantNotFoundError):
            posting_engine.post(
                ghost_caller, ghost, "manual", uuid4(), JAN_15, None,
                _pair(standard_accounts, "1100", "4100", Decimal("1.00")),
            )


class TestRejectedPostingWritesNothing:
    """A failed validation leaves no entry, no number and no audit record."""

    def test_no_entry_and_no_number_consumed(
        self, posting_engine, post_entry, caller, tenant, standard_accounts, session,
    ):
        before = _entry_count(session, tenant.id)
        audit_before = session.execute(
            select(func.count(AuditEvent.id)).where(AuditEvent.tenant_id == tenant.id)
        ).scalar_one()

        with pytest.raises(UnbalancedEntryError):
            posting_engine.post(
                caller, tenant.id, "manual", uuid4(), JAN_15, None,
                [
                    LineDescriptor.dr(standard_accounts["1100"].id, Decimal("2.00")),
                    LineDescriptor.cr(standard_accounts["4100"].id, Decimal("1.00")),
                ],
            )

        assert _entry_count(session, tenant.id) == before
        assert session.execute(
            select(func.count(AuditEvent.id)).where(AuditEvent.tenant_id == tenant.id)
        ).scalar_one() == audit_before
        # The first successful posting still gets number 1
        assert post_entry("1100", "4100", Decimal("1.00")).document_sequence_number == "JE-MAN-000001"

    def test_rejection_logged_with_code(self, post_entry, captured_logs):
        with pytest.raises(NoPeriodError):
            post_entry("1100", "4100", Decimal("10.00"), entry_date=date(2027, 6, 1))

        rejected = [r for r in captured_logs() if r["message"] == "posting_rejected"]
        assert len(rejected) == 1
        assert rejected[0]["error_code"] == "NO_PERIOD"
        assert rejected[0]["level"] == "WARNING"
