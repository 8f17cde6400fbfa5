"""
Document sequencer tests.

Numbers are prefixed, zero-padded, distinct and strictly increasing per
(tenant, document type), drawn from a locked counter row.
"""

from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import CallerIdentity
from ledger_kernel.models.document_sequence import DocumentSequence
from ledger_kernel.services.sequence_service import DocumentSequencer


@pytest.fixture
def sequencer(session, policy) -> DocumentSequencer:
    return DocumentSequencer(session, policy)


class TestDocumentNumbers:

    def test_first_number(self, sequencer, tenant):
        assert sequencer.next_document_number(tenant.id, "invoice") == "JE-INV-000001"

    def test_numbers_increase(self, sequencer, tenant):
        numbers = [sequencer.next_document_number(tenant.id, "bill") for _ in range(5)]
        assert numbers == [f"JE-BIL-{n:06d}" for n in range(1, 6)]

    def test_counters_independent_per_type(self, sequencer, tenant):
        sequencer.next_document_number(tenant.id, "invoice")
        sequencer.next_document_number(tenant.id, "invoice")
        assert sequencer.next_document_number(tenant.id, "expense") == "JE-EXP-000001"
        assert sequencer.next_document_number(tenant.id, "invoice") == "JE-INV-000003"

    def test_counters_independent_per_tenant(self, sequencer, tenant, other_tenant):
        sequencer.next_document_number(tenant.id, "invoice")
        assert sequencer.next_document_number(other_tenant.id, "invoice") == "JE-INV-000001"

    def test_default_prefix_pattern(self, sequencer, tenant):
        assert sequencer.next_document_number(tenant.id, "capex") == "JE-CAP-000001"

    def test_existing_counter_keeps_its_prefix(self, sequencer, session, tenant):
        session.add(DocumentSequence(
            tenant_id=tenant.id, document_type="invoice", prefix="INV-", next_number=42,
        ))
        session.flush()

        assert sequencer.next_document_number(tenant.id, "invoice") == "INV-000042"
        assert sequencer.next_document_number(tenant.id, "invoice") == "INV-000043"

    def test_peek_does_not_consume(self, sequencer, tenant):
        assert sequencer.peek(tenant.id, "invoice") is None
        sequencer.next_document_number(tenant.id, "invoice")
        assert sequencer.peek(tenant.id, "invoice") == 2
        assert sequencer.peek(tenant.id, "invoice") == 2
        assert sequencer.next_document_number(tenant.id, "invoice") == "JE-INV-000002"

    def test_internal_counter(self, sequencer, tenant):
        values = [sequencer.next_value(tenant.id, "__test_counter__") for _ in range(3)]
        assert values == [1, 2, 3]

    def test_issue_logged(self, sequencer, tenant, captured_logs):
        sequencer.next_document_number(tenant.id, "invoice")
        issued = [r for r in captured_logs() if r["message"] == "document_number_issued"]
        assert issued[0]["document_number"] == "JE-INV-000001"
        assert issued[0]["document_type"] == "invoice"


class TestNumbersOnPostings:

    def test_each_posting_gets_next_number(self, post_entry):
        numbers = [
            post_entry("1100", "4100", Decimal("1.00"), doc_type="invoice").document_sequence_number
            for _ in range(3)
        ]
        assert numbers == ["JE-INV-000001", "JE-INV-000002", "JE-INV-000003"]

    def test_numbers_distinct_across_callers(self, post_entry, tenant, test_actor_id):
        other_actor = CallerIdentity(actor_id=test_actor_id, roles={tenant.id: frozenset({"admin"})})
        a = post_entry("1100", "4100", Decimal("1.00"))
        b = post_entry("1100", "4100", Decimal("1.00"), as_caller=other_actor)
        assert a.document_sequence_number != b.document_sequence_number
        assert b.document_sequence_number > a.document_sequence_number
