"""
DocumentSequencer -- per-tenant document numbers via locked counter rows.

Responsibility:
    Issues the next document number for a (tenant, document type), e.g.
    ``JE-INV-000001``, and plain monotonic counters for internal use (the
    per-tenant audit chain).  The counter row is read with
    ``SELECT ... FOR UPDATE`` and incremented in place.

Invariants enforced:
    - Numbers are distinct and strictly increasing per (tenant, type).  The
      aggregate-max-plus-one pattern is never used; the locked counter row
      is the only source of truth.
    - The increment lives in the caller's transaction: a rollback returns
      the number.  Gaps are tolerated; duplicates are not.

Failure modes:
    - IntegrityError on a concurrent first-use counter insert: absorbed by
      rolling back a savepoint and re-reading the winner's row.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_config import get_active_policy
from ledger_config.schema import PostingPolicy
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.document_sequence import DocumentSequence

logger = get_logger("services.sequence")


class DocumentSequencer:
    """
    Service for issuing transactional document numbers.

    Usage:
        number = DocumentSequencer(session).next_document_number(tenant_id, "invoice")
        # "JE-INV-000001"; consumed only if the transaction commits
    """

    # Counter names reserved for internal sequences
    AUDIT_EVENT = "__audit_event__"

    def __init__(self, session: Session, policy: PostingPolicy | None = None):
        self._session = session
        self._policy = policy or get_active_policy()

    def _lock_counter(self, tenant_id: UUID, document_type: str) -> DocumentSequence | None:
        return self._session.execute(
            select(DocumentSequence)
            .where(
                DocumentSequence.tenant_id == tenant_id,
                DocumentSequence.document_type == document_type,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _allocate(self, tenant_id: UUID, document_type: str, prefix: str) -> tuple[str, int]:
        counter = self._lock_counter(tenant_id, document_type)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = DocumentSequence(
                    tenant_id=tenant_id,
                    document_type=document_type,
                    prefix=prefix,
                    next_number=2,
                )
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                return counter.prefix, 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"tenant_id": str(tenant_id), "document_type": document_type},
                )
                savepoint.rollback()
                counter = self._lock_counter(tenant_id, document_type)
                if counter is None:
                    raise

        number = counter.next_number
        counter.next_number = number + 1
        self._session.flush()
        return counter.prefix, number

    def next_value(self, tenant_id: UUID, counter_name: str) -> int:
        """Next strictly positive value of an internal counter."""
        _, value = self._allocate(tenant_id, counter_name, prefix="")
        return value

    def next_document_number(self, tenant_id: UUID, document_type: str) -> str:
        """
        Issue the next document number for ``document_type``.

        Postconditions:
            - The returned string has never been issued for this
              (tenant, document type) in any committed transaction.
            - A new counter takes its prefix from the policy; an existing
              counter keeps the prefix it was created with.
        """
        rules = self._policy.sequence
        prefix, number = self._allocate(tenant_id, document_type, rules.prefix_for(document_type))
        document_number = rules.format(prefix, number)
        logger.info(
            "document_number_issued",
            extra={
                "tenant_id": str(tenant_id),
                "document_type": document_type,
                "document_number": document_number,
            },
        )
        return document_number

    def peek(self, tenant_id: UUID, document_type: str) -> int | None:
        """Next number that would be issued, without consuming it."""
        return self._session.execute(
            select(DocumentSequence.next_number).where(
                DocumentSequence.tenant_id == tenant_id,
                DocumentSequence.document_type == document_type,
            )
        ).scalar_one_or_none()
