"""
ORM-level immutability enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Posted ledger history must never be edited in place.  A posted entry is
corrected by a reversal (a new entry), never by UPDATE; a closed period
stays closed; audit and log tables are append-only.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners below inspect attribute history and raise
``ImmutabilityViolationError`` from inside the flush, so the check and the
write are in the same transaction and the row is never touched:

    session.flush()
         |
         v
    [before_update] --> _check_*_update() --> ImmutabilityViolationError
    [before_delete] --> _check_*_delete() ----------^
         |
         v
    SQL sent to database (only if every check passes)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                      | Rule
----------------------------|--------------------------------------------------
JournalEntry                | posted: only status -> locked/reversed
                            | locked/reversed: frozen
                            | delete only while draft
JournalLine                 | frozen once the parent entry is not draft
LedgerAccount               | locked: structural fields frozen, no delete
                            | referenced by any journal line: no delete
FiscalPeriod                | closed: only status -> locked; locked: frozen
AuditEvent                  | append-only
ControlAccountOverride      | append-only
PeriodCloseLog              | append-only
SubledgerReconciliationLog  | append-only

``updated_at`` and ``updated_by_id`` are audit metadata and may always
change.

===============================================================================
USAGE
===============================================================================

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once, at startup

Tests that need to stage forbidden states may temporarily call
``unregister_immutability_listeners()``.

===============================================================================
"""

from sqlalchemy import event, exists, inspect, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

AUDIT_METADATA_FIELDS = frozenset({"updated_at", "updated_by_id"})

ACCOUNT_STRUCTURAL_FIELDS = ("code", "name", "account_type", "normal_balance", "is_system", "is_locked")


def _block(entity_type: str, entity_id, operation: str, reason: str, **fields) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
            **fields,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _stored_value(target, key: str):
    """Value as last loaded from the database, before pending changes."""
    history = get_history(target, key)
    if history.deleted:
        return history.deleted[0]
    if history.unchanged:
        return history.unchanged[0]
    return getattr(target, key)


def _changed_fields(target, ignore=AUDIT_METADATA_FIELDS) -> list[str]:
    changed = []
    for attr in inspect(target).attrs:
        if attr.key in ignore:
            continue
        if attr.history.has_changes():
            changed.append(attr.key)
    return changed


# ---------------------------------------------------------------------------
# Journal entries and lines
# ---------------------------------------------------------------------------


def _check_journal_entry_update(mapper, connection, target):
    from ledger_kernel.models.journal import JournalEntryStatus

    stored = _stored_value(target, "status")
    if stored == JournalEntryStatus.DRAFT:
        return

    changed = _changed_fields(target)
    if not changed:
        return

    if stored in (JournalEntryStatus.LOCKED, JournalEntryStatus.REVERSED):
        _block(
            "JournalEntry",
            target.id,
            "UPDATE",
            f"Journal entry is {stored.value} and cannot be modified",
            fields=changed,
        )

    # Posted: the status column may move forward, nothing else.
    extra = [f for f in changed if f != "status"]
    if extra:
        _block(
            "JournalEntry",
            target.id,
            "UPDATE",
            f"Cannot modify field(s) {extra} on posted journal entry",
            fields=extra,
        )
    new_status = target.status
    if new_status not in (JournalEntryStatus.LOCKED, JournalEntryStatus.REVERSED):
        _block(
            "JournalEntry",
            target.id,
            "UPDATE",
            f"Posted journal entry cannot move to status '{getattr(new_status, 'value', new_status)}'",
        )


def _check_journal_entry_delete(mapper, connection, target):
    from ledger_kernel.models.journal import JournalEntryStatus

    stored = _stored_value(target, "status")
    if stored != JournalEntryStatus.DRAFT:
        _block(
            "JournalEntry",
            target.id,
            "DELETE",
            f"Journal entry is {stored.value} and cannot be deleted",
        )


def _parent_entry_status(connection, journal_entry_id):
    from ledger_kernel.models.journal import JournalEntry

    return connection.execute(
        select(JournalEntry.status).where(JournalEntry.id == journal_entry_id)
    ).scalar_one_or_none()


def _check_journal_line_update(mapper, connection, target):
    from ledger_kernel.models.journal import JournalEntryStatus

    if not _changed_fields(target):
        return
    status = _parent_entry_status(connection, _stored_value(target, "journal_entry_id"))
    if status is not None and status != JournalEntryStatus.DRAFT:
        _block(
            "JournalLine",
            target.id,
            "UPDATE",
            "Journal lines cannot be modified once the entry is posted",
        )


def _check_journal_line_delete(mapper, connection, target):
    from ledger_kernel.models.journal import JournalEntryStatus

    status = _parent_entry_status(connection, target.journal_entry_id)
    if status is not None and status != JournalEntryStatus.DRAFT:
        _block(
            "JournalLine",
            target.id,
            "DELETE",
            "Journal lines cannot be deleted once the entry is posted",
        )


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


def _check_account_structural_update(mapper, connection, target):
    if not _stored_value(target, "is_locked"):
        return

    changed = [f for f in ACCOUNT_STRUCTURAL_FIELDS if get_history(target, f).has_changes()]
    if changed:
        _block(
            "LedgerAccount",
            target.id,
            "UPDATE",
            f"Cannot modify structural field(s) {changed} on locked account",
            fields=changed,
        )


def _check_account_deletion_before_flush(session, flush_context, instances):
    """
    Block deletion of locked accounts and accounts with journal lines.

    Runs in ``before_flush`` because mapper-level delete events fire after
    the flush plan is fixed.
    """
    from ledger_kernel.models.account import LedgerAccount
    from ledger_kernel.models.journal import JournalLine

    for obj in list(session.deleted):
        if not isinstance(obj, LedgerAccount):
            continue

        if _stored_value(obj, "is_locked"):
            _block("LedgerAccount", obj.id, "DELETE", "Locked accounts cannot be deleted")

        with session.no_autoflush:
            referenced = session.execute(
                select(exists().where(JournalLine.account_id == obj.id))
            ).scalar()
        if referenced:
            _block(
                "LedgerAccount",
                obj.id,
                "DELETE",
                "Accounts referenced by journal lines cannot be deleted",
            )


# ---------------------------------------------------------------------------
# Fiscal periods
# ---------------------------------------------------------------------------


def _check_fiscal_period_update(mapper, connection, target):
    from ledger_kernel.models.fiscal_period import PeriodStatus

    stored = _stored_value(target, "status")
    if stored == PeriodStatus.OPEN:
        return

    changed = _changed_fields(target, ignore=AUDIT_METADATA_FIELDS | {"financial_year"})
    if not changed:
        return
    if (
        stored == PeriodStatus.CLOSED
        and changed == ["status"]
        and target.status == PeriodStatus.LOCKED
    ):
        return
    _block(
        "FiscalPeriod",
        target.id,
        "UPDATE",
        f"Fiscal period is {stored.value} and cannot be modified",
        fields=changed,
    )


# ---------------------------------------------------------------------------
# Append-only tables
# ---------------------------------------------------------------------------


def _check_append_only_update(mapper, connection, target):
    _block(type(target).__name__, target.id, "UPDATE", "Append-only records cannot be modified")


def _check_append_only_delete(mapper, connection, target):
    _block(type(target).__name__, target.id, "DELETE", "Append-only records cannot be deleted")


def _append_only_models():
    from ledger_kernel.models.audit_event import AuditEvent
    from ledger_kernel.models.close_log import PeriodCloseLog
    from ledger_kernel.models.control_override import ControlAccountOverride
    from ledger_kernel.models.reconciliation_log import SubledgerReconciliationLog

    return (AuditEvent, ControlAccountOverride, PeriodCloseLog, SubledgerReconciliationLog)


def _listener_table():
    from ledger_kernel.models.account import LedgerAccount
    from ledger_kernel.models.fiscal_period import FiscalPeriod
    from ledger_kernel.models.journal import JournalEntry, JournalLine

    table = [
        (Session, "before_flush", _check_account_deletion_before_flush),
        (JournalEntry, "before_update", _check_journal_entry_update),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (JournalLine, "before_update", _check_journal_line_update),
        (JournalLine, "before_delete", _check_journal_line_delete),
        (LedgerAccount, "before_update", _check_account_structural_update),
        (FiscalPeriod, "before_update", _check_fiscal_period_update),
    ]
    for model in _append_only_models():
        table.append((model, "before_update", _check_append_only_update))
        table.append((model, "before_delete", _check_append_only_delete))
    return table


def register_immutability_listeners():
    """
    Register every immutability listener.  Safe to call more than once.

    Call after all models are imported and before any database writes.
    """
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """Remove every immutability listener.  Tests only."""
    for target, event_name, listener_fn in _listener_table():
        _safe_remove_listener(target, event_name, listener_fn)
