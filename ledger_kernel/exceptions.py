"""
Typed exception hierarchy for the ledger engine.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerError:

    LedgerError (base)
    |
    +-- AccessError
    |   +-- AuthorizationError
    |   +-- TenantNotFoundError
    |   +-- TenantBlockedError
    |
    +-- PeriodError
    |   +-- NoPeriodError
    |   +-- PeriodClosedError
    |   +-- PeriodNotFoundError
    |   +-- PeriodNotOpenError
    |   +-- PeriodOverlapError
    |
    +-- PostingError
    |   +-- MalformedLineError
    |   +-- InvalidAccountError
    |   +-- CrossTenantError
    |   +-- UnbalancedEntryError
    |   +-- ControlAccountViolation
    |   +-- OverrideReasonError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |   +-- DuplicateAccountCodeError
    |
    +-- ReversalError
    |   +-- EntryNotFoundError
    |   +-- EntryNotPostedError
    |   +-- ReversalOfReversalError
    |   +-- AlreadyReversedError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |
    +-- SubledgerError
        +-- DepreciationAccountsMissingError
        +-- AssetNotDisposedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|-----------------------------------------
Access          | AUTHORIZATION_DENIED          | Caller lacks finance/admin capability
                | TENANT_NOT_FOUND              | Tenant id does not exist
                | TENANT_BLOCKED                | Tenant is locked/archived/suspended
----------------|-------------------------------|-----------------------------------------
Period          | NO_PERIOD                     | No fiscal period covers the date
                | PERIOD_CLOSED                 | Period covering the date is not open
                | PERIOD_NOT_FOUND              | Period id unknown for tenant
                | PERIOD_NOT_OPEN               | Close requested on a non-open period
                | PERIOD_OVERLAP                | New period overlaps an existing one
----------------|-------------------------------|-----------------------------------------
Posting         | MALFORMED_LINE                | Line count/side/sign rules violated
                | INVALID_ACCOUNT               | Account missing or inactive
                | CROSS_TENANT                  | Account belongs to another tenant
                | UNBALANCED_ENTRY              | Debits != credits, or zero total
                | CONTROL_ACCOUNT_VIOLATION     | Free-form posting to a control account
                | OVERRIDE_REASON_INVALID       | Override justification too short
----------------|-------------------------------|-----------------------------------------
Account         | ACCOUNT_NOT_FOUND             | Account code not in chart
                | DUPLICATE_ACCOUNT_CODE        | Code already used within tenant
----------------|-------------------------------|-----------------------------------------
Reversal        | ENTRY_NOT_FOUND               | Entry id unknown
                | ENTRY_NOT_POSTED              | Entry is draft or already reversed
                | REVERSAL_OF_REVERSAL          | Entry is itself a reversal
                | ALREADY_REVERSED              | A reversal already exists
----------------|-------------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION        | Mutating settled history
----------------|-------------------------------|-----------------------------------------
Audit           | AUDIT_CHAIN_BROKEN            | Hash chain validation failed
----------------|-------------------------------|-----------------------------------------
Subledger       | DEPRECIATION_ACCOUNTS_MISSING | 6100/1510 not in chart
                | ASSET_NOT_DISPOSED            | Disposal posting on a live asset

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Catch by type, read structured fields:

    try:
        engine.post_journal_entry(...)
    except PeriodClosedError as e:
        notify_operator(e.code, e.period_name, e.entry_date)

2. ControlAccountViolation is a guard, not a bug: route the posting through
   ``post_journal_with_override`` when the correction is legitimate.

3. Period-close failures are NOT exceptions; ``close_fiscal_period`` returns
   a result carrying the failing checks.

===============================================================================
"""


class LedgerError(Exception):
    """
    Base exception for all ledger engine errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "LEDGER_ERROR"


# Access-related exceptions


class AccessError(LedgerError):
    """Base exception for caller/tenant access failures."""

    code: str = "ACCESS_ERROR"


class AuthorizationError(AccessError):
    """Caller does not hold the capability required for the operation."""

    code: str = "AUTHORIZATION_DENIED"

    def __init__(self, actor_id: str, tenant_id: str, capability: str):
        self.actor_id = actor_id
        self.tenant_id = tenant_id
        self.capability = capability
        super().__init__(
            f"Actor {actor_id} lacks {capability} capability on tenant {tenant_id}"
        )


class TenantNotFoundError(AccessError):
    """Tenant id does not exist."""

    code: str = "TENANT_NOT_FOUND"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant not found: {tenant_id}")


class TenantBlockedError(AccessError):
    """Tenant is in a blocked lifecycle state."""

    code: str = "TENANT_BLOCKED"

    def __init__(self, tenant_id: str, org_state: str):
        self.tenant_id = tenant_id
        self.org_state = org_state
        super().__init__(f"Tenant {tenant_id} is blocked ({org_state})")


# Period-related exceptions


class PeriodError(LedgerError):
    """Base exception for fiscal period errors."""

    code: str = "PERIOD_ERROR"


class NoPeriodError(PeriodError):
    """No fiscal period covers the requested date."""

    code: str = "NO_PERIOD"

    def __init__(self, tenant_id: str, entry_date: str):
        self.tenant_id = tenant_id
        self.entry_date = entry_date
        super().__init__(f"No fiscal period for {entry_date} (tenant {tenant_id})")


class PeriodClosedError(PeriodError):
    """The period covering the requested date is not open."""

    code: str = "PERIOD_CLOSED"

    def __init__(self, period_name: str, entry_date: str, status: str):
        self.period_name = period_name
        self.entry_date = entry_date
        self.status = status
        super().__init__(
            f"Period {period_name} is {status}; cannot post on {entry_date}"
        )


class PeriodNotFoundError(PeriodError):
    """Period id does not exist for the tenant."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_id: str):
        self.period_id = period_id
        super().__init__(f"Fiscal period not found: {period_id}")


class PeriodNotOpenError(PeriodError):
    """Close requested on a period that is not open."""

    code: str = "PERIOD_NOT_OPEN"

    def __init__(self, period_id: str, status: str):
        self.period_id = period_id
        self.status = status
        super().__init__(f"Fiscal period {period_id} is not open ({status})")


class PeriodOverlapError(PeriodError):
    """New period date range overlaps an existing period."""

    code: str = "PERIOD_OVERLAP"

    def __init__(
        self,
        new_period_name: str,
        existing_period_name: str,
        overlap_start: str,
        overlap_end: str,
    ):
        self.new_period_name = new_period_name
        self.existing_period_name = existing_period_name
        self.overlap_start = overlap_start
        self.overlap_end = overlap_end
        super().__init__(
            f"Period {new_period_name} overlaps {existing_period_name} "
            f"between {overlap_start} and {overlap_end}"
        )


# Posting-related exceptions


class PostingError(LedgerError):
    """Base exception for posting validation failures."""

    code: str = "POSTING_ERROR"


class MalformedLineError(PostingError):
    """Line set or an individual line violates the debit/credit rules."""

    code: str = "MALFORMED_LINE"

    def __init__(self, reason: str, line_index: int | None = None):
        self.reason = reason
        self.line_index = line_index
        where = f"line {line_index}: " if line_index is not None else ""
        super().__init__(f"Malformed journal lines: {where}{reason}")


class InvalidAccountError(PostingError):
    """Account cannot be posted to."""

    code: str = "INVALID_ACCOUNT"

    def __init__(self, account_id: str, reason: str):
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Invalid account {account_id}: {reason}")


class CrossTenantError(PostingError):
    """Line references an account owned by a different tenant."""

    code: str = "CROSS_TENANT"

    def __init__(self, account_id: str, tenant_id: str):
        self.account_id = account_id
        self.tenant_id = tenant_id
        super().__init__(
            f"Account {account_id} does not belong to tenant {tenant_id}"
        )


class UnbalancedEntryError(PostingError):
    """Journal entry debits do not equal credits, or the total is zero."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: str, credits: str):
        self.debits = debits
        self.credits = credits
        super().__init__(f"Unbalanced entry: debits={debits}, credits={credits}")


class ControlAccountViolation(PostingError):
    """Free-form posting to a control account outside the override path."""

    code: str = "CONTROL_ACCOUNT_VIOLATION"

    def __init__(self, account_code: str, control_module: str | None, doc_type: str):
        self.account_code = account_code
        self.control_module = control_module
        self.doc_type = doc_type
        super().__init__(
            f"Posting type '{doc_type}' may not touch control account "
            f"{account_code} ({control_module}); use the override path if authorized"
        )


class OverrideReasonError(PostingError):
    """Override justification is missing or too short."""

    code: str = "OVERRIDE_REASON_INVALID"

    def __init__(self, min_length: int, actual_length: int):
        self.min_length = min_length
        self.actual_length = actual_length
        super().__init__(
            f"Override reason must be at least {min_length} characters "
            f"(got {actual_length})"
        )


# Account-related exceptions


class AccountError(LedgerError):
    """Base exception for chart-of-accounts errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Account code is not in the tenant's chart."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, tenant_id: str, account_code: str):
        self.tenant_id = tenant_id
        self.account_code = account_code
        super().__init__(f"Account {account_code} not found for tenant {tenant_id}")


class DuplicateAccountCodeError(AccountError):
    """Account code already exists within the tenant."""

    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, tenant_id: str, account_code: str):
        self.tenant_id = tenant_id
        self.account_code = account_code
        super().__init__(
            f"Account code {account_code} already exists for tenant {tenant_id}"
        )


# Reversal-related exceptions


class ReversalError(LedgerError):
    """Base exception for reversal errors."""

    code: str = "REVERSAL_ERROR"


class EntryNotFoundError(ReversalError):
    """Journal entry id does not exist."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, journal_entry_id: str):
        self.journal_entry_id = journal_entry_id
        super().__init__(f"Journal entry not found: {journal_entry_id}")


class EntryNotPostedError(ReversalError):
    """Only posted (or locked) entries can be reversed."""

    code: str = "ENTRY_NOT_POSTED"

    def __init__(self, journal_entry_id: str, status: str):
        self.journal_entry_id = journal_entry_id
        self.status = status
        super().__init__(
            f"Journal entry {journal_entry_id} cannot be reversed in status {status}"
        )


class ReversalOfReversalError(ReversalError):
    """Reversal entries cannot themselves be reversed."""

    code: str = "REVERSAL_OF_REVERSAL"

    def __init__(self, journal_entry_id: str):
        self.journal_entry_id = journal_entry_id
        super().__init__(f"Journal entry {journal_entry_id} is a reversal")


class AlreadyReversedError(ReversalError):
    """A reversal already exists for the entry."""

    code: str = "ALREADY_REVERSED"

    def __init__(self, journal_entry_id: str, reversal_entry_id: str | None = None):
        self.journal_entry_id = journal_entry_id
        self.reversal_entry_id = reversal_entry_id
        super().__init__(f"Journal entry {journal_entry_id} has already been reversed")


# Immutability exceptions


class ImmutabilityError(LedgerError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempt to modify or delete settled history."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )


# Audit exceptions


class AuditError(LedgerError):
    """Base exception for audit trail errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_event_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Subledger job exceptions


class SubledgerError(LedgerError):
    """Base exception for subledger-driven postings."""

    code: str = "SUBLEDGER_ERROR"


class DepreciationAccountsMissingError(SubledgerError):
    """Depreciation expense/accumulated accounts are not in the chart."""

    code: str = "DEPRECIATION_ACCOUNTS_MISSING"

    def __init__(self, tenant_id: str, missing_codes: list[str]):
        self.tenant_id = tenant_id
        self.missing_codes = missing_codes
        super().__init__(
            f"Depreciation GL accounts ({'/'.join(missing_codes)}) not found "
            f"for tenant {tenant_id}"
        )


class AssetNotDisposedError(SubledgerError):
    """Disposal posting requested for an asset that is not disposed."""

    code: str = "ASSET_NOT_DISPOSED"

    def __init__(self, asset_id: str, status: str):
        self.asset_id = asset_id
        self.status = status
        super().__init__(f"Asset {asset_id} must be disposed to post disposal (is {status})")
