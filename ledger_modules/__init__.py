"""
ledger_modules -- document subledgers that feed the ledger.

Each module owns its document tables (invoices, bills, expenses, fixed
assets) and posts to the ledger only through the kernel PostingEngine,
using the document id as idempotency key.
"""
