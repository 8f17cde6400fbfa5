"""
ledger_kernel -- multi-tenant double-entry ledger core.

Posting, immutability, reversal and the fiscal calendar live here; the
period-close and batch jobs live in ``ledger_services`` and the document
modules that feed the ledger in ``ledger_modules``.
"""
