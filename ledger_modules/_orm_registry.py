"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Ensure kernel models and every ``ledger_modules.*.orm`` module are imported
so that ``Base.metadata`` holds every table before ``create_all()`` runs.

Usage
-----
``ledger_kernel.db.engine.create_tables()`` calls
``import_all_orm_models()``; repeated calls are harmless.
"""


def import_all_orm_models() -> None:
    """Import kernel models, then every subledger ORM module."""
    import ledger_kernel.models  # noqa: F401
    # fmt: off
    import ledger_modules.ap.orm  # noqa: F401
    import ledger_modules.ar.orm  # noqa: F401
    import ledger_modules.assets.orm  # noqa: F401
    import ledger_modules.expense.orm  # noqa: F401
    # fmt: on
