"""
Database engine and transaction scope for the ledger.

One process-wide engine is created by ``init_engine_from_url``.  Services
never commit: callers wrap each ledger operation in ``session_scope()``,
which commits on success and rolls everything back on any exception, so a
rejected posting or a failed close leaves no partial rows behind.

PostgreSQL runs at READ COMMITTED; the services take explicit row locks
(``SELECT ... FOR UPDATE``) on sequence counters, fiscal periods and
entries being reversed.  SQLite is the test store: SQLAlchemy issues
BEGIN itself so SAVEPOINTs nest correctly under pysqlite, and an in-memory
database shares one connection across checkouts.
"""

import atexit
from contextlib import contextmanager
from typing import Iterator
from uuid import uuid4

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledger_kernel.logging_config import LogContext, configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _sqlite_engine(url, echo: bool) -> Engine:
    in_memory = url.database in (None, "", ":memory:")
    engine = create_engine(
        url,
        echo=echo,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool if in_memory else None,
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the process-wide engine and session factory; a second call replaces them.

    Pool settings apply to server databases only.
    """
    global _engine, _session_factory

    url = make_url(database_url)
    dialect = url.get_backend_name()
    if dialect == "sqlite":
        _engine = _sqlite_engine(url, echo)
    else:
        _engine = create_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": dialect, "pool_size": None if dialect == "sqlite" else pool_size},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """The session factory, e.g. for one session per worker thread."""
    if _session_factory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _session_factory


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    One ledger transaction.

    Usage::

        with session_scope() as session:
            PostingEngine(session).post_journal_entry(...)

    Every record logged inside the block shares a ``correlation_id``.
    """
    session = get_session_factory()()
    with LogContext.bind(correlation_id=uuid4()):
        try:
            yield session
            session.commit()
            logger.debug("transaction_committed")
        except Exception:
            session.rollback()
            logger.warning("transaction_rolled_back", exc_info=True)
            raise
        finally:
            session.close()


def _ledger_metadata():
    from ledger_kernel.db.base import Base
    from ledger_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    return Base.metadata


def create_tables() -> None:
    """Create kernel and subledger tables."""
    metadata = _ledger_metadata()
    metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(metadata.tables)})


def drop_tables() -> None:
    """Drop every ledger table (tests)."""
    _ledger_metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
