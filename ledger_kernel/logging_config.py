"""
Structured JSON logging for the ledger engine.

Every record is one JSON object: timestamp, level, logger and event name,
then the ledger context bound by the running operation (tenant, actor,
entry, period, job, correlation id), then the record's ``extra`` payload.
Records carrying a ``LedgerError`` also expose its ``code`` and fields, so
a rejected posting can be found by error code alone.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterator
from uuid import UUID

CONTEXT_FIELDS = (
    "correlation_id",
    "tenant_id",
    "actor_id",
    "entry_id",
    "period_id",
    "job",
)

_context: ContextVar[dict[str, str] | None] = ContextVar("ledger_log_context", default=None)


def _checked(fields: dict[str, Any]) -> dict[str, str]:
    unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
    if unknown:
        raise TypeError(f"Unknown log context field(s): {unknown}")
    return {key: str(value) for key, value in fields.items() if value is not None}


class LogContext:
    """
    Ledger fields attached to every record logged in the current context.

    Backed by a single ``ContextVar`` holding an immutable snapshot, so
    threads and asyncio tasks each see their own values.
    """

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set context fields. ``None`` values leave a field unchanged."""
        _context.set({**cls.get_all(), **_checked(fields)})

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get() or {})

    @classmethod
    def clear(cls) -> None:
        _context.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """
        Bind fields for the duration of a ``with`` block, then restore.

        Values are stringified, so UUIDs can be passed directly::

            with LogContext.bind(tenant_id=tenant_id, job="period_close"):
                ...
        """
        token = _context.set({**cls.get_all(), **_checked(fields)})
        try:
            yield cls
        finally:
            _context.reset(token)


# Attributes every LogRecord has; anything else on a record came from ``extra``
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if hasattr(obj, "value"):
        return obj.value
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for key, value in vars(exc).items():
        if not key.startswith("_") and key != "code":
            fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON line per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


LOGGER_NAMESPACE = "ledger_kernel"


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``ledger_kernel`` namespace, e.g. ``ledger_kernel.services.posting``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``ledger_kernel`` logger. Later calls are no-ops."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    namespace = logging.getLogger(LOGGER_NAMESPACE)
    namespace.setLevel(level)
    namespace.propagate = False

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    namespace.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and allow ``configure_logging`` to run again (tests)."""
    global _configured
    with _lock:
        _configured = False
    namespace = logging.getLogger(LOGGER_NAMESPACE)
    namespace.handlers.clear()
    namespace.setLevel(logging.WARNING)
