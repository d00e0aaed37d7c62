"""
Structured JSON logging for the GL kernel.

Every record is one JSON object: ``ts``, ``level``, ``logger``, ``message``,
the bound posting context, any ``extra=`` fields and, for exceptions, the
exception type, message, ``code`` and structured attributes.

Posting context (source module, source transaction id, actor, GL
transaction id, correlation id) lives in context variables, so it follows
the current thread or task without being passed around::

    with LogContext.bind(source_module="momo", source_transaction_id="tx-1"):
        logger.info("transaction_posted", extra={"entry_count": 2})
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

LOGGER_NAMESPACE = "gl_kernel"

CONTEXT_FIELDS = (
    "correlation_id",
    "source_module",
    "source_transaction_id",
    "actor",
    "transaction_id",
)

_context: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"gl_log_{name}", default=None) for name in CONTEXT_FIELDS
}


class LogContext:
    """Posting-scoped fields added to every record."""

    @staticmethod
    def get_all() -> dict[str, str]:
        """Bound fields, None values omitted."""
        return {
            name: value
            for name, var in _context.items()
            if (value := var.get()) is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _context.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """
        Bind fields for the duration of the block, restoring prior values.

        None values leave the current binding alone.

        Raises:
            TypeError: On a field name that is not a context field.
        """
        unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
        if unknown:
            raise TypeError(f"Unknown log context fields: {unknown}")
        tokens = [
            (_context[name], _context[name].set(str(value)))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


_RECORD_KEYS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


class StructuredFormatter(logging.Formatter):
    """One JSON line per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())
        payload.update(
            (key, val)
            for key, val in vars(record).items()
            if key not in _RECORD_KEYS and key not in payload
        )

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
                # GLKernelError context attributes (account_code, debits, ...)
                payload.update(
                    (f"exc_{key}", val)
                    for key, val in vars(exc).items()
                    if not key.startswith("_")
                )
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger under the gl_kernel namespace."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_configured = False


def configure_logging(
    *,
    level: int = logging.INFO,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the gl_kernel logger.

    Only the first call has an effect, so an application that configures
    logging before creating the engine keeps its own level and handler.
    """
    global _configured
    if _configured:
        return
    _configured = True

    root = logging.getLogger(LOGGER_NAMESPACE)
    root.setLevel(level)
    root.propagate = False
    handler = handler or logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)


def reset_logging() -> None:
    """Undo configure_logging(). Used by tests."""
    global _configured
    _configured = False
    root = logging.getLogger(LOGGER_NAMESPACE)
    for handler in list(root.handlers):
        if isinstance(handler.formatter, StructuredFormatter):
            root.removeHandler(handler)
    root.setLevel(logging.WARNING)
