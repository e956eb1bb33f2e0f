"""
Structured logging (``ledger_kernel.logging_config``).

Every logger lives under the ``ledger_kernel`` namespace and writes one JSON
object per line.  Request-scoped identifiers (organization, actor,
transaction, correlation id, document reference) travel in a ContextVar and
are merged into every record, so call sites log a snake_case event name and
an ``extra`` payload and nothing more.

Usage::

    logger = get_logger("services.posting")
    with LogContext.bind(organization_id=org_id, actor_id=actor_id):
        logger.info("transaction_posted", extra={"transaction_number": number})
"""

from __future__ import annotations

__all__ = [
    "CONTEXT_FIELDS",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any, TextIO
from uuid import UUID

NAMESPACE = "ledger_kernel"

CONTEXT_FIELDS = (
    "organization_id",
    "correlation_id",
    "actor_id",
    "transaction_id",
    "document_ref",
)

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("ledger_log_context", default=_EMPTY)


class LogContext:
    """
    Request-scoped fields added to every record.

    Values are stored as strings.  Unknown field names and ``None`` values
    are ignored.  Safe across threads and asyncio tasks.
    """

    @staticmethod
    def _merged(fields: Mapping[str, Any]) -> Mapping[str, str]:
        merged = dict(_context.get())
        merged.update(
            (name, str(value))
            for name, value in fields.items()
            if name in CONTEXT_FIELDS and value is not None
        )
        return MappingProxyType(merged)

    @classmethod
    def set(cls, **fields: Any) -> None:
        _context.set(cls._merged(fields))

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type[LogContext]]:
        """Add fields for the duration of a ``with`` block."""
        token = _context.set(cls._merged(fields))
        try:
            yield cls
        finally:
            _context.reset(token)

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)


# Attributes every LogRecord carries; anything else arrived through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {"exc_type": type(exc).__name__, "exc_message": str(exc)}
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # Context attributes set by LedgerKernelError subclasses
    fields.update(
        (f"exc_{name}", value) for name, value in vars(exc).items() if not name.startswith("_")
    )
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: core fields, context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_jsonable)


def get_logger(name: str) -> logging.Logger:
    """``get_logger("services.posting")`` -> ``ledger_kernel.services.posting``."""
    return logging.getLogger(f"{NAMESPACE}.{name}")


_HANDLER_NAME = "ledger_kernel.structured"
_configure_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach the JSON handler to the ``ledger_kernel`` logger.

    Only the first call has an effect until ``reset_logging()``.
    """
    root = logging.getLogger(NAMESPACE)
    with _configure_lock:
        if any(h.get_name() == _HANDLER_NAME for h in root.handlers):
            return
        handler = handler or logging.StreamHandler(stream or sys.stderr)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(StructuredFormatter())
        root.addHandler(handler)
        root.setLevel(level)
        root.propagate = False


def reset_logging() -> None:
    """Detach every handler and restore the defaults.  Test use only."""
    root = logging.getLogger(NAMESPACE)
    with _configure_lock:
        for h in list(root.handlers):
            root.removeHandler(h)
        root.setLevel(logging.WARNING)
        root.propagate = True
