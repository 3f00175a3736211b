"""
Module: earnings_kernel.logging_config
Responsibility: Structured JSON logging for the earnings kernel and the
    lifecycle services built on it.
Architecture position: Kernel, importable from every layer (engines and
    services log through ``get_logger``).  Imports nothing else from the
    project.

Invariants enforced:
    - One JSON object per line; ``ts``, ``level``, ``logger`` and
      ``message`` are always present.
    - Context fields (period_code, actor_id, batch_id, model_id,
      correlation_id) are stamped on every record emitted inside a
      ``LogContext.bind`` block, on any thread, without being passed around.
    - Payload values that JSON cannot encode (UUID, Decimal, dates, enums,
      sets, periods) are rendered as strings or sorted lists, never dropped.

Failure modes:
    - None raised.  Unencodable values fall back to ``str``.
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
import threading
from contextvars import ContextVar, Token
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "earnings_kernel"

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = (
    "correlation_id",
    "actor_id",
    "period_code",
    "batch_id",
    "model_id",
)

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"earnings_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


class LogContext:
    """
    Request-scoped log fields held in contextvars.

    Values are stored as strings; UUIDs and other ids may be passed as is.
    Unknown field names are ignored so that callers can bind freely.
    """

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set context fields.  ``None`` values leave a field unchanged."""
        for name, value in fields.items():
            var = _context_vars.get(name)
            if var is not None and value is not None:
                var.set(str(value))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Non-empty context fields, in declaration order."""
        return {
            name: value
            for name, value in ((n, _context_vars[n].get()) for n in _CONTEXT_FIELDS)
            if value is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _context_vars.values():
            var.set(None)

    @classmethod
    def bind(cls, **fields: Any) -> "_BoundContext":
        """
        Set fields for the duration of a ``with`` block.

        Usage::

            with LogContext.bind(period_code=period.code, actor_id=actor_id):
                logger.info("period_archive_started")
        """
        return _BoundContext(fields)


class _BoundContext:
    def __init__(self, fields: dict[str, Any]):
        self._fields = fields
        self._tokens: list[tuple[ContextVar[str | None], Token]] = []

    def __enter__(self) -> type[LogContext]:
        for name, value in self._fields.items():
            var = _context_vars.get(name)
            if var is not None and value is not None:
                self._tokens.append((var, var.set(str(value))))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        # Reset in reverse so a field bound twice restores its outer value.
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _encode(obj: Any) -> Any:
    """``json.dumps`` fallback for the value types the kernel logs."""
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    # Period and other value objects render by their code.
    code = getattr(obj, "code", None)
    if isinstance(code, str):
        return code
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # EarningsKernelError subclasses carry their context as attributes
    for key, value in vars(exc).items():
        if not key.startswith("_") and key not in ("args", "code"):
            fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for key, value in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_encode)


# ---------------------------------------------------------------------------
# Logger factory and initialization
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``earnings_kernel`` namespace, e.g. ``services.live_store``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``earnings_kernel`` logger.

    Idempotent: only the first call in a process takes effect until
    ``reset_logging`` is called.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root_logger.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and allow ``configure_logging`` again.  Tests only."""
    global _configured
    with _lock:
        _configured = False
    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.handlers.clear()
    root_logger.setLevel(logging.WARNING)
