"""
earnings_engines.tracer -- Engine invocation tracer emitting EARNINGS_ENGINE_TRACE.

Responsibility:
    Decorator (``@traced_engine``) that wraps pure engine invocations with
    structured trace logging: engine_name, engine_version, an input
    fingerprint (SHA-256 of selected keyword arguments) and duration_ms.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits a log record only; does not introduce I/O into engines.

Invariants enforced:
    - Fingerprints are deterministic: dict keys are sorted, Decimals and
      UUIDs are rendered by ``str``, dataclasses field by field.
    - The decorator does not mutate inputs.

Failure modes:
    - fingerprint_fields missing from kwargs are recorded as "null".  Call
      traced engines with keyword arguments so the fingerprint sees them.

Usage:
    from earnings_engines.tracer import traced_engine

    @traced_engine("earnings", "1.0", fingerprint_fields=("raw_values", "rates"))
    def compute_model_earnings(self, *, model_id, raw_values, platforms, rates):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import logging
import time
from collections.abc import Callable
from decimal import Decimal
from typing import Any
from uuid import UUID

# Lives under the kernel namespace so configure_logging() covers it.
_logger = logging.getLogger("earnings_kernel.engines.tracer")


def _canonicalize(value: Any) -> str:
    """Produce a stable string representation of a value for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, Decimal, UUID)):
        return str(value)
    if isinstance(value, str):
        return value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        items = [
            (f.name, getattr(value, f.name))
            for f in dataclasses.fields(value)
            if f.compare
        ]
        return (
            type(value).__name__
            + "("
            + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items)
            + ")"
        )
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    if isinstance(value, (set, frozenset)):
        return "{" + ",".join(sorted(_canonicalize(v) for v in value)) + "}"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """Return a 16-hex-char SHA-256 prefix over the selected kwargs."""
    parts: list[str] = []
    for field in fingerprint_fields:
        val = kwargs.get(field)
        parts.append(f"{field}={_canonicalize(val)}")
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits EARNINGS_ENGINE_TRACE for pure engine invocations.

    Args:
        engine_name: Engine identifier (e.g., "earnings").
        engine_version: Engine version (e.g., "1.0").
        fingerprint_fields: Keyword argument names to include in
            the input fingerprint hash.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                fp = compute_input_fingerprint(fingerprint_fields, kwargs)

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.info(
                "EARNINGS_ENGINE_TRACE",
                extra={
                    "trace_type": "EARNINGS_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
