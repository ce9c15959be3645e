"""
mill_engines.tracer -- Engine invocation tracer emitting MILL_ENGINE_TRACE.

Wraps pure engine calls with one structured log record carrying
engine_name, engine_version, an input fingerprint (SHA-256 prefix of the
selected arguments, bound by name whether passed positionally or by
keyword) and duration_ms.  Production readings are fingerprinted by
(entry_date, machine_number, shift, actual_production).  The decorator
only reads its arguments and emits a log record; it never alters inputs
or results.

Usage:
    from mill_engines.tracer import traced_engine

    @traced_engine("aggregation", "1.0", fingerprint_fields=("readings",))
    def daily_yarn_summary(readings):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from typing import Any

# Own logger namespace under the kernel root so the kernel handler formats it.
_logger = logging.getLogger("mill_kernel.engines.tracer")

_READING_ATTRS = ("entry_date", "machine_number", "shift", "actual_production")


def _canonicalize(value: Any) -> str:
    """Stable string form of a value for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        items = sorted(value.items())
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    if isinstance(value, (set, frozenset)):
        return "{" + ",".join(sorted(_canonicalize(v) for v in value)) + "}"
    if all(hasattr(value, attr) for attr in _READING_ATTRS):
        return _canonicalize(tuple(getattr(value, attr) for attr in _READING_ATTRS))
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """
    Deterministic 16-hex-char fingerprint of selected named arguments.

    Missing fields are recorded as "null".
    """
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
    """Decorator that emits MILL_ENGINE_TRACE for pure engine invocations."""

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind(*args, **kwargs)
                fp = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.debug(
                "MILL_ENGINE_TRACE",
                extra={
                    "trace_type": "MILL_ENGINE_TRACE",
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
