"""
approval_engines.tracer -- Engine invocation tracer emitting APPROVAL_ENGINE_TRACE.

Responsibility:
    ``@traced_engine`` wraps a pure engine function and emits one structured
    log record per invocation with the engine name, version, wrapped
    function, duration, and whether the call raised.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits a log record only; uses the stdlib logger under the kernel
    namespace so the kernel's JSON handler formats it.

Usage:
    from approval_engines.tracer import traced_engine

    @traced_engine("matching", "1.0")
    def select_workflow(...):
        ...
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable
from typing import Any

_logger = logging.getLogger("approval_kernel.engines.tracer")


def traced_engine(engine_name: str, engine_version: str) -> Callable:
    """Decorator that emits APPROVAL_ENGINE_TRACE for engine invocations."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            t0 = time.monotonic()
            outcome = "ok"
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                outcome = type(exc).__name__
                raise
            finally:
                _logger.debug(
                    "APPROVAL_ENGINE_TRACE",
                    extra={
                        "trace_type": "APPROVAL_ENGINE_TRACE",
                        "engine_name": engine_name,
                        "engine_version": engine_version,
                        "function": func.__qualname__,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                        "outcome": outcome,
                    },
                )

        return wrapper

    return decorator
