"""
Performance logging utilities.

Timing context managers that log to the perf category with the current
render ID for correlation.

Usage:
    with log_timing("layout", warn_threshold_ms=50) as ctx:
        nodes = layout(items, 0, 0, w, h)
        ctx["nodes"] = len(nodes)

    async with log_timing_async("render"):
        await renderer.render(items)

Guidelines:
    Use for render-level operations (layout, full paint, file load).
    Do NOT use per cell or per batch; hundreds of calls per render add up.

    Threshold guidelines:
    - Layout: warn=50ms, error=250ms
    - Full render: warn=500ms, error=2000ms
    - Data file load: warn=500ms, error=2000ms
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncGenerator, Generator, Optional

from .trace_context import get_render_id

_perf_logger: Optional[logging.Logger] = None


def get_perf_logger() -> logging.Logger:
    """Get or create the performance logger."""
    global _perf_logger
    if _perf_logger is None:
        _perf_logger = logging.getLogger("stockmap.perf")
    return _perf_logger


def set_perf_logger(logger: logging.Logger) -> None:
    """Replace the performance logger (for testing or custom configuration)."""
    global _perf_logger
    _perf_logger = logger


def _emit(operation: str, duration_ms: float, warn_ms: float, error_ms: float, context: dict) -> None:
    logger = get_perf_logger()
    render_id = get_render_id()
    log_data = {
        "render": render_id,
        "operation": operation,
        "duration_ms": round(duration_ms, 2),
        **context,
    }

    if duration_ms >= error_ms:
        logger.error(f"[{render_id}] SLOW {operation}: {duration_ms:.1f}ms", extra={"data": log_data})
    elif duration_ms >= warn_ms:
        logger.warning(f"[{render_id}] {operation}: {duration_ms:.1f}ms (slow)", extra={"data": log_data})
    else:
        logger.debug(f"[{render_id}] {operation}: {duration_ms:.1f}ms", extra={"data": log_data})


@contextmanager
def log_timing(
    operation: str,
    warn_threshold_ms: float = 500.0,
    error_threshold_ms: float = 2000.0,
    extra: Optional[dict] = None,
) -> Generator[dict, None, None]:
    """
    Context manager to log operation timing.

    Escalates the log level based on duration thresholds.

    Args:
        operation: Name of the operation being timed.
        warn_threshold_ms: Duration above which to log as WARNING.
        error_threshold_ms: Duration above which to log as ERROR.
        extra: Additional data to include in the log.

    Yields:
        Dict that can be updated with additional context during execution.
    """
    context = extra.copy() if extra else {}
    start_time = time.perf_counter()
    try:
        yield context
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        _emit(operation, duration_ms, warn_threshold_ms, error_threshold_ms, context)


@asynccontextmanager
async def log_timing_async(
    operation: str,
    warn_threshold_ms: float = 500.0,
    error_threshold_ms: float = 2000.0,
    extra: Optional[dict] = None,
) -> AsyncGenerator[dict, None]:
    """
    Async context manager to log operation timing.

    Same as log_timing but spans awaits (e.g. a batched paint that yields
    to the event loop between batches).
    """
    context = extra.copy() if extra else {}
    start_time = time.perf_counter()
    try:
        yield context
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        _emit(operation, duration_ms, warn_threshold_ms, error_threshold_ms, context)
