"""Utility modules."""

from .debounce import Debouncer
from .logging_setup import (
    flush_all_loggers,
    get_current_timestamp,
    get_logger,
    is_console_enabled,
    is_verbose_mode,
    reset_session_run_number,
    set_console_enabled,
    set_log_timezone,
    set_verbose_mode,
    setup_category_logging,
    shutdown_logging,
)
from .perf_logger import log_timing, log_timing_async
from .trace_context import generate_render_id, get_render_id, new_render_pass

__all__ = [
    # Logging setup
    "setup_category_logging",
    "flush_all_loggers",
    "shutdown_logging",
    "reset_session_run_number",
    "set_log_timezone",
    "get_current_timestamp",
    "get_logger",
    "set_verbose_mode",
    "set_console_enabled",
    "is_verbose_mode",
    "is_console_enabled",
    # Trace context
    "get_render_id",
    "new_render_pass",
    "generate_render_id",
    # Performance logging
    "log_timing",
    "log_timing_async",
    # Scheduling
    "Debouncer",
]
