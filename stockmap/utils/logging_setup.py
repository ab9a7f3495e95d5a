"""
Logging setup with per-category files and render ID support.

Provides:
- 5 log categories: system, layout, render, data, perf
- Automatic module → category routing
- Render ID correlation in all logs
- JSON-lines file logging through a queue (non-blocking for the UI loop)
- Optional colored console output
- Configurable timezone for log timestamps

Categories:
- system: Startup, shutdown, config, CLI, TUI app
- layout: Treemap geometry
- render: Surfaces, batched paint, interaction
- data: Record normalization, data file loading
- perf: Timing, latency diagnostics
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
import re
import sys
from datetime import datetime
from pathlib import Path
from queue import Queue
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from .trace_context import get_render_id

# =============================================================================
# GLOBAL STATE
# =============================================================================

# Run number for this session (determined at startup)
_session_run_number: Optional[int] = None

# Timezone for log timestamps (None = local time)
_log_timezone: Optional[ZoneInfo] = None

_verbose_mode: bool = False
_console_enabled: bool = False
_log_level_override: Optional[str] = None

_category_loggers: Dict[str, logging.Logger] = {}
_queue_listeners: List[logging.handlers.QueueListener] = []

# =============================================================================
# LOG CATEGORIES AND ROUTING
# =============================================================================

LOGGER_ROOT = "stockmap"

CATEGORIES = ["system", "layout", "render", "data", "perf"]

CATEGORY_SUFFIXES = {
    "system": "sys",
    "layout": "lay",
    "render": "rnd",
    "data": "dat",
    "perf": "prf",
}

# Module path → category routing. More specific paths first.
MODULE_ROUTING: List[Tuple[str, str]] = [
    ("stockmap.domain.heatmap.layout", "layout"),
    ("stockmap.domain.heatmap.aliases", "data"),
    ("stockmap.domain.heatmap", "render"),
    ("stockmap.infrastructure.adapters", "data"),
    ("stockmap.infrastructure.reporting", "render"),
    ("stockmap.tui.widgets", "render"),
    ("stockmap.tui", "system"),
    ("stockmap.utils.perf_logger", "perf"),
    ("stockmap", "system"),
]


def get_category_for_module(module_name: str) -> str:
    """
    Determine the log category for a given module name.

    Args:
        module_name: Full module path (e.g., "stockmap.domain.heatmap.layout").

    Returns:
        Category name (system, layout, render, data, or perf).
    """
    for prefix, category in MODULE_ROUTING:
        if module_name.startswith(prefix):
            return category
    return "system"


# =============================================================================
# TIMEZONE SUPPORT
# =============================================================================

def set_log_timezone(tz: Optional[str] = None) -> None:
    """
    Set the timezone for log timestamps.

    Args:
        tz: Timezone name (e.g., "America/New_York", "UTC"). None or "local"
            uses local system time.
    """
    global _log_timezone
    if tz is None or tz == "local":
        _log_timezone = None
    else:
        _log_timezone = ZoneInfo(tz)


def get_current_timestamp() -> str:
    """ISO timestamp in the configured log timezone."""
    if _log_timezone is not None:
        return datetime.now(_log_timezone).isoformat()
    return datetime.now().isoformat()


# =============================================================================
# GLOBAL CONFIGURATION
# =============================================================================

def set_verbose_mode(enabled: bool) -> None:
    """Enable or disable verbose mode (DEBUG level logging)."""
    global _verbose_mode
    _verbose_mode = enabled


def is_verbose_mode() -> bool:
    return _verbose_mode


def set_console_enabled(enabled: bool) -> None:
    global _console_enabled
    _console_enabled = enabled


def is_console_enabled() -> bool:
    return _console_enabled


def set_log_level_override(level: Optional[str]) -> None:
    """Set a global log level override."""
    global _log_level_override
    _log_level_override = level.upper() if level else None


def get_effective_log_level() -> str:
    """Effective log level (verbose mode wins over overrides)."""
    if _verbose_mode:
        return "DEBUG"
    if _log_level_override:
        return _log_level_override
    return "INFO"


# =============================================================================
# FORMATTERS
# =============================================================================

class RenderIdFilter(logging.Filter):
    """
    Stamp the current render ID onto the record.

    Runs in the logging thread; file formatters run later on the queue
    listener thread, where the render context is not set.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "render_id"):
            record.render_id = get_render_id()
        return True


def _record_render_id(record: logging.LogRecord) -> str:
    return getattr(record, "render_id", None) or get_render_id()


class JSONFormatter(logging.Formatter):
    """
    Single-line JSON formatter.

    Fields: ts, level, cat (from logger name), render (render ID), msg,
    plus `data` when passed via extra={"data": ...} and `exception`.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": get_current_timestamp(),
            "level": record.levelname,
            "cat": self._get_category(record.name),
            "render": _record_render_id(record),
            "msg": record.getMessage(),
        }

        if hasattr(record, "data") and record.data:
            log_entry["data"] = record.data

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)

    def _get_category(self, logger_name: str) -> str:
        if logger_name.startswith(f"{LOGGER_ROOT}."):
            parts = logger_name.split(".")
            if len(parts) >= 2 and parts[1] in CATEGORIES:
                return parts[1]
        return "system"


class ConsoleFormatter(logging.Formatter):
    """
    Console formatter with render ID and color support.

    Format: [LEVEL] [render] message
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        render_id = _record_render_id(record)
        level = record.levelname
        if self.use_colors:
            color = self.COLORS.get(level, "")
            return f"{color}[{level:7}]{self.RESET} [{render_id}] {record.getMessage()}"
        return f"[{level:7}] [{render_id}] {record.getMessage()}"


# =============================================================================
# LOGGER FACTORY
# =============================================================================

def get_logger(module_name: str) -> logging.Logger:
    """
    Get a logger for the given module, routed to its category.

    Args:
        module_name: Module name (typically __name__).

    Returns:
        The category logger ("stockmap.<category>").

    Example:
        from stockmap.utils.logging_setup import get_logger
        logger = get_logger(__name__)
        logger.info("Painting...")
    """
    category = get_category_for_module(module_name)
    return logging.getLogger(f"{LOGGER_ROOT}.{category}")


# =============================================================================
# RUN NUMBER MANAGEMENT
# =============================================================================

def _get_next_run_number(log_dir: str, env: str, date_str: str) -> int:
    """Next free run number for today's date."""
    log_path = Path(log_dir) / date_str
    if not log_path.exists():
        return 1

    # Pattern: stockmap_{env}_{suffix}_{date}_{N}.log
    suffixes = "|".join(CATEGORY_SUFFIXES.values())
    pattern = re.compile(
        rf"^{LOGGER_ROOT}_{re.escape(env)}_(?:{suffixes})_{re.escape(date_str)}_(\d+)\.log$"
    )

    max_num = 0
    for filename in os.listdir(log_path):
        match = pattern.match(filename)
        if match:
            max_num = max(max_num, int(match.group(1)))
    return max_num + 1


def _get_session_run_number(log_dir: str, env: str) -> int:
    global _session_run_number
    if _session_run_number is None:
        date_str = datetime.now().strftime("%Y-%m-%d")
        _session_run_number = _get_next_run_number(log_dir, env, date_str)
    return _session_run_number


def reset_session_run_number() -> None:
    """Reset the session run number (for testing)."""
    global _session_run_number
    _session_run_number = None


# =============================================================================
# CATEGORY LOGGING SETUP
# =============================================================================

def setup_category_logging(
    env: str,
    log_dir: str = "./logs",
    level: str = "INFO",
    console: bool = False,
    verbose: bool = False,
) -> Dict[str, logging.Logger]:
    """
    Set up one log file per category.

    Creates log files in a date subdirectory:
    - logs/{date}/stockmap_{env}_sys_{date}_{run}.log
    - logs/{date}/stockmap_{env}_lay_{date}_{run}.log
    - logs/{date}/stockmap_{env}_rnd_{date}_{run}.log
    - logs/{date}/stockmap_{env}_dat_{date}_{run}.log
    - logs/{date}/stockmap_{env}_prf_{date}_{run}.log

    Args:
        env: Environment name (dev/prod/demo).
        log_dir: Base directory for log files.
        level: Default logging level.
        console: Enable console output (stderr).
        verbose: Enable verbose (DEBUG) mode.

    Returns:
        Dict mapping category name to logger.
    """
    # Tear down previous handlers/listeners so reconfiguration does not leak
    # file handles.
    shutdown_logging()
    for category in CATEGORIES:
        logger = logging.getLogger(f"{LOGGER_ROOT}.{category}")
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    set_verbose_mode(verbose)
    set_console_enabled(console)
    if not verbose:
        set_log_level_override(level)

    date_str = datetime.now().strftime("%Y-%m-%d")
    log_path = Path(log_dir) / date_str
    log_path.mkdir(parents=True, exist_ok=True)

    run_number = _get_session_run_number(log_dir, env)
    effective_level = getattr(logging, get_effective_log_level(), logging.INFO)

    for category in CATEGORIES:
        suffix = CATEGORY_SUFFIXES[category]
        filename = f"{LOGGER_ROOT}_{env}_{suffix}_{date_str}_{run_number}.log"

        logger = logging.getLogger(f"{LOGGER_ROOT}.{category}")
        logger.setLevel(effective_level)
        logger.propagate = False

        file_handler = logging.FileHandler(filename=str(log_path / filename), mode="a", encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(effective_level)

        # QueueHandler keeps disk writes off the event loop
        log_queue: Queue = Queue(-1)
        queue_handler = logging.handlers.QueueHandler(log_queue)
        queue_handler.addFilter(RenderIdFilter())
        logger.addHandler(queue_handler)

        listener = logging.handlers.QueueListener(log_queue, file_handler, respect_handler_level=True)
        listener.start()
        _queue_listeners.append(listener)

        if console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(ConsoleFormatter(use_colors=sys.stderr.isatty()))
            console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
            logger.addHandler(console_handler)

        _category_loggers[category] = logger

    return _category_loggers


def get_category_loggers() -> Dict[str, logging.Logger]:
    """All configured category loggers."""
    return _category_loggers


def flush_all_loggers() -> None:
    """Flush handlers on every category logger."""
    for category in CATEGORIES:
        for handler in logging.getLogger(f"{LOGGER_ROOT}.{category}").handlers:
            handler.flush()


def shutdown_logging() -> None:
    """Stop all queue listeners (flushes pending records to disk)."""
    for listener in _queue_listeners:
        listener.stop()
        for handler in listener.handlers:
            handler.close()
    _queue_listeners.clear()
