"""
Logging for recordmap.

Loggers live under the ``recordmap`` namespace, one per component
(Manager, Storage, Registry, Relations). Nothing is configured on import;
call ``setup_logging`` to attach:

- a JSONL file handler (.recordmap/logs/recordmap.log by default), one
  JSON object per line with component, message and structured context
- a human-readable console handler
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from recordmap.config import get_config

LOG_FILE_NAME = "recordmap.log"
ROOT_LOGGER_NAME = "recordmap"

# =============================================================================
# Terminal Colors (respects NO_COLOR)
# =============================================================================

_NO_COLOR = bool(os.environ.get("NO_COLOR")) or not sys.stdout.isatty()


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "" if _NO_COLOR else "\033[0m"
    DIM = "" if _NO_COLOR else "\033[2m"

    # Log levels
    DEBUG = "" if _NO_COLOR else "\033[36m"  # Cyan
    INFO = "" if _NO_COLOR else "\033[32m"  # Green
    WARNING = "" if _NO_COLOR else "\033[33m"  # Yellow
    ERROR = "" if _NO_COLOR else "\033[31m"  # Red
    CRITICAL = "" if _NO_COLOR else "\033[35m"  # Magenta

    # Components
    MANAGER = "" if _NO_COLOR else "\033[34m"  # Blue
    STORAGE = "" if _NO_COLOR else "\033[36m"  # Cyan
    REGISTRY = "" if _NO_COLOR else "\033[35m"  # Magenta
    RELATIONS = "" if _NO_COLOR else "\033[33m"  # Yellow


# =============================================================================
# Formatters
# =============================================================================


class JSONLFormatter(logging.Formatter):
    """
    Formats log records as JSON Lines.

    Each entry is one JSON object containing:
    - timestamp: ISO 8601, UTC
    - level: DEBUG, INFO, WARNING, ERROR, CRITICAL
    - component: Manager, Storage, Registry, Relations
    - message: The log message
    - context: Structured data passed via ``log_with_context`` (optional)
    - source: File/line/function for WARNING and above
    - exception: Type and message when exc_info is set

    Example output:
    {"timestamp":"2024-01-15T10:30:45.123000Z","level":"DEBUG","component":"Manager","message":"insert post","context":{"table":"post","rows":1}}
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": timestamp.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "component": getattr(record, "component", "recordmap"),
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.levelno >= logging.WARNING:
            source_info: dict[str, Any] = {}
            if record.pathname:
                source_info["file"] = record.pathname
            if record.lineno:
                source_info["line"] = record.lineno
            if record.funcName and record.funcName != "<module>":
                source_info["function"] = record.funcName
            if source_info:
                entry["source"] = source_info

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DEBUG,
        logging.INFO: Colors.INFO,
        logging.WARNING: Colors.WARNING,
        logging.ERROR: Colors.ERROR,
        logging.CRITICAL: Colors.CRITICAL,
    }

    def format(self, record: logging.LogRecord) -> str:
        component = getattr(record, "component", "recordmap")
        component_color = getattr(record, "component_color", "")
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        if _NO_COLOR:
            prefix = f"[{timestamp}] [{component}]"
        else:
            prefix = (
                f"{Colors.DIM}{timestamp}{Colors.RESET} "
                f"{component_color}[{component}]{Colors.RESET}"
            )

        if record.levelno != logging.INFO:
            level_name = record.levelname
            if not _NO_COLOR:
                level_color = self.LEVEL_COLORS.get(record.levelno, "")
                level_name = f"{level_color}{level_name}{Colors.RESET}"
            prefix = f"{prefix} {level_name}:"

        message = f"{prefix} {record.getMessage()}"
        context = getattr(record, "context", None)
        if context:
            message += " " + " ".join(f"{k}={v}" for k, v in context.items())
        return message


# =============================================================================
# Logger Setup
# =============================================================================


_loggers: dict[str, logging.Logger] = {}
_log_dir: Path | None = None
_file_handler: RotatingFileHandler | None = None


def setup_logging(
    log_dir: Path | str | None = None,
    level: int | None = None,
    max_bytes: int = 5 * 1024 * 1024,  # 5MB
    backup_count: int = 3,
    console: bool = True,
) -> Path:
    """
    Attach file and console handlers to the ``recordmap`` logger.

    Args:
        log_dir: Directory for log files (defaults to config ``log_dir``)
        level: Minimum log level (defaults to config ``log_level``)
        max_bytes: Max size per log file before rotation
        backup_count: Number of backup files to keep
        console: Also log human-readable lines to stdout

    Returns:
        Path to the log directory
    """
    global _log_dir, _file_handler

    config = get_config()
    if level is None:
        level = config.log_level_value
    _log_dir = Path(log_dir) if log_dir is not None else config.log_dir
    _log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()

    log_file = _log_dir / LOG_FILE_NAME
    _file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    _file_handler.setFormatter(JSONLFormatter())
    _file_handler.setLevel(level)
    root_logger.addHandler(_file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(ConsoleFormatter())
        console_handler.setLevel(level)
        root_logger.addHandler(console_handler)

    root_logger.info(
        "recordmap logging initialized",
        extra={
            "component": "recordmap",
            "context": {"log_format": "jsonl", "log_file": str(log_file)},
        },
    )
    return _log_dir


class _ComponentFilter(logging.Filter):
    """Stamps component name and color onto every record."""

    def __init__(self, component: str, color: str):
        super().__init__()
        self.component = component
        self.color = color

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "component"):
            record.component = self.component
        if not hasattr(record, "component_color"):
            record.component_color = self.color
        return True


def get_logger(component: str, color: str = "") -> logging.Logger:
    """
    Get a logger for a specific component.

    Args:
        component: Component name (e.g., "Manager", "Storage")
        color: ANSI color code for the component tag

    Returns:
        Configured logger instance
    """
    if component in _loggers:
        return _loggers[component]

    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{component.lower().replace(' ', '_')}")
    logger.addFilter(_ComponentFilter(component, color))
    _loggers[component] = logger
    return logger


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    context: dict[str, Any] | None = None,
    exc_info: bool = False,
    **kwargs: Any,
) -> None:
    """
    Log a message with structured context data.

    Args:
        logger: Logger instance
        level: Logging level (logging.INFO, logging.ERROR, etc.)
        message: Human-readable message
        context: Structured context data (included in JSONL)
        exc_info: Attach the exception being handled
        **kwargs: Additional context items
    """
    if not logger.isEnabledFor(level):
        return
    extra = {"context": {**(context or {}), **kwargs}} if (context or kwargs) else {}
    logger.log(level, message, extra=extra, exc_info=exc_info)


# =============================================================================
# Component Loggers
# =============================================================================


def get_manager_logger() -> logging.Logger:
    """Get logger for record manager operations."""
    return get_logger("Manager", Colors.MANAGER)


def get_storage_logger() -> logging.Logger:
    """Get logger for storage backend operations."""
    return get_logger("Storage", Colors.STORAGE)


def get_registry_logger() -> logging.Logger:
    """Get logger for manager registry operations."""
    return get_logger("Registry", Colors.REGISTRY)


def get_relations_logger() -> logging.Logger:
    """Get logger for relationship resolution."""
    return get_logger("Relations", Colors.RELATIONS)


# =============================================================================
# Utility Functions
# =============================================================================


def get_log_file() -> Path | None:
    """Get the path to the main log file."""
    if _log_dir:
        return _log_dir / LOG_FILE_NAME
    return None


def get_recent_logs(count: int = 50, level: str | None = None) -> list[dict[str, Any]]:
    """
    Get recent log entries as parsed JSON.

    Args:
        count: Number of recent entries to return
        level: Optional filter by level (ERROR, WARNING, etc.)

    Returns:
        List of log entries (most recent last)
    """
    log_file = get_log_file()
    if not log_file or not log_file.exists():
        return []

    if _file_handler is not None:
        _file_handler.flush()

    entries: list[dict[str, Any]] = []
    with open(log_file, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue
            if level and entry.get("level") != level.upper():
                continue
            entries.append(entry)
    return entries[-count:]
