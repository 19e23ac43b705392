"""
Centralized configuration for recordmap.

Single source of truth for the default database location and logging
settings. Values come from environment variables and are read once.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import cache
from pathlib import Path

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class RecordMapConfig:
    """Runtime configuration from environment variables.

    Attributes:
        db_path: SQLite database path, ``:memory:`` for an in-process database
        log_dir: Directory for the JSONL log file
        log_level: Minimum level name for recordmap loggers
        foreign_keys: Whether SQLite connections enforce foreign keys
    """

    db_path: str = ":memory:"
    log_dir: Path = Path(".recordmap/logs")
    log_level: str = "INFO"
    foreign_keys: bool = True

    @property
    def log_level_value(self) -> int:
        """Numeric logging level; unknown names fall back to INFO."""
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO


@cache
def get_config() -> RecordMapConfig:
    """Load configuration from environment variables.

    Environment variables:
        - RECORDMAP_DB_PATH → db_path
        - RECORDMAP_LOG_DIR → log_dir
        - RECORDMAP_LOG_LEVEL → log_level
        - RECORDMAP_FOREIGN_KEYS → foreign_keys (0/false/no/off disables)

    Returns:
        RecordMapConfig with defaults for unset variables.
    """
    return RecordMapConfig(
        db_path=os.environ.get("RECORDMAP_DB_PATH") or ":memory:",
        log_dir=Path(os.environ.get("RECORDMAP_LOG_DIR") or ".recordmap/logs"),
        log_level=os.environ.get("RECORDMAP_LOG_LEVEL") or "INFO",
        foreign_keys=os.environ.get("RECORDMAP_FOREIGN_KEYS", "1").strip().lower()
        not in _FALSE_VALUES,
    )
