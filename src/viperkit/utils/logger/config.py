"""
Logging configuration for ViperKit.

Log files live next to the rest of the toolkit's on-host state so that an
investigator can collect them together with the case folder.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEBUG_ENV = "VIPERKIT_DEBUG"
LOG_LEVEL_ENV = "VIPERKIT_LOG_LEVEL"
LOG_CONSOLE_ENV = "VIPERKIT_LOG_CONSOLE"
LOG_DIR_ENV = "VIPERKIT_LOG_DIR"

HUMAN_LOG_FILE = "viperkit.log"
JSON_LOG_FILE = "viperkit.json"
CRASH_LOG_FILE = "crash.log"

LOG_LEVEL_MAP = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

_TRUTHY = ("1", "true", "yes")
_FALSY = ("0", "false", "no")


def default_log_dir() -> Path:
    """Return %ProgramData%\\ViperKit\\Logs, or ~/.viperkit/logs off Windows."""
    program_data = os.environ.get("ProgramData")
    if program_data:
        return Path(program_data) / "ViperKit" / "Logs"
    return Path.home() / ".viperkit" / "logs"


@dataclass
class LogConfig:
    """Configuration for the logging system.

    Attributes:
        log_dir: Directory where log files are stored
        human_log_max_bytes: Size of the human-readable log before rotation
        human_log_backup_count: Rotated human-readable files to keep
        json_log_max_bytes: Size of the JSON log before rotation
        json_log_backup_count: Rotated JSON files to keep
        default_level: Default logging level
        console_enabled: Whether to mirror logs to stderr
    """

    log_dir: Path = field(default_factory=default_log_dir)
    human_log_max_bytes: int = 5 * 1024 * 1024  # 5MB
    human_log_backup_count: int = 5
    json_log_max_bytes: int = 10 * 1024 * 1024  # 10MB
    json_log_backup_count: int = 3
    default_level: int = logging.INFO
    console_enabled: bool = False

    @property
    def human_log_path(self) -> Path:
        return self.log_dir / HUMAN_LOG_FILE

    @property
    def json_log_path(self) -> Path:
        return self.log_dir / JSON_LOG_FILE

    @property
    def crash_log_path(self) -> Path:
        return self.log_dir / CRASH_LOG_FILE


def get_config() -> LogConfig:
    """Create a LogConfig from environment variables.

    Environment variables:
        VIPERKIT_DEBUG: '1', 'true' or 'yes' enables debug level and console output
        VIPERKIT_LOG_LEVEL: explicit level name ('debug' ... 'critical')
        VIPERKIT_LOG_CONSOLE: force console output on or off
        VIPERKIT_LOG_DIR: override the log directory
    """
    config = LogConfig()

    log_dir = os.environ.get(LOG_DIR_ENV, "").strip()
    if log_dir:
        config.log_dir = Path(log_dir)

    if os.environ.get(DEBUG_ENV, "").lower() in _TRUTHY:
        config.default_level = logging.DEBUG
        config.console_enabled = True

    level_name = os.environ.get(LOG_LEVEL_ENV, "").lower()
    if level_name in LOG_LEVEL_MAP:
        config.default_level = LOG_LEVEL_MAP[level_name]

    console_env = os.environ.get(LOG_CONSOLE_ENV, "").lower()
    if console_env in _TRUTHY:
        config.console_enabled = True
    elif console_env in _FALSY:
        config.console_enabled = False

    return config


def ensure_log_directory(config: Optional[LogConfig] = None) -> Path:
    """Create the log directory if needed and return it."""
    log_dir = config.log_dir if config else default_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir
