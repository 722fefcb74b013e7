"""
Log handlers for ViperKit: rotating human/JSON files plus optional stderr.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from .config import LogConfig, ensure_log_directory, get_config
from .formatters import HumanFormatter, JsonFormatter


def _rotating(path, max_bytes: int, backups: int, formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=path,
        maxBytes=max_bytes,
        backupCount=backups,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def create_file_handler(config: LogConfig) -> RotatingFileHandler:
    """Rotating handler for the human-readable log."""
    ensure_log_directory(config)
    return _rotating(
        config.human_log_path,
        config.human_log_max_bytes,
        config.human_log_backup_count,
        HumanFormatter(),
    )


def create_json_handler(config: LogConfig) -> RotatingFileHandler:
    """Rotating handler for the JSON Lines log."""
    ensure_log_directory(config)
    return _rotating(
        config.json_log_path,
        config.json_log_max_bytes,
        config.json_log_backup_count,
        JsonFormatter(),
    )


def create_console_handler(config: LogConfig) -> logging.StreamHandler:
    """stderr handler; warnings and above unless running in debug mode."""
    handler = logging.StreamHandler(sys.stderr)
    if config.default_level == logging.DEBUG:
        handler.setLevel(logging.DEBUG)
    else:
        handler.setLevel(logging.WARNING)
    handler.setFormatter(HumanFormatter())
    return handler


def setup_handlers(
    logger: logging.Logger,
    config: Optional[LogConfig] = None,
    include_console: Optional[bool] = None,
) -> None:
    """Replace the handlers on ``logger`` with the configured set.

    Args:
        logger: The logger to configure.
        config: Optional LogConfig. Defaults to get_config().
        include_console: Override for config.console_enabled.
    """
    if config is None:
        config = get_config()

    console_enabled = (
        include_console if include_console is not None else config.console_enabled
    )

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(create_file_handler(config))
    logger.addHandler(create_json_handler(config))
    if console_enabled:
        logger.addHandler(create_console_handler(config))

    logger.setLevel(config.default_level)
