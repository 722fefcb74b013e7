"""
Structured logging for ViperKit.

Simple API:
    from viperkit.utils.logger import debug, info, warn, error

    info("Sweep finished")

Component loggers and case context:
    from viperkit.utils.logger import get_logger, log_context

    logger = get_logger("remediation")
    with log_context(case_id="WS01-20260302-091200", action_id="3fa2b1c0"):
        logger.info("Quarantined %s", path)  # logs as "viperkit.remediation"
"""

import logging
from typing import Any, Optional

from .config import LogConfig, ensure_log_directory, get_config
from .context import (
    ContextFilter,
    get_action_id,
    get_case_id,
    log_context,
    set_action_id,
    set_case_id,
)
from .crash import install_crash_handler, uninstall_crash_handler
from .handlers import setup_handlers

ROOT_LOGGER_NAME = "viperkit"

_initialized = False
_root_logger: Optional[logging.Logger] = None


def setup_logging(config: Optional[LogConfig] = None) -> logging.Logger:
    """Initialize the logging system.

    Call once at startup. Safe to call again, e.g. after changing the
    environment in tests: handlers are replaced, not duplicated.
    """
    global _initialized, _root_logger

    if config is None:
        config = get_config()
    ensure_log_directory(config)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    setup_handlers(logger, config)

    if not any(isinstance(f, ContextFilter) for f in logger.filters):
        logger.addFilter(ContextFilter())

    install_crash_handler(logger, config)
    logger.propagate = False

    _initialized = True
    _root_logger = logger
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the root ViperKit logger or a named child of it.

    Initializes the logging system on first use.
    """
    if not _initialized:
        setup_logging()

    if name:
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return _root_logger or logging.getLogger(ROOT_LOGGER_NAME)


def debug(msg: str, *args: Any, **kwargs: Any) -> None:
    log.debug(msg, *args, **kwargs)


def info(msg: str, *args: Any, **kwargs: Any) -> None:
    log.info(msg, *args, **kwargs)


def warn(msg: str, *args: Any, **kwargs: Any) -> None:
    log.warning(msg, *args, **kwargs)


warning = warn


def error(msg: str, *args: Any, **kwargs: Any) -> None:
    log.error(msg, *args, **kwargs)


def critical(msg: str, *args: Any, **kwargs: Any) -> None:
    log.critical(msg, *args, **kwargs)


def exception(msg: str, *args: Any, **kwargs: Any) -> None:
    """Log at ERROR with the active exception attached."""
    log.exception(msg, *args, **kwargs)


class _LazyLogger:
    """Proxy that initializes logging on first attribute access."""

    _instance: Optional[logging.Logger] = None

    def __getattr__(self, name: str) -> Any:
        if self._instance is None:
            self._instance = get_logger()
        return getattr(self._instance, name)


log: Any = _LazyLogger()


__all__ = [
    "debug",
    "info",
    "warn",
    "warning",
    "error",
    "critical",
    "exception",
    "log",
    "setup_logging",
    "get_logger",
    "LogConfig",
    "get_config",
    "log_context",
    "get_case_id",
    "set_case_id",
    "get_action_id",
    "set_action_id",
    "ContextFilter",
    "install_crash_handler",
    "uninstall_crash_handler",
]
