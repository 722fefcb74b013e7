"""
Crash record for ViperKit.

An unhandled exception in the middle of a remediation batch leaves the
endpoint half-changed. The crash record names the case and the queued item
that was in flight so the operator knows which journal to check.
"""

import logging
import sys
import traceback
from datetime import datetime, timezone
from types import TracebackType
from typing import Any, Callable, Optional, Type

from .config import LogConfig, ensure_log_directory, get_config
from .context import get_action_id, get_case_id

ExceptHook = Callable[
    [Type[BaseException], BaseException, Optional[TracebackType]], Any
]

_previous_hook: Optional[ExceptHook] = None
_logger: Optional[logging.Logger] = None
_config: Optional[LogConfig] = None


def format_crash_record(
    exc_type: Type[BaseException],
    exc_value: BaseException,
    exc_traceback: Optional[TracebackType],
) -> str:
    """Banner with time, case and in-flight action, followed by the traceback."""
    lines = [
        "=" * 80,
        f"CRASH at {datetime.now(tz=timezone.utc).isoformat()}",
        f"Case: {get_case_id() or '-'}",
        f"In-flight action: {get_action_id() or '-'}",
        "=" * 80,
    ]
    lines.append("".join(traceback.format_exception(exc_type, exc_value, exc_traceback)))
    return "\n".join(lines) + "\n"


def _write_crash_file(record: str) -> None:
    config = _config or get_config()
    try:
        ensure_log_directory(config)
        with open(config.crash_log_path, "a", encoding="utf-8") as f:
            f.write("\n" + record)
    except OSError as e:
        print(f"Could not write crash log: {e}", file=sys.stderr)


def crash_handler(
    exc_type: Type[BaseException],
    exc_value: BaseException,
    exc_traceback: Optional[TracebackType],
) -> None:
    """sys.excepthook replacement; Ctrl+C passes straight through."""
    if not issubclass(exc_type, KeyboardInterrupt):
        if _logger:
            _logger.critical(
                "Unhandled exception (case=%s, action=%s)",
                get_case_id() or "-",
                get_action_id() or "-",
                exc_info=(exc_type, exc_value, exc_traceback),
            )
        _write_crash_file(format_crash_record(exc_type, exc_value, exc_traceback))

    if _previous_hook:
        _previous_hook(exc_type, exc_value, exc_traceback)


def install_crash_handler(
    logger: logging.Logger, config: Optional[LogConfig] = None
) -> None:
    global _previous_hook, _logger, _config

    if _previous_hook is None:
        _previous_hook = sys.excepthook
    _logger = logger
    _config = config
    sys.excepthook = crash_handler


def uninstall_crash_handler() -> None:
    global _previous_hook, _logger, _config

    if _previous_hook is not None:
        sys.excepthook = _previous_hook
        _previous_hook = None
    _logger = None
    _config = None
