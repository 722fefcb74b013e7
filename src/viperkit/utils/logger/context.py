"""
Logging context for ViperKit.

Every remediation runs inside a case, and most log lines belong to a single
queued item or hardening control. Both identifiers travel through context
variables so worker-pool threads can tag their records without plumbing.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, Optional

case_id_var: ContextVar[Optional[str]] = ContextVar("case_id", default=None)
action_id_var: ContextVar[Optional[str]] = ContextVar("action_id", default=None)


def get_case_id() -> Optional[str]:
    return case_id_var.get()


def set_case_id(case_id: Optional[str]) -> None:
    case_id_var.set(case_id)


def get_action_id() -> Optional[str]:
    return action_id_var.get()


def set_action_id(action_id: Optional[str]) -> None:
    action_id_var.set(action_id)


@contextmanager
def log_context(
    case_id: Optional[str] = None,
    action_id: Optional[str] = None,
) -> Generator[dict[str, Optional[str]], None, None]:
    """Tag log records emitted inside the block with a case and/or action id.

    Values that are not passed keep whatever the enclosing context set.
    Previous values are restored on exit.

    Example:
        with log_context(case_id=session.case_id, action_id=item.id):
            logger.info("Quarantining %s", item.original_path)
    """
    old_case_id = case_id_var.get()
    old_action_id = action_id_var.get()

    if case_id is not None:
        case_id_var.set(case_id)
    if action_id is not None:
        action_id_var.set(action_id)

    try:
        yield {"case_id": case_id_var.get(), "action_id": action_id_var.get()}
    finally:
        case_id_var.set(old_case_id)
        action_id_var.set(old_action_id)


class ContextFilter(logging.Filter):
    """Copy the case/action context variables onto each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.case_id = case_id_var.get()
        record.action_id = action_id_var.get()
        return True
