"""
Case audit log: append-only timeline of significant transitions
(scan completed, item queued, item executed, item undone, control applied).
"""

import threading
from typing import Optional

from ..utils.logger import debug
from .db import AuditDatabase
from .events import CaseEvent


class CaseAuditLog:
    """In-memory timeline with an optional durable DuckDB mirror."""

    def __init__(self, case_id: str, db: Optional[AuditDatabase] = None):
        self.case_id = case_id
        self._db = db
        self._events: list[CaseEvent] = []
        self._lock = threading.Lock()

    def add_event(
        self,
        tab: str,
        action: str,
        severity: str,
        target: str,
        details: str = "",
    ) -> CaseEvent:
        event = CaseEvent(
            tab=tab, action=action, severity=severity, target=target, details=details
        )
        with self._lock:
            self._events.append(event)

        # Mirror outside the log's own lock
        if self._db is not None and not self._db.insert_event(self.case_id, event):
            debug(f"Audit event kept in memory only: {action} {target}")
        return event

    def events(self, tab: Optional[str] = None) -> list[CaseEvent]:
        with self._lock:
            if tab is None:
                return list(self._events)
            return [e for e in self._events if e.tab == tab]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
