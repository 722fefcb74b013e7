"""
Remediation queue: the deduplicated list of staged cleanup items.

The queue is the only place item status changes. Callers receive copies,
so nothing outside the queue can mutate a staged item behind its back.
"""

import threading
from dataclasses import replace
from datetime import datetime
from typing import NamedTuple, Optional

from ..core.types import CleanupStatus
from ..utils.logger import debug, info
from .models import CleanupItem

ALLOWED_TRANSITIONS = {
    CleanupStatus.PENDING: frozenset({CleanupStatus.IN_PROGRESS}),
    CleanupStatus.IN_PROGRESS: frozenset({CleanupStatus.COMPLETED, CleanupStatus.FAILED}),
    CleanupStatus.COMPLETED: frozenset({CleanupStatus.UNDONE}),
    # operator retry
    CleanupStatus.FAILED: frozenset({CleanupStatus.PENDING}),
    CleanupStatus.UNDONE: frozenset(),
}

# Completed items must be undone first; InProgress items are being executed
_NOT_REMOVABLE = frozenset({CleanupStatus.COMPLETED, CleanupStatus.IN_PROGRESS})


class QueueStats(NamedTuple):
    total: int
    pending: int
    completed: int
    failed: int


class RemediationQueue:
    def __init__(self):
        self._items: list[CleanupItem] = []
        self._lock = threading.Lock()

    def _find_locked(self, item_id: str) -> Optional[CleanupItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def enqueue(self, item: CleanupItem) -> bool:
        """Add an item unless one with the same original path is queued.

        Returns:
            True if the item was added.
        """
        with self._lock:
            key = item.dedupe_key
            if any(existing.dedupe_key == key for existing in self._items):
                debug(f"Already queued: {item.original_path}")
                return False
            self._items.append(replace(item))
        info(f"Queued {item.item_type.value} {item.name} for {item.action.value}")
        return True

    def dequeue(self, item_id: str) -> bool:
        """Remove an item. Completed or executing items stay."""
        with self._lock:
            item = self._find_locked(item_id)
            if item is None or item.status in _NOT_REMOVABLE:
                return False
            self._items.remove(item)
        return True

    def transition(
        self,
        item_id: str,
        status: CleanupStatus,
        error: Optional[str] = None,
        quarantine_path: Optional[str] = None,
    ) -> bool:
        """Move an item to ``status`` if the state machine allows it.

        Completed/Failed stamp ``executed_at``; Undone stamps ``undone_at``.
        Returning to Pending clears the previous error.
        """
        with self._lock:
            item = self._find_locked(item_id)
            if item is None:
                return False
            if status not in ALLOWED_TRANSITIONS[item.status]:
                debug(f"Rejected transition {item.status.value} -> {status.value} for {item_id}")
                return False

            item.status = status
            now = datetime.now()
            if status in (CleanupStatus.COMPLETED, CleanupStatus.FAILED):
                item.executed_at = now
            elif status == CleanupStatus.UNDONE:
                item.undone_at = now
            elif status == CleanupStatus.PENDING:
                item.error_message = ""
                item.executed_at = None

            if error is not None:
                item.error_message = error
            if quarantine_path is not None:
                item.quarantine_path = quarantine_path
        return True

    def retry(self, item_id: str) -> bool:
        """Return a Failed item to Pending."""
        return self.transition(item_id, CleanupStatus.PENDING)

    def get(self, item_id: str) -> Optional[CleanupItem]:
        with self._lock:
            item = self._find_locked(item_id)
            return replace(item) if item else None

    def items(self) -> list[CleanupItem]:
        with self._lock:
            return [replace(item) for item in self._items]

    def get_by_status(self, status: CleanupStatus) -> list[CleanupItem]:
        with self._lock:
            return [replace(item) for item in self._items if item.status == status]

    def clear_pending(self) -> int:
        """Drop every Pending item; returns how many were removed."""
        with self._lock:
            before = len(self._items)
            self._items = [i for i in self._items if i.status != CleanupStatus.PENDING]
            return before - len(self._items)

    def stats(self) -> QueueStats:
        with self._lock:
            statuses = [item.status for item in self._items]
        return QueueStats(
            total=len(statuses),
            pending=statuses.count(CleanupStatus.PENDING),
            completed=statuses.count(CleanupStatus.COMPLETED),
            failed=statuses.count(CleanupStatus.FAILED),
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
