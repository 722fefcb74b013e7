"""
Append-only action journal persisted as a JSON array.

The whole file is rewritten on every change (temp file + atomic replace).
A failed write never raises: the in-memory journal stays correct for the
running session and the caller gets a JournalWriteResult carrying a warning
so the loss of durable undo history is visible in the action report.
"""

import json
import os
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Generic, Optional, Protocol, TypeVar

from ..utils.logger import info, warn


class JournalRecord(Protocol):
    """What the journal needs from an entry type."""

    @property
    def key(self) -> str: ...

    @property
    def consumed(self) -> bool: ...

    def consume(self, when: datetime) -> Any: ...

    def to_dict(self) -> dict[str, Any]: ...


E = TypeVar("E", bound=JournalRecord)


@dataclass(frozen=True)
class JournalWriteResult:
    """Outcome of a journal mutation.

    Attributes:
        applied: The in-memory journal was changed.
        persisted: The change reached disk.
        warning: Why it did not, when it did not.
    """

    applied: bool
    persisted: bool
    warning: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.applied and self.persisted


class ActionJournal(Generic[E]):
    """Ordered journal of entries exposing ``key``, ``consumed`` and ``consume()``."""

    def __init__(self, path: str, case_id: str, parse: Callable[[dict[str, Any]], E]):
        self._path = path
        self.case_id = case_id
        self._parse = parse
        self._entries: list[E] = []
        self._lock = threading.Lock()
        self._loaded = False

    @property
    def path(self) -> str:
        return self._path

    def load(self) -> bool:
        """Load entries from disk.

        A missing file means an empty journal. A corrupt file is set aside
        (renamed to ``*.corrupt``) and the journal starts empty.

        Returns:
            False if the file existed but could not be used.
        """
        with self._lock:
            self._entries = []
            self._loaded = True
            if not os.path.exists(self._path):
                return True
            try:
                with open(self._path, "r", encoding="utf-8-sig") as f:
                    raw = json.load(f)
                if not isinstance(raw, list):
                    raise ValueError("journal is not a JSON array")
                self._entries = [self._parse(item) for item in raw]
            except (OSError, ValueError, KeyError, TypeError) as e:
                warn(f"Journal {self._path} unreadable, starting fresh: {e}")
                self._entries = []
                self._set_aside_corrupt()
                return False
        info(f"Journal loaded: {self._path} ({len(self._entries)} entries)")
        return True

    def _set_aside_corrupt(self) -> None:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        try:
            os.replace(self._path, f"{self._path}.{stamp}.corrupt")
        except OSError as e:
            warn(f"Could not set aside corrupt journal {self._path}: {e}")

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _save_locked(self) -> Optional[str]:
        """Write all entries; returns an error text instead of raising."""
        tmp_path = self._path + ".tmp"
        try:
            directory = os.path.dirname(self._path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump([e.to_dict() for e in self._entries], f, indent=2)
            os.replace(tmp_path, self._path)
        except OSError as e:
            warn(f"Journal save failed for {self._path}: {e}")
            return f"journal not saved ({e}); undo history for this action may be lost"
        return None

    def record(self, entry: E) -> JournalWriteResult:
        """Append an entry and persist synchronously."""
        self._ensure_loaded()
        with self._lock:
            self._entries.append(entry)
            error = self._save_locked()
        return JournalWriteResult(applied=True, persisted=error is None, warning=error)

    def entries(self) -> list[E]:
        self._ensure_loaded()
        with self._lock:
            return list(self._entries)

    def undoable(self) -> list[E]:
        """Entries whose flag is still clear, oldest first."""
        return [e for e in self.entries() if not e.consumed]

    def last_undoable(self) -> Optional[E]:
        """Most recent entry with its flag clear."""
        for entry in reversed(self.entries()):
            if not entry.consumed:
                return entry
        return None

    def find_active(self, key: str) -> Optional[E]:
        """Last not-yet-undone entry for an item/action id."""
        for entry in reversed(self.entries()):
            if entry.key == key and not entry.consumed:
                return entry
        return None

    def mark_undone(self, key: str, when: Optional[datetime] = None) -> JournalWriteResult:
        """Flip the flag on the last active entry for ``key`` and persist."""
        self._ensure_loaded()
        when = when or datetime.now()
        with self._lock:
            for index in range(len(self._entries) - 1, -1, -1):
                entry = self._entries[index]
                if entry.key == key and not entry.consumed:
                    self._entries[index] = entry.consume(when)
                    error = self._save_locked()
                    return JournalWriteResult(
                        applied=True, persisted=error is None, warning=error
                    )
        return JournalWriteResult(
            applied=False, persisted=False, warning=f"no active journal entry for {key}"
        )

    def __len__(self) -> int:
        return len(self.entries())
