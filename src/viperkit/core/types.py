"""Closed vocabularies shared across subsystems; `.value` is the on-disk spelling."""

from enum import Enum
from typing import Optional


class Severity(Enum):
    """Ordered finding severity."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return _RANK[self]

    def __lt__(self, other: "Severity") -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: "Severity") -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    @classmethod
    def parse(cls, value: str, default: Optional["Severity"] = None) -> "Severity":
        """Parse a severity label case-insensitively."""
        try:
            return cls(value.strip().upper())
        except (ValueError, AttributeError):
            if default is None:
                raise ValueError(f"Unknown severity: {value!r}") from None
            return default


_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


class ItemType(Enum):
    """Kind of artifact a queued remediation item refers to."""

    FILE = "File"
    SERVICE = "Service"
    SCHEDULED_TASK = "ScheduledTask"
    REGISTRY_KEY = "RegistryKey"
    STARTUP_ITEM = "StartupItem"


class CleanupAction(Enum):
    QUARANTINE = "Quarantine"
    DISABLE = "Disable"
    DELETE = "Delete"
    BACKUP_AND_DELETE = "BackupAndDelete"


class CleanupStatus(Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    UNDONE = "Undone"


# Default action per item type
DEFAULT_ACTIONS = {
    ItemType.FILE: CleanupAction.QUARANTINE,
    ItemType.STARTUP_ITEM: CleanupAction.QUARANTINE,
    ItemType.SERVICE: CleanupAction.DISABLE,
    ItemType.SCHEDULED_TASK: CleanupAction.DISABLE,
    ItemType.REGISTRY_KEY: CleanupAction.BACKUP_AND_DELETE,
}
