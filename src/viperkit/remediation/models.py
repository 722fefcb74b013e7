"""
Remediation models: queued cleanup items and action outcomes.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..core.types import DEFAULT_ACTIONS, CleanupAction, CleanupStatus, ItemType, Severity
from ..persistence.types import LocationType, PersistItem
from ..sweep.types import SweepCategory, SweepEntry
from ..system.types import leaf_name
from ..utils.datetime import format_iso, parse_iso

SERVICES_ROOT = r"HKLM\SYSTEM\CurrentControlSet\Services"


def new_item_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass
class CleanupItem:
    """A remediation unit staged in the queue.

    ``original_path`` is a file path, a registry key, a service key or a
    task path depending on ``item_type``. ``value_name`` narrows a registry
    item to a single value (Run entries, IFEO Debugger).
    """

    item_type: ItemType
    name: str
    original_path: str
    value_name: Optional[str] = None
    source_tab: str = ""
    severity: Severity = Severity.MEDIUM
    reason: str = ""
    action: Optional[CleanupAction] = None
    id: str = field(default_factory=new_item_id)
    status: CleanupStatus = CleanupStatus.PENDING
    quarantine_path: str = ""
    added_at: datetime = field(default_factory=datetime.now)
    executed_at: Optional[datetime] = None
    undone_at: Optional[datetime] = None
    error_message: str = ""

    def __post_init__(self):
        if self.action is None:
            self.action = DEFAULT_ACTIONS[self.item_type]

    @property
    def dedupe_key(self) -> str:
        return self.original_path.strip().lower()

    @property
    def can_undo(self) -> bool:
        return self.status == CleanupStatus.COMPLETED and bool(self.quarantine_path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "Id": self.id,
            "ItemType": self.item_type.value,
            "Name": self.name,
            "OriginalPath": self.original_path,
            "ValueName": self.value_name,
            "QuarantinePath": self.quarantine_path,
            "SourceTab": self.source_tab,
            "Severity": self.severity.value,
            "Reason": self.reason,
            "Action": self.action.value if self.action else None,
            "Status": self.status.value,
            "AddedAt": self.added_at.isoformat(),
            "ExecutedAt": format_iso(self.executed_at),
            "UndoneAt": format_iso(self.undone_at),
            "ErrorMessage": self.error_message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CleanupItem":
        action = data.get("Action")
        return cls(
            id=data.get("Id") or new_item_id(),
            item_type=ItemType(data["ItemType"]),
            name=data.get("Name", ""),
            original_path=data.get("OriginalPath", ""),
            value_name=data.get("ValueName"),
            quarantine_path=data.get("QuarantinePath") or "",
            source_tab=data.get("SourceTab", ""),
            severity=Severity.parse(data.get("Severity", ""), Severity.MEDIUM),
            reason=data.get("Reason", ""),
            action=CleanupAction(action) if action else None,
            status=CleanupStatus(data.get("Status", "Pending")),
            added_at=parse_iso(data.get("AddedAt")) or datetime.now(),
            executed_at=parse_iso(data.get("ExecutedAt")),
            undone_at=parse_iso(data.get("UndoneAt")),
            error_message=data.get("ErrorMessage") or "",
        )

    def __str__(self) -> str:
        return f"[{self.status.value}] {self.item_type.value}: {self.name} ({self.original_path})"


def _service_key(name: str) -> str:
    return f"{SERVICES_ROOT}\\{name}"


def item_from_persist(item: PersistItem, source_tab: str = "Persist") -> CleanupItem:
    """Build a queue item for a persistence finding.

    Raises:
        ValueError: for Winlogon values, which are restored by hand rather
            than removed.
    """
    severity = Severity.HIGH if item.is_check else Severity.LOW
    common = dict(source_tab=source_tab, severity=severity, reason=item.reason or item.risk)
    location = item.location_type

    if location == LocationType.STARTUP_FOLDER:
        return CleanupItem(ItemType.STARTUP_ITEM, item.name, item.path, **common)
    if location in (LocationType.SERVICE, LocationType.DRIVER):
        service_name = item.value_name or leaf_name(item.registry_path)
        return CleanupItem(ItemType.SERVICE, service_name, item.registry_path, **common)
    if location == LocationType.SCHEDULED_TASK:
        return CleanupItem(ItemType.SCHEDULED_TASK, item.registry_path, item.registry_path, **common)
    if location in (LocationType.REGISTRY, LocationType.IFEO):
        return CleanupItem(
            ItemType.REGISTRY_KEY,
            item.name,
            item.registry_path,
            value_name=item.value_name,
            **common,
        )
    raise ValueError(f"{location.value} entries cannot be queued for removal")


def item_from_sweep(entry: SweepEntry, source_tab: str = "Sweep") -> CleanupItem:
    """Build a queue item for a sweep finding (file, service or driver)."""
    common = dict(source_tab=source_tab, severity=entry.severity, reason=entry.reason)
    if entry.category == SweepCategory.FILE:
        return CleanupItem(ItemType.FILE, entry.name, entry.path, **common)
    return CleanupItem(ItemType.SERVICE, entry.name, _service_key(entry.name), **common)


@dataclass(frozen=True)
class ActionOutcome:
    """Result of executing or undoing one item.

    ``partial`` marks a WARN-level success (for example the original file
    could only be renamed, not removed). ``warnings`` carries non-fatal
    problems such as a journal that could not be saved.
    """

    success: bool
    message: str
    item_id: str = ""
    partial: bool = False
    quarantine_path: str = ""
    warnings: tuple[str, ...] = ()

    @classmethod
    def failed(cls, message: str, item_id: str = "") -> "ActionOutcome":
        return cls(success=False, message=message, item_id=item_id)
