"""
Journal entry records.

Field names on disk are PascalCase so journals written by earlier ViperKit
builds keep loading. Entries are treated as history: the only change ever
made to a recorded entry is flipping its undone/rolled-back flag.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

from ..core.types import CleanupAction, ItemType
from ..utils.datetime import format_iso, parse_iso


@dataclass(frozen=True)
class CleanupJournalEntry:
    """One executed cleanup action.

    ``backup_data`` holds what undo needs: the quarantine copy path, the
    exported .reg file, or the original service Start value.
    """

    item_id: str
    action_type: CleanupAction
    original_state: str = ""
    new_state: str = ""
    backup_data: str = ""
    case_id: str = ""
    item_name: str = ""
    item_type: Optional[ItemType] = None
    timestamp: datetime = field(default_factory=datetime.now)
    is_undone: bool = False
    undone_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return self.item_id

    @property
    def consumed(self) -> bool:
        return self.is_undone

    def consume(self, when: datetime) -> "CleanupJournalEntry":
        return replace(self, is_undone=True, undone_at=when)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ItemId": self.item_id,
            "ActionType": self.action_type.value,
            "Timestamp": format_iso(self.timestamp),
            "OriginalState": self.original_state,
            "NewState": self.new_state,
            "BackupData": self.backup_data,
            "IsUndone": self.is_undone,
            "UndoneAt": format_iso(self.undone_at),
            "CaseId": self.case_id,
            "ItemName": self.item_name,
            "ItemType": self.item_type.value if self.item_type else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CleanupJournalEntry":
        item_type = data.get("ItemType")
        return cls(
            item_id=data["ItemId"],
            action_type=CleanupAction(data["ActionType"]),
            timestamp=parse_iso(data.get("Timestamp")) or datetime.now(),
            original_state=data.get("OriginalState") or "",
            new_state=data.get("NewState") or "",
            backup_data=data.get("BackupData") or "",
            is_undone=bool(data.get("IsUndone", False)),
            undone_at=parse_iso(data.get("UndoneAt")),
            case_id=data.get("CaseId") or "",
            item_name=data.get("ItemName") or "",
            item_type=ItemType(item_type) if item_type else None,
        )


@dataclass(frozen=True)
class HardenJournalEntry:
    """One applied hardening control."""

    action_id: str
    action_name: str = ""
    category: str = ""
    previous_state: str = ""
    new_state: str = ""
    rollback_data: str = ""
    case_id: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    timestamp: datetime = field(default_factory=datetime.now)
    is_rolled_back: bool = False
    rolled_back_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return self.action_id

    @property
    def consumed(self) -> bool:
        return self.is_rolled_back

    def consume(self, when: datetime) -> "HardenJournalEntry":
        return replace(self, is_rolled_back=True, rolled_back_at=when)

    def to_dict(self) -> dict[str, Any]:
        return {
            "Id": self.id,
            "ActionId": self.action_id,
            "ActionName": self.action_name,
            "Category": self.category,
            "Timestamp": format_iso(self.timestamp),
            "PreviousState": self.previous_state,
            "NewState": self.new_state,
            "RollbackData": self.rollback_data,
            "IsRolledBack": self.is_rolled_back,
            "RolledBackAt": format_iso(self.rolled_back_at),
            "CaseId": self.case_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HardenJournalEntry":
        return cls(
            id=data.get("Id") or uuid.uuid4().hex[:8],
            action_id=data["ActionId"],
            action_name=data.get("ActionName") or "",
            category=data.get("Category") or "",
            timestamp=parse_iso(data.get("Timestamp")) or datetime.now(),
            previous_state=data.get("PreviousState") or "",
            new_state=data.get("NewState") or "",
            rollback_data=data.get("RollbackData") or "",
            is_rolled_back=bool(data.get("IsRolledBack", False)),
            rolled_back_at=parse_iso(data.get("RolledBackAt")),
            case_id=data.get("CaseId") or "",
        )
