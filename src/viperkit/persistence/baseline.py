"""
Persistence baseline: a snapshot of a known-good (or first) scan used to
flag autostart entries that appeared or changed afterwards.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable, Optional

from ..utils.datetime import format_iso, parse_iso

if TYPE_CHECKING:
    from .types import PersistItem


@dataclass(frozen=True)
class BaselineEntry:
    name: str
    path: str
    registry_path: str
    location_type: str
    source: str
    risk: str
    value_name: Optional[str] = None
    sha256: Optional[str] = None
    file_modified: Optional[datetime] = None

    @property
    def identity(self) -> tuple[str, str, str]:
        return (
            self.location_type,
            self.registry_path.lower(),
            (self.value_name or self.name).lower(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "Name": self.name,
            "Path": self.path,
            "RegistryPath": self.registry_path,
            "LocationType": self.location_type,
            "Source": self.source,
            "Risk": self.risk,
            "ValueName": self.value_name,
            "Hash": self.sha256 or "",
            "FileModified": format_iso(self.file_modified),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BaselineEntry":
        return cls(
            name=data.get("Name", ""),
            path=data.get("Path", ""),
            registry_path=data.get("RegistryPath", ""),
            location_type=data.get("LocationType", ""),
            source=data.get("Source", ""),
            risk=data.get("Risk", ""),
            value_name=data.get("ValueName"),
            sha256=data.get("Hash") or None,
            file_modified=parse_iso(data.get("FileModified")),
        )


@dataclass
class PersistBaseline:
    """Identity -> entry map captured from a scan."""

    captured_at: datetime = field(default_factory=datetime.now)
    entries: dict[tuple[str, str, str], BaselineEntry] = field(default_factory=dict)

    @classmethod
    def capture(cls, items: Iterable["PersistItem"]) -> "PersistBaseline":
        baseline = cls()
        for item in items:
            entry = BaselineEntry(
                name=item.name,
                path=item.path,
                registry_path=item.registry_path,
                location_type=item.location_type.value,
                source=item.source,
                risk=item.risk,
                value_name=item.value_name,
                sha256=item.sha256,
                file_modified=item.file_modified,
            )
            baseline.entries[entry.identity] = entry
        return baseline

    def is_new(self, item: "PersistItem") -> bool:
        """True if the item is absent from the baseline or its binary changed."""
        entry = self.entries.get(item.identity)
        if entry is None:
            return True
        if entry.path.lower() != item.path.lower():
            return True
        return bool(entry.sha256 and item.sha256 and entry.sha256 != item.sha256)

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> dict[str, Any]:
        return {
            "CapturedAt": self.captured_at.isoformat(),
            "Entries": [e.to_dict() for e in self.entries.values()],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PersistBaseline":
        baseline = cls(captured_at=parse_iso(data.get("CapturedAt")) or datetime.now())
        for raw in data.get("Entries", []):
            entry = BaselineEntry.from_dict(raw)
            baseline.entries[entry.identity] = entry
        return baseline

    def save(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: str) -> "PersistBaseline":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))
