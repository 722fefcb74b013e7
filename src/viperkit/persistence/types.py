"""
Persistence Types - records produced by the autostart collector

Provides:
- LocationType: where an autostart entry lives
- RiskLevel / RiskVerdict: classifier output (OK or CHECK with a reason)
- PersistItem: one classified autostart entry
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class LocationType(Enum):
    REGISTRY = "Registry"
    STARTUP_FOLDER = "Startup-folder"
    SERVICE = "Service"
    DRIVER = "Driver"
    SCHEDULED_TASK = "ScheduledTask"
    WINLOGON = "Winlogon"
    IFEO = "IFEO"


class RiskLevel(Enum):
    OK = "OK"
    CHECK = "CHECK"


@dataclass(frozen=True)
class RiskVerdict:
    """Classifier verdict; renders as ``OK`` or ``CHECK – <reason>``."""

    level: RiskLevel
    reason: str = ""

    @classmethod
    def ok(cls, reason: str = "") -> "RiskVerdict":
        return cls(RiskLevel.OK, reason)

    @classmethod
    def check(cls, reason: str) -> "RiskVerdict":
        return cls(RiskLevel.CHECK, reason)

    @property
    def is_check(self) -> bool:
        return self.level == RiskLevel.CHECK

    @property
    def label(self) -> str:
        if self.level == RiskLevel.OK:
            return "OK"
        return f"CHECK – {self.reason}" if self.reason else "CHECK"

    @classmethod
    def parse(cls, label: str) -> "RiskVerdict":
        """Inverse of ``label`` (accepts an ASCII hyphen too)."""
        text = (label or "").strip()
        if not text.upper().startswith("CHECK"):
            return cls.ok()
        reason = text[5:].strip().lstrip("–-").strip()
        return cls.check(reason)

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class PersistItem:
    """One autostart mechanism, immutable once classified."""

    source: str
    location_type: LocationType
    name: str
    path: str
    registry_path: str
    verdict: RiskVerdict
    reason: str = ""
    mitre_technique: str = ""
    value_name: Optional[str] = None
    sha256: Optional[str] = None
    file_modified: Optional[datetime] = None
    is_new_since_baseline: bool = False
    is_focus_hit: bool = False

    @property
    def risk(self) -> str:
        return self.verdict.label

    @property
    def is_check(self) -> bool:
        return self.verdict.is_check

    @property
    def identity(self) -> tuple[str, str, str]:
        """Stable identity used for baseline comparison."""
        return (
            self.location_type.value,
            self.registry_path.lower(),
            (self.value_name or self.name).lower(),
        )

    def with_flags(self, **changes: Any) -> "PersistItem":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "Source": self.source,
            "LocationType": self.location_type.value,
            "Name": self.name,
            "Path": self.path,
            "RegistryPath": self.registry_path,
            "Risk": self.risk,
            "Reason": self.reason,
            "MitreTechnique": self.mitre_technique,
            "Hash": self.sha256 or "",
            "FileModified": self.file_modified.isoformat() if self.file_modified else None,
            "IsNewSinceBaseline": self.is_new_since_baseline,
            "IsFocusHit": self.is_focus_hit,
        }

    def __str__(self) -> str:
        lines = [f"[{self.location_type.value}] {self.risk} – {self.name}  ({self.source})"]
        if self.path:
            lines.append(f"  Path: {self.path}")
        if self.registry_path:
            lines.append(f"  Registry: {self.registry_path}")
        if self.reason:
            lines.append(f"  Reason: {self.reason}")
        if self.mitre_technique:
            lines.append(f"  MITRE: {self.mitre_technique}")
        return "\n".join(lines)
