"""
Sweep Types - records produced by the artifact sweep

Provides:
- SweepCategory: File / Service / Driver
- LocationClass / ContentClass: inputs of the severity rules
- SweepEntry: one artifact plus its cluster flags
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..core.types import Severity


class SweepCategory(Enum):
    FILE = "File"
    SERVICE = "Service"
    DRIVER = "Driver"


class LocationClass(Enum):
    HOT = "hot"  # Desktop, Downloads, Startup
    WARM = "warm"  # AppData, Temp
    NEUTRAL = "neutral"


class ContentClass(Enum):
    EXECUTABLE = "executable"
    DRIVER = "driver"
    SCRIPT = "script"
    DLL = "dll"
    OTHER = "other"

    @property
    def is_runnable(self) -> bool:
        return self in (ContentClass.EXECUTABLE, ContentClass.DRIVER, ContentClass.SCRIPT)


@dataclass(frozen=True)
class SweepEntry:
    """One file, service or driver found by a sweep.

    The cluster fields are derived data: ClusteringEngine rebuilds them for
    the whole batch and never patches them incrementally.
    """

    category: SweepCategory
    severity: Severity
    path: str
    name: str
    source: str
    reason: str = ""
    modified: Optional[datetime] = None
    created: Optional[datetime] = None
    size: Optional[int] = None
    is_focus_hit: bool = False
    is_time_cluster: bool = False
    is_folder_cluster: bool = False
    cluster_target: str = ""

    @property
    def is_clustered(self) -> bool:
        return self.is_focus_hit or self.is_time_cluster or self.is_folder_cluster

    @property
    def cluster_flags(self) -> tuple[bool, bool, bool]:
        return (self.is_focus_hit, self.is_time_cluster, self.is_folder_cluster)

    def without_clusters(self) -> "SweepEntry":
        return replace(
            self,
            is_focus_hit=False,
            is_time_cluster=False,
            is_folder_cluster=False,
            cluster_target="",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "Category": self.category.value,
            "Severity": self.severity.value,
            "Path": self.path,
            "Name": self.name,
            "Source": self.source,
            "Reason": self.reason,
            "Modified": self.modified.isoformat() if self.modified else None,
            "IsFocusHit": self.is_focus_hit,
            "IsTimeCluster": self.is_time_cluster,
            "IsFolderCluster": self.is_folder_cluster,
            "ClusterTarget": self.cluster_target,
        }
