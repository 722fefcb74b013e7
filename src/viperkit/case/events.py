"""Case audit events."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class CaseEvent:
    """One entry on the case timeline.

    ``severity`` is a free label: INFO/NOTE/WARN for operator actions, or
    the finding severity (LOW/MEDIUM/HIGH) for findings and failures.
    """

    tab: str
    action: str
    severity: str
    target: str
    details: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "Timestamp": self.timestamp.isoformat(),
            "Tab": self.tab,
            "Action": self.action,
            "Severity": self.severity,
            "Target": self.target,
            "Details": self.details,
        }
