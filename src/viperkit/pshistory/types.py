"""
PowerShell History Types - records produced by the history analyzer

Provides:
- CommandRisk: severity and indicators for one command line
- HistoryEntry: one line of a PSReadLine history file, classified
- HistoryScanResult: every entry found on the host plus scan bookkeeping
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..core.types import Severity
from ..utils.datetime import format_iso

PREVIEW_LENGTH = 200


@dataclass(frozen=True)
class CommandRisk:
    """Classifier output for one command line."""

    severity: Severity = Severity.LOW
    indicators: tuple[str, ...] = ()
    mitre_techniques: tuple[str, ...] = ()
    is_encoded: bool = False
    decoded_command: str = ""
    decode_failed: bool = False

    @property
    def reason(self) -> str:
        if not self.indicators:
            return "Normal command"
        return "; ".join(self.indicators)


def _short_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass(frozen=True)
class HistoryEntry:
    """One command recovered from a ConsoleHost_history.txt file.

    Line numbers are 1-based; the last line of a file is the newest command.
    """

    command: str
    user_profile: str
    powershell_version: str
    history_file_path: str
    line_number: int
    total_lines_in_file: int
    risk: CommandRisk = field(default_factory=CommandRisk)
    history_file_modified: Optional[datetime] = None
    history_file_created: Optional[datetime] = None
    id: str = field(default_factory=_short_id)

    @property
    def severity(self) -> Severity:
        return self.risk.severity

    @property
    def risk_reason(self) -> str:
        return self.risk.reason

    @property
    def is_suspicious(self) -> bool:
        return self.severity != Severity.LOW

    @property
    def has_decoded_command(self) -> bool:
        return self.risk.is_encoded and bool(self.risk.decoded_command)

    @property
    def recency_percent(self) -> int:
        """Position in the file as a percentage; 100 is the newest line."""
        if self.total_lines_in_file <= 0:
            return 0
        return int(self.line_number / self.total_lines_in_file * 100)

    @property
    def recency_label(self) -> str:
        percent = self.recency_percent
        if percent >= 90:
            return "Very Recent"
        if percent >= 70:
            return "Recent"
        if percent >= 30:
            return "Middle"
        if percent >= 10:
            return "Older"
        return "Very Old"

    @property
    def command_preview(self) -> str:
        if len(self.command) > PREVIEW_LENGTH:
            return self.command[: PREVIEW_LENGTH - 3] + "..."
        return self.command

    @property
    def source_label(self) -> str:
        return f"PS {self.powershell_version} | {self.user_profile}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "Id": self.id,
            "Command": self.command,
            "UserProfile": self.user_profile,
            "PowerShellVersion": self.powershell_version,
            "HistoryFilePath": self.history_file_path,
            "LineNumber": self.line_number,
            "TotalLinesInFile": self.total_lines_in_file,
            "HistoryFileModified": format_iso(self.history_file_modified),
            "HistoryFileCreated": format_iso(self.history_file_created),
            "Severity": self.severity.value,
            "RiskReason": self.risk_reason,
            "RiskIndicators": list(self.risk.indicators),
            "MitreTechniques": list(self.risk.mitre_techniques),
            "IsEncoded": self.risk.is_encoded,
            "DecodedCommand": self.risk.decoded_command,
            "DecodeFailed": self.risk.decode_failed,
        }

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.source_label}: {self.command_preview}"


@dataclass
class HistoryScanResult:
    """Everything one history scan found.

    ``success`` is False only when the profile root itself was missing;
    unreadable individual files land in ``history_files_skipped`` or
    ``errors`` and the scan carries on.
    """

    entries: list[HistoryEntry] = field(default_factory=list)
    history_files_found: list[str] = field(default_factory=list)
    history_files_skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    users_scanned: int = 0
    success: bool = True

    def _count(self, severity: Severity) -> int:
        return sum(1 for e in self.entries if e.severity == severity)

    @property
    def total_commands(self) -> int:
        return len(self.entries)

    @property
    def high_risk_count(self) -> int:
        return self._count(Severity.HIGH)

    @property
    def medium_risk_count(self) -> int:
        return self._count(Severity.MEDIUM)

    @property
    def low_risk_count(self) -> int:
        return self._count(Severity.LOW)

    @property
    def ps51_count(self) -> int:
        return sum(1 for e in self.entries if e.powershell_version == "5.1")

    @property
    def ps7_count(self) -> int:
        return sum(1 for e in self.entries if e.powershell_version == "7")

    @property
    def summary_message(self) -> str:
        if not self.success:
            return f"Scan completed with {len(self.errors)} error(s)"
        return (
            f"Found {self.total_commands} commands across {self.users_scanned} user(s) "
            f"in {len(self.history_files_found)} history file(s)"
        )

    def user_profiles(self) -> list[str]:
        """Distinct users with at least one command, sorted."""
        return sorted({e.user_profile for e in self.entries}, key=str.lower)
