"""
PowerShell history analysis.

Reads every user's PSReadLine ConsoleHost_history.txt (Windows PowerShell
5.1 and PowerShell 7), classifies each command line HIGH / MEDIUM / LOW and
decodes -EncodedCommand payloads so the hidden script is visible.
"""

import base64
import os
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from ..core.types import Severity
from ..persistence.patterns import SKIPPED_PROFILES
from ..system.filesystem import LocalFileSystem
from ..utils.logger import debug, info
from .patterns import (
    ENCODED_COMMAND,
    ENCODED_DESCRIPTION,
    ENCODED_TECHNIQUES,
    HIGH_RISK_PATTERNS,
    HISTORY_LOCATIONS,
    MEDIUM_RISK_PATTERNS,
    SHORT_ENCODED_COMMAND,
)
from .types import CommandRisk, HistoryEntry, HistoryScanResult

_HIGH = [(re.compile(p, re.IGNORECASE), d, t) for p, d, t in HIGH_RISK_PATTERNS]
_MEDIUM = [(re.compile(p, re.IGNORECASE), d, t) for p, d, t in MEDIUM_RISK_PATTERNS]

DECODED_PREFIX = "[Decoded] "


class _Indicators:
    """Ordered, duplicate-free indicator and technique lists."""

    def __init__(self):
        self.descriptions: list[str] = []
        self.techniques: list[str] = []

    def add(self, description: str, techniques: Iterable[str]) -> None:
        if description not in self.descriptions:
            self.descriptions.append(description)
        for technique in techniques:
            if technique not in self.techniques:
                self.techniques.append(technique)

    def match(self, command: str, patterns, prefix: str = "") -> bool:
        hit = False
        for regex, description, techniques in patterns:
            if regex.search(command):
                self.add(prefix + description, techniques)
                hit = True
        return hit


def extract_encoded_payload(command: str) -> Optional[str]:
    """Base64 argument of -EncodedCommand (or any accepted abbreviation)."""
    match = ENCODED_COMMAND.search(command) or SHORT_ENCODED_COMMAND.search(command)
    return match.group(1) if match else None


def decode_encoded_command(payload: str) -> str:
    """Decode an -EncodedCommand payload (Base64 of UTF-16LE text).

    Raises:
        ValueError: The payload is not valid Base64 or not UTF-16LE.
    """
    raw = base64.b64decode(payload, validate=True)
    return raw.decode("utf-16-le").strip()


def assess_command(command: str) -> CommandRisk:
    """Classify one command line.

    Any HIGH pattern or an encoded command makes the line HIGH and the
    MEDIUM table is not consulted. Encoded payloads are decoded and the
    decoded script is matched again, its hits prefixed with ``[Decoded]``.
    """
    indicators = _Indicators()
    severity = Severity.LOW

    if indicators.match(command, _HIGH):
        severity = Severity.HIGH

    payload = extract_encoded_payload(command)
    if payload is not None:
        severity = Severity.HIGH
        indicators.add(ENCODED_DESCRIPTION, ENCODED_TECHNIQUES)

    if severity != Severity.HIGH and indicators.match(command, _MEDIUM):
        severity = Severity.MEDIUM

    decoded = ""
    decode_failed = False
    if payload is not None:
        try:
            decoded = decode_encoded_command(payload)
        except ValueError as e:
            debug(f"Encoded command did not decode: {e}")
            decode_failed = True
        if decoded:
            indicators.match(decoded, _HIGH, DECODED_PREFIX)
            indicators.match(decoded, _MEDIUM, DECODED_PREFIX)

    return CommandRisk(
        severity=severity,
        indicators=tuple(indicators.descriptions),
        mitre_techniques=tuple(indicators.techniques),
        is_encoded=payload is not None,
        decoded_command=decoded,
        decode_failed=decode_failed,
    )


class HistoryAnalyzer:
    """Find and classify PowerShell history for every user profile.

    Args:
        fs: Filesystem facility.
        users_root: Profile root (normally %SystemDrive%\\Users).
    """

    def __init__(self, users_root: str, fs: Optional[LocalFileSystem] = None):
        self.users_root = users_root
        self.fs = fs or LocalFileSystem()

    def history_files(self, profile_dir: str) -> list[tuple[str, str]]:
        """(version, path) for each history file present in a profile."""
        found = []
        for version, subpath in HISTORY_LOCATIONS:
            path = os.path.join(profile_dir, *subpath.split("\\"))
            if self.fs.is_file(path):
                found.append((version, path))
        return found

    def scan(self) -> HistoryScanResult:
        result = HistoryScanResult()
        if not self.fs.is_dir(self.users_root):
            result.errors.append(f"Users directory not found: {self.users_root}")
            result.success = False
            return result

        users: set[str] = set()
        for profile in self.fs.list_dir(self.users_root):
            if profile.lower() in SKIPPED_PROFILES:
                continue
            profile_dir = os.path.join(self.users_root, profile)
            if not self.fs.is_dir(profile_dir):
                continue

            for version, path in self.history_files(profile_dir):
                try:
                    entries = self.parse_history_file(path, profile, version)
                except PermissionError:
                    result.history_files_skipped.append(f"{path} (access denied)")
                    continue
                except OSError as e:
                    result.errors.append(f"Error reading {path}: {e}")
                    continue
                result.entries.extend(entries)
                result.history_files_found.append(path)
                users.add(profile.lower())

        result.users_scanned = len(users)
        info(
            f"PowerShell history: {result.total_commands} command(s), "
            f"{result.high_risk_count} HIGH, {result.medium_risk_count} MEDIUM"
        )
        return result

    def parse_history_file(self, path: str, user: str, version: str) -> list[HistoryEntry]:
        """Classify every non-blank line of one history file.

        Raises:
            OSError: The file could not be read.
        """
        lines = self.fs.read_text(path).splitlines()
        stat = self.fs.stat(path)

        entries = []
        for index, line in enumerate(lines, start=1):
            command = line.strip()
            if not command:
                continue
            entries.append(
                HistoryEntry(
                    command=command,
                    user_profile=user,
                    powershell_version=version,
                    history_file_path=path,
                    line_number=index,
                    total_lines_in_file=len(lines),
                    risk=assess_command(command),
                    history_file_modified=stat.modified if stat else None,
                    history_file_created=stat.created if stat else None,
                )
            )
        return entries


@dataclass
class HistoryFilter:
    """Narrow a scan result down for display or export.

    Attributes:
        version: "5.1" or "7"; None keeps both.
        suspicious_only: Drop LOW entries.
        severity: Keep one severity only.
        user: Profile name, case-insensitive.
        last_n: Keep only the last N lines of each history file.
        recent_only: Keep only the newest 10% of each file.
        search: Substring of the command, the risk reason or the decoded text.
    """

    version: Optional[str] = None
    suspicious_only: bool = False
    severity: Optional[Severity] = None
    user: Optional[str] = None
    last_n: Optional[int] = None
    recent_only: bool = False
    search: Optional[str] = None

    def matches(self, entry: HistoryEntry) -> bool:
        if self.version and entry.powershell_version != self.version:
            return False
        if self.suspicious_only and not entry.is_suspicious:
            return False
        if self.severity is not None and entry.severity != self.severity:
            return False
        if self.user and entry.user_profile.lower() != self.user.lower():
            return False
        if self.last_n is not None and entry.line_number <= entry.total_lines_in_file - self.last_n:
            return False
        if self.recent_only and entry.recency_percent < 90:
            return False
        if self.search and self.search.strip():
            needle = self.search.strip().lower()
            haystacks = (entry.command, entry.risk_reason, entry.risk.decoded_command)
            if not any(needle in h.lower() for h in haystacks):
                return False
        return True

    def apply(self, entries: Iterable[HistoryEntry]) -> list[HistoryEntry]:
        """Matching entries, HIGH first, newest line first within a severity."""
        kept = [e for e in entries if self.matches(e)]
        return sorted(kept, key=lambda e: (e.severity.rank, e.line_number), reverse=True)


def format_report(
    result: HistoryScanResult, case_id: str, generated: Optional[datetime] = None
) -> str:
    """Plain-text report listing the HIGH and MEDIUM commands."""
    generated = generated or datetime.now()
    rule = "=" * 80
    lines = [
        "PowerShell History Analysis Report",
        f"Generated: {generated:%Y-%m-%d %H:%M:%S}",
        f"Case ID: {case_id}",
        rule,
        "",
        f"Summary: {result.summary_message}",
        f"HIGH Risk: {result.high_risk_count}",
        f"MEDIUM Risk: {result.medium_risk_count}",
        f"LOW Risk: {result.low_risk_count}",
        "",
        rule,
        "",
    ]

    suspicious = HistoryFilter(suspicious_only=True).apply(result.entries)
    if suspicious:
        lines += ["SUSPICIOUS COMMANDS", "-" * 40]
        for entry in suspicious:
            lines.append(
                f"[{entry.severity.value}] {entry.user_profile} (PS {entry.powershell_version})"
            )
            lines.append(f"Risk: {entry.risk_reason}")
            lines.append(f"Command: {entry.command}")
            if entry.has_decoded_command:
                lines.append(f"Decoded: {entry.risk.decoded_command}")
            lines.append("")
    return "\n".join(lines) + "\n"


def export_report(
    result: HistoryScanResult,
    directory: str,
    case_id: str,
    generated: Optional[datetime] = None,
) -> str:
    """Write ``PSHistory-<stamp>.txt`` under ``directory`` and return its path.

    Raises:
        OSError: The directory or the file could not be written.
    """
    generated = generated or datetime.now()
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, f"PSHistory-{generated:%Y%m%d-%H%M%S}.txt")
    with open(path, "w", encoding="utf-8") as f:
        f.write(format_report(result, case_id, generated))
    info(f"PowerShell history report written: {path}")
    return path
