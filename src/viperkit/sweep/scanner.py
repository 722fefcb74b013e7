"""
Sweep scanner: recent-change radar over user-writable locations.

Walks every discoverable profile's Desktop, Downloads and AppData plus
ProgramData and Windows\\Temp, keeping files with an interesting extension
that were created or modified inside the lookback window.
"""

import os
import time
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..core.results import ScanReport
from ..core.types import Severity
from ..system.filesystem import FileInfo, LocalFileSystem
from ..utils.datetime import lookback_delta
from ..utils.logger import debug, info, warn
from . import rules
from .types import SweepCategory, SweepEntry

PROFILE_SUBFOLDERS = [
    ("Desktop", "Desktop"),
    ("Downloads", "Downloads"),
    ("AppData\\Roaming", os.path.join("AppData", "Roaming")),
    ("AppData\\Local", os.path.join("AppData", "Local")),
]

SKIPPED_PROFILES = frozenset({"public", "default", "default user", "all users"})

DEFAULT_MAX_FILES = 20000
DEFAULT_MAX_SECONDS = 120.0


def _path_key(path: str) -> str:
    return os.path.normpath(path).lower()


class SweepScanner:
    """Time-windowed file discovery.

    Args:
        fs: Filesystem facility.
        users_root: Profile root (C:\\Users).
        program_data: %ProgramData%.
        windows_temp: %SystemRoot%\\Temp.
        roots: Explicit (label, path) roots; replaces discovery when given.
        max_files: Stop after examining this many files.
        max_seconds: Stop after this much wall time.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        fs: Optional[LocalFileSystem] = None,
        users_root: str = r"C:\Users",
        program_data: str = r"C:\ProgramData",
        windows_temp: str = r"C:\Windows\Temp",
        roots: Optional[Sequence[tuple[str, str]]] = None,
        max_files: int = DEFAULT_MAX_FILES,
        max_seconds: float = DEFAULT_MAX_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fs = fs or LocalFileSystem()
        self.users_root = users_root
        self.program_data = program_data
        self.windows_temp = windows_temp
        self._explicit_roots = list(roots) if roots is not None else None
        self.max_files = max_files
        self.max_seconds = max_seconds
        self._clock = clock

    def discover_roots(self) -> list[tuple[str, str]]:
        """(label, path) roots that exist, in scan order, deduplicated."""
        if self._explicit_roots is not None:
            candidates = list(self._explicit_roots)
        else:
            candidates = []
            for profile in self.fs.list_dir(self.users_root):
                if profile.lower() in SKIPPED_PROFILES:
                    continue
                profile_dir = os.path.join(self.users_root, profile)
                if not self.fs.is_dir(profile_dir):
                    continue
                for label, sub in PROFILE_SUBFOLDERS:
                    candidates.append((f"{label} ({profile})", os.path.join(profile_dir, sub)))
            candidates.append(("ProgramData", self.program_data))
            candidates.append(("Windows Temp", self.windows_temp))

        roots = []
        seen = set()
        for label, path in candidates:
            key = _path_key(path)
            if key in seen or not self.fs.is_dir(path):
                continue
            seen.add(key)
            roots.append((label, path))
        return roots

    def scan(self, lookback: str = "24h", now: Optional[datetime] = None) -> ScanReport[SweepEntry]:
        """Sweep all roots.

        The report is partial when a safety limit was hit or a directory
        could not be read.
        """
        now = now or datetime.now()
        cutoff = now - lookback_delta(lookback)
        deadline = self._clock() + self.max_seconds

        report: ScanReport[SweepEntry] = ScanReport()
        seen_files: set[str] = set()
        examined = 0
        stopped: Optional[str] = None

        for label, root in self.discover_roots():
            result = report.collector(label)
            if stopped:
                result.add_error(f"not scanned: {stopped}")
                continue

            unreadable = []
            for file_info in self.fs.walk_files(root, on_error=unreadable.append):
                examined += 1
                if examined > self.max_files:
                    stopped = f"file limit reached ({self.max_files})"
                    break
                if self._clock() > deadline:
                    stopped = f"time limit reached ({self.max_seconds:g}s)"
                    break

                key = _path_key(file_info.path)
                if key in seen_files:
                    continue
                seen_files.add(key)

                entry = self._evaluate(file_info, label, cutoff, now)
                if entry is not None:
                    report.items.append(entry)
                    result.item_count += 1

            if unreadable:
                result.add_error(f"{len(unreadable)} unreadable director(ies) skipped")
            if stopped:
                result.add_error(stopped)

        if stopped:
            report.warnings.append(f"Sweep stopped early: {stopped}")
            warn(f"Sweep stopped early: {stopped}")

        high = sum(1 for e in report.items if e.severity == Severity.HIGH)
        info(f"Sweep ({lookback}): {len(report.items)} item(s), {high} HIGH, examined {examined}")
        return report

    def _evaluate(
        self, file_info: FileInfo, label: str, cutoff: datetime, now: datetime
    ) -> Optional[SweepEntry]:
        extension = file_info.extension
        if extension not in rules.INTERESTING_EXTENSIONS:
            return None
        if file_info.created < cutoff and file_info.modified < cutoff:
            return None

        location = rules.classify_location(file_info.path)
        content = rules.classify_content(extension)
        severity = rules.score_file(location, content, file_info.modified, now)
        debug(f"Sweep hit {file_info.path}: {location.value}/{content.value} -> {severity.value}")

        return SweepEntry(
            category=SweepCategory.FILE,
            severity=severity,
            path=file_info.path,
            name=file_info.name,
            source=label,
            reason=rules.describe(file_info.path, content),
            modified=file_info.modified,
            created=file_info.created,
            size=file_info.size,
        )
