"""
Types for the system access facility.

Everything ViperKit does to a live host (registry reads and writes, service
and task control, reg.exe export/import) goes through the ``SystemAccess``
protocol, so collectors and the remediation engine can be exercised against
an in-memory fake instead of a real Windows machine.
"""

import ntpath
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, Sequence

HIVE_ALIASES = {
    "HKEY_LOCAL_MACHINE": "HKLM",
    "HKEY_CURRENT_USER": "HKCU",
    "HKEY_USERS": "HKU",
    "HKEY_CLASSES_ROOT": "HKCR",
    "HKEY_CURRENT_CONFIG": "HKCC",
}


class RegistryValueKind(Enum):
    """Registry value types used when writing values."""

    STRING = "REG_SZ"
    EXPAND_STRING = "REG_EXPAND_SZ"
    DWORD = "REG_DWORD"
    QWORD = "REG_QWORD"
    MULTI_STRING = "REG_MULTI_SZ"
    BINARY = "REG_BINARY"


def split_registry_path(full_key: str) -> tuple[str, str]:
    """Split ``HKLM\\SOFTWARE\\...`` into (short hive name, subkey).

    Long hive names are normalized (HKEY_LOCAL_MACHINE -> HKLM).
    """
    hive, _, subkey = full_key.strip().strip("\\").partition("\\")
    hive = hive.upper()
    return HIVE_ALIASES.get(hive, hive), subkey


def join_registry_path(*parts: str) -> str:
    return "\\".join(p.strip("\\") for p in parts if p)


def leaf_name(path: str) -> str:
    """Last component of a Windows path, registry key or task path.

    Accepts either separator so host paths resolve the same on any OS.
    """
    return ntpath.basename(path.rstrip("\\/"))


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of an external process (reg.exe, sc.exe, schtasks.exe ...)."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    @property
    def error_text(self) -> str:
        """Human-readable failure text: stderr, else stdout, else the exit code."""
        if self.timed_out:
            return "process timed out"
        text = self.stderr.strip() or self.stdout.strip()
        return text or f"exit code {self.exit_code}"


@dataclass(frozen=True)
class ServiceInfo:
    """One HKLM\\SYSTEM\\CurrentControlSet\\Services subkey."""

    name: str
    display_name: str
    image_path: str
    start: Optional[int]
    service_type: Optional[int] = None

    @property
    def key_path(self) -> str:
        return f"HKLM\\SYSTEM\\CurrentControlSet\\Services\\{self.name}"


@dataclass(frozen=True)
class ScheduledTaskInfo:
    """One registered task, as read from the task store."""

    path: str  # e.g. \Microsoft\Windows\Defrag\ScheduledDefrag
    command: str = ""
    arguments: str = ""
    enabled: bool = True

    @property
    def name(self) -> str:
        return leaf_name(self.path)


class SystemAccess(Protocol):
    """Host operations the core depends on.

    Registry methods take full key paths (``HKLM\\...``). Missing keys raise
    FileNotFoundError and access problems raise other OSError subclasses,
    mirroring winreg. Methods that shell out return a ProcessResult instead
    of raising.
    """

    def key_exists(self, key: str) -> bool: ...

    def read_value(self, key: str, name: str) -> Optional[Any]: ...

    def list_values(self, key: str) -> list[tuple[str, Any]]: ...

    def list_subkeys(self, key: str) -> list[str]: ...

    def set_value(
        self, key: str, name: str, value: Any, kind: RegistryValueKind
    ) -> None: ...

    def delete_value(self, key: str, name: str) -> None: ...

    def export_key(self, key: str, destination: str) -> ProcessResult: ...

    def import_key(self, source: str) -> ProcessResult: ...

    def delete_key(self, key: str, value_name: Optional[str] = None) -> ProcessResult: ...

    def list_services(self) -> list[ServiceInfo]: ...

    def stop_service(self, name: str) -> ProcessResult: ...

    def list_scheduled_tasks(self) -> list[ScheduledTaskInfo]: ...

    def disable_scheduled_task(self, path: str) -> ProcessResult: ...

    def enable_scheduled_task(self, path: str) -> ProcessResult: ...

    def run_process(
        self, args: Sequence[str], timeout: Optional[float] = None
    ) -> ProcessResult: ...

    def expand_environment(self, text: str) -> str: ...

    def get_file_companies(self, paths: Sequence[str]) -> dict[str, str]: ...
