"""
Pytest configuration and shared fixtures for viperkit tests.

This module provides:
- FakeSystemAccess: in-memory registry, services, tasks and process results
- VirtualFileSystem: LocalFileSystem that also reports Windows paths as present
- Settings and session fixtures rooted in tmp_path
"""

import os
import sys
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Keep test runs out of the real log directory
os.environ.setdefault("VIPERKIT_LOG_DIR", tempfile.mkdtemp(prefix="viperkit-logs-"))

from viperkit.system.filesystem import LocalFileSystem  # noqa: E402
from viperkit.system.types import (  # noqa: E402
    ProcessResult,
    RegistryValueKind,
    ScheduledTaskInfo,
    ServiceInfo,
)
from viperkit.utils.settings import Settings  # noqa: E402


# =============================================================================
# System Access Fake
# =============================================================================


class FakeSystemAccess:
    """In-memory SystemAccess.

    Registry keys are stored by lowercased full path. Exports are kept as
    snapshots next to a real file so the executor's existence check passes.
    """

    def __init__(self, env: Optional[dict[str, str]] = None):
        self.keys: dict[str, tuple[str, dict[str, Any]]] = {}
        self.services: list[ServiceInfo] = []
        self.tasks: dict[str, ScheduledTaskInfo] = {}
        self.companies: dict[str, str] = {}
        self.env = env or {}
        self.process_results: list[tuple[tuple[str, ...], ProcessResult]] = []
        self.process_calls: list[list[str]] = []
        self.exports: dict[str, tuple[str, dict[str, Any]]] = {}
        self.stopped: list[str] = []
        self.fail_export = False
        self.fail_delete = False
        self.fail_task_change = False
        self.denied_keys: set[str] = set()

    # ---- setup helpers ----

    def add_key(self, key: str, **values: Any) -> None:
        _, existing = self.keys.get(key.lower(), (key, {}))
        existing.update(values)
        self.keys[key.lower()] = (key, existing)

    def add_service(self, name: str, image_path: str, start: int = 2, service_type: int = 16, display_name: str = "") -> None:
        service = ServiceInfo(name, display_name or name, image_path, start, service_type)
        self.services.append(service)
        self.add_key(service.key_path, ImagePath=image_path, Start=start, Type=service_type)

    def add_task(self, path: str, command: str, arguments: str = "", enabled: bool = True) -> None:
        self.tasks[path] = ScheduledTaskInfo(path, command, arguments, enabled)

    def on_process(self, prefix: Sequence[str], result: ProcessResult) -> None:
        self.process_results.append((tuple(prefix), result))

    def _entry(self, key: str) -> tuple[str, dict[str, Any]]:
        if key.lower() in self.denied_keys:
            raise PermissionError(f"Access denied: {key}")
        try:
            return self.keys[key.lower()]
        except KeyError:
            raise FileNotFoundError(key) from None

    # ---- registry ----

    def key_exists(self, key: str) -> bool:
        return key.lower() in self.keys

    def read_value(self, key: str, name: str) -> Optional[Any]:
        try:
            return self._entry(key)[1].get(name)
        except FileNotFoundError:
            return None

    def list_values(self, key: str) -> list[tuple[str, Any]]:
        return list(self._entry(key)[1].items())

    def list_subkeys(self, key: str) -> list[str]:
        self._entry(key)
        prefix = key.lower() + "\\"
        names = []
        for lowered, (original, _) in self.keys.items():
            rest = lowered[len(prefix):]
            if lowered.startswith(prefix) and "\\" not in rest:
                names.append(original[len(prefix):])
        return sorted(names)

    def set_value(self, key: str, name: str, value: Any, kind: RegistryValueKind) -> None:
        if key.lower() in self.denied_keys:
            raise PermissionError(f"Access denied: {key}")
        self.add_key(key, **{name: value})

    def delete_value(self, key: str, name: str) -> None:
        values = self._entry(key)[1]
        if name not in values:
            raise FileNotFoundError(name)
        del values[name]

    def export_key(self, key: str, destination: str) -> ProcessResult:
        if self.fail_export or key.lower() not in self.keys:
            return ProcessResult(1, stderr="ERROR: The system was unable to find the specified registry key.")
        original, values = self.keys[key.lower()]
        self.exports[destination] = (original, dict(values))
        Path(destination).write_text(f"Windows Registry Editor Version 5.00\n\n[{original}]\n")
        return ProcessResult(0, stdout="The operation completed successfully.")

    def import_key(self, source: str) -> ProcessResult:
        if source not in self.exports:
            return ProcessResult(1, stderr="ERROR: Error accessing the registry.")
        original, values = self.exports[source]
        self.add_key(original, **values)
        return ProcessResult(0)

    def delete_key(self, key: str, value_name: Optional[str] = None) -> ProcessResult:
        if self.fail_delete:
            return ProcessResult(1, stderr="ERROR: Access is denied.")
        if key.lower() not in self.keys:
            return ProcessResult(1, stderr="ERROR: The system was unable to find the specified registry key or value.")
        if value_name is None:
            del self.keys[key.lower()]
        else:
            self.keys[key.lower()][1].pop(value_name, None)
        return ProcessResult(0)

    # ---- services and tasks ----

    def list_services(self) -> list[ServiceInfo]:
        return list(self.services)

    def stop_service(self, name: str) -> ProcessResult:
        self.stopped.append(name)
        return ProcessResult(0)

    def list_scheduled_tasks(self) -> list[ScheduledTaskInfo]:
        return list(self.tasks.values())

    def _set_task_enabled(self, path: str, enabled: bool) -> ProcessResult:
        task = self.tasks.get(path)
        if task is None or self.fail_task_change:
            return ProcessResult(1, stderr="ERROR: The system cannot find the file specified.")
        self.tasks[path] = ScheduledTaskInfo(task.path, task.command, task.arguments, enabled)
        return ProcessResult(0, stdout=f"SUCCESS: The parameters of scheduled task \"{path}\" have been changed.")

    def disable_scheduled_task(self, path: str) -> ProcessResult:
        return self._set_task_enabled(path, False)

    def enable_scheduled_task(self, path: str) -> ProcessResult:
        return self._set_task_enabled(path, True)

    # ---- processes and environment ----

    def run_process(self, args: Sequence[str], timeout: Optional[float] = None) -> ProcessResult:
        args = list(args)
        self.process_calls.append(args)
        for prefix, result in self.process_results:
            if tuple(args[: len(prefix)]) == prefix:
                return result
        return ProcessResult(0)

    def expand_environment(self, text: str) -> str:
        for name, value in self.env.items():
            text = text.replace(f"%{name}%", value)
        return text

    def get_file_companies(self, paths: Sequence[str]) -> dict[str, str]:
        return {p.lower(): self.companies[p.lower()] for p in paths if p.lower() in self.companies}


# =============================================================================
# Filesystem Fake
# =============================================================================


class VirtualFileSystem(LocalFileSystem):
    """Real local disk plus a set of virtual Windows paths that "exist"."""

    def __init__(self, files: Sequence[str] = (), modified: Optional[datetime] = None):
        self.virtual = {f.lower() for f in files}
        self.virtual_modified = modified or datetime(2026, 3, 2, 9, 0, 0)

    def add(self, path: str) -> None:
        self.virtual.add(path.lower())

    def exists(self, path: str) -> bool:
        return (bool(path) and path.lower() in self.virtual) or super().exists(path)

    def is_file(self, path: str) -> bool:
        return (bool(path) and path.lower() in self.virtual) or super().is_file(path)

    def modified_time(self, path: str) -> Optional[datetime]:
        if path and path.lower() in self.virtual:
            return self.virtual_modified
        return super().modified_time(path)

    def sha256(self, path: str) -> Optional[str]:
        if path and path.lower() in self.virtual:
            return "0" * 64
        return super().sha256(path)


# =============================================================================
# Fixtures
# =============================================================================


WINDOWS_ENV = {
    "SystemRoot": r"C:\Windows",
    "windir": r"C:\Windows",
    "SystemDrive": "C:",
    "ProgramData": r"C:\ProgramData",
}


@pytest.fixture
def fake_system() -> FakeSystemAccess:
    return FakeSystemAccess(env=dict(WINDOWS_ENV))


@pytest.fixture
def virtual_fs() -> VirtualFileSystem:
    return VirtualFileSystem()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with every storage location inside tmp_path."""
    return Settings(
        quarantine_root=str(tmp_path / "quarantine"),
        harden_journal_dir=str(tmp_path / "harden"),
        audit_db_path=str(tmp_path / "audit.duckdb"),
        report_dir=str(tmp_path / "reports"),
        hash_persist_binaries=False,
        worker_threads=2,
    )


@pytest.fixture
def case_id() -> str:
    return "WS01-20260302-091200"
