"""
Persistence collector: walks the fixed autostart locations of a Windows
host and emits classified PersistItem records.

Each location is its own collector. A failing location is reported in the
ScanReport and never stops the others.
"""

import os
from concurrent.futures import as_completed
from typing import Callable, Optional

from ..case.focus import FocusRegistry
from ..core.results import CollectorResult, ScanReport
from ..system.filesystem import LocalFileSystem
from ..system.types import ScheduledTaskInfo, ServiceInfo, SystemAccess
from ..utils.logger import debug, info
from ..utils.threading import WorkerPool
from . import classifier
from .baseline import PersistBaseline
from .patterns import (
    AUTOSTART_SERVICE_START_TYPES,
    COMMON_STARTUP_SUBPATH,
    DRIVER_TYPE_MASK,
    IFEO_KEYS,
    MITRE_BY_LOCATION,
    RUN_KEYS,
    SKIPPED_PROFILES,
    START_TYPE_NAMES,
    STARTUP_IGNORED_FILES,
    USER_STARTUP_SUBPATH,
    WINLOGON_KEY,
    WINLOGON_VALUES,
)
from .types import LocationType, PersistItem, RiskVerdict


def _join(base: str, windows_subpath: str) -> str:
    return os.path.join(base, *windows_subpath.split("\\"))


class PersistenceCollector:
    """Enumerate autostart entries.

    Args:
        system: Registry/service/task facility.
        fs: Filesystem facility used for existence checks and hashing.
        focus: Optional focus registry; matching items get ``is_focus_hit``.
        users_root: Profile root (defaults to %SystemDrive%\\Users).
        program_data: %ProgramData% (for the common Startup folder).
        system_root: %SystemRoot% (for driver image paths).
        hash_binaries: Compute sha256/mtime of existing binaries.
        pool: Worker pool for hashing; a private one is created when omitted.
    """

    def __init__(
        self,
        system: SystemAccess,
        fs: Optional[LocalFileSystem] = None,
        focus: Optional[FocusRegistry] = None,
        users_root: Optional[str] = None,
        program_data: Optional[str] = None,
        system_root: Optional[str] = None,
        hash_binaries: bool = False,
        pool: Optional[WorkerPool] = None,
    ):
        self.system = system
        self.fs = fs or LocalFileSystem()
        self.focus = focus
        self.system_root = system_root or self._env("%SystemRoot%", r"C:\Windows")
        self.users_root = users_root or _join(self._env("%SystemDrive%", "C:") + "\\", "Users")
        self.program_data = program_data or self._env("%ProgramData%", r"C:\ProgramData")
        self.hash_binaries = hash_binaries
        self.pool = pool or WorkerPool(name="viperkit-hash")

    def _env(self, variable: str, default: str) -> str:
        value = self.system.expand_environment(variable)
        return default if not value or "%" in value else value

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def collect(self, baseline: Optional[PersistBaseline] = None) -> ScanReport[PersistItem]:
        """Run every collector and return the aggregated report."""
        report: ScanReport[PersistItem] = ScanReport()
        collectors: list[tuple[str, Callable[[CollectorResult], list[PersistItem]]]] = [
            ("Run keys", self.collect_run_keys),
            ("Startup folders", self.collect_startup_folders),
            ("Services", self.collect_services),
            ("Scheduled tasks", self.collect_scheduled_tasks),
            ("Winlogon", self.collect_winlogon),
            ("IFEO", self.collect_ifeo),
        ]

        for name, collect in collectors:
            result = report.collector(name)
            try:
                items = collect(result)
            except Exception as e:  # one location never aborts the scan
                debug(f"Collector {name} failed: {e}")
                result.fail(str(e))
                continue
            result.item_count = len(items)
            report.items.extend(items)

        if self.hash_binaries:
            report.items = self._hash_items(report.items)

        report.items = [self._finalize(item, baseline) for item in report.items]

        flagged = sum(1 for item in report.items if item.is_check)
        info(
            f"Persistence scan: {len(report.items)} item(s), {flagged} flagged, "
            f"status {report.status.value}"
        )
        return report

    def _finalize(self, item: PersistItem, baseline: Optional[PersistBaseline]) -> PersistItem:
        focus_hit = False
        if self.focus is not None:
            focus_hit = (
                self.focus.first_match(item.name, item.path, item.registry_path) is not None
            )
        is_new = baseline.is_new(item) if baseline is not None else False
        if focus_hit == item.is_focus_hit and is_new == item.is_new_since_baseline:
            return item
        return item.with_flags(is_focus_hit=focus_hit, is_new_since_baseline=is_new)

    def _make_item(
        self,
        source: str,
        location_type: LocationType,
        name: str,
        path: str,
        registry_path: str,
        verdict: RiskVerdict,
        reason: str,
        value_name: Optional[str] = None,
    ) -> PersistItem:
        return PersistItem(
            source=source,
            location_type=location_type,
            name=name,
            path=path,
            registry_path=registry_path,
            verdict=verdict,
            reason=reason,
            mitre_technique=MITRE_BY_LOCATION[location_type],
            value_name=value_name,
        )

    def _location_reason(self, verdict: RiskVerdict, path: str, fallback: str) -> str:
        if verdict.reason == classifier.REASON_UNUSUAL_LOCATION:
            return f"Binary {classifier.describe_location(path)}"
        return fallback

    # ------------------------------------------------------------------
    # Collectors
    # ------------------------------------------------------------------

    def collect_run_keys(self, result: CollectorResult) -> list[PersistItem]:
        items = []
        for source, key in RUN_KEYS:
            try:
                values = self.system.list_values(key)
            except FileNotFoundError:
                continue
            except OSError as e:
                result.add_error(f"{key}: {e}")
                continue

            for value_name, raw in values:
                if isinstance(raw, str):
                    command = self.system.expand_environment(raw)
                    shown = raw
                else:
                    command = ""
                    shown = "(non-string value)"
                verdict = classifier.classify_autorun(command)
                path = classifier.extract_executable_path(command)
                items.append(
                    self._make_item(
                        source=source,
                        location_type=LocationType.REGISTRY,
                        name=value_name or "(Default)",
                        path=path,
                        registry_path=key,
                        verdict=verdict,
                        reason=self._location_reason(verdict, path, f"Autorun value: {shown}"),
                        value_name=value_name,
                    )
                )
        return items

    def _startup_folders(self) -> list[tuple[str, str]]:
        folders = []
        for profile in self.fs.list_dir(self.users_root):
            if profile.lower() in SKIPPED_PROFILES:
                continue
            profile_dir = os.path.join(self.users_root, profile)
            if self.fs.is_dir(profile_dir):
                folders.append((f"Startup ({profile})", _join(profile_dir, USER_STARTUP_SUBPATH)))
        folders.append(("Startup (all users)", _join(self.program_data, COMMON_STARTUP_SUBPATH)))
        return folders

    def collect_startup_folders(self, result: CollectorResult) -> list[PersistItem]:
        items = []
        for source, folder in self._startup_folders():
            if not self.fs.is_dir(folder):
                continue
            for filename in self.fs.list_dir(folder):
                if filename.lower() in STARTUP_IGNORED_FILES:
                    continue
                path = os.path.join(folder, filename)
                if not self.fs.is_file(path):
                    continue
                verdict = classifier.classify_autorun(path)
                items.append(
                    self._make_item(
                        source=source,
                        location_type=LocationType.STARTUP_FOLDER,
                        name=filename,
                        path=path,
                        registry_path="",
                        verdict=verdict,
                        reason=self._location_reason(verdict, path, "Startup folder entry"),
                    )
                )
        return items

    def _service_image(self, service: ServiceInfo, is_driver: bool) -> str:
        raw = self.system.expand_environment(service.image_path) if service.image_path else ""
        path = classifier.normalize_image_path(raw, self.system_root)
        if not path and is_driver:
            path = f"{self.system_root}\\System32\\drivers\\{service.name}.sys"
        return path

    def collect_services(self, result: CollectorResult) -> list[PersistItem]:
        items = []
        for service in self.system.list_services():
            if service.start not in AUTOSTART_SERVICE_START_TYPES:
                continue

            is_driver = bool((service.service_type or 0) & DRIVER_TYPE_MASK) or (
                service.image_path.lower().endswith(".sys")
            )
            path = self._service_image(service, is_driver)
            verdict = classifier.classify_service(path, self.fs.is_file(path))
            location_type = LocationType.DRIVER if is_driver else LocationType.SERVICE
            start_name = START_TYPE_NAMES.get(service.start, str(service.start))
            items.append(
                self._make_item(
                    source="Services/Drivers",
                    location_type=location_type,
                    name=service.display_name or service.name,
                    path=path,
                    registry_path=service.key_path,
                    verdict=verdict,
                    reason=self._location_reason(
                        verdict, path, f"{location_type.value} start type {start_name}"
                    ),
                    value_name=service.name,
                )
            )
        return items

    def _task_item(self, task: ScheduledTaskInfo) -> PersistItem:
        command = self.system.expand_environment(task.command) if task.command else ""
        path = classifier.extract_executable_path(command)
        verdict = classifier.classify_task(task.path, path, self.fs.is_file(path))
        fallback = f"Task action: {command} {task.arguments}".strip()
        if not task.enabled:
            fallback += " (task disabled)"
        return self._make_item(
            source="Task Scheduler",
            location_type=LocationType.SCHEDULED_TASK,
            name=task.name,
            path=path,
            registry_path=task.path,
            verdict=verdict,
            reason=self._location_reason(verdict, path, fallback),
            value_name=task.path,
        )

    def collect_scheduled_tasks(self, result: CollectorResult) -> list[PersistItem]:
        return [self._task_item(task) for task in self.system.list_scheduled_tasks()]

    def collect_winlogon(self, result: CollectorResult) -> list[PersistItem]:
        try:
            values = dict(self.system.list_values(WINLOGON_KEY))
        except FileNotFoundError:
            return []

        items = []
        for value_name, expected in WINLOGON_VALUES:
            raw = values.get(value_name)
            text = str(raw) if raw is not None else ""
            verdict = classifier.classify_winlogon(text, expected)
            first = text.split(",", 1)[0]
            items.append(
                self._make_item(
                    source="Winlogon",
                    location_type=LocationType.WINLOGON,
                    name=value_name,
                    path=classifier.extract_executable_path(first),
                    registry_path=WINLOGON_KEY,
                    verdict=verdict,
                    reason=f"{value_name} = {text}" if text else f"{value_name} is empty",
                    value_name=value_name,
                )
            )
        return items

    def collect_ifeo(self, result: CollectorResult) -> list[PersistItem]:
        items = []
        for source, root in IFEO_KEYS:
            try:
                images = self.system.list_subkeys(root)
            except FileNotFoundError:
                continue
            except OSError as e:
                result.add_error(f"{root}: {e}")
                continue

            for image in images:
                key = f"{root}\\{image}"
                try:
                    values = dict(self.system.list_values(key))
                except OSError as e:
                    result.add_error(f"{key}: {e}")
                    continue
                debugger = values.get("Debugger")
                if not isinstance(debugger, str) or not debugger.strip():
                    continue
                path = classifier.extract_executable_path(
                    self.system.expand_environment(debugger)
                )
                verdict = classifier.classify_ifeo(path, self.fs.is_file(path))
                items.append(
                    self._make_item(
                        source=source,
                        location_type=LocationType.IFEO,
                        name=image,
                        path=path,
                        registry_path=key,
                        verdict=verdict,
                        reason=f"Debugger = {debugger}",
                        value_name="Debugger",
                    )
                )
        return items

    # ------------------------------------------------------------------
    # Hashing
    # ------------------------------------------------------------------

    def _hash_one(self, item: PersistItem) -> PersistItem:
        if not item.path or not self.fs.is_file(item.path):
            return item
        return item.with_flags(
            sha256=self.fs.sha256(item.path),
            file_modified=self.fs.modified_time(item.path),
        )

    def _hash_items(self, items: list[PersistItem]) -> list[PersistItem]:
        hashed = list(items)
        futures = {
            self.pool.submit(self._hash_one, item): index
            for index, item in enumerate(items)
        }
        for future in as_completed(futures):
            index = futures[future]
            try:
                hashed[index] = future.result()
            except OSError as e:
                debug(f"Hashing failed for {items[index].path}: {e}")
        return hashed
