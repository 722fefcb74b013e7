"""
Case session: one investigation on one host.

The session owns every piece of per-case state (focus targets, remediation
queue, both journals, audit timeline) and wires the subsystems together.
Nothing here is a module-level singleton; tests build a session around a
fake SystemAccess and a temporary directory.
"""

import os
import socket
import threading
from concurrent.futures import Future
from datetime import datetime
from typing import Optional

from .case.audit import CaseAuditLog
from .case.db import AuditDatabase
from .case.focus import FocusRegistry
from .core.results import BatchSummary, ScanReport
from .core.types import ItemType, Severity
from .hardening.engine import HardenEngine
from .hunt.hunter import IocHunter
from .hunt.types import HuntResult, IocType
from .journal.cleanup import CleanupJournal
from .journal.harden import HardenJournal
from .persistence.baseline import PersistBaseline
from .persistence.collector import PersistenceCollector
from .persistence.types import PersistItem
from .pshistory.analyzer import HistoryAnalyzer, export_report
from .pshistory.types import HistoryEntry, HistoryScanResult
from .remediation.executor import QuarantineExecutor
from .remediation.models import ActionOutcome, CleanupItem, item_from_persist, item_from_sweep
from .remediation.queue import RemediationQueue
from .remediation.service import RemediationService
from .remediation.undo import UndoEngine
from .sweep.clustering import ClusteringEngine
from .sweep.scanner import SweepScanner
from .sweep.services import ServicesDeepScan
from .sweep.types import SweepEntry
from .system.filesystem import LocalFileSystem
from .system.types import SystemAccess, leaf_name
from .utils.logger import info, log_context, set_case_id
from .utils.settings import Settings, get_settings
from .utils.threading import WorkerPool


def new_case_id(host: Optional[str] = None, when: Optional[datetime] = None) -> str:
    """``HOST-yyyyMMdd-HHmmss``."""
    host = host or socket.gethostname() or "HOST"
    when = when or datetime.now()
    return f"{host.upper()}-{when:%Y%m%d-%H%M%S}"


class CaseSession:
    def __init__(
        self,
        system: SystemAccess,
        settings: Optional[Settings] = None,
        case_id: Optional[str] = None,
        fs: Optional[LocalFileSystem] = None,
        audit_db: Optional[AuditDatabase] = None,
    ):
        self.system = system
        self.settings = settings or get_settings()
        self.case_id = case_id or new_case_id()
        self.fs = fs or LocalFileSystem()
        set_case_id(self.case_id)

        self.focus = FocusRegistry()
        self.audit_db = audit_db
        self.audit = CaseAuditLog(self.case_id, audit_db)
        self.queue = RemediationQueue()
        self.cleanup_journal = CleanupJournal(self.settings.resolved_quarantine_root(), self.case_id)
        self.harden_journal = HardenJournal(self.settings.resolved_harden_journal_dir(), self.case_id)
        self.cleanup_journal.load()
        self.harden_journal.load()

        self.executor = QuarantineExecutor(system, self.cleanup_journal, self.fs)
        self.undo_engine = UndoEngine(system, self.cleanup_journal, self.fs)
        self.remediation = RemediationService(
            self.queue, self.cleanup_journal, self.executor, self.undo_engine, self.audit
        )
        self.hardening = HardenEngine(system, self.harden_journal, self.audit)
        self.clustering = ClusteringEngine(self.fs, self.settings.cluster_window_hours)
        self.pool = WorkerPool(self.settings.worker_threads, name=f"viperkit-{self.case_id}")

        self._sweep_entries: list[SweepEntry] = []
        self._sweep_lock = threading.Lock()
        self.audit.add_event("Case", "Case opened", "INFO", self.case_id)

    def _env(self, variable: str, default: str) -> str:
        value = self.system.expand_environment(variable)
        return default if not value or "%" in value else value

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def collect_persistence(self, baseline: Optional[PersistBaseline] = None) -> ScanReport[PersistItem]:
        collector = PersistenceCollector(
            self.system,
            fs=self.fs,
            focus=self.focus,
            hash_binaries=self.settings.hash_persist_binaries,
            pool=self.pool,
        )
        with log_context(case_id=self.case_id):
            report = collector.collect(baseline)
        checks = sum(1 for item in report.items if item.is_check)
        self.audit.add_event(
            "Persist",
            "Persistence scan completed",
            "INFO" if not checks else "WARN",
            "system",
            f"{len(report.items)} entries, {checks} to check ({report.status.value})",
        )
        return report

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def run_sweep(self, lookback: Optional[str] = None, include_services: bool = True) -> ScanReport[SweepEntry]:
        """Sweep files (and optionally services) and cluster around focus targets."""
        lookback = lookback or self.settings.sweep_lookback
        system_root = self._env("%SystemRoot%", r"C:\Windows")
        scanner = SweepScanner(
            self.fs,
            users_root=self._users_root(),
            program_data=self._env("%ProgramData%", r"C:\ProgramData"),
            windows_temp=os.path.join(system_root, "Temp"),
            max_files=self.settings.sweep_max_files,
            max_seconds=self.settings.sweep_max_seconds,
        )
        with log_context(case_id=self.case_id):
            report = scanner.scan(lookback)
            if include_services:
                services = ServicesDeepScan(self.system, self.fs, system_root).scan()
                report.items.extend(services.items)
                report.collectors.extend(services.collectors)
                report.warnings.extend(services.warnings)

        with self._sweep_lock:
            self._sweep_entries = list(report.items)
        report.items = self.recluster()

        high = sum(1 for e in report.items if e.severity == Severity.HIGH)
        self.audit.add_event(
            "Sweep",
            "Sweep completed",
            "INFO" if not high else "WARN",
            lookback,
            f"{len(report.items)} entries, {high} HIGH ({report.status.value})",
        )
        return report

    def run_sweep_async(self, lookback: Optional[str] = None) -> "Future[ScanReport[SweepEntry]]":
        return self.pool.submit(self.run_sweep, lookback)

    def recluster(self) -> list[SweepEntry]:
        """Recompute cluster flags for the last sweep against current focus targets."""
        with self._sweep_lock:
            entries = list(self._sweep_entries)
        clustered = self.clustering.apply(entries, self.focus.get_focus_targets())
        with self._sweep_lock:
            self._sweep_entries = clustered
        return clustered

    def sweep_entries(self) -> list[SweepEntry]:
        with self._sweep_lock:
            return list(self._sweep_entries)

    def set_focus_target(self, token: str) -> bool:
        added = self.focus.set_focus_target(token)
        if added:
            self.audit.add_event("Case", "Focus target added", "NOTE", token.strip())
            self.recluster()
        return added

    def set_cluster_window(self, hours: int) -> None:
        self.clustering.window_hours = hours
        self.recluster()

    # ------------------------------------------------------------------
    # PowerShell history and hunting
    # ------------------------------------------------------------------

    def _users_root(self) -> str:
        return os.path.join(self._env("%SystemDrive%", "C:") + os.sep, "Users")

    def analyze_powershell_history(self, users_root: Optional[str] = None) -> HistoryScanResult:
        analyzer = HistoryAnalyzer(users_root or self._users_root(), self.fs)
        with log_context(case_id=self.case_id):
            result = analyzer.scan()
        self.audit.add_event(
            "Persist",
            "PowerShell history scanned",
            "INFO" if not result.high_risk_count else "WARN",
            "system",
            f"Found {result.total_commands} commands: {result.high_risk_count} HIGH, "
            f"{result.medium_risk_count} MEDIUM",
        )
        return result

    def record_history_entry(self, entry: HistoryEntry) -> None:
        """Put one command (and its decoded form) on the case timeline."""
        details = f"Command: {entry.command}"
        if entry.has_decoded_command:
            details += f"\nDecoded: {entry.risk.decoded_command}"
        self.audit.add_event(
            "Persist",
            "Suspicious PowerShell command",
            entry.severity.value,
            f"{entry.user_profile} (PS {entry.powershell_version})",
            f"{entry.risk_reason}\n{details}",
        )

    def export_powershell_history(self, result: HistoryScanResult, directory: Optional[str] = None) -> str:
        path = export_report(result, directory or self.settings.resolved_report_dir(), self.case_id)
        self.audit.add_event("Persist", "PowerShell history exported", "INFO", path)
        return path

    def hunt(self, ioc: str, ioc_type: Optional[IocType] = None, roots: tuple[str, ...] = ()) -> HuntResult:
        hunter = IocHunter(self.system, self.fs, max_files=self.settings.sweep_max_files)
        with log_context(case_id=self.case_id):
            result = hunter.hunt(ioc, ioc_type, roots)
        self.audit.add_event(
            "Hunt",
            "IOC hunt",
            result.severity,
            result.ioc,
            f"{result.ioc_type.value}: {result.error or result.summary}",
        )
        return result

    # ------------------------------------------------------------------
    # Remediation
    # ------------------------------------------------------------------

    def _enqueue(self, item: CleanupItem) -> bool:
        added = self.queue.enqueue(item)
        if added:
            self.audit.add_event(
                item.source_tab or "Cleanup",
                "Queued for cleanup",
                item.severity.value,
                item.name,
                f"{item.action.value}: {item.original_path}",
            )
        return added

    def queue_persist_item(self, item: PersistItem) -> bool:
        return self._enqueue(item_from_persist(item))

    def queue_sweep_entry(self, entry: SweepEntry) -> bool:
        return self._enqueue(item_from_sweep(entry))

    def queue_file(self, path: str, reason: str = "added by operator") -> bool:
        name = leaf_name(path)
        return self._enqueue(
            CleanupItem(ItemType.FILE, name, path, source_tab="Cleanup", reason=reason)
        )

    def execute_all_pending(self) -> BatchSummary:
        return self.remediation.execute_all_pending()

    def execute_all_pending_async(self) -> "Future[BatchSummary]":
        return self.remediation.execute_all_pending_async(self.pool)

    def undo_last(self) -> ActionOutcome:
        return self.remediation.undo_last()

    def undo_all(self) -> BatchSummary:
        return self.remediation.undo_all()

    def close(self) -> None:
        self.pool.shutdown(wait=True)
        if self.audit_db is not None:
            self.audit_db.close()
        info(f"Case {self.case_id} closed")
