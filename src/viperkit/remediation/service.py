"""
Remediation service: drives queued items through the executor and undo
engine, keeping queue status, journal and case audit log consistent.
"""

from concurrent.futures import Future
from typing import Optional

from ..case.audit import CaseAuditLog
from ..core.results import BatchSummary
from ..core.types import CleanupStatus, ItemType
from ..journal.cleanup import CleanupJournal
from ..utils.logger import error, info, log_context, warn
from ..utils.threading import WorkerPool
from .executor import QuarantineExecutor
from .models import ActionOutcome, CleanupItem
from .queue import RemediationQueue
from .undo import UndoEngine

TAB = "Cleanup"

_DONE_LABELS = {
    ItemType.FILE: "File quarantined",
    ItemType.STARTUP_ITEM: "Startup item quarantined",
    ItemType.SERVICE: "Service disabled",
    ItemType.SCHEDULED_TASK: "Scheduled task disabled",
    ItemType.REGISTRY_KEY: "Registry key deleted",
}


class RemediationService:
    def __init__(
        self,
        queue: RemediationQueue,
        journal: CleanupJournal,
        executor: QuarantineExecutor,
        undo_engine: UndoEngine,
        audit: Optional[CaseAuditLog] = None,
    ):
        self.queue = queue
        self.journal = journal
        self.executor = executor
        self.undo_engine = undo_engine
        self.audit = audit

    def _event(self, action: str, severity: str, target: str, details: str = "") -> None:
        if self.audit is not None:
            self.audit.add_event(TAB, action, severity, target, details)

    # ------------------------------------------------------------------
    # Execute
    # ------------------------------------------------------------------

    def execute_item(self, item_id: str) -> ActionOutcome:
        """Execute one Pending item.

        Status goes Pending -> InProgress -> Completed or Failed. A journal
        write failure is reported in the outcome's warnings, not as failure.
        """
        item = self.queue.get(item_id)
        if item is None:
            return ActionOutcome.failed(f"no queued item {item_id}", item_id)
        if item.status != CleanupStatus.PENDING:
            return ActionOutcome.failed(f"item is {item.status.value}, not Pending", item_id)
        if not self.queue.transition(item_id, CleanupStatus.IN_PROGRESS):
            return ActionOutcome.failed("item could not be started", item_id)

        with log_context(case_id=self.journal.case_id, action_id=item_id):
            outcome = self.executor.execute(item)
            self._finish(item, outcome)
        return outcome

    def _finish(self, item: CleanupItem, outcome: ActionOutcome) -> None:
        if outcome.success:
            self.queue.transition(
                item.id,
                CleanupStatus.COMPLETED,
                error=outcome.message if outcome.partial else None,
                quarantine_path=outcome.quarantine_path,
            )
            label = _DONE_LABELS[item.item_type]
            if outcome.partial:
                warn(f"{label} (partial): {item.name}")
                self._event(f"{label} (partial)", "WARN", item.name, outcome.message)
            else:
                info(f"{label}: {item.name}")
                self._event(label, "INFO", item.name, outcome.message)
            for warning in outcome.warnings:
                self._event("Journal warning", "WARN", item.name, warning)
        else:
            self.queue.transition(item.id, CleanupStatus.FAILED, error=outcome.message)
            error(f"Cleanup failed for {item.name}: {outcome.message}")
            self._event("Cleanup failed", "HIGH", item.name, outcome.message)

    def execute_all_pending(self) -> BatchSummary:
        """Execute every Pending item sequentially, in queue order."""
        summary = BatchSummary()
        for item in self.queue.get_by_status(CleanupStatus.PENDING):
            outcome = self.execute_item(item.id)
            summary.record(outcome.success, f"{item.name}: {outcome.message}")
            summary.warnings.extend(outcome.warnings)
            if outcome.partial:
                summary.warnings.append(f"{item.name}: {outcome.message}")
        info(f"Cleanup batch: {summary}")
        return summary

    def execute_all_pending_async(self, pool: WorkerPool) -> "Future[BatchSummary]":
        """Run the batch on a worker; the batch itself stays sequential."""
        return pool.submit(self.execute_all_pending)

    # ------------------------------------------------------------------
    # Undo
    # ------------------------------------------------------------------

    def _undo_entry(self, entry) -> ActionOutcome:
        target = entry.item_name or entry.item_id
        with log_context(case_id=self.journal.case_id, action_id=entry.item_id):
            outcome = self.undo_engine.undo(entry)
            if outcome.success:
                self.queue.transition(entry.item_id, CleanupStatus.UNDONE)
                self._event("Action undone", "INFO", target, outcome.message)
                for warning in outcome.warnings:
                    self._event("Journal warning", "WARN", target, warning)
            else:
                error(f"Undo failed for {target}: {outcome.message}")
                self._event("Undo failed", "HIGH", target, outcome.message)
        return outcome

    def undo_last(self) -> ActionOutcome:
        """Reverse the most recent not-yet-undone journal entry."""
        entry = self.journal.last_undoable()
        if entry is None:
            return ActionOutcome.failed("nothing to undo")
        return self._undo_entry(entry)

    def undo_item(self, item_id: str) -> ActionOutcome:
        entry = self.journal.find_active(item_id)
        if entry is None:
            return ActionOutcome.failed(f"no undoable action for {item_id}", item_id)
        return self._undo_entry(entry)

    def undo_all(self) -> BatchSummary:
        """Reverse every undoable entry, newest first."""
        summary = BatchSummary()
        for entry in reversed(self.journal.undoable()):
            outcome = self._undo_entry(entry)
            summary.record(outcome.success, f"{entry.item_name or entry.item_id}: {outcome.message}")
            summary.warnings.extend(outcome.warnings)
        info(f"Undo all: {summary}")
        return summary
