"""
Undo engine: reverses journaled cleanup actions.

A failed reversal leaves the journal entry untouched so it can be retried.
"""

import os
from typing import Optional

from ..core.types import CleanupAction, ItemType
from ..journal.cleanup import CleanupJournal
from ..journal.models import CleanupJournalEntry
from ..system.filesystem import LocalFileSystem
from ..system.types import RegistryValueKind, SystemAccess
from ..utils.logger import debug, exception, info, warn
from .executor import QUARANTINED_SUFFIX, service_key_for
from .models import ActionOutcome


class UndoEngine:
    def __init__(
        self,
        system: SystemAccess,
        journal: CleanupJournal,
        fs: Optional[LocalFileSystem] = None,
    ):
        self.system = system
        self.journal = journal
        self.fs = fs or LocalFileSystem()

    def undo(self, entry: CleanupJournalEntry) -> ActionOutcome:
        """Reverse one entry and mark it undone when the reversal succeeded."""
        if entry.is_undone:
            return ActionOutcome.failed("action was already undone", entry.item_id)

        try:
            outcome = self._reverse(entry)
        except Exception as e:
            exception(f"Undo of {entry.item_id} raised")
            outcome = ActionOutcome.failed(str(e) or type(e).__name__, entry.item_id)

        if not outcome.success:
            return outcome

        marked = self.journal.mark_undone(entry.item_id)
        if marked.warning:
            return ActionOutcome(
                success=True,
                message=outcome.message,
                item_id=entry.item_id,
                partial=outcome.partial,
                warnings=outcome.warnings + (marked.warning,),
            )
        info(f"Undone {entry.action_type.value} of {entry.item_name or entry.item_id}")
        return outcome

    def _reverse(self, entry: CleanupJournalEntry) -> ActionOutcome:
        action = entry.action_type
        if action == CleanupAction.BACKUP_AND_DELETE:
            return self._restore_registry(entry)
        if action == CleanupAction.DISABLE:
            if self._is_service_entry(entry):
                return self._restore_service(entry)
            return self._enable_task(entry)
        if action == CleanupAction.DELETE and entry.backup_data.lower().endswith(".reg"):
            return self._restore_registry(entry)
        return self._restore_file(entry)

    @staticmethod
    def _is_service_entry(entry: CleanupJournalEntry) -> bool:
        if entry.item_type is not None:
            return entry.item_type == ItemType.SERVICE
        # Older journals: services keep a numeric Start value as backup data
        return entry.backup_data.strip().isdigit()

    def _restore_file(self, entry: CleanupJournalEntry) -> ActionOutcome:
        source = entry.backup_data or entry.new_state
        original = entry.original_state
        if not source or not self.fs.is_file(source):
            return ActionOutcome.failed("quarantined copy missing, cannot restore", entry.item_id)
        if self.fs.exists(original):
            return ActionOutcome.failed(f"a file already exists at {original}", entry.item_id)

        parent = os.path.dirname(original)
        if parent:
            self.fs.makedirs(parent)
        warnings: tuple[str, ...] = ()
        try:
            self.fs.move(source, original)
        except OSError as move_error:
            debug(f"Restore move failed ({move_error}); copying back instead")
            self.fs.copy(source, original)
            try:
                self.fs.delete(source)
            except OSError as e:
                warn(f"Restored {original} but could not remove quarantined copy {source}: {e}")
                warnings = (f"quarantined copy left at {source}",)

        remnant = original + QUARANTINED_SUFFIX
        if self.fs.exists(remnant):
            try:
                self.fs.delete(remnant)
            except OSError as e:
                debug(f"Could not remove {remnant}: {e}")

        return ActionOutcome(
            success=True,
            message=f"Restored {original}",
            item_id=entry.item_id,
            partial=bool(warnings),
            warnings=warnings,
        )

    def _restore_service(self, entry: CleanupJournalEntry) -> ActionOutcome:
        if not entry.item_name:
            return ActionOutcome.failed("journal entry has no service name", entry.item_id)
        try:
            start = int(entry.backup_data)
        except ValueError:
            return ActionOutcome.failed(
                f"invalid original Start value {entry.backup_data!r}", entry.item_id
            )

        key = service_key_for(entry.item_name)
        if not self.system.key_exists(key):
            return ActionOutcome.failed("Service registry key not found", entry.item_id)
        try:
            self.system.set_value(key, "Start", start, RegistryValueKind.DWORD)
        except OSError as e:
            return ActionOutcome.failed(f"Could not restore Start value: {e}", entry.item_id)

        return ActionOutcome(
            success=True,
            message=f"Restored Start={start} for {entry.item_name}",
            item_id=entry.item_id,
        )

    def _enable_task(self, entry: CleanupJournalEntry) -> ActionOutcome:
        task_path = entry.backup_data or entry.item_name
        if not task_path:
            return ActionOutcome.failed("journal entry has no task path", entry.item_id)
        result = self.system.enable_scheduled_task(task_path)
        if not result.ok:
            return ActionOutcome.failed(result.error_text, entry.item_id)
        return ActionOutcome(
            success=True, message=f"Re-enabled {task_path}", item_id=entry.item_id
        )

    def _restore_registry(self, entry: CleanupJournalEntry) -> ActionOutcome:
        backup = entry.backup_data
        if not backup or not self.fs.is_file(backup):
            return ActionOutcome.failed("backup file missing, cannot restore", entry.item_id)
        result = self.system.import_key(backup)
        if not result.ok:
            return ActionOutcome.failed(result.error_text, entry.item_id)
        return ActionOutcome(
            success=True, message=f"Imported {backup}", item_id=entry.item_id
        )
