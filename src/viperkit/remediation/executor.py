"""
Quarantine executor: performs one cleanup action and journals it.

File quarantine degrades step by step when the file is held open:
move -> copy then delete -> copy then rename original to ``*.quarantined``
(partial success) -> Failed with the copy preserved. Registry items are
never deleted without a verified .reg export. A successful action is
written to the journal before its outcome is returned.
"""

import os
from typing import Optional

from ..core.types import CleanupAction, ItemType
from ..journal.cleanup import CleanupJournal
from ..journal.models import CleanupJournalEntry
from ..system.filesystem import LocalFileSystem
from ..system.types import RegistryValueKind, SystemAccess, leaf_name
from ..utils.logger import debug, exception, info, warn
from .models import SERVICES_ROOT, ActionOutcome, CleanupItem

QUARANTINED_SUFFIX = ".quarantined"
SERVICE_DISABLED = 4
SERVICE_DEFAULT_START = 3


def service_key_for(name: str, original_path: str = "") -> str:
    """Service key from the queued path, or built from the service name."""
    if original_path.upper().startswith("HK"):
        return original_path
    return f"{SERVICES_ROOT}\\{name}"


class QuarantineExecutor:
    def __init__(
        self,
        system: SystemAccess,
        journal: CleanupJournal,
        fs: Optional[LocalFileSystem] = None,
    ):
        self.system = system
        self.journal = journal
        self.fs = fs or LocalFileSystem()

    def execute(self, item: CleanupItem) -> ActionOutcome:
        """Run the item's action. Never raises; failures come back as outcomes."""
        handlers = {
            ItemType.FILE: self._quarantine_file,
            ItemType.STARTUP_ITEM: self._quarantine_file,
            ItemType.SERVICE: self._disable_service,
            ItemType.SCHEDULED_TASK: self._disable_task,
            ItemType.REGISTRY_KEY: self._backup_and_delete,
        }
        try:
            return handlers[item.item_type](item)
        except Exception as e:
            exception(f"Cleanup of {item.name} raised")
            return ActionOutcome.failed(str(e) or type(e).__name__, item.id)

    def _journal(self, item: CleanupItem, **fields) -> tuple[str, ...]:
        result = self.journal.record(
            CleanupJournalEntry(
                item_id=item.id,
                action_type=fields.pop("action_type", item.action),
                case_id=self.journal.case_id,
                item_name=item.name,
                item_type=item.item_type,
                **fields,
            )
        )
        return (result.warning,) if result.warning else ()

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def _quarantine_file(self, item: CleanupItem) -> ActionOutcome:
        original = item.original_path
        if not self.fs.is_file(original):
            return ActionOutcome.failed("File not found", item.id)

        folder = self.journal.files_folder
        self.fs.makedirs(folder)
        destination = os.path.join(folder, f"{item.id}_{leaf_name(original)}")
        action = item.action if item.action == CleanupAction.DELETE else CleanupAction.QUARANTINE

        try:
            self.fs.move(original, destination)
        except OSError as move_error:
            debug(f"Move failed for {original}: {move_error}; trying copy")
            return self._copy_fallback(item, destination, action)

        warnings = self._journal(
            item,
            action_type=action,
            original_state=original,
            new_state=destination,
            backup_data=destination,
        )
        info(f"Quarantined {original} -> {destination}")
        return ActionOutcome(
            success=True,
            message=f"Moved from {original} to {destination}",
            item_id=item.id,
            quarantine_path=destination,
            warnings=warnings,
        )

    def _copy_fallback(
        self, item: CleanupItem, destination: str, action: CleanupAction
    ) -> ActionOutcome:
        original = item.original_path
        try:
            self.fs.copy(original, destination)
        except OSError as e:
            return ActionOutcome.failed(f"file may be in use or protected: {e}", item.id)

        try:
            self.fs.delete(original)
        except OSError:
            return self._rename_fallback(item, destination, action)

        warnings = self._journal(
            item,
            action_type=action,
            original_state=original,
            new_state=destination,
            backup_data=destination,
        )
        info(f"Quarantined {original} by copy and delete")
        return ActionOutcome(
            success=True,
            message=f"Copied to {destination} and removed original",
            item_id=item.id,
            quarantine_path=destination,
            warnings=warnings,
        )

    def _rename_fallback(
        self, item: CleanupItem, destination: str, action: CleanupAction
    ) -> ActionOutcome:
        original = item.original_path
        remnant = original + QUARANTINED_SUFFIX
        try:
            self.fs.rename(original, remnant)
        except OSError:
            warn(f"{original} is locked; copy kept at {destination}")
            return ActionOutcome.failed(
                f"File is locked, delete after reboot (copy preserved at {destination})",
                item.id,
            )

        warnings = self._journal(
            item,
            action_type=action,
            original_state=original,
            new_state=f"{destination} (original renamed to {remnant})",
            backup_data=destination,
        )
        warn(f"Partial quarantine of {original}: original renamed to {remnant}")
        return ActionOutcome(
            success=True,
            partial=True,
            message=f"Copied to {destination}; original could not be deleted and was renamed to {remnant}",
            item_id=item.id,
            quarantine_path=destination,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Services and tasks
    # ------------------------------------------------------------------

    def _disable_service(self, item: CleanupItem) -> ActionOutcome:
        key = service_key_for(item.name, item.original_path)
        if not self.system.key_exists(key):
            return ActionOutcome.failed("Service registry key not found", item.id)

        current = self.system.read_value(key, "Start")
        original_start = current if isinstance(current, int) else SERVICE_DEFAULT_START

        try:
            self.system.set_value(key, "Start", SERVICE_DISABLED, RegistryValueKind.DWORD)
        except OSError as e:
            return ActionOutcome.failed(f"Could not change Start value: {e}", item.id)

        warnings = self._journal(
            item,
            action_type=CleanupAction.DISABLE,
            original_state=f"Start={original_start}",
            new_state="Start=4 (Disabled)",
            backup_data=str(original_start),
        )

        stop = self.system.stop_service(item.name)
        if not stop.ok:
            debug(f"sc stop {item.name}: {stop.error_text}")

        return ActionOutcome(
            success=True,
            message=f"Changed Start from {original_start} to 4 (Disabled)",
            item_id=item.id,
            quarantine_path=f"Registry:{item.name}:Start={original_start}",
            warnings=warnings,
        )

    def _disable_task(self, item: CleanupItem) -> ActionOutcome:
        task_path = item.name or item.original_path
        result = self.system.disable_scheduled_task(task_path)
        if not result.ok:
            return ActionOutcome.failed(result.error_text, item.id)

        warnings = self._journal(
            item,
            action_type=CleanupAction.DISABLE,
            original_state="Enabled",
            new_state="Disabled",
            backup_data=task_path,
        )
        return ActionOutcome(
            success=True,
            message=f"Scheduled task {task_path} disabled",
            item_id=item.id,
            quarantine_path=f"Task:{task_path}",
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def _backup_and_delete(self, item: CleanupItem) -> ActionOutcome:
        key = item.original_path
        folder = self.journal.registry_folder
        self.fs.makedirs(folder)
        backup = os.path.join(folder, f"{item.id}.reg")

        export = self.system.export_key(key, backup)
        if not export.ok or not self.fs.is_file(backup):
            detail = "" if export.ok else f": {export.error_text}"
            return ActionOutcome.failed(f"Failed to backup registry key{detail}", item.id)

        delete = self.system.delete_key(key, item.value_name)
        if not delete.ok:
            # Backup stays on disk for a manual retry; nothing is journaled
            warn(f"Delete of {key} failed after backup to {backup}")
            return ActionOutcome.failed(delete.error_text, item.id)

        target = f"{key}\\{item.value_name}" if item.value_name is not None else key
        warnings = self._journal(
            item,
            action_type=CleanupAction.BACKUP_AND_DELETE,
            original_state=target,
            new_state="Deleted",
            backup_data=backup,
        )
        return ActionOutcome(
            success=True,
            message=f"Backed up to {backup}",
            item_id=item.id,
            quarantine_path=backup,
            warnings=warnings,
        )
