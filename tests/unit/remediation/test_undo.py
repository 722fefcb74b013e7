"""
Tests for reversing journaled cleanup actions.
"""

import os

from viperkit.core.types import CleanupAction, ItemType
from viperkit.journal.models import CleanupJournalEntry
from viperkit.remediation.executor import QuarantineExecutor
from viperkit.remediation.models import CleanupItem
from viperkit.remediation.undo import UndoEngine

HKCU_RUN = r"HKCU\Software\Microsoft\Windows\CurrentVersion\Run"


def quarantine(executor, path) -> CleanupItem:
    item = CleanupItem(ItemType.FILE, os.path.basename(str(path)), str(path))
    assert executor.execute(item).success
    return item


class TestFileUndo:
    def test_round_trip(self, executor, undo_engine, journal, payload_file):
        original = payload_file.read_bytes()
        quarantine(executor, payload_file)

        outcome = undo_engine.undo(journal.entries()[0])

        assert outcome.success
        assert payload_file.read_bytes() == original
        assert journal.entries()[0].is_undone
        assert journal.last_undoable() is None

    def test_partial_quarantine_remnant_removed(self, fake_system, undo_engine, journal, payload_file, locked_fs):
        locked = QuarantineExecutor(fake_system, journal, fs=locked_fs("move", "delete"))
        quarantine(locked, payload_file)

        assert undo_engine.undo(journal.entries()[0]).success
        assert payload_file.exists()
        assert not os.path.exists(str(payload_file) + ".quarantined")

    def test_copy_back_with_locked_quarantine_copy(self, fake_system, executor, journal, payload_file, locked_fs):
        original = payload_file.read_bytes()
        quarantine(executor, payload_file)
        entry = journal.entries()[0]
        engine = UndoEngine(fake_system, journal, fs=locked_fs("move", "delete"))

        outcome = engine.undo(entry)

        assert outcome.success and outcome.partial
        assert outcome.warnings == (f"quarantined copy left at {entry.backup_data}",)
        assert payload_file.read_bytes() == original
        assert os.path.exists(entry.backup_data)
        assert journal.entries()[0].is_undone
        assert engine.undo(journal.entries()[0]).message == "action was already undone"

    def test_missing_copy_leaves_entry_active(self, executor, undo_engine, journal, payload_file):
        quarantine(executor, payload_file)
        entry = journal.entries()[0]
        os.remove(entry.backup_data)

        outcome = undo_engine.undo(entry)

        assert not outcome.success
        assert outcome.message == "quarantined copy missing, cannot restore"
        assert not journal.entries()[0].is_undone

    def test_occupied_original_path(self, executor, undo_engine, journal, payload_file):
        quarantine(executor, payload_file)
        payload_file.write_bytes(b"replacement")

        assert not undo_engine.undo(journal.entries()[0]).success
        assert payload_file.read_bytes() == b"replacement"

    def test_already_undone(self, executor, undo_engine, journal, payload_file):
        quarantine(executor, payload_file)
        undo_engine.undo(journal.entries()[0])

        outcome = undo_engine.undo(journal.entries()[0])

        assert not outcome.success


class TestServiceTaskRegistryUndo:
    def test_service_start_restored(self, fake_system, executor, undo_engine, journal):
        fake_system.add_service("EvilSvc", r"C:\Users\bob\svc.exe", start=2)
        key = r"HKLM\SYSTEM\CurrentControlSet\Services\EvilSvc"
        executor.execute(CleanupItem(ItemType.SERVICE, "EvilSvc", key))

        assert undo_engine.undo(journal.entries()[0]).success
        assert fake_system.read_value(key, "Start") == 2

    def test_legacy_service_entry_without_type(self, fake_system, undo_engine, journal):
        fake_system.add_service("OldSvc", r"C:\x\old.exe", start=4)
        entry = CleanupJournalEntry(
            item_id="legacy01",
            action_type=CleanupAction.DISABLE,
            backup_data="3",
            item_name="OldSvc",
        )
        journal.record(entry)

        assert undo_engine.undo(entry).success
        assert fake_system.read_value(r"HKLM\SYSTEM\CurrentControlSet\Services\OldSvc", "Start") == 3

    def test_task_reenabled(self, fake_system, executor, undo_engine, journal):
        fake_system.add_task(r"\Evil\Beacon", r"C:\x\beacon.exe")
        executor.execute(CleanupItem(ItemType.SCHEDULED_TASK, r"\Evil\Beacon", r"\Evil\Beacon"))

        assert undo_engine.undo(journal.entries()[0]).success
        assert fake_system.tasks[r"\Evil\Beacon"].enabled

    def test_registry_value_reimported(self, fake_system, executor, undo_engine, journal):
        fake_system.add_key(HKCU_RUN, Updater=r"C:\x\u.exe")
        executor.execute(CleanupItem(ItemType.REGISTRY_KEY, "Updater", HKCU_RUN, value_name="Updater"))

        assert undo_engine.undo(journal.entries()[0]).success
        assert fake_system.read_value(HKCU_RUN, "Updater") == r"C:\x\u.exe"

    def test_missing_reg_backup(self, fake_system, executor, undo_engine, journal):
        fake_system.add_key(HKCU_RUN, Updater=r"C:\x\u.exe")
        executor.execute(CleanupItem(ItemType.REGISTRY_KEY, "Updater", HKCU_RUN, value_name="Updater"))
        entry = journal.entries()[0]
        os.remove(entry.backup_data)

        outcome = undo_engine.undo(entry)

        assert not outcome.success
        assert outcome.message == "backup file missing, cannot restore"
