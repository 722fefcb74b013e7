"""
Tests for the remediation service: queue status, audit events and batches.
"""

import os

import pytest

from viperkit.case.audit import CaseAuditLog
from viperkit.core.types import CleanupStatus, ItemType
from viperkit.remediation.models import CleanupItem
from viperkit.remediation.queue import RemediationQueue
from viperkit.remediation.service import RemediationService
from viperkit.utils.threading import WorkerPool


@pytest.fixture
def audit(case_id):
    return CaseAuditLog(case_id)


@pytest.fixture
def service(journal, executor, undo_engine, audit):
    return RemediationService(RemediationQueue(), journal, executor, undo_engine, audit)


def queue_file(service, path) -> CleanupItem:
    item = CleanupItem(ItemType.FILE, os.path.basename(str(path)), str(path))
    service.queue.enqueue(item)
    return item


def actions(audit):
    return [e.action for e in audit.events()]


class TestExecute:
    def test_completed_item(self, service, audit, payload_file):
        item = queue_file(service, payload_file)

        outcome = service.execute_item(item.id)

        done = service.queue.get(item.id)
        assert outcome.success
        assert done.status == CleanupStatus.COMPLETED
        assert done.quarantine_path == outcome.quarantine_path
        assert done.can_undo
        assert actions(audit) == ["File quarantined"]

    def test_failed_item(self, service, audit, tmp_path):
        item = queue_file(service, tmp_path / "missing.exe")

        service.execute_item(item.id)

        failed = service.queue.get(item.id)
        assert failed.status == CleanupStatus.FAILED
        assert failed.error_message == "File not found"
        assert audit.events()[-1].severity == "HIGH"

    def test_only_pending_items_run(self, service, payload_file):
        item = queue_file(service, payload_file)
        service.execute_item(item.id)

        assert not service.execute_item(item.id).success

    def test_batch_summary(self, service, payload_file, tmp_path):
        queue_file(service, payload_file)
        queue_file(service, tmp_path / "missing.exe")

        summary = service.execute_all_pending()

        assert (summary.succeeded, summary.failed) == (1, 1)
        assert str(summary) == "1 succeeded, 1 failed"
        assert service.queue.stats().pending == 0

    def test_async_batch(self, service, payload_file):
        queue_file(service, payload_file)
        pool = WorkerPool(max_workers=1)
        try:
            summary = service.execute_all_pending_async(pool).result(timeout=10)
        finally:
            pool.shutdown()

        assert summary.succeeded == 1


class TestUndo:
    def test_undo_last_marks_item_undone(self, service, audit, payload_file):
        item = queue_file(service, payload_file)
        service.execute_item(item.id)

        outcome = service.undo_last()

        assert outcome.success
        assert payload_file.exists()
        assert service.queue.get(item.id).status == CleanupStatus.UNDONE
        assert actions(audit)[-1] == "Action undone"

    def test_nothing_to_undo(self, service):
        outcome = service.undo_last()
        assert not outcome.success
        assert outcome.message == "nothing to undo"

    def test_undo_all_newest_first(self, service, tmp_path, undo_engine, monkeypatch):
        paths = []
        for name in ("one.exe", "two.exe"):
            path = tmp_path / name
            path.write_bytes(b"MZ")
            paths.append(path)
            queue_file(service, path)
        service.execute_all_pending()

        seen = []
        real_undo = undo_engine.undo

        def tracking(entry):
            seen.append(entry.item_name)
            return real_undo(entry)

        monkeypatch.setattr(undo_engine, "undo", tracking)
        summary = service.undo_all()

        assert summary.succeeded == 2
        assert seen == ["two.exe", "one.exe"]
        assert all(p.exists() for p in paths)

    def test_failed_undo_is_audited(self, service, audit, payload_file, journal):
        item = queue_file(service, payload_file)
        service.execute_item(item.id)
        os.remove(journal.entries()[0].backup_data)

        outcome = service.undo_item(item.id)

        assert not outcome.success
        assert service.queue.get(item.id).status == CleanupStatus.COMPLETED
        assert audit.events()[-1].action == "Undo failed"
