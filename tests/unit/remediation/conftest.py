"""
Remediation fixtures: a case journal under tmp_path and filesystems whose
move, delete or rename can be made to fail like a file held open.
"""

import pytest

from viperkit.journal.cleanup import CleanupJournal
from viperkit.remediation.executor import QuarantineExecutor
from viperkit.remediation.undo import UndoEngine
from viperkit.system.filesystem import LocalFileSystem


class LockingFileSystem(LocalFileSystem):
    """Local disk where the named operations raise PermissionError."""

    def __init__(self, *failing: str):
        self.failing = set(failing)

    def _check(self, operation: str, path: str) -> None:
        if operation in self.failing:
            raise PermissionError(f"[WinError 32] file in use: {path}")

    def move(self, source, destination):
        self._check("move", source)
        super().move(source, destination)

    def copy(self, source, destination):
        self._check("copy", source)
        super().copy(source, destination)

    def delete(self, path):
        self._check("delete", path)
        super().delete(path)

    def rename(self, source, destination):
        self._check("rename", source)
        super().rename(source, destination)


@pytest.fixture
def journal(tmp_path, case_id) -> CleanupJournal:
    journal = CleanupJournal(str(tmp_path / "quarantine"), case_id)
    journal.load()
    return journal


@pytest.fixture
def executor(fake_system, journal) -> QuarantineExecutor:
    return QuarantineExecutor(fake_system, journal)


@pytest.fixture
def undo_engine(fake_system, journal) -> UndoEngine:
    return UndoEngine(fake_system, journal)


@pytest.fixture
def locked_fs():
    """Factory: ``locked_fs("move", "delete")`` fails those operations."""
    return LockingFileSystem
