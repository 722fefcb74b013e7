"""
Cleanup journal: quarantine, disable and registry backup-and-delete actions.

Stored at ``<quarantine root>/<case id>/cleanup_journal.json`` next to the
``files/`` and ``registry/`` folders of the same case.
"""

import os
from typing import NamedTuple

from .base import ActionJournal
from .models import CleanupJournalEntry

JOURNAL_FILE = "cleanup_journal.json"


class CleanupStats(NamedTuple):
    total: int
    completed: int
    undone: int


def case_folder(quarantine_root: str, case_id: str) -> str:
    return os.path.join(quarantine_root, case_id)


class CleanupJournal(ActionJournal[CleanupJournalEntry]):
    def __init__(self, quarantine_root: str, case_id: str):
        self.case_folder = case_folder(quarantine_root, case_id)
        super().__init__(
            os.path.join(self.case_folder, JOURNAL_FILE),
            case_id,
            CleanupJournalEntry.from_dict,
        )

    @property
    def files_folder(self) -> str:
        return os.path.join(self.case_folder, "files")

    @property
    def registry_folder(self) -> str:
        return os.path.join(self.case_folder, "registry")

    def get_stats(self) -> CleanupStats:
        entries = self.entries()
        undone = sum(1 for e in entries if e.is_undone)
        return CleanupStats(total=len(entries), completed=len(entries) - undone, undone=undone)
