"""
Hardening journal: one ``<case id>_harden.json`` per case.
"""

import os
from typing import NamedTuple

from .base import ActionJournal
from .models import HardenJournalEntry


class HardenStats(NamedTuple):
    applied: int
    rolled_back: int


class HardenJournal(ActionJournal[HardenJournalEntry]):
    def __init__(self, journal_dir: str, case_id: str):
        super().__init__(
            os.path.join(journal_dir, f"{case_id}_harden.json"),
            case_id,
            HardenJournalEntry.from_dict,
        )

    def get_stats(self) -> HardenStats:
        entries = self.entries()
        rolled_back = sum(1 for e in entries if e.is_rolled_back)
        return HardenStats(applied=len(entries) - rolled_back, rolled_back=rolled_back)
