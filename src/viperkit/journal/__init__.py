"""
Action journals: durable, per-case, append-only history used for undo.
"""

from .base import ActionJournal, JournalWriteResult
from .cleanup import CleanupJournal, CleanupStats
from .harden import HardenJournal, HardenStats
from .models import CleanupJournalEntry, HardenJournalEntry

__all__ = [
    "ActionJournal",
    "JournalWriteResult",
    "CleanupJournal",
    "CleanupStats",
    "HardenJournal",
    "HardenStats",
    "CleanupJournalEntry",
    "HardenJournalEntry",
]
