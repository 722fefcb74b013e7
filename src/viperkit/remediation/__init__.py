"""
Remediation: the cleanup queue, quarantine executor and undo engine.
"""

from .executor import QuarantineExecutor
from .models import ActionOutcome, CleanupItem, item_from_persist, item_from_sweep
from .queue import ALLOWED_TRANSITIONS, QueueStats, RemediationQueue
from .service import RemediationService
from .undo import UndoEngine

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ActionOutcome",
    "CleanupItem",
    "QuarantineExecutor",
    "QueueStats",
    "RemediationQueue",
    "RemediationService",
    "UndoEngine",
    "item_from_persist",
    "item_from_sweep",
]
