"""Shared result types and enums."""

from .results import BatchSummary, CollectorResult, CollectorStatus, ScanReport
from .types import DEFAULT_ACTIONS, CleanupAction, CleanupStatus, ItemType, Severity

__all__ = [
    "BatchSummary",
    "CollectorResult",
    "CollectorStatus",
    "ScanReport",
    "DEFAULT_ACTIONS",
    "CleanupAction",
    "CleanupStatus",
    "ItemType",
    "Severity",
]
