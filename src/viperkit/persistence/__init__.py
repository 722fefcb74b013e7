"""
Persistence collection and risk classification.
"""

from .baseline import BaselineEntry, PersistBaseline
from .classifier import (
    classify_autorun,
    classify_ifeo,
    classify_service,
    classify_task,
    classify_winlogon,
    extract_executable_path,
    is_suspicious_location,
    normalize_image_path,
)
from .collector import PersistenceCollector
from .types import LocationType, PersistItem, RiskLevel, RiskVerdict

__all__ = [
    "BaselineEntry",
    "PersistBaseline",
    "PersistenceCollector",
    "LocationType",
    "PersistItem",
    "RiskLevel",
    "RiskVerdict",
    "classify_autorun",
    "classify_ifeo",
    "classify_service",
    "classify_task",
    "classify_winlogon",
    "extract_executable_path",
    "is_suspicious_location",
    "normalize_image_path",
]
