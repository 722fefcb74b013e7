"""
System hardening: detect, apply and roll back security controls.
"""

from .catalog import CATALOG, HardenControl, get_control
from .engine import HardenEngine, HardenScanStats
from .models import PROFILE_CUSTOM, PROFILE_STANDARD, PROFILE_STRICT, HardenAction, HardenOutcome

__all__ = [
    "CATALOG",
    "HardenAction",
    "HardenControl",
    "HardenEngine",
    "HardenOutcome",
    "HardenScanStats",
    "PROFILE_CUSTOM",
    "PROFILE_STANDARD",
    "PROFILE_STRICT",
    "get_control",
]
