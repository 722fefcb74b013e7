"""
Artifact sweep: recent-file radar, services deep-scan and clustering.
"""

from .clustering import ClusteringEngine
from .scanner import SweepScanner
from .services import ServicesDeepScan
from .types import ContentClass, LocationClass, SweepCategory, SweepEntry

__all__ = [
    "ClusteringEngine",
    "SweepScanner",
    "ServicesDeepScan",
    "ContentClass",
    "LocationClass",
    "SweepCategory",
    "SweepEntry",
]
