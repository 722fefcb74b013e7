"""Utility modules for ViperKit."""

from .datetime import format_iso, parse_iso
from .threading import WorkerPool

__all__ = [
    "format_iso",
    "parse_iso",
    "WorkerPool",
]
