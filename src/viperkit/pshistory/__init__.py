"""
PowerShell history analysis.
"""

from .analyzer import (
    HistoryAnalyzer,
    HistoryFilter,
    assess_command,
    decode_encoded_command,
    export_report,
    extract_encoded_payload,
    format_report,
)
from .types import CommandRisk, HistoryEntry, HistoryScanResult

__all__ = [
    "CommandRisk",
    "HistoryAnalyzer",
    "HistoryEntry",
    "HistoryFilter",
    "HistoryScanResult",
    "assess_command",
    "decode_encoded_command",
    "export_report",
    "extract_encoded_payload",
    "format_report",
]
