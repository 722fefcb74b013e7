"""
Settings management for ViperKit
"""

import json
import ntpath
import os
from dataclasses import asdict, dataclass
from typing import Optional

from .logger import debug

CONFIG_DIR = os.path.join(
    os.environ.get("ProgramData") or os.path.expanduser("~"),
    "ViperKit" if os.environ.get("ProgramData") else ".viperkit",
)
CONFIG_FILE = os.path.join(CONFIG_DIR, "settings.json")

LOOKBACK_CHOICES = ("24h", "3d", "7d", "30d")
CLUSTER_WINDOW_CHOICES = (1, 2, 4, 8)


@dataclass
class Settings:
    """Toolkit settings"""

    # Per-case quarantine folders are created below this root.
    # Environment variables are expanded when the path is resolved.
    quarantine_root: str = r"%SystemDrive%\ViperKit_Quarantine"

    # Hardening journals ({caseId}_harden.json)
    harden_journal_dir: str = r"%ProgramData%\ViperKit\HardenJournals"

    # DuckDB file mirroring the case audit timeline ("" disables it)
    audit_db_path: str = r"%ProgramData%\ViperKit\audit.duckdb"

    # Exported reports (PowerShell history analysis)
    report_dir: str = r"%ProgramData%\ViperKit\Reports"

    # Sweep defaults
    sweep_lookback: str = "24h"
    cluster_window_hours: int = 2
    sweep_max_files: int = 20000
    sweep_max_seconds: int = 120

    # Timeout for reg.exe / sc.exe / schtasks.exe and friends
    process_timeout_seconds: int = 30

    # Hash persistence binaries after collection
    hash_persist_binaries: bool = True

    # Worker pool size for scans and hashing
    worker_threads: int = 4

    def resolved_quarantine_root(self) -> str:
        return _expand(self.quarantine_root, "ViperKit_Quarantine")

    def resolved_harden_journal_dir(self) -> str:
        return _expand(self.harden_journal_dir, os.path.join("ViperKit", "HardenJournals"))

    def resolved_report_dir(self) -> str:
        return _expand(self.report_dir, os.path.join("ViperKit", "Reports"))

    def resolved_audit_db_path(self) -> str:
        if not self.audit_db_path:
            return ""
        return _expand(self.audit_db_path, os.path.join("ViperKit", "audit.duckdb"))

    def save(self):
        """Save settings to config file"""
        os.makedirs(CONFIG_DIR, exist_ok=True)
        with open(CONFIG_FILE, "w") as f:
            json.dump(asdict(self), f, indent=2)

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from config file, or return defaults"""
        if not os.path.exists(CONFIG_FILE):
            return cls()

        try:
            with open(CONFIG_FILE, "r") as f:
                data = json.load(f)

            valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
            filtered = {k: v for k, v in data.items() if k in valid_fields}
            settings = cls(**filtered)
        except (OSError, ValueError, TypeError) as e:
            debug(f"Settings file unreadable, using defaults: {e}")
            return cls()

        if settings.sweep_lookback not in LOOKBACK_CHOICES:
            settings.sweep_lookback = "24h"
        if settings.cluster_window_hours not in CLUSTER_WINDOW_CHOICES:
            settings.cluster_window_hours = 2
        return settings


def _expand(path: str, fallback_tail: str) -> str:
    """Expand %VAR% references; unresolved ones fall back under the home dir."""
    expanded = ntpath.expandvars(path)
    if "%" in expanded or "$" in expanded:
        return os.path.join(os.path.expanduser("~"), fallback_tail)
    return expanded


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def save_settings():
    """Save the global settings"""
    if _settings is not None:
        _settings.save()
