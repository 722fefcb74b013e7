"""
Persistence Patterns - autostart locations walked by the collector

Provides:
- RUN_KEYS: Run/RunOnce style registry keys
- STARTUP_FOLDERS: per-user and common Startup folder templates
- WINLOGON_KEY / WINLOGON_VALUES: Shell and Userinit with expected defaults
- IFEO_KEYS: Image File Execution Options roots (native and WOW64)
- MITRE technique for each location type

MITRE ATT&CK Technique IDs:
- T1547.001 - Registry Run Keys / Startup Folder
- T1543.003 - Create or Modify System Process: Windows Service
- T1053.005 - Scheduled Task/Job: Scheduled Task
- T1547.004 - Winlogon Helper DLL
- T1546.012 - Image File Execution Options Injection
"""

from .types import LocationType

# Format: (source label, full key path)
RUN_KEYS = [
    ("HKCU Run", r"HKCU\Software\Microsoft\Windows\CurrentVersion\Run"),
    ("HKCU RunOnce", r"HKCU\Software\Microsoft\Windows\CurrentVersion\RunOnce"),
    ("HKLM Run", r"HKLM\Software\Microsoft\Windows\CurrentVersion\Run"),
    ("HKLM RunOnce", r"HKLM\Software\Microsoft\Windows\CurrentVersion\RunOnce"),
    ("HKLM Run (WOW64)", r"HKLM\Software\Wow6432Node\Microsoft\Windows\CurrentVersion\Run"),
    (
        "HKLM RunOnce (WOW64)",
        r"HKLM\Software\Wow6432Node\Microsoft\Windows\CurrentVersion\RunOnce",
    ),
    (
        "HKCU Policies Run",
        r"HKCU\Software\Microsoft\Windows\CurrentVersion\Policies\Explorer\Run",
    ),
    (
        "HKLM Policies Run",
        r"HKLM\Software\Microsoft\Windows\CurrentVersion\Policies\Explorer\Run",
    ),
]

# Relative to each user profile / to %ProgramData%
USER_STARTUP_SUBPATH = r"AppData\Roaming\Microsoft\Windows\Start Menu\Programs\Startup"
COMMON_STARTUP_SUBPATH = r"Microsoft\Windows\Start Menu\Programs\StartUp"

# Profiles under C:\Users that never hold a real user's files
SKIPPED_PROFILES = frozenset({"public", "default", "default user", "all users"})

# Startup folders also hold these harmless files
STARTUP_IGNORED_FILES = frozenset({"desktop.ini"})

WINLOGON_KEY = r"HKLM\Software\Microsoft\Windows NT\CurrentVersion\Winlogon"

# Format: (value name, expected substring)
WINLOGON_VALUES = [
    ("Shell", "explorer.exe"),
    ("Userinit", "userinit.exe"),
]

IFEO_KEYS = [
    ("IFEO", r"HKLM\SOFTWARE\Microsoft\Windows NT\CurrentVersion\Image File Execution Options"),
    (
        "IFEO (WOW64)",
        r"HKLM\SOFTWARE\Wow6432Node\Microsoft\Windows NT\CurrentVersion\Image File Execution Options",
    ),
]

SERVICES_KEY = r"HKLM\SYSTEM\CurrentControlSet\Services"

# Service start types reported by the collector: Boot, System, Automatic
AUTOSTART_SERVICE_START_TYPES = frozenset({0, 1, 2})

START_TYPE_NAMES = {
    0: "Boot",
    1: "System",
    2: "Automatic",
    3: "Manual",
    4: "Disabled",
}

# Service Type bits that denote kernel / file-system drivers
DRIVER_TYPE_MASK = 0x1 | 0x2

MITRE_BY_LOCATION = {
    LocationType.REGISTRY: "T1547.001",
    LocationType.STARTUP_FOLDER: "T1547.001",
    LocationType.SERVICE: "T1543.003",
    LocationType.DRIVER: "T1543.003",
    LocationType.SCHEDULED_TASK: "T1053.005",
    LocationType.WINLOGON: "T1547.004",
    LocationType.IFEO: "T1546.012",
}

# Executable extensions used when splitting an unquoted command line
EXECUTABLE_EXTENSIONS = (".exe", ".com", ".bat", ".cmd", ".ps1", ".vbs", ".js", ".scr", ".sys", ".dll")
