"""
Severity rules for swept files.

Rules are evaluated in order and the first match wins:
1. HIGH   - hot location and executable/driver/script
2. HIGH   - warm location, executable/driver/script, modified within 4 hours
3. MEDIUM - warm location and executable/driver/script/DLL
4. LOW    - everything else
"""

from datetime import datetime, timedelta
from typing import Optional

from ..core.types import Severity
from .types import ContentClass, LocationClass

INTERESTING_EXTENSIONS = frozenset(
    {
        ".exe", ".dll", ".com",
        ".bat", ".cmd", ".ps1", ".vbs", ".js", ".jse",
        ".scr", ".sys",
        ".msi",
        ".zip", ".7z", ".rar", ".iso",
    }
)

CONTENT_BY_EXTENSION = {
    ".exe": ContentClass.EXECUTABLE,
    ".com": ContentClass.EXECUTABLE,
    ".scr": ContentClass.EXECUTABLE,
    ".msi": ContentClass.EXECUTABLE,
    ".sys": ContentClass.DRIVER,
    ".bat": ContentClass.SCRIPT,
    ".cmd": ContentClass.SCRIPT,
    ".ps1": ContentClass.SCRIPT,
    ".vbs": ContentClass.SCRIPT,
    ".js": ContentClass.SCRIPT,
    ".jse": ContentClass.SCRIPT,
    ".dll": ContentClass.DLL,
}

RECENT_WARM_AGE = timedelta(hours=4)

# Format: (path fragment, class, tag shown in the reason)
LOCATION_TAGS = [
    ("\\desktop\\", LocationClass.HOT, "from Desktop"),
    ("\\downloads\\", LocationClass.HOT, "from Downloads"),
    ("\\startup\\", LocationClass.HOT, "in Startup"),
    ("\\appdata\\", LocationClass.WARM, "from AppData"),
    ("\\temp\\", LocationClass.WARM, "from Temp"),
]

CONTENT_LABELS = {
    ContentClass.EXECUTABLE: "executable",
    ContentClass.DRIVER: "driver",
    ContentClass.SCRIPT: "script",
    ContentClass.DLL: "DLL",
    ContentClass.OTHER: "archive/installer",
}


def _normalized(path: str) -> str:
    return path.lower().replace("/", "\\")


def location_tags(path: str) -> list[str]:
    lowered = _normalized(path)
    return [tag for fragment, _, tag in LOCATION_TAGS if fragment in lowered]


def classify_location(path: str) -> LocationClass:
    """hot beats warm: a Startup folder under AppData is hot."""
    lowered = _normalized(path)
    classes = {cls for fragment, cls, _ in LOCATION_TAGS if fragment in lowered}
    if LocationClass.HOT in classes:
        return LocationClass.HOT
    if LocationClass.WARM in classes:
        return LocationClass.WARM
    return LocationClass.NEUTRAL


def classify_content(extension: str) -> ContentClass:
    return CONTENT_BY_EXTENSION.get(extension.lower(), ContentClass.OTHER)


def score_file(
    location: LocationClass,
    content: ContentClass,
    modified: Optional[datetime],
    now: datetime,
) -> Severity:
    if location == LocationClass.HOT and content.is_runnable:
        return Severity.HIGH
    if location == LocationClass.WARM and content.is_runnable:
        if modified is not None and now - modified <= RECENT_WARM_AGE:
            return Severity.HIGH
    if location == LocationClass.WARM and (content.is_runnable or content == ContentClass.DLL):
        return Severity.MEDIUM
    return Severity.LOW


def describe(path: str, content: ContentClass) -> str:
    """Reason text, e.g. "from Downloads, executable"."""
    parts = location_tags(path)
    parts.append(CONTENT_LABELS[content])
    return ", ".join(parts)
