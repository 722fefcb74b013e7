"""
Risk classifier for autostart entries.

Every function here is pure: verdicts depend only on the arguments, so the
same registry value always produces the same verdict. Disk checks are done
by the collector and passed in as ``exists``.
"""

import re
from typing import Optional

from .patterns import EXECUTABLE_EXTENSIONS
from .types import RiskVerdict

REASON_UNPARSEABLE = "empty or unparseable value"
REASON_UNUSUAL_LOCATION = "unusual location"
REASON_MISSING = "binary missing on disk"
REASON_NO_IMAGE = "no image path"
REASON_NO_ACTION = "no resolvable action path"
REASON_IFEO_CONFIGURED = "debugger configured"
REASON_IFEO_MISSING = "debugger missing on disk"
REASON_IFEO_UNUSUAL = "debugger in unusual location"

_SUSPICIOUS_FRAGMENTS = (
    ("\\users\\", "under a user profile"),
    ("\\appdata\\", "under AppData"),
    ("\\temp\\", "under a Temp folder"),
)
_TRUSTED_TREES = ("\\windows\\", "\\program files")

_EXT_PATTERN = re.compile(
    r"^(.*?(?:" + "|".join(re.escape(e) for e in EXECUTABLE_EXTENSIONS) + r"))(?=$|[\s,])",
    re.IGNORECASE,
)
_RUNDLL = re.compile(r"^(?:.*\\)?rundll32(?:\.exe)?$", re.IGNORECASE)
_SYSTEMROOT_VAR = re.compile(r"%systemroot%|%windir%", re.IGNORECASE)


def extract_executable_path(raw: Optional[str]) -> str:
    """Pull the executable path out of a command line.

    Handles quoted paths, unquoted paths with spaces followed by arguments,
    and rundll32 invocations (the DLL argument is returned, since that is
    the code that actually runs).

    Returns:
        The path, or "" when nothing usable is found.
    """
    if not raw or not isinstance(raw, str):
        return ""
    text = raw.strip()
    if not text:
        return ""

    if text.startswith('"'):
        end = text.find('"', 1)
        path = text[1:end] if end > 0 else text[1:]
        rest = text[end + 1 :].strip() if end > 0 else ""
    else:
        match = _EXT_PATTERN.match(text)
        if match:
            path = match.group(1)
            rest = text[match.end() :].strip()
        else:
            path, _, rest = text.partition(" ")

    path = path.strip()
    if _RUNDLL.match(path) and rest:
        dll = extract_executable_path(rest)
        if dll:
            return dll.split(",", 1)[0].strip()
    return path


def normalize_image_path(raw: Optional[str], system_root: str = r"C:\Windows") -> str:
    """Resolve a service/driver ImagePath to an absolute path.

    Understands ``\\??\\`` prefixes, ``\\SystemRoot\\`` and ``%SystemRoot%``,
    and the bare ``System32\\...`` form used by many drivers.
    """
    path = extract_executable_path(raw)
    if not path:
        return ""

    root = system_root.rstrip("\\")
    path = _SYSTEMROOT_VAR.sub(lambda _: root, path)
    lowered = path.lower()

    if lowered.startswith("\\??\\"):
        path = path[4:]
    elif lowered.startswith("\\systemroot\\"):
        path = root + path[len("\\systemroot") :]
    elif lowered.startswith("system32\\") or lowered.startswith("syswow64\\"):
        path = f"{root}\\{path}"
    return path


def _normalized(path: str) -> str:
    return path.lower().replace("/", "\\")


def is_suspicious_location(path: Optional[str]) -> bool:
    """True for user-writable paths or anything outside Windows/Program Files.

    Empty input is not a location and returns False; callers report it as
    unparseable instead.
    """
    if not path:
        return False
    lowered = _normalized(path)
    if any(fragment in lowered for fragment, _ in _SUSPICIOUS_FRAGMENTS):
        return True
    return not any(tree in lowered for tree in _TRUSTED_TREES)


def describe_location(path: Optional[str]) -> str:
    """Short explanation of why a location is considered unusual."""
    if not path:
        return "no path"
    lowered = _normalized(path)
    for fragment, description in _SUSPICIOUS_FRAGMENTS:
        if fragment in lowered:
            return description
    if not any(tree in lowered for tree in _TRUSTED_TREES):
        return "outside Windows and Program Files"
    return "standard location"


def classify_autorun(raw_value: Optional[str]) -> RiskVerdict:
    """Run-key value or Startup-folder entry; no disk access."""
    path = extract_executable_path(raw_value)
    if not path:
        return RiskVerdict.check(REASON_UNPARSEABLE)
    if is_suspicious_location(path):
        return RiskVerdict.check(REASON_UNUSUAL_LOCATION)
    return RiskVerdict.ok()


def classify_service(image_path: Optional[str], exists: bool) -> RiskVerdict:
    """Autostart service or driver with its resolved image path."""
    if not image_path:
        return RiskVerdict.check(REASON_NO_IMAGE)
    if not exists:
        return RiskVerdict.check(REASON_MISSING)
    if is_suspicious_location(image_path):
        return RiskVerdict.check(REASON_UNUSUAL_LOCATION)
    return RiskVerdict.ok()


def is_builtin_task(task_path: str) -> bool:
    return (task_path or "").lower().startswith("\\microsoft\\windows\\")


def classify_task(task_path: str, action_path: Optional[str], exists: bool) -> RiskVerdict:
    """Scheduled task; built-in \\Microsoft\\Windows\\ tasks skip the location rule."""
    if not action_path:
        return RiskVerdict.check(REASON_NO_ACTION)
    if not exists:
        return RiskVerdict.check(REASON_MISSING)
    if not is_builtin_task(task_path) and is_suspicious_location(action_path):
        return RiskVerdict.check(REASON_UNUSUAL_LOCATION)
    return RiskVerdict.ok()


def classify_winlogon(value: Optional[str], expected: str) -> RiskVerdict:
    """Winlogon Shell/Userinit against its expected default substring."""
    if not value or not str(value).strip():
        return RiskVerdict.check("empty value")
    if expected.lower() not in str(value).lower():
        return RiskVerdict.check(f"does not reference {expected}")
    return RiskVerdict.ok()


def classify_ifeo(debugger_path: Optional[str], exists: bool) -> RiskVerdict:
    """IFEO debugger: always CHECK, the reason tells how bad it looks."""
    if not debugger_path or not exists:
        return RiskVerdict.check(REASON_IFEO_MISSING)
    if is_suspicious_location(debugger_path):
        return RiskVerdict.check(REASON_IFEO_UNUSUAL)
    return RiskVerdict.check(REASON_IFEO_CONFIGURED)
