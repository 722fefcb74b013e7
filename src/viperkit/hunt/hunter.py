"""
Local indicator hunting.

Answers "is this indicator on this host?" for file paths, registry keys
and file hashes. IP and domain indicators are recognised so they can be
reported, but looking them up needs the network and is left to other tools.
"""

import re
from typing import Iterable, Optional

from ..system.filesystem import LocalFileSystem
from ..system.types import SystemAccess, split_registry_path
from ..utils.logger import debug, info
from .types import HuntResult, IocType

REGISTRY_PREFIXES = (
    "hklm\\",
    "hkcu\\",
    "hkcr\\",
    "hku\\",
    "hkcc\\",
    "hkey_local_machine\\",
    "hkey_current_user\\",
    "hkey_classes_root\\",
    "hkey_users\\",
    "hkey_current_config\\",
)

SUPPORTED_HIVES = ("HKLM", "HKCU", "HKCR", "HKU", "HKCC")

# Digest length in hex characters -> hashlib name
HASH_ALGORITHMS = {32: "md5", 40: "sha1", 64: "sha256"}

_HEX = re.compile(r"^[0-9a-fA-F]+$")
_IP_LIKE = re.compile(r"^[0-9.]+$")

DEFAULT_MAX_FILES = 20000


def detect_ioc_type(ioc: str) -> IocType:
    """Guess what kind of indicator a string is.

    Order matters: paths and registry keys first, then dotted quads,
    then 32-64 hex characters; anything else is a domain or URL.
    """
    trimmed = ioc.strip()
    lowered = trimmed.lower()
    compact = trimmed.replace(" ", "")

    if ":\\" in trimmed or lowered.startswith("\\\\") or trimmed.startswith("/"):
        return IocType.FILE_PATH
    if lowered.replace("/", "\\").startswith(REGISTRY_PREFIXES):
        return IocType.REGISTRY
    if trimmed.count(".") == 3 and _IP_LIKE.match(trimmed):
        return IocType.IP_ADDRESS
    if 32 <= len(compact) <= 64 and _HEX.match(compact):
        return IocType.HASH
    return IocType.DOMAIN_OR_URL


def hash_algorithm(value: str) -> Optional[str]:
    """hashlib name for a hex digest (md5, sha1, sha256), None if unrecognised."""
    compact = value.strip().replace(" ", "")
    if not _HEX.match(compact):
        return None
    return HASH_ALGORITHMS.get(len(compact))


def _display_value(value) -> str:
    if value is None:
        return "(null)"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    return str(value)


class IocHunter:
    """Look up indicators on the local host."""

    def __init__(
        self,
        system: SystemAccess,
        fs: Optional[LocalFileSystem] = None,
        max_files: int = DEFAULT_MAX_FILES,
    ):
        self.system = system
        self.fs = fs or LocalFileSystem()
        self.max_files = max_files

    def hunt(
        self,
        ioc: str,
        ioc_type: Optional[IocType] = None,
        roots: Iterable[str] = (),
    ) -> HuntResult:
        """Dispatch to the lookup for ``ioc_type`` (detected when omitted)."""
        ioc = ioc.strip()
        ioc_type = ioc_type or detect_ioc_type(ioc)
        if not ioc:
            return HuntResult(ioc, ioc_type, error="no indicator provided")

        if ioc_type == IocType.FILE_PATH:
            result = self.hunt_path(ioc)
        elif ioc_type == IocType.REGISTRY:
            result = self.hunt_registry(ioc)
        elif ioc_type == IocType.HASH:
            result = self.hunt_hash(ioc, roots)
        else:
            result = HuntResult(
                ioc,
                ioc_type,
                summary=f"{ioc_type.value} indicators need a network lookup; not checked",
            )
        info(f"Hunt {ioc_type.value} {ioc}: {'found' if result.found else 'not found'}")
        return result

    # ------------------------------------------------------------------
    # Files and folders
    # ------------------------------------------------------------------

    def hunt_path(self, path: str) -> HuntResult:
        result = HuntResult(path, IocType.FILE_PATH)

        if self.fs.is_dir(path):
            count = 0
            total = 0
            for entry in self.fs.walk_files(path):
                count += 1
                total += entry.size
            result.found = True
            result.severity = "WARN"
            result.summary = f"Folder found: {count} file(s), {total} bytes"
            result.details = [f"Path: {path}", f"Files: {count}", f"Approx. size: {total} bytes"]
            return result

        stat = self.fs.stat(path) if self.fs.is_file(path) else None
        if stat is None:
            result.summary = "File or folder not found"
            return result

        digest = self.fs.sha256(path)
        result.found = True
        result.severity = "WARN"
        result.summary = f"File found: {stat.size} bytes"
        result.details = [
            f"Path: {path}",
            f"Size: {stat.size} bytes",
            f"Created: {stat.created:%Y-%m-%d %H:%M:%S}",
            f"Modified: {stat.modified:%Y-%m-%d %H:%M:%S}",
            f"SHA256: {digest or '(unreadable)'}",
        ]
        return result

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def hunt_registry(self, key: str) -> HuntResult:
        cleaned = key.strip().replace("/", "\\")
        result = HuntResult(cleaned, IocType.REGISTRY)

        hive, subkey = split_registry_path(cleaned)
        if not subkey:
            result.error = f"Could not parse registry path {cleaned}; expected HKLM\\Path\\To\\Key"
            return result
        if hive not in SUPPORTED_HIVES:
            result.error = f"Unknown registry hive {hive}; supported: {', '.join(SUPPORTED_HIVES)}"
            return result

        full_key = f"{hive}\\{subkey}"
        try:
            if not self.system.key_exists(full_key):
                result.summary = "Registry key not found"
                return result
            values = self.system.list_values(full_key)
            subkeys = self.system.list_subkeys(full_key)
        except OSError as e:
            debug(f"Registry hunt failed for {full_key}: {e}")
            result.error = f"Error while reading registry key: {e}"
            return result

        result.found = True
        result.severity = "WARN"
        result.summary = f"Registry key found: {len(subkeys)} subkey(s), {len(values)} value(s)"
        result.details = [f"Path: {full_key}"]
        if values:
            result.details += [f"{name or '(Default)'}: {_display_value(v)}" for name, v in values]
        else:
            result.details.append("(no values)")
        return result

    # ------------------------------------------------------------------
    # Hashes
    # ------------------------------------------------------------------

    def hunt_hash(self, value: str, roots: Iterable[str]) -> HuntResult:
        """Hash every file below ``roots`` and report those matching ``value``.

        At most ``max_files`` files are hashed; the result says so when the
        limit cut the walk short.
        """
        wanted = value.strip().replace(" ", "").lower()
        result = HuntResult(wanted, IocType.HASH)

        algorithm = hash_algorithm(wanted)
        if algorithm is None:
            result.error = f"Unrecognised hash length {len(wanted)} (expected MD5, SHA1 or SHA256)"
            return result
        roots = [r for r in roots if r]
        if not roots:
            result.error = "No search folders given for the hash hunt"
            return result

        hashed = 0
        truncated = False
        matches = []
        for root in roots:
            for entry in self.fs.walk_files(root):
                if hashed >= self.max_files:
                    truncated = True
                    break
                hashed += 1
                if self.fs.file_digest(entry.path, algorithm) == wanted:
                    matches.append(entry.path)
            if truncated:
                break

        result.found = bool(matches)
        result.severity = "HIGH" if matches else "INFO"
        result.summary = (
            f"{algorithm.upper()} matched {len(matches)} of {hashed} file(s)"
            + (" (file limit reached)" if truncated else "")
        )
        result.details = matches
        return result
