"""
Live Windows implementation of the system access facility.

Registry access goes through winreg (64-bit view). Export, import and
delete go through reg.exe so the on-disk backup is a standard .reg file an
analyst can re-import by hand. Every external process gets a bounded wait.
"""

import os
import re
import subprocess  # nosec B404
import xml.etree.ElementTree as ET  # nosec B405
from pathlib import Path
from typing import Any, Optional, Sequence

from ..utils.logger import debug
from .types import (
    ProcessResult,
    RegistryValueKind,
    ScheduledTaskInfo,
    ServiceInfo,
    split_registry_path,
)

SERVICES_KEY = r"HKLM\SYSTEM\CurrentControlSet\Services"
TASK_NS = {"t": "http://schemas.microsoft.com/windows/2004/02/mit/task"}
TASK_XML_ENCODINGS = ("utf-16", "utf-8", "utf-16-le", "utf-16-be")
_XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")

CREATE_NO_WINDOW = 0x08000000


class WindowsSystemAccess:
    """SystemAccess backed by winreg and the built-in Windows tools."""

    def __init__(self, timeout: float = 30.0):
        import winreg  # Windows only

        self._winreg = winreg
        self.timeout = timeout
        self._hives = {
            "HKLM": winreg.HKEY_LOCAL_MACHINE,
            "HKCU": winreg.HKEY_CURRENT_USER,
            "HKU": winreg.HKEY_USERS,
            "HKCR": winreg.HKEY_CLASSES_ROOT,
            "HKCC": winreg.HKEY_CURRENT_CONFIG,
        }
        self._kinds = {
            RegistryValueKind.STRING: winreg.REG_SZ,
            RegistryValueKind.EXPAND_STRING: winreg.REG_EXPAND_SZ,
            RegistryValueKind.DWORD: winreg.REG_DWORD,
            RegistryValueKind.QWORD: winreg.REG_QWORD,
            RegistryValueKind.MULTI_STRING: winreg.REG_MULTI_SZ,
            RegistryValueKind.BINARY: winreg.REG_BINARY,
        }

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def _open(self, key: str, write: bool = False):
        hive_name, subkey = split_registry_path(key)
        try:
            hive = self._hives[hive_name]
        except KeyError:
            raise FileNotFoundError(f"Unknown registry hive: {hive_name}") from None
        access = self._winreg.KEY_WOW64_64KEY
        access |= self._winreg.KEY_ALL_ACCESS if write else self._winreg.KEY_READ
        return self._winreg.OpenKey(hive, subkey, 0, access)

    def key_exists(self, key: str) -> bool:
        try:
            with self._open(key):
                return True
        except OSError:
            return False

    def read_value(self, key: str, name: str) -> Optional[Any]:
        try:
            with self._open(key) as handle:
                value, _ = self._winreg.QueryValueEx(handle, name)
                return value
        except OSError:
            return None

    def list_values(self, key: str) -> list[tuple[str, Any]]:
        values = []
        with self._open(key) as handle:
            index = 0
            while True:
                try:
                    name, value, _ = self._winreg.EnumValue(handle, index)
                except OSError:
                    break
                values.append((name, value))
                index += 1
        return values

    def list_subkeys(self, key: str) -> list[str]:
        names = []
        with self._open(key) as handle:
            index = 0
            while True:
                try:
                    names.append(self._winreg.EnumKey(handle, index))
                except OSError:
                    break
                index += 1
        return names

    def set_value(
        self, key: str, name: str, value: Any, kind: RegistryValueKind
    ) -> None:
        hive_name, subkey = split_registry_path(key)
        hive = self._hives[hive_name]
        access = self._winreg.KEY_ALL_ACCESS | self._winreg.KEY_WOW64_64KEY
        with self._winreg.CreateKeyEx(hive, subkey, 0, access) as handle:
            self._winreg.SetValueEx(handle, name, 0, self._kinds[kind], value)

    def delete_value(self, key: str, name: str) -> None:
        with self._open(key, write=True) as handle:
            self._winreg.DeleteValue(handle, name)

    def export_key(self, key: str, destination: str) -> ProcessResult:
        return self.run_process(["reg.exe", "export", key, destination, "/y"])

    def import_key(self, source: str) -> ProcessResult:
        return self.run_process(["reg.exe", "import", source])

    def delete_key(self, key: str, value_name: Optional[str] = None) -> ProcessResult:
        args = ["reg.exe", "delete", key]
        if value_name is not None:
            args += ["/v", value_name]
        args.append("/f")
        return self.run_process(args)

    # ------------------------------------------------------------------
    # Services and tasks
    # ------------------------------------------------------------------

    def list_services(self) -> list[ServiceInfo]:
        services = []
        for name in self.list_subkeys(SERVICES_KEY):
            key = f"{SERVICES_KEY}\\{name}"
            try:
                values = dict(self.list_values(key))
            except OSError as e:
                debug(f"Service key unreadable {name}: {e}")
                continue
            start = values.get("Start")
            service_type = values.get("Type")
            services.append(
                ServiceInfo(
                    name=name,
                    display_name=str(values.get("DisplayName") or ""),
                    image_path=str(values.get("ImagePath") or ""),
                    start=start if isinstance(start, int) else None,
                    service_type=service_type if isinstance(service_type, int) else None,
                )
            )
        return services

    def stop_service(self, name: str) -> ProcessResult:
        return self.run_process(["sc.exe", "stop", name])

    def list_scheduled_tasks(self) -> list[ScheduledTaskInfo]:
        tasks_dir = Path(self.expand_environment(r"%SystemRoot%\System32\Tasks"))
        if not tasks_dir.is_dir():
            raise FileNotFoundError(f"Task store not found: {tasks_dir}")

        tasks = []
        for xml_file in sorted(p for p in tasks_dir.rglob("*") if p.is_file()):
            root = _read_task_xml(xml_file)
            if root is None:
                continue
            relative = "\\" + str(xml_file.relative_to(tasks_dir)).replace("/", "\\")
            uri = _find_text(root, ".//t:RegistrationInfo/t:URI") or relative
            enabled = _find_text(root, ".//t:Settings/t:Enabled").lower() != "false"
            tasks.append(
                ScheduledTaskInfo(
                    path=uri if uri.startswith("\\") else "\\" + uri,
                    command=_find_text(root, ".//t:Actions//t:Exec/t:Command"),
                    arguments=_find_text(root, ".//t:Actions//t:Exec/t:Arguments"),
                    enabled=enabled,
                )
            )
        return tasks

    def disable_scheduled_task(self, path: str) -> ProcessResult:
        return self.run_process(["schtasks.exe", "/Change", "/TN", path, "/Disable"])

    def enable_scheduled_task(self, path: str) -> ProcessResult:
        return self.run_process(["schtasks.exe", "/Change", "/TN", path, "/Enable"])

    # ------------------------------------------------------------------
    # Processes and environment
    # ------------------------------------------------------------------

    def run_process(
        self, args: Sequence[str], timeout: Optional[float] = None
    ) -> ProcessResult:
        limit = timeout if timeout is not None else self.timeout
        try:
            completed = subprocess.run(  # nosec B603
                list(args),
                capture_output=True,
                text=True,
                timeout=limit,
                creationflags=CREATE_NO_WINDOW,
                check=False,
            )
        except subprocess.TimeoutExpired:
            debug(f"Process timed out after {limit}s: {args[0]}")
            return ProcessResult(exit_code=-1, timed_out=True)
        except OSError as e:
            return ProcessResult(exit_code=-1, stderr=str(e))
        return ProcessResult(
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

    def expand_environment(self, text: str) -> str:
        return os.path.expandvars(text)

    def get_file_companies(self, paths: Sequence[str]) -> dict[str, str]:
        """Batch CompanyName lookup through one PowerShell invocation."""
        if not paths:
            return {}
        quoted = ",".join("'" + p.replace("'", "''") + "'" for p in paths)
        script = (
            f"foreach ($p in @({quoted})) {{ "
            "try { $c = (Get-Item -LiteralPath $p -ErrorAction Stop).VersionInfo.CompanyName } "
            "catch { $c = '' }; "
            'Write-Output ($p + "|" + $c) }'
        )
        result = self.run_process(
            ["powershell.exe", "-NoProfile", "-NonInteractive", "-Command", script]
        )
        companies = {}
        for line in result.stdout.splitlines():
            path, sep, company = line.partition("|")
            if sep:
                companies[path.strip().lower()] = company.strip()
        return companies


def _read_task_xml(path: Path) -> Optional[ET.Element]:
    try:
        data = path.read_bytes()
    except OSError:
        return None
    try:
        return ET.fromstring(data)  # nosec B314
    except (ValueError, ET.ParseError):
        pass
    # Mislabelled files: decode by hand, then drop the declaration expat would reject
    for encoding in TASK_XML_ENCODINGS:
        try:
            text = data.decode(encoding).lstrip("\ufeff")
            return ET.fromstring(_XML_DECLARATION.sub("", text, count=1))  # nosec B314
        except (ValueError, ET.ParseError):
            continue
    return None


def _find_text(root: ET.Element, xpath: str) -> str:
    node = root.find(xpath, TASK_NS)
    if node is None or node.text is None:
        return ""
    return node.text.strip()
