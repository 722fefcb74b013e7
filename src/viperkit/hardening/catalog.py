"""
Hardening control catalog.

Each control is data: how to read its state, how to apply it and how to
reverse it. Apply and rollback callables return None on success or an error
text. A control without a rollback callable is left hardened on rollback.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..system.types import ProcessResult, RegistryValueKind, SystemAccess
from ..utils.logger import debug
from .models import PROFILE_STANDARD, PROFILE_STRICT

Detect = Callable[[SystemAccess], str]
Apply = Callable[[SystemAccess], Optional[str]]
Rollback = Callable[[SystemAccess, str], Optional[str]]

UNKNOWN = "Unknown"

WSH_KEY = r"HKLM\SOFTWARE\Microsoft\Windows Script Host\Settings"
SCRIPT_BLOCK_KEY = r"HKLM\SOFTWARE\Policies\Microsoft\Windows\PowerShell\ScriptBlockLogging"
MODULE_LOGGING_KEY = r"HKLM\SOFTWARE\Policies\Microsoft\Windows\PowerShell\ModuleLogging"
EXECUTION_POLICY_KEY = r"HKLM\SOFTWARE\Microsoft\PowerShell\1\ShellIds\Microsoft.PowerShell"
DEFENDER_KEY = r"HKLM\SOFTWARE\Microsoft\Windows Defender"
DEFENDER_RTP_KEY = DEFENDER_KEY + r"\Real-Time Protection"
DEFENDER_SPYNET_KEY = DEFENDER_KEY + r"\Spynet"
CONTROLLED_FOLDERS_KEY = (
    DEFENDER_KEY + r"\Windows Defender Exploit Guard\Controlled Folder Access"
)
EXPLORER_POLICY_KEY = r"HKLM\SOFTWARE\Microsoft\Windows\CurrentVersion\Policies\Explorer"
AUTOPLAY_KEY = r"HKCU\SOFTWARE\Microsoft\Windows\CurrentVersion\Explorer\AutoplayHandlers"
TERMINAL_SERVER_KEY = r"HKLM\SYSTEM\CurrentControlSet\Control\Terminal Server"
RDP_TCP_KEY = TERMINAL_SERVER_KEY + r"\WinStations\RDP-Tcp"

PS_V2_FEATURE = "MicrosoftWindowsPowerShellV2"
RMM_PORTS = ("5938", "8040", "8041", "5939")
RMM_RULE_PREFIX = "ViperKit_Block_"
CLOUD_LEVELS = {0: "Off", 1: "Basic", 2: "Advanced"}


@dataclass(frozen=True)
class HardenControl:
    id: str
    category: str
    name: str
    description: str
    recommended_state: str
    detect: Detect
    apply: Apply
    rollback: Optional[Rollback] = None
    profile: str = PROFILE_STANDARD
    warning_message: str = ""

    @property
    def can_rollback(self) -> bool:
        return self.rollback is not None


# ----------------------------------------------------------------------
# Building blocks
# ----------------------------------------------------------------------


def _failure(result: ProcessResult) -> Optional[str]:
    return None if result.ok else result.error_text


def _flag(key: str, name: str, expected: Any, match: str, other: str) -> Detect:
    def detect(system: SystemAccess) -> str:
        return match if system.read_value(key, name) == expected else other

    return detect


def _set_dword(key: str, name: str, value: int) -> Apply:
    def apply(system: SystemAccess) -> Optional[str]:
        system.set_value(key, name, value, RegistryValueKind.DWORD)
        return None

    return apply


def _restore_dword(key: str, name: str, value: int) -> Rollback:
    def rollback(system: SystemAccess, previous: str) -> Optional[str]:
        system.set_value(key, name, value, RegistryValueKind.DWORD)
        return None

    return rollback


def _remove_value(key: str, name: str) -> Rollback:
    def rollback(system: SystemAccess, previous: str) -> Optional[str]:
        try:
            system.delete_value(key, name)
        except FileNotFoundError:
            debug(f"{key}\\{name} already absent")
        return None

    return rollback


def _command(*args: str) -> Apply:
    def apply(system: SystemAccess) -> Optional[str]:
        return _failure(system.run_process(list(args)))

    return apply


def _mp_preference(setting: str) -> list[str]:
    return ["powershell.exe", "-NoProfile", "-Command", f"Set-MpPreference {setting}"]


# ----------------------------------------------------------------------
# Controls needing more than a single value
# ----------------------------------------------------------------------


def detect_ps_v2(system: SystemAccess) -> str:
    result = system.run_process(
        ["dism.exe", "/online", "/get-featureinfo", f"/featurename:{PS_V2_FEATURE}"]
    )
    if "State : Disabled" in result.stdout:
        return "Disabled"
    if "State : Enabled" in result.stdout:
        return "Enabled"
    return UNKNOWN


def detect_execution_policy(system: SystemAccess) -> str:
    value = system.read_value(EXECUTION_POLICY_KEY, "ExecutionPolicy")
    return value if isinstance(value, str) and value else "Undefined"


def rollback_execution_policy(system: SystemAccess, previous: str) -> Optional[str]:
    system.set_value(
        EXECUTION_POLICY_KEY,
        "ExecutionPolicy",
        previous or "Undefined",
        RegistryValueKind.STRING,
    )
    return None


def detect_firewall(system: SystemAccess) -> str:
    result = system.run_process(["netsh.exe", "advfirewall", "show", "allprofiles", "state"])
    if not result.ok:
        return UNKNOWN
    on_lines = sum(1 for line in result.stdout.splitlines() if "ON" in line.upper())
    if on_lines >= 3:
        return "All On"
    if on_lines > 0:
        return "Partial"
    return "All Off"


def detect_rmm_ports(system: SystemAccess) -> str:
    blocked = [
        port
        for port in RMM_PORTS
        if system.run_process(
            ["netsh.exe", "advfirewall", "firewall", "show", "rule", f"name={RMM_RULE_PREFIX}{port}"]
        ).ok
    ]
    if len(blocked) == len(RMM_PORTS):
        return "Blocked"
    return "Partial" if blocked else "Open"


def apply_rmm_block(system: SystemAccess) -> Optional[str]:
    errors = []
    for port in RMM_PORTS:
        result = system.run_process(
            [
                "netsh.exe", "advfirewall", "firewall", "add", "rule",
                f"name={RMM_RULE_PREFIX}{port}", "dir=out", "action=block",
                "protocol=tcp", f"remoteport={port}",
            ]
        )
        if not result.ok:
            errors.append(f"port {port}: {result.error_text}")
    return "; ".join(errors) or None


def rollback_rmm_block(system: SystemAccess, previous: str) -> Optional[str]:
    for port in RMM_PORTS:
        result = system.run_process(
            ["netsh.exe", "advfirewall", "firewall", "delete", "rule", f"name={RMM_RULE_PREFIX}{port}"]
        )
        if not result.ok:
            debug(f"Rule {RMM_RULE_PREFIX}{port} not removed: {result.error_text}")
    return None


def detect_defender_realtime(system: SystemAccess) -> str:
    value = system.read_value(DEFENDER_RTP_KEY, "DisableRealtimeMonitoring")
    return "Disabled" if value == 1 else "Enabled"


def detect_defender_cloud(system: SystemAccess) -> str:
    value = system.read_value(DEFENDER_SPYNET_KEY, "SpynetReporting")
    return CLOUD_LEVELS.get(value, "Default")


# ----------------------------------------------------------------------
# Catalog
# ----------------------------------------------------------------------

CATALOG: tuple[HardenControl, ...] = (
    # Script execution
    HardenControl(
        id="disable_wsh",
        category="ScriptExecution",
        name="Disable Windows Script Host",
        description="Prevents .vbs, .js, .jse, .wsf scripts from running",
        recommended_state="Disabled",
        detect=_flag(WSH_KEY, "Enabled", 0, "Disabled", "Enabled"),
        apply=_set_dword(WSH_KEY, "Enabled", 0),
        rollback=_remove_value(WSH_KEY, "Enabled"),
    ),
    HardenControl(
        id="disable_ps_v2",
        category="ScriptExecution",
        name="Disable PowerShell v2",
        description="Removes legacy PowerShell that lacks logging",
        recommended_state="Disabled",
        detect=detect_ps_v2,
        apply=_command(
            "dism.exe", "/online", "/disable-feature", f"/featurename:{PS_V2_FEATURE}", "/norestart"
        ),
    ),
    HardenControl(
        id="ps_script_block_logging",
        category="ScriptExecution",
        name="Enable Script Block Logging",
        description="Logs PowerShell script content for forensics",
        recommended_state="Enabled",
        detect=_flag(SCRIPT_BLOCK_KEY, "EnableScriptBlockLogging", 1, "Enabled", "Disabled"),
        apply=_set_dword(SCRIPT_BLOCK_KEY, "EnableScriptBlockLogging", 1),
        rollback=_restore_dword(SCRIPT_BLOCK_KEY, "EnableScriptBlockLogging", 0),
    ),
    HardenControl(
        id="ps_module_logging",
        category="ScriptExecution",
        name="Enable Module Logging",
        description="Logs PowerShell module activity",
        recommended_state="Enabled",
        profile=PROFILE_STRICT,
        detect=_flag(MODULE_LOGGING_KEY, "EnableModuleLogging", 1, "Enabled", "Disabled"),
        apply=_set_dword(MODULE_LOGGING_KEY, "EnableModuleLogging", 1),
        rollback=_restore_dword(MODULE_LOGGING_KEY, "EnableModuleLogging", 0),
    ),
    HardenControl(
        id="ps_execution_policy",
        category="ScriptExecution",
        name="Set ExecutionPolicy RemoteSigned",
        description="Requires scripts from internet to be signed",
        recommended_state="RemoteSigned",
        detect=detect_execution_policy,
        apply=lambda system: system.set_value(
            EXECUTION_POLICY_KEY, "ExecutionPolicy", "RemoteSigned", RegistryValueKind.STRING
        ),
        rollback=rollback_execution_policy,
    ),
    # Firewall
    HardenControl(
        id="firewall_enable_all",
        category="Firewall",
        name="Enable Firewall (All Profiles)",
        description="Ensures Windows Firewall is on for Domain, Private, and Public",
        recommended_state="All On",
        detect=detect_firewall,
        apply=_command("netsh.exe", "advfirewall", "set", "allprofiles", "state", "on"),
    ),
    HardenControl(
        id="firewall_block_rmm_ports",
        category="Firewall",
        name="Block Common RMM Ports",
        description="Blocks outbound ports 5938, 8040, 8041, 5939 (common RMM)",
        recommended_state="Blocked",
        profile=PROFILE_STRICT,
        warning_message="May block legitimate RMM tools your organization uses",
        detect=detect_rmm_ports,
        apply=apply_rmm_block,
        rollback=rollback_rmm_block,
    ),
    # Defender
    HardenControl(
        id="defender_realtime",
        category="Defender",
        name="Enable Real-Time Protection",
        description="Ensures Defender real-time scanning is active",
        recommended_state="Enabled",
        detect=detect_defender_realtime,
        apply=_command(*_mp_preference("-DisableRealtimeMonitoring $false")),
    ),
    HardenControl(
        id="defender_cloud",
        category="Defender",
        name="Enable Cloud Protection",
        description="Enables cloud-delivered protection (MAPS)",
        recommended_state="Advanced",
        detect=detect_defender_cloud,
        apply=_command(*_mp_preference("-MAPSReporting Advanced")),
    ),
    HardenControl(
        id="defender_pua",
        category="Defender",
        name="Enable PUA Protection",
        description="Blocks Potentially Unwanted Applications",
        recommended_state="Enabled",
        detect=_flag(DEFENDER_KEY, "PUAProtection", 1, "Enabled", "Disabled"),
        apply=_command(*_mp_preference("-PUAProtection Enabled")),
    ),
    HardenControl(
        id="defender_controlled_folders",
        category="Defender",
        name="Enable Controlled Folder Access",
        description="Protects folders from ransomware",
        recommended_state="Enabled",
        profile=PROFILE_STRICT,
        warning_message="May require whitelisting legitimate applications",
        detect=_flag(CONTROLLED_FOLDERS_KEY, "EnableControlledFolderAccess", 1, "Enabled", "Disabled"),
        apply=_command(*_mp_preference("-EnableControlledFolderAccess Enabled")),
        rollback=lambda system, previous: _failure(
            system.run_process(_mp_preference("-EnableControlledFolderAccess Disabled"))
        ),
    ),
    # AutoRun
    HardenControl(
        id="disable_autorun",
        category="AutoRun",
        name="Disable AutoRun (All Drives)",
        description="Prevents automatic execution from removable media",
        recommended_state="Disabled",
        detect=_flag(EXPLORER_POLICY_KEY, "NoDriveTypeAutoRun", 255, "Disabled", "Enabled"),
        apply=_set_dword(EXPLORER_POLICY_KEY, "NoDriveTypeAutoRun", 255),
        rollback=_remove_value(EXPLORER_POLICY_KEY, "NoDriveTypeAutoRun"),
    ),
    HardenControl(
        id="disable_autoplay",
        category="AutoRun",
        name="Disable AutoPlay",
        description="Disables AutoPlay for all media types",
        recommended_state="Disabled",
        detect=_flag(AUTOPLAY_KEY, "DisableAutoplay", 1, "Disabled", "Enabled"),
        apply=_set_dword(AUTOPLAY_KEY, "DisableAutoplay", 1),
        rollback=_remove_value(AUTOPLAY_KEY, "DisableAutoplay"),
    ),
    # Remote access
    HardenControl(
        id="rdp_nla",
        category="RemoteAccess",
        name="Require NLA for RDP",
        description="Requires Network Level Authentication for Remote Desktop",
        recommended_state="Required",
        detect=_flag(RDP_TCP_KEY, "UserAuthentication", 1, "Required", "Not Required"),
        apply=_set_dword(RDP_TCP_KEY, "UserAuthentication", 1),
        rollback=_restore_dword(RDP_TCP_KEY, "UserAuthentication", 0),
    ),
    HardenControl(
        id="disable_rdp",
        category="RemoteAccess",
        name="Disable Remote Desktop",
        description="Completely disables RDP access",
        recommended_state="Disabled",
        profile=PROFILE_STRICT,
        warning_message="Will prevent all remote desktop connections",
        detect=_flag(TERMINAL_SERVER_KEY, "fDenyTSConnections", 1, "Disabled", "Enabled"),
        apply=_set_dword(TERMINAL_SERVER_KEY, "fDenyTSConnections", 1),
        rollback=_restore_dword(TERMINAL_SERVER_KEY, "fDenyTSConnections", 0),
    ),
)


def get_control(control_id: str, catalog: tuple[HardenControl, ...] = CATALOG) -> Optional[HardenControl]:
    for control in catalog:
        if control.id == control_id:
            return control
    return None
