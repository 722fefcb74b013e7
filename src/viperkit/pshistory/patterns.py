"""
PowerShell History Patterns - command lines worth an analyst's attention

Provides:
- HIGH_RISK_PATTERNS: download-and-execute, encoded commands, attack tooling,
  LOLBins and credential access
- MEDIUM_RISK_PATTERNS: persistence, defense evasion, account and remote
  execution changes
- ENCODED_COMMAND / SHORT_ENCODED_COMMAND: -EncodedCommand argument capture
- PS51_HISTORY_SUBPATH / PS7_HISTORY_SUBPATH: PSReadLine history locations

MITRE ATT&CK Technique IDs:
- T1059.001 - Command and Scripting Interpreter: PowerShell
- T1105 - Ingress Tool Transfer
- T1027 / T1140 - Obfuscated Files or Information / Deobfuscate
- T1003 - OS Credential Dumping
- T1055 - Process Injection
- T1218 - System Binary Proxy Execution
- T1053.005 - Scheduled Task
- T1543.003 - Windows Service
- T1547.001 - Registry Run Keys
- T1562.001 / T1562.004 - Impair Defenses (tools / firewall)
- T1136.001 / T1098 - Create or Modify Local Account
- T1021.006 - Windows Remote Management
"""

import re

# Relative to each user profile
PS51_HISTORY_SUBPATH = r"AppData\Roaming\Microsoft\Windows\PowerShell\PSReadLine\ConsoleHost_history.txt"
PS7_HISTORY_SUBPATH = r"AppData\Roaming\Microsoft\PowerShell\PSReadLine\ConsoleHost_history.txt"

# Format: (version label, subpath)
HISTORY_LOCATIONS = [
    ("5.1", PS51_HISTORY_SUBPATH),
    ("7", PS7_HISTORY_SUBPATH),
]

# Format: (pattern, description, mitre_techniques)
# Matched case-insensitively against the trimmed command line.
HIGH_RISK_PATTERNS = [
    # === Download and execute ===
    (r"Invoke-WebRequest.*\|\s*iex\b", "Download + Execute (IWR | IEX)", ["T1105", "T1059.001"]),
    (r"Invoke-WebRequest.*Invoke-Expression", "Download + Execute (IWR + Invoke-Expression)", ["T1105", "T1059.001"]),
    (r"Invoke-RestMethod.*\|\s*iex\b", "Download + Execute (IRM | IEX)", ["T1105", "T1059.001"]),
    (r"Invoke-RestMethod.*Invoke-Expression", "Download + Execute (IRM + Invoke-Expression)", ["T1105", "T1059.001"]),
    (r"\(New-Object\s+(System\.)?Net\.WebClient\)\.DownloadString", "WebClient DownloadString", ["T1105"]),
    (r"DownloadString\s*\(.*\)\s*\|\s*iex\b", "DownloadString + IEX", ["T1105", "T1059.001"]),
    (r"DownloadFile\s*\(.*\).*Start-Process", "Download + Execute file", ["T1105"]),
    # === Encoded command execution ===
    (r"\[(System\.)?Convert\]::FromBase64String", "Base64 decoding", ["T1140"]),
    (r"\[(System\.)?Text\.Encoding\]::.*\.GetString.*FromBase64", "Base64 decode to string", ["T1140"]),
    # === Known attack tools ===
    (r"Invoke-Mimikatz", "Mimikatz execution", ["T1003"]),
    (r"Invoke-Kerberoast", "Kerberoasting attack", ["T1558.003"]),
    (r"Invoke-BloodHound", "BloodHound collection", ["T1087"]),
    (r"Invoke-PowerShellTcp", "PowerShell reverse shell", ["T1059.001"]),
    (r"Invoke-Shellcode", "Shellcode injection", ["T1055"]),
    (r"Invoke-ReflectivePEInjection", "Reflective PE injection", ["T1055"]),
    (r"Invoke-DllInjection", "DLL injection", ["T1055.001"]),
    (r"Invoke-TokenManipulation", "Token manipulation", ["T1134"]),
    (r"Invoke-CredentialInjection", "Credential injection", ["T1134"]),
    (r"Get-GPPPassword", "GPP password extraction", ["T1552.006"]),
    (r"Get-GPPAutologon", "GPP autologon extraction", ["T1552.006"]),
    (r"\bEmpire\b", "Empire C2 framework", ["T1071"]),
    (r"\bCovenant\b", "Covenant C2 framework", ["T1071"]),
    # === LOLBins ===
    (r"certutil\s+.*-decode", "Certutil decode (LOLBin)", ["T1140"]),
    (r"certutil\s+.*-urlcache", "Certutil URL cache (LOLBin)", ["T1105"]),
    (r"bitsadmin\s+/transfer", "BITS transfer (LOLBin)", ["T1197"]),
    (r"mshta\s+", "MSHTA execution (LOLBin)", ["T1218.005"]),
    (r"rundll32\s+.*javascript", "Rundll32 JavaScript (LOLBin)", ["T1218.011"]),
    (r"regsvr32\s+/s\s+/n\s+/u\s+/i:", "Regsvr32 scrobj (LOLBin)", ["T1218.010"]),
    # === Credential access ===
    (r"Get-Credential", "Credential prompt (potential phishing)", ["T1056.002"]),
    (r"ConvertTo-SecureString.*-AsPlainText", "Plain text password conversion", ["T1552"]),
    (r"SecureString.*ConvertFrom", "SecureString extraction", ["T1552"]),
]

MEDIUM_RISK_PATTERNS = [
    # === Execution policy ===
    (r"Set-ExecutionPolicy\s+(Bypass|Unrestricted|RemoteSigned)", "Execution policy change", ["T1059.001"]),
    (r"-ExecutionPolicy\s+(Bypass|Unrestricted)", "Execution policy bypass", ["T1059.001"]),
    (r"-ep\s+(Bypass|Unrestricted)", "Execution policy bypass (-ep)", ["T1059.001"]),
    # === Persistence ===
    (r"New-ScheduledTask", "Scheduled task creation", ["T1053.005"]),
    (r"Register-ScheduledTask", "Scheduled task registration", ["T1053.005"]),
    (r"schtasks\s+/create", "Scheduled task creation (schtasks)", ["T1053.005"]),
    (r"New-Service", "Service creation", ["T1543.003"]),
    (r"Set-Service", "Service modification", ["T1543.003"]),
    (r"sc\.exe\s+(create|config)", "Service creation/config (sc.exe)", ["T1543.003"]),
    (r"New-ItemProperty.*\\Run", "Registry Run key creation", ["T1547.001"]),
    (r"Set-ItemProperty.*\\Run", "Registry Run key modification", ["T1547.001"]),
    (r"reg\s+add.*\\Run", "Registry Run key (reg.exe)", ["T1547.001"]),
    # === Defense evasion ===
    (r"Add-MpPreference\s+-ExclusionPath", "Defender exclusion path", ["T1562.001"]),
    (r"Add-MpPreference\s+-ExclusionProcess", "Defender exclusion process", ["T1562.001"]),
    (r"Add-MpPreference\s+-ExclusionExtension", "Defender exclusion extension", ["T1562.001"]),
    (r"Set-MpPreference\s+-DisableRealtimeMonitoring", "Defender real-time disabled", ["T1562.001"]),
    (r"Disable-WindowsOptionalFeature", "Windows feature disabled", ["T1562.001"]),
    (r"Stop-Service\s+.*(Defender|WinDefend)", "Defender service stopped", ["T1562.001"]),
    # === Firewall ===
    (r"netsh\s+advfirewall", "Firewall modification", ["T1562.004"]),
    (r"New-NetFirewallRule", "Firewall rule creation", ["T1562.004"]),
    (r"Set-NetFirewallProfile", "Firewall profile change", ["T1562.004"]),
    # === Accounts ===
    (r"net\s+user\s+\w+\s+", "User account modification", ["T1098"]),
    (r"net\s+localgroup\s+administrators", "Admin group modification", ["T1098"]),
    (r"Add-LocalGroupMember", "Local group member added", ["T1098"]),
    (r"New-LocalUser", "Local user creation", ["T1136.001"]),
    # === Registry ===
    (r"reg\s+add", "Registry modification (reg.exe)", ["T1112"]),
    (r"New-ItemProperty\s+-Path\s+.*(HKLM|HKCU)", "Registry key creation", ["T1112"]),
    (r"Set-ItemProperty\s+-Path\s+.*(HKLM|HKCU)", "Registry value modification", ["T1112"]),
    # === Processes ===
    (r"Start-Process\s+.*-WindowStyle\s+Hidden", "Hidden process start", ["T1564.003"]),
    (r"Start-Process\s+.*-NoNewWindow", "Background process start", ["T1564.003"]),
    (r"Invoke-WmiMethod.*Win32_Process", "WMI process creation", ["T1047"]),
    (r"Invoke-CimMethod.*Win32_Process", "CIM process creation", ["T1047"]),
    # === Remote execution ===
    (r"Enter-PSSession", "Remote PS session", ["T1021.006"]),
    (r"Invoke-Command\s+-ComputerName", "Remote command execution", ["T1021.006"]),
    (r"New-PSSession", "New PS session", ["T1021.006"]),
    (r"winrm\s+", "WinRM command", ["T1021.006"]),
]

# Every prefix of -EncodedCommand that powershell.exe accepts, longest first,
# except the bare -e which needs a longer payload to count.
_ENCODED_FLAGS = "|".join(["encodedcommand"[:n] for n in range(14, 1, -1)] + ["ec"])

ENCODED_COMMAND = re.compile(
    rf"(?:^|\s)-(?:{_ENCODED_FLAGS})\s+([A-Za-z0-9+/=]{{20,}})", re.IGNORECASE
)
SHORT_ENCODED_COMMAND = re.compile(r"(?:^|\s)-e\s+([A-Za-z0-9+/=]{50,})", re.IGNORECASE)

ENCODED_DESCRIPTION = "Base64 encoded command"
ENCODED_TECHNIQUES = ["T1027", "T1059.001"]
