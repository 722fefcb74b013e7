"""
Tests for the hardening control catalog detectors and actions.
"""

import pytest

from viperkit.hardening import catalog
from viperkit.hardening.catalog import CATALOG, get_control
from viperkit.hardening.models import PROFILE_STRICT
from viperkit.system.types import ProcessResult

FIREWALL_ON = """
Domain Profile Settings:
State                                 ON

Private Profile Settings:
State                                 ON

Public Profile Settings:
State                                 ON
"""


class TestCatalog:
    def test_control_ids(self):
        assert [c.id for c in CATALOG] == [
            "disable_wsh",
            "disable_ps_v2",
            "ps_script_block_logging",
            "ps_module_logging",
            "ps_execution_policy",
            "firewall_enable_all",
            "firewall_block_rmm_ports",
            "defender_realtime",
            "defender_cloud",
            "defender_pua",
            "defender_controlled_folders",
            "disable_autorun",
            "disable_autoplay",
            "rdp_nla",
            "disable_rdp",
        ]

    def test_strict_only_controls(self):
        strict = {c.id for c in CATALOG if c.profile == PROFILE_STRICT}
        assert strict == {
            "ps_module_logging",
            "firewall_block_rmm_ports",
            "defender_controlled_folders",
            "disable_rdp",
        }

    def test_one_way_controls(self):
        one_way = {c.id for c in CATALOG if not c.can_rollback}
        assert one_way == {
            "disable_ps_v2",
            "firewall_enable_all",
            "defender_realtime",
            "defender_cloud",
            "defender_pua",
        }

    def test_get_control(self):
        assert get_control("disable_rdp").name == "Disable Remote Desktop"
        assert get_control("nope") is None


class TestDetectors:
    @pytest.mark.parametrize(
        "stdout,expected",
        [
            pytest.param("Feature Name : X\nState : Disabled\n", "Disabled", id="disabled"),
            pytest.param("State : Enabled", "Enabled", id="enabled"),
            pytest.param("", "Unknown", id="unknown"),
        ],
    )
    def test_ps_v2(self, fake_system, stdout, expected):
        fake_system.on_process(["dism.exe"], ProcessResult(0, stdout=stdout))
        assert catalog.detect_ps_v2(fake_system) == expected

    @pytest.mark.parametrize(
        "stdout,expected",
        [
            pytest.param(FIREWALL_ON, "All On", id="all-on"),
            pytest.param(FIREWALL_ON.replace("ON", "OFF", 1), "Partial", id="partial"),
            pytest.param("State OFF\nState OFF\nState OFF", "All Off", id="all-off"),
        ],
    )
    def test_firewall(self, fake_system, stdout, expected):
        fake_system.on_process(["netsh.exe", "advfirewall", "show"], ProcessResult(0, stdout=stdout))
        assert catalog.detect_firewall(fake_system) == expected

    def test_rmm_ports_open_when_no_rules(self, fake_system):
        fake_system.on_process(
            ["netsh.exe", "advfirewall", "firewall", "show"],
            ProcessResult(1, stdout="No rules match the specified criteria."),
        )
        assert catalog.detect_rmm_ports(fake_system) == "Open"

    def test_rmm_ports_blocked(self, fake_system):
        assert catalog.detect_rmm_ports(fake_system) == "Blocked"

    def test_execution_policy_default(self, fake_system):
        assert catalog.detect_execution_policy(fake_system) == "Undefined"

    @pytest.mark.parametrize(
        "value,expected",
        [
            pytest.param(None, "Default", id="unset"),
            pytest.param(0, "Off", id="off"),
            pytest.param(2, "Advanced", id="advanced"),
        ],
    )
    def test_defender_cloud(self, fake_system, value, expected):
        if value is not None:
            fake_system.add_key(catalog.DEFENDER_SPYNET_KEY, SpynetReporting=value)
        assert catalog.detect_defender_cloud(fake_system) == expected


class TestApplyAndRollback:
    def test_wsh_round_trip(self, fake_system):
        control = get_control("disable_wsh")

        assert control.detect(fake_system) == "Enabled"
        assert control.apply(fake_system) is None
        assert control.detect(fake_system) == "Disabled"
        assert control.rollback(fake_system, "Enabled") is None
        assert fake_system.read_value(catalog.WSH_KEY, "Enabled") is None

    def test_execution_policy_restored(self, fake_system):
        fake_system.add_key(catalog.EXECUTION_POLICY_KEY, ExecutionPolicy="Bypass")
        control = get_control("ps_execution_policy")

        control.apply(fake_system)
        assert control.detect(fake_system) == "RemoteSigned"
        control.rollback(fake_system, "Bypass")
        assert control.detect(fake_system) == "Bypass"

    def test_rmm_block_reports_each_failed_port(self, fake_system):
        fake_system.on_process(
            ["netsh.exe", "advfirewall", "firewall", "add"],
            ProcessResult(1, stderr="The requested operation requires elevation."),
        )

        failure = catalog.apply_rmm_block(fake_system)

        assert failure.count("requires elevation") == len(catalog.RMM_PORTS)

    def test_defender_command_failure(self, fake_system):
        fake_system.on_process(["powershell.exe"], ProcessResult(1, stderr="Access denied"))
        assert get_control("defender_pua").apply(fake_system) == "Access denied"
