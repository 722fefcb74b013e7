"""
Tests for the hardening engine: scan, profile selection, apply and rollback.
"""

import pytest

from viperkit.case.audit import CaseAuditLog
from viperkit.hardening import catalog
from viperkit.hardening.engine import ERROR_STATE, HardenEngine
from viperkit.hardening.models import PROFILE_CUSTOM, PROFILE_STANDARD, PROFILE_STRICT
from viperkit.journal.harden import HardenJournal
from viperkit.system.types import ProcessResult

# With the fake system's defaults these two controls read as already set
ALREADY_SET = {"firewall_block_rmm_ports", "defender_realtime"}


@pytest.fixture
def audit(case_id):
    return CaseAuditLog(case_id)


@pytest.fixture
def harden_journal(tmp_path, case_id):
    journal = HardenJournal(str(tmp_path / "harden"), case_id)
    journal.load()
    return journal


@pytest.fixture
def engine(fake_system, harden_journal, audit):
    engine = HardenEngine(fake_system, harden_journal, audit)
    engine.scan()
    return engine


class TestScan:
    def test_every_control_detected(self, engine):
        actions = engine.actions()

        assert len(actions) == len(catalog.CATALOG)
        assert {a.id for a in actions if a.is_already_hardened} == ALREADY_SET
        assert engine.get_stats().already_set == len(ALREADY_SET)

    def test_state_display(self, engine):
        assert engine.get_action("disable_wsh").state_display == "Current: Enabled -> Disabled"
        assert engine.get_action("defender_realtime").state_display == "Current: Enabled (Already set)"

    def test_unreadable_state(self, fake_system, harden_journal):
        fake_system.denied_keys.add(catalog.WSH_KEY.lower())

        engine = HardenEngine(fake_system, harden_journal)
        engine.scan()

        assert engine.get_action("disable_wsh").current_state == ERROR_STATE

    def test_scan_is_audited(self, engine, audit):
        assert audit.events()[-1].action == "Hardening scan"


class TestSelection:
    @pytest.mark.parametrize(
        "profile,expected",
        [
            pytest.param(PROFILE_STANDARD, 10, id="standard"),
            pytest.param(PROFILE_STRICT, 13, id="strict"),
            pytest.param(PROFILE_CUSTOM, 0, id="custom"),
        ],
    )
    def test_profiles(self, engine, profile, expected):
        assert engine.select_profile(profile) == expected

    def test_strict_includes_strict_only_controls(self, engine):
        engine.select_profile(PROFILE_STRICT)
        assert engine.get_action("disable_rdp").is_selected

    def test_standard_leaves_strict_controls(self, engine):
        engine.select_profile(PROFILE_STANDARD)
        assert not engine.get_action("disable_rdp").is_selected

    def test_unknown_profile(self, engine):
        with pytest.raises(ValueError):
            engine.select_profile("Paranoid")

    def test_already_hardened_never_selected(self, engine):
        assert engine.select(["defender_realtime", "disable_wsh"]) == 1


class TestApply:
    def test_apply_journals_previous_state(self, engine, harden_journal, fake_system, audit):
        action = engine.get_action("disable_wsh")

        outcome = engine.apply(action)

        assert outcome.success
        assert outcome.message == "Changed from Enabled to Disabled"
        assert action.is_applied and action.current_state == "Disabled"
        assert fake_system.read_value(catalog.WSH_KEY, "Enabled") == 0
        [entry] = harden_journal.entries()
        assert entry.previous_state == "Enabled"
        assert entry.rollback_data == "Enabled"
        assert audit.events()[-1].action == "Applied: Disable Windows Script Host"

    def test_failure_not_journaled(self, engine, harden_journal, fake_system, audit):
        fake_system.denied_keys.add(catalog.RDP_TCP_KEY.lower())
        action = engine.get_action("rdp_nla")

        outcome = engine.apply(action)

        assert not outcome.success
        assert "Access denied" in action.error_message
        assert not action.is_applied
        assert len(harden_journal) == 0
        assert audit.events()[-1].severity == "HIGH"

    def test_command_failure(self, engine, fake_system):
        fake_system.on_process(["powershell.exe"], ProcessResult(1, stderr="0x800106ba"))

        outcome = engine.apply(engine.get_action("defender_pua"))

        assert not outcome.success
        assert outcome.message == "0x800106ba"

    def test_apply_selected(self, engine):
        engine.select(["disable_wsh", "disable_autorun"])

        summary = engine.apply_selected()

        assert (summary.succeeded, summary.failed) == (2, 0)
        assert engine.get_stats().applied == 2


class TestRollback:
    def test_rollback_last_restores(self, engine, harden_journal, fake_system):
        engine.apply(engine.get_action("disable_autorun"))

        outcome = engine.rollback_last()

        assert outcome.success
        assert fake_system.read_value(catalog.EXPLORER_POLICY_KEY, "NoDriveTypeAutoRun") is None
        assert harden_journal.entries()[0].is_rolled_back
        assert engine.get_action("disable_autorun").current_state == "Enabled"

    def test_one_way_control_left_hardened(self, engine, harden_journal):
        engine.apply(engine.get_action("defender_pua"))

        outcome = engine.rollback_last()

        assert outcome.success
        assert "left hardened" in outcome.message
        assert harden_journal.entries()[0].is_rolled_back

    def test_failed_rollback_keeps_entry(self, engine, harden_journal, fake_system):
        engine.apply(engine.get_action("defender_controlled_folders"))
        fake_system.on_process(["powershell.exe"], ProcessResult(1, stderr="blocked by policy"))

        outcome = engine.rollback_last()

        assert not outcome.success
        assert not harden_journal.entries()[0].is_rolled_back

    def test_rollback_all_newest_first(self, engine, harden_journal, audit):
        engine.apply(engine.get_action("disable_wsh"))
        engine.apply(engine.get_action("rdp_nla"))

        summary = engine.rollback_all()

        rolled = [e.action for e in audit.events() if e.action.startswith("Rolled back")]
        assert summary.succeeded == 2
        assert rolled == ["Rolled back: Require NLA for RDP", "Rolled back: Disable Windows Script Host"]
        assert harden_journal.undoable() == []

    def test_unexpected_rollback_error_does_not_stop_batch(self, engine, harden_journal, fake_system, monkeypatch):
        engine.apply(engine.get_action("disable_wsh"))
        engine.apply(engine.get_action("defender_controlled_folders"))

        def unparseable(args, timeout=None):
            raise ValueError("unexpected Set-MpPreference output")

        monkeypatch.setattr(fake_system, "run_process", unparseable)
        summary = engine.rollback_all()

        assert (summary.succeeded, summary.failed) == (1, 1)
        [pending] = harden_journal.undoable()
        assert pending.action_id == "defender_controlled_folders"

    def test_nothing_to_roll_back(self, engine):
        outcome = engine.rollback_last()
        assert not outcome.success
        assert outcome.message == "nothing to roll back"
