"""
Tests for the persistence collector against an in-memory system.
"""

import os
import threading

import pytest

from viperkit.case.focus import FocusRegistry
from viperkit.core.results import CollectorStatus
from viperkit.persistence import classifier
from viperkit.persistence.baseline import PersistBaseline
from viperkit.persistence.collector import PersistenceCollector
from viperkit.persistence.patterns import WINLOGON_KEY
from viperkit.persistence.types import LocationType, RiskLevel
from viperkit.utils.threading import WorkerPool

HKCU_RUN = r"HKCU\Software\Microsoft\Windows\CurrentVersion\Run"
HKLM_RUN = r"HKLM\Software\Microsoft\Windows\CurrentVersion\Run"
IFEO_ROOT = r"HKLM\Software\Microsoft\Windows NT\CurrentVersion\Image File Execution Options"


@pytest.fixture
def collector_factory(fake_system, virtual_fs, tmp_path):
    def build(**kwargs):
        kwargs.setdefault("users_root", str(tmp_path / "Users"))
        kwargs.setdefault("program_data", str(tmp_path / "ProgramData"))
        return PersistenceCollector(fake_system, fs=virtual_fs, **kwargs)

    return build


def by_name(items, name):
    return next(item for item in items if item.name == name)


class TestRunKeys:
    def test_user_appdata_value_flagged(self, fake_system, collector_factory):
        fake_system.add_key(HKCU_RUN, Updater=r"C:\Users\bob\AppData\Roaming\x.exe")

        report = collector_factory().collect()

        item = by_name(report.items, "Updater")
        assert item.location_type == LocationType.REGISTRY
        assert item.risk == "CHECK – unusual location"
        assert item.source == "HKCU Run"
        assert item.value_name == "Updater"
        assert item.registry_path == HKCU_RUN
        assert item.mitre_technique == "T1547.001"

    def test_program_files_value_ok(self, fake_system, collector_factory):
        fake_system.add_key(HKLM_RUN, Vendor=r'"C:\Program Files\Vendor\tray.exe" /min')

        item = by_name(collector_factory().collect().items, "Vendor")

        assert item.verdict.level == RiskLevel.OK
        assert item.path == r"C:\Program Files\Vendor\tray.exe"

    def test_environment_is_expanded(self, fake_system, collector_factory):
        fake_system.add_key(HKLM_RUN, Sec=r"%SystemRoot%\System32\SecurityHealthSystray.exe")

        item = by_name(collector_factory().collect().items, "Sec")

        assert item.path == r"C:\Windows\System32\SecurityHealthSystray.exe"
        assert item.verdict.level == RiskLevel.OK

    def test_non_string_value_is_unparseable(self, fake_system, collector_factory):
        fake_system.add_key(HKCU_RUN, Weird=1)

        item = by_name(collector_factory().collect().items, "Weird")

        assert item.verdict.reason == classifier.REASON_UNPARSEABLE
        assert "(non-string value)" in item.reason

    def test_access_denied_marks_collector_partial(self, fake_system, collector_factory):
        fake_system.add_key(HKLM_RUN, Vendor=r"C:\Program Files\v.exe")
        fake_system.add_key(HKCU_RUN, Updater=r"C:\Users\bob\AppData\x.exe")
        fake_system.denied_keys.add(HKLM_RUN.lower())

        report = collector_factory().collect()

        run = report.collector("Run keys")
        assert run.status == CollectorStatus.PARTIAL
        assert any("Access denied" in e for e in run.errors)
        assert [i.name for i in report.items if i.location_type == LocationType.REGISTRY] == ["Updater"]


class TestServices:
    def test_autostart_service_missing_binary(self, fake_system, collector_factory):
        fake_system.add_service("GoneSvc", r"C:\Program Files\Gone\svc.exe", start=2)

        item = by_name(collector_factory().collect().items, "GoneSvc")

        assert item.location_type == LocationType.SERVICE
        assert item.risk == "CHECK – binary missing on disk"
        assert item.value_name == "GoneSvc"

    def test_manual_services_are_skipped(self, fake_system, collector_factory):
        fake_system.add_service("ManualSvc", r"C:\Windows\System32\m.exe", start=3)

        report = collector_factory().collect()

        assert all(i.name != "ManualSvc" for i in report.items)

    def test_driver_detected_from_type(self, fake_system, virtual_fs, collector_factory):
        virtual_fs.add(r"C:\Windows\System32\drivers\acpi.sys")
        fake_system.add_service("ACPI", r"System32\drivers\acpi.sys", start=0, service_type=1)

        item = by_name(collector_factory().collect().items, "ACPI")

        assert item.location_type == LocationType.DRIVER
        assert item.path == r"C:\Windows\System32\drivers\acpi.sys"
        assert item.verdict.level == RiskLevel.OK


class TestScheduledTasks:
    def test_task_in_user_dir(self, fake_system, virtual_fs, collector_factory):
        action = r"C:\Users\bob\AppData\Local\upd.exe"
        virtual_fs.add(action)
        fake_system.add_task(r"\OneUpdater", action)

        item = by_name(collector_factory().collect().items, "OneUpdater")

        assert item.location_type == LocationType.SCHEDULED_TASK
        assert item.registry_path == r"\OneUpdater"
        assert item.verdict.reason == classifier.REASON_UNUSUAL_LOCATION

    def test_disabled_task_noted_in_reason(self, fake_system, collector_factory):
        fake_system.add_task(r"\Old", r"C:\Program Files\old.exe", enabled=False)

        item = by_name(collector_factory().collect().items, "Old")

        assert item.reason.endswith("(task disabled)")


class TestWinlogonAndIfeo:
    def test_replaced_shell_is_check(self, fake_system, collector_factory):
        fake_system.add_key(WINLOGON_KEY, Shell=r"C:\Users\bob\evil.exe", Userinit=r"C:\Windows\system32\userinit.exe,")

        items = collector_factory().collect().items

        assert by_name(items, "Shell").is_check
        assert not by_name(items, "Userinit").is_check

    def test_ifeo_debugger_always_check(self, fake_system, collector_factory):
        fake_system.add_key(IFEO_ROOT)
        fake_system.add_key(IFEO_ROOT + r"\sethc.exe", Debugger=r"C:\Windows\System32\cmd.exe")
        fake_system.add_key(IFEO_ROOT + r"\notepad.exe", GlobalFlag=512)

        items = [i for i in collector_factory().collect().items if i.location_type == LocationType.IFEO]

        assert [i.name for i in items] == ["sethc.exe"]
        assert items[0].is_check
        assert items[0].value_name == "Debugger"


class TestStartupFolders:
    def test_user_startup_entry(self, tmp_path, collector_factory, user_name):
        startup = tmp_path / "Users" / user_name / "AppData" / "Roaming" / "Microsoft" / "Windows" / "Start Menu" / "Programs" / "Startup"
        startup.mkdir(parents=True)
        (startup / "loader.bat").write_text("@echo off")
        (startup / "desktop.ini").write_text("")

        items = [i for i in collector_factory().collect().items if i.location_type == LocationType.STARTUP_FOLDER]

        assert [i.name for i in items] == ["loader.bat"]
        assert items[0].source == f"Startup ({user_name})"
        assert items[0].path == os.path.join(str(startup), "loader.bat")
        assert items[0].is_check


class TestCollectFlags:
    def test_focus_hit(self, fake_system, collector_factory):
        fake_system.add_key(HKCU_RUN, Updater=r"C:\Users\bob\AppData\Roaming\x.exe", Other=r"C:\Program Files\o.exe")
        focus = FocusRegistry()
        focus.set_focus_target(r"\AppData\Roaming\x.exe")

        items = collector_factory(focus=focus).collect().items

        assert by_name(items, "Updater").is_focus_hit
        assert not by_name(items, "Other").is_focus_hit

    def test_new_since_baseline(self, fake_system, collector_factory):
        fake_system.add_key(HKCU_RUN, Known=r"C:\Program Files\k.exe")
        baseline = PersistBaseline.capture(collector_factory().collect().items)
        fake_system.add_key(HKCU_RUN, Added=r"C:\Users\bob\AppData\a.exe")

        items = collector_factory().collect(baseline).items

        assert by_name(items, "Added").is_new_since_baseline
        assert not by_name(items, "Known").is_new_since_baseline

    def test_hashing_fills_sha256(self, fake_system, virtual_fs, collector_factory):
        virtual_fs.add(r"C:\Program Files\k.exe")
        fake_system.add_key(HKCU_RUN, Known=r"C:\Program Files\k.exe")

        item = by_name(collector_factory(hash_binaries=True).collect().items, "Known")

        assert item.sha256 == "0" * 64
        assert item.file_modified is not None

    def test_hashing_runs_on_shared_pool(self, fake_system, virtual_fs, collector_factory, monkeypatch):
        virtual_fs.add(r"C:\Program Files\k.exe")
        virtual_fs.add(r"C:\Program Files\m.exe")
        fake_system.add_key(HKCU_RUN, Known=r"C:\Program Files\k.exe", Other=r"C:\Program Files\m.exe")
        pool = WorkerPool(max_workers=2, name="case-pool")
        threads = set()
        hash_one = PersistenceCollector._hash_one

        def tracking_hash(collector, item):
            threads.add(threading.current_thread().name)
            return hash_one(collector, item)

        monkeypatch.setattr(PersistenceCollector, "_hash_one", tracking_hash)
        try:
            items = collector_factory(hash_binaries=True, pool=pool).collect().items
        finally:
            pool.shutdown()

        assert by_name(items, "Other").sha256 == "0" * 64
        assert threads and all(name.startswith("case-pool") for name in threads)

    def test_failing_collector_does_not_stop_others(self, fake_system, collector_factory, monkeypatch):
        fake_system.add_key(HKCU_RUN, Updater=r"C:\Users\bob\AppData\x.exe")

        def boom():
            raise RuntimeError("service enumeration failed")

        monkeypatch.setattr(fake_system, "list_services", boom)
        report = collector_factory().collect()

        assert report.collector("Services").status == CollectorStatus.FAILED
        assert report.status == CollectorStatus.PARTIAL
        assert by_name(report.items, "Updater")
