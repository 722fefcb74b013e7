"""
Tests for sweep severity rules.
"""

from datetime import datetime, timedelta

import pytest

from viperkit.core.types import Severity
from viperkit.sweep import rules
from viperkit.sweep.types import ContentClass, LocationClass

NOW = datetime(2026, 3, 2, 12, 0, 0)


class TestClassifyLocation:
    @pytest.mark.parametrize(
        "path,expected",
        [
            pytest.param(r"C:\Users\bob\Desktop\a.exe", LocationClass.HOT, id="desktop"),
            pytest.param(r"C:\Users\bob\Downloads\a.exe", LocationClass.HOT, id="downloads"),
            pytest.param(
                r"C:\Users\bob\AppData\Roaming\Microsoft\Windows\Start Menu\Programs\Startup\a.lnk",
                LocationClass.HOT,
                id="startup-under-appdata",
            ),
            pytest.param(r"C:\Users\bob\AppData\Local\a.dll", LocationClass.WARM, id="appdata"),
            pytest.param(r"C:\Windows\Temp\a.exe", LocationClass.WARM, id="temp"),
            pytest.param(r"C:\ProgramData\Vendor\a.exe", LocationClass.NEUTRAL, id="programdata"),
            pytest.param("/home/bob/Downloads/a.exe", LocationClass.HOT, id="forward-slashes"),
        ],
    )
    def test_location(self, path, expected):
        assert rules.classify_location(path) == expected


class TestScoreFile:
    @pytest.mark.parametrize(
        "location,content,age,expected",
        [
            pytest.param(LocationClass.HOT, ContentClass.EXECUTABLE, timedelta(days=3), Severity.HIGH, id="hot-exe"),
            pytest.param(LocationClass.HOT, ContentClass.SCRIPT, timedelta(days=3), Severity.HIGH, id="hot-script"),
            pytest.param(LocationClass.HOT, ContentClass.DLL, timedelta(hours=1), Severity.LOW, id="hot-dll"),
            pytest.param(LocationClass.WARM, ContentClass.EXECUTABLE, timedelta(hours=3), Severity.HIGH, id="warm-exe-recent"),
            pytest.param(LocationClass.WARM, ContentClass.EXECUTABLE, timedelta(hours=5), Severity.MEDIUM, id="warm-exe-older"),
            pytest.param(LocationClass.WARM, ContentClass.DLL, timedelta(hours=1), Severity.MEDIUM, id="warm-dll"),
            pytest.param(LocationClass.WARM, ContentClass.OTHER, timedelta(hours=1), Severity.LOW, id="warm-archive"),
            pytest.param(LocationClass.NEUTRAL, ContentClass.EXECUTABLE, timedelta(hours=1), Severity.LOW, id="neutral-exe"),
        ],
    )
    def test_rules_in_order(self, location, content, age, expected):
        assert rules.score_file(location, content, NOW - age, NOW) == expected

    @pytest.mark.parametrize("content", [c for c in ContentClass if c.is_runnable])
    def test_hot_runnable_never_below_medium(self, content):
        for modified in (None, NOW, NOW - timedelta(days=30)):
            assert rules.score_file(LocationClass.HOT, content, modified, NOW) >= Severity.MEDIUM


class TestDescribe:
    def test_reason_text(self):
        path = r"C:\Users\bob\Downloads\setup.exe"
        assert rules.describe(path, rules.classify_content(".exe")) == "from Downloads, executable"

    def test_archive_label(self):
        assert rules.describe(r"C:\ProgramData\x.zip", ContentClass.OTHER) == "archive/installer"
