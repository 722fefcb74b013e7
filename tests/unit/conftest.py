"""
Unit test fixtures for pure functions and isolated components.

This module provides minimal fixtures for fast unit tests
that don't require real Windows APIs or external tools.
"""

import pytest
from faker import Faker

fake = Faker()


@pytest.fixture
def user_name() -> str:
    """A plausible profile name without spaces."""
    return fake.user_name()


@pytest.fixture
def host_name() -> str:
    return fake.hostname(levels=0).upper()


@pytest.fixture
def payload_file(tmp_path):
    """A small file standing in for a suspicious binary."""
    path = tmp_path / "Users" / fake.user_name() / "Downloads" / f"{fake.word()}.exe"
    path.parent.mkdir(parents=True)
    path.write_bytes(fake.binary(length=256))
    return path


PS_HISTORY_SUBPATHS = {
    "5.1": ("AppData", "Roaming", "Microsoft", "Windows", "PowerShell", "PSReadLine"),
    "7": ("AppData", "Roaming", "Microsoft", "PowerShell", "PSReadLine"),
}


@pytest.fixture
def write_history(tmp_path):
    """Write a ConsoleHost_history.txt for a user below tmp_path/Users."""

    def write(user: str, lines, version: str = "5.1"):
        folder = tmp_path.joinpath("Users", user, *PS_HISTORY_SUBPATHS[version])
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / "ConsoleHost_history.txt"
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return write
