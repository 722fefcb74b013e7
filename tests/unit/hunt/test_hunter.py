"""
Tests for local indicator lookups: files, registry keys and hashes.
"""

import hashlib

import pytest

from viperkit.hunt.hunter import IocHunter, detect_ioc_type, hash_algorithm
from viperkit.hunt.types import IocType

EVIL_KEY = r"HKCU\Software\Evil"


@pytest.fixture
def hunter(fake_system):
    return IocHunter(fake_system)


class TestDetection:
    @pytest.mark.parametrize(
        "ioc,expected",
        [
            pytest.param(r"C:\Windows\Temp\a.exe", IocType.FILE_PATH, id="drive-path"),
            pytest.param(r"\\fileserver\share\drop.ps1", IocType.FILE_PATH, id="unc"),
            pytest.param("/var/tmp/implant", IocType.FILE_PATH, id="posix"),
            pytest.param(r"HKLM\Software\Vendor", IocType.REGISTRY, id="short-hive"),
            pytest.param("hkey_current_user/Software/Evil", IocType.REGISTRY, id="long-hive-slashes"),
            pytest.param("10.0.0.5", IocType.IP_ADDRESS, id="ip"),
            pytest.param("d41d8cd98f00b204e9800998ecf8427e", IocType.HASH, id="md5"),
            pytest.param("D41D8CD9 8F00B204 E9800998 ECF8427E", IocType.HASH, id="spaced-hash"),
            pytest.param("evil.example.com", IocType.DOMAIN_OR_URL, id="domain"),
            pytest.param("10.0.0", IocType.DOMAIN_OR_URL, id="short-dotted"),
        ],
    )
    def test_detect_ioc_type(self, ioc, expected):
        assert detect_ioc_type(ioc) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            pytest.param("a" * 32, "md5", id="md5"),
            pytest.param("B" * 40, "sha1", id="sha1"),
            pytest.param("0" * 64, "sha256", id="sha256"),
            pytest.param("a" * 48, None, id="odd-length"),
            pytest.param("z" * 32, None, id="not-hex"),
        ],
    )
    def test_hash_algorithm(self, value, expected):
        assert hash_algorithm(value) == expected

    def test_network_types_not_local(self):
        assert not IocType.IP_ADDRESS.is_local
        assert IocType.HASH.is_local


class TestFileHunt:
    def test_file_found(self, hunter, payload_file):
        result = hunter.hunt(str(payload_file))

        digest = hashlib.sha256(payload_file.read_bytes()).hexdigest()
        assert result.ioc_type == IocType.FILE_PATH
        assert result.found
        assert result.severity == "WARN"
        assert result.summary == "File found: 256 bytes"
        assert f"SHA256: {digest}" in result.details

    def test_folder_found(self, hunter, payload_file):
        (payload_file.parent / "notes.txt").write_text("hello")

        result = hunter.hunt_path(str(payload_file.parent))

        assert result.found
        assert result.summary == "Folder found: 2 file(s), 261 bytes"

    def test_missing(self, hunter, tmp_path):
        result = hunter.hunt(str(tmp_path / "gone.exe"))

        assert not result.found
        assert result.severity == "INFO"
        assert result.summary == "File or folder not found"
        assert result.error == ""


class TestRegistryHunt:
    def test_key_found(self, hunter, fake_system):
        fake_system.add_key(EVIL_KEY, Payload=r"C:\Users\Public\x.exe", Tags=["a", "b"])
        fake_system.add_key(EVIL_KEY + r"\Child")

        result = hunter.hunt(r"HKEY_CURRENT_USER\Software\Evil")

        assert result.ioc_type == IocType.REGISTRY
        assert result.found
        assert result.summary == "Registry key found: 1 subkey(s), 2 value(s)"
        assert result.details[0] == f"Path: {EVIL_KEY}"
        assert r"Payload: C:\Users\Public\x.exe" in result.details
        assert "Tags: a, b" in result.details

    def test_key_without_values(self, hunter, fake_system):
        fake_system.add_key(EVIL_KEY)

        assert hunter.hunt_registry(EVIL_KEY).details == [f"Path: {EVIL_KEY}", "(no values)"]

    def test_key_missing(self, hunter):
        result = hunter.hunt_registry(EVIL_KEY)

        assert not result.found
        assert result.summary == "Registry key not found"

    @pytest.mark.parametrize(
        "key,message",
        [
            pytest.param("HKXX\\Software", "Unknown registry hive HKXX", id="bad-hive"),
            pytest.param("HKLM", "Could not parse registry path", id="no-subkey"),
        ],
    )
    def test_unusable_path(self, hunter, key, message):
        result = hunter.hunt_registry(key)

        assert not result.found
        assert result.error.startswith(message)

    def test_access_denied(self, hunter, fake_system):
        fake_system.add_key(EVIL_KEY, Payload="x")
        fake_system.denied_keys.add(EVIL_KEY.lower())

        result = hunter.hunt_registry(EVIL_KEY)

        assert not result.found
        assert "Access denied" in result.error


class TestHashHunt:
    def test_match_any_case(self, hunter, payload_file, tmp_path):
        (payload_file.parent / "benign.txt").write_text("benign")
        md5 = hashlib.md5(payload_file.read_bytes()).hexdigest().upper()

        result = hunter.hunt(md5, roots=[str(tmp_path)])

        assert result.ioc_type == IocType.HASH
        assert result.found
        assert result.severity == "HIGH"
        assert result.details == [str(payload_file)]
        assert result.summary == "MD5 matched 1 of 2 file(s)"

    def test_sha1_no_match(self, hunter, payload_file, tmp_path):
        result = hunter.hunt_hash("0" * 40, [str(tmp_path)])

        assert not result.found
        assert result.severity == "INFO"
        assert result.summary == "SHA1 matched 0 of 1 file(s)"

    def test_file_limit(self, fake_system, payload_file, tmp_path):
        (payload_file.parent / "second.bin").write_bytes(b"x")
        limited = IocHunter(fake_system, max_files=1)

        result = limited.hunt_hash("0" * 64, [str(tmp_path)])

        assert result.summary.endswith("(file limit reached)")

    def test_needs_roots(self, hunter):
        assert hunter.hunt_hash("0" * 64, []).error == "No search folders given for the hash hunt"

    def test_unrecognised_length(self, hunter, tmp_path):
        result = hunter.hunt("ab" * 24, IocType.HASH, [str(tmp_path)])

        assert result.error.startswith("Unrecognised hash length 48")


class TestNetworkIndicators:
    @pytest.mark.parametrize("ioc", ["203.0.113.7", "bad.example.net"])
    def test_reported_not_checked(self, hunter, fake_system, ioc):
        result = hunter.hunt(ioc)

        assert not result.found
        assert "network lookup" in result.summary
        assert fake_system.process_calls == []
