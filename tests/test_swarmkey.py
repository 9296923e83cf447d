"""Tests for swarm key generation and installation."""

import os
import stat

import pytest

from ipfsswarm.errors import InvalidConfigError
from ipfsswarm.swarmkey import KEY_ENCODING, KEY_FORMAT, SwarmKeyManager, check_readable, render_key


@pytest.fixture
def manager(tmp_path):
    return SwarmKeyManager(str(tmp_path / "cfg" / "swarm.key"), str(tmp_path / "repo" / "swarm.key"))


def mode(path):
    return stat.S_IMODE(os.stat(path).st_mode)


class TestRenderKey:
    def test_three_line_format(self):
        lines = render_key(bytes(range(32))).split("\n")
        assert lines[0] == KEY_FORMAT
        assert lines[1] == KEY_ENCODING
        assert lines[2] == bytes(range(32)).hex()
        assert len(lines[2]) == 64


class TestGenerate:
    def test_creates_private_key(self, manager):
        path = manager.generate()
        assert path == manager.key_path
        lines = path.read_text().split("\n")
        assert lines[:2] == [KEY_FORMAT, KEY_ENCODING]
        assert len(bytes.fromhex(lines[2])) == 32
        assert mode(path) == 0o600

    def test_second_call_keeps_bytes(self, manager):
        first = manager.generate().read_bytes()
        manager.generate()
        assert manager.key_path.read_bytes() == first

    def test_never_overwrites_existing_key(self, manager):
        manager.key_path.parent.mkdir(parents=True)
        manager.key_path.write_text("existing")
        assert manager.generate() == manager.key_path
        assert manager.key_path.read_text() == "existing"

    def test_keys_are_random(self, tmp_path):
        a = SwarmKeyManager(str(tmp_path / "a.key"), str(tmp_path / "ra.key")).generate()
        b = SwarmKeyManager(str(tmp_path / "b.key"), str(tmp_path / "rb.key")).generate()
        assert a.read_bytes() != b.read_bytes()


class TestInstall:
    def test_copies_into_repo(self, manager, key_file):
        dest = manager.install(str(key_file))
        assert dest.read_bytes() == key_file.read_bytes()
        assert mode(dest) == 0o600

    def test_missing_source(self, manager, tmp_path):
        with pytest.raises(InvalidConfigError, match="not found"):
            manager.install(str(tmp_path / "nope.key"))
        assert not manager.repo_key_path.exists()

    def test_reinstall_same_repo_key(self, manager, key_file):
        manager.install(str(key_file))
        manager.install(str(manager.repo_key_path))
        assert manager.repo_key_path.read_bytes() == key_file.read_bytes()


class TestCheckReadable:
    def test_ok(self, key_file):
        check_readable(str(key_file))

    def test_missing(self, tmp_path):
        with pytest.raises(InvalidConfigError):
            check_readable(str(tmp_path / "missing.key"))

    def test_directory_is_not_a_key(self, tmp_path):
        with pytest.raises(InvalidConfigError):
            check_readable(str(tmp_path))
