"""Tests for platform detection and host tool installation."""

import pytest

from ipfsswarm import tools
from ipfsswarm.errors import ToolError
from ipfsswarm.tools import ToolInstaller, detect_platform


class TestDetectPlatform:
    @pytest.mark.parametrize("machine,arch", [
        ("x86_64", "amd64"), ("aarch64", "arm64"), ("arm64", "arm64"), ("armv7l", "arm64"), ("mips", "amd64"),
    ])
    def test_arch(self, monkeypatch, machine, arch):
        monkeypatch.setattr(tools.platform, "machine", lambda: machine)
        monkeypatch.setattr(tools.sys, "platform", "linux")
        assert detect_platform() == ("linux", arch)

    def test_darwin(self, monkeypatch):
        monkeypatch.setattr(tools.platform, "machine", lambda: "arm64")
        monkeypatch.setattr(tools.sys, "platform", "darwin")
        assert detect_platform() == ("darwin", "arm64")


class TestToolInstaller:
    def test_nothing_missing(self, invoker):
        installer = ToolInstaller(invoker, system="linux")
        assert installer.ensure_tools() == []
        assert invoker.calls == []

    def test_missing_reports_package_names(self, invoker):
        invoker.available -= {"netstat", "wget"}
        assert ToolInstaller(invoker, system="linux").missing() == ["wget", "net-tools"]

    def test_linux_uses_apt(self, invoker):
        invoker.available -= {"netstat"}
        assert ToolInstaller(invoker, system="linux").ensure_tools() == ["net-tools"]
        assert invoker.calls == [
            ["sudo", "apt-get", "update"],
            ["sudo", "apt-get", "install", "--no-upgrade", "-y", "net-tools"],
        ]

    def test_darwin_uses_brew(self, invoker):
        invoker.available -= {"wget", "openssl"}
        ToolInstaller(invoker, system="darwin").ensure_tools()
        assert invoker.calls == [["brew", "install", "wget"], ["brew", "install", "openssl"]]

    def test_install_failure(self, invoker):
        invoker.available -= {"curl"}
        invoker.on("sudo", "apt-get", "install", returncode=100, stderr="E: Unable to locate package")
        with pytest.raises(ToolError, match="Unable to locate"):
            ToolInstaller(invoker, system="linux").ensure_tools()

    def test_unsupported_platform(self, invoker):
        invoker.available -= {"curl"}
        with pytest.raises(ToolError, match="Unsupported"):
            ToolInstaller(invoker, system="win32").ensure_tools()
