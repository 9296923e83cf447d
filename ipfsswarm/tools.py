"""Host platform detection and installation of missing system tools."""

import logging
import platform
import sys

from .errors import ToolError
from .process import ProcessInvoker

logger = logging.getLogger(__name__)

# binary to look for -> package that provides it
REQUIRED_TOOLS = {
    "wget": "wget",
    "curl": "curl",
    "netstat": "net-tools",
    "openssl": "openssl",
}

ARCH_MAP = {
    "arm64": "arm64",
    "aarch64": "arm64",
    "x86_64": "amd64",
    "amd64": "amd64",
    "armv7l": "arm64",
    "arm": "arm64",
}


def detect_platform() -> tuple[str, str]:
    """Return (system, arch) in Kubo release naming, e.g. ("linux", "arm64")."""
    system = "darwin" if sys.platform == "darwin" else sys.platform
    if system.startswith("linux"):
        system = "linux"
    arch = ARCH_MAP.get(platform.machine().lower(), "amd64")
    return system, arch


class ToolInstaller:
    def __init__(self, invoker: ProcessInvoker, system: str = None):
        self.invoker = invoker
        self.system = system or detect_platform()[0]

    def missing(self) -> list[str]:
        """Packages whose binary is not on PATH."""
        return [pkg for binary, pkg in REQUIRED_TOOLS.items() if not self.invoker.which(binary)]

    def install_packages(self, packages: list[str]):
        if self.system == "linux":
            commands = [
                ["apt-get", "update"],
                ["apt-get", "install", "--no-upgrade", "-y", *packages],
            ]
            for args in commands:
                self._live("sudo", args)
        elif self.system == "darwin":
            for pkg in packages:
                self._live("brew", ["install", pkg])
        else:
            raise ToolError(f"Unsupported platform for automatic installation: {self.system}")

    def ensure_tools(self) -> list[str]:
        """Install whatever is missing. Returns the packages that were installed."""
        missing = self.missing()
        if not missing:
            logger.info("All required tools are already installed")
            return []
        logger.info(f"Missing tools: {', '.join(missing)}")
        self.install_packages(missing)
        return missing

    def _live(self, command: str, args: list[str]):
        result = self.invoker.run(command, args, live=True)
        if not result.ok:
            raise ToolError(f"{command} {' '.join(args)} exited with {result.returncode}",
                            result.args, result.output)
