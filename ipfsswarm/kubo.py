"""Wrappers around the Kubo (`ipfs`) command line."""

import json
import logging
import os
import tarfile
import tempfile
from pathlib import Path
from typing import Optional, Sequence

import httpx

from .config import Settings
from .errors import ToolError
from .models import CommandResult
from .process import ProcessInvoker
from .tools import detect_platform

logger = logging.getLogger(__name__)

RELEASE_URL = "https://github.com/ipfs/kubo/releases/download/v{version}/{tarball}"


class Kubo:
    """One Kubo installation: the binary plus the repo at settings.ipfs_path."""

    def __init__(self, invoker: ProcessInvoker, settings: Settings):
        self.invoker = invoker
        self.settings = settings

    def _run(self, *args: str, live: bool = False, timeout: Optional[float] = None) -> CommandResult:
        return self.invoker.run(self.settings.ipfs_bin, args, live=live, timeout=timeout)

    def _check(self, *args: str, live: bool = False) -> CommandResult:
        result = self._run(*args, live=live)
        if not result.ok:
            raise ToolError(f"ipfs {' '.join(args)} exited with {result.returncode}",
                            result.args, result.output)
        return result

    # --- Binary ---

    def version(self) -> Optional[str]:
        result = self._run("version")
        return result.stdout.strip() if result.ok else None

    def is_installed(self) -> bool:
        return self.version() is not None

    def install(self):
        """Download the pinned Kubo release and put the binary on PATH."""
        system, arch = detect_platform()
        version = self.settings.kubo_version
        tarball = f"kubo_v{version}_{system}-{arch}.tar.gz"
        url = RELEASE_URL.format(version=version, tarball=tarball)
        logger.info(f"Downloading Kubo: {tarball}")

        with tempfile.TemporaryDirectory(prefix="kubo-") as tmp:
            archive = Path(tmp) / tarball
            try:
                with httpx.stream("GET", url, follow_redirects=True, timeout=120.0) as resp:
                    resp.raise_for_status()
                    with open(archive, "wb") as f:
                        for chunk in resp.iter_bytes():
                            f.write(chunk)
            except httpx.HTTPError as e:
                raise ToolError(f"Kubo download failed from {url}", output=str(e)) from e

            binary = Path(tmp) / "ipfs"
            try:
                with tarfile.open(archive, "r:gz") as tar:
                    try:
                        member = tar.extractfile("kubo/ipfs")
                    except KeyError:
                        member = None
                    if member is None:
                        raise ToolError(f"{tarball} does not contain kubo/ipfs")
                    binary.write_bytes(member.read())
            except (tarfile.TarError, EOFError) as e:
                raise ToolError(f"{tarball} is not a valid Kubo archive", output=str(e)) from e

            dest = self.settings.kubo_install_path
            result = self.invoker.run("sudo", ["install", "-m", "0755", str(binary), dest], live=True)
            if not result.ok:
                raise ToolError(f"Could not install Kubo to {dest}", result.args, result.output)

        if not self.is_installed():
            raise ToolError(f"Kubo installed to {dest} but `{self.settings.ipfs_bin} version` fails")
        logger.info(f"Kubo {version} installed")

    # --- Repo ---

    def is_initialized(self) -> bool:
        return os.path.exists(self.settings.repo_config_path)

    def init_repo(self) -> bool:
        """Initialise the repo once. Returns False when it already existed."""
        if self.is_initialized():
            logger.info("IPFS repo already initialized")
            return False
        self._check("init", "--profile=server", live=True)
        return True

    def run_config_command(self, args: Sequence[str]):
        self._check(*args)

    # --- Daemon ---

    def start_daemon(self) -> int:
        return self.invoker.spawn(self.settings.ipfs_bin, ["daemon"])

    def shutdown(self) -> bool:
        return self._run("shutdown").ok

    def swarm_peers(self, timeout: Optional[float] = None) -> Optional[list[str]]:
        """Connected peer multiaddrs, or None when the control channel is unreachable."""
        result = self._run("swarm", "peers", timeout=timeout)
        if not result.ok:
            return None
        return [line for line in result.stdout.strip().splitlines() if line]

    def identify(self) -> dict:
        """Parsed `ipfs id` output."""
        result = self._check("id")
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ToolError("Could not parse `ipfs id` output", result.args, result.stdout) from e

    def peer_id(self) -> str:
        try:
            peer_id = self.identify().get("ID")
            if peer_id:
                return peer_id
        except ToolError as e:
            logger.debug(f"ipfs id failed, trying format template: {e}")
        result = self._run("id", "-f", "<id>")
        if result.ok and result.stdout.strip():
            return result.stdout.strip()
        raise ToolError("Failed to get peer ID", result.args, result.output)

    # --- Content ---

    def add_file(self, path: str) -> str:
        return self._check("add", "-q", path).stdout.strip()

    def cat(self, cid: str) -> str:
        return self._check("cat", cid).stdout
