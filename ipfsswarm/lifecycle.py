"""Node lifecycle: plan and run the idempotent steps behind init/start/stop/clean.

Every step can be re-run safely. When a step fails the command stops there,
nothing already applied is rolled back, and running the same command again is
the way to recover.
"""

import logging
import os
import shutil
import tempfile
import time
from dataclasses import dataclass
from typing import Callable, Optional

from . import network
from .config import ConfigStore, Settings
from .configurator import apply_configuration
from .errors import (
    CleanupError,
    DaemonTimeoutError,
    InvalidConfigError,
    OverlayNotConnectedError,
    ReinitBlockedError,
    StepFailed,
    SwarmError,
    ToolError,
)
from .kubo import Kubo
from .models import (
    InfoReport,
    InitReport,
    NodeConfig,
    NodeState,
    OverlayStatus,
    Role,
    SmokeTestReport,
    StartReport,
    StatusReport,
    StopOutcome,
    now_iso,
)
from .probe import DaemonProbe
from .process import ProcessInvoker
from .prompts import Prompter, ScriptedPrompter
from .swarmkey import SwarmKeyManager, check_readable
from .tailscale import MANUAL_UP_HINT, Tailscale
from .tools import ToolInstaller

logger = logging.getLogger(__name__)

CLEAN_PROMPT = "This will delete ALL IPFS data and swarm configuration. Continue?"
AUTH_PROMPT = "Have you completed Tailscale authentication?"


@dataclass
class Step:
    name: str
    action: Callable[[], None]
    fatal: bool = True


class Orchestrator:
    """Drives one local node from its persisted config and live probes."""

    def __init__(
        self,
        settings: Settings,
        store: ConfigStore,
        invoker: ProcessInvoker,
        prompter: Optional[Prompter] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        external_ip: Callable[[], Optional[str]] = network.external_ip,
    ):
        self.settings = settings
        self.store = store
        self.invoker = invoker
        self.prompter = prompter or ScriptedPrompter(assume_yes=False)
        self._sleep = sleep
        self._external_ip = external_ip

        self.kubo = Kubo(invoker, settings)
        self.tailscale = Tailscale(invoker, settings)
        self.keys = SwarmKeyManager(settings.swarm_key_path, settings.repo_swarm_key_path)
        self.probe = DaemonProbe(self.kubo, sleep=sleep, clock=clock)
        self.tools = ToolInstaller(invoker)

    # --- Status ---

    def status(self) -> StatusReport:
        if not self.store.exists():
            return StatusReport(NodeState.UNINITIALIZED)
        config = self.store.load()
        if not self.kubo.is_initialized():
            return StatusReport(NodeState.UNINITIALIZED, config=config)

        overlay = self.tailscale.status() if config.uses_overlay else None
        peers = self.kubo.swarm_peers()

        if overlay is not None and not overlay.connected:
            state = NodeState.DEGRADED
        elif peers is not None:
            state = NodeState.RUNNING
        else:
            state = NodeState.INITIALIZED

        report = StatusReport(state, config=config, peers=peers or [], overlay=overlay)
        if peers is not None:
            try:
                ident = self.kubo.identify()
                report.node_id = ident.get("ID")
                report.addresses = ident.get("Addresses") or []
            except ToolError as e:
                logger.info(f"Could not read node identity: {e}")
        return report

    # --- Init ---

    def validate(self, desired: NodeConfig, force: bool = False):
        """Reject bad input before anything is touched."""
        if desired.role == Role.REGULAR:
            if not desired.swarm_key_path:
                raise InvalidConfigError("Swarm key file is required for regular nodes")
            check_readable(desired.swarm_key_path)
            if not desired.bootstrap_multiaddr:
                raise InvalidConfigError("Bootstrap multiaddr is required for regular nodes")
            if not network.is_peer_multiaddr(desired.bootstrap_multiaddr):
                raise InvalidConfigError(
                    "Bootstrap multiaddr must look like /ip4/<addr>/tcp/<port>/p2p/<peer-id>: "
                    f"{desired.bootstrap_multiaddr}"
                )

        if not self.store.exists():
            return
        current = self.store.load()
        changes = [
            f"{name}: {getattr(current, name).value} -> {getattr(desired, name).value}"
            for name in ("role", "network_mode")
            if getattr(current, name) != getattr(desired, name)
        ]
        if not changes:
            return
        if current.node_id and not force:
            raise ReinitBlockedError(
                f"Node {current.node_id} has already joined a swarm; refusing to change "
                f"{', '.join(changes)} without --force"
            )
        logger.warning(f"Re-initializing with changed settings ({', '.join(changes)})")

    def _merge(self, desired: NodeConfig) -> NodeConfig:
        """Desired settings on top of what start() learned about this node."""
        config = desired.model_copy()
        if not self.store.exists():
            return config
        current = self.store.load()
        config.node_id = desired.node_id or current.node_id
        config.last_started_at = desired.last_started_at or current.last_started_at
        if config.uses_overlay:
            config.overlay_address = desired.overlay_address or current.overlay_address
        else:
            config.overlay_address = None
        return config

    def plan_init(self, config: NodeConfig) -> list[Step]:
        def save():
            self.store.save(config)

        def ensure_tools():
            self.tools.ensure_tools()
            if not self.kubo.is_installed():
                self.kubo.install()
            else:
                logger.info("Kubo is already installed")
            if config.uses_overlay and not self.tailscale.is_installed():
                self.tailscale.install()

        def setup_overlay():
            config.overlay_address = self.connect_overlay()
            save()

        def generate_key():
            if config.swarm_key_path and config.swarm_key_path != self.settings.swarm_key_path:
                logger.info(f"Bootstrap nodes use their own key; ignoring {config.swarm_key_path}")
            path = self.keys.generate()
            config.swarm_key_path = str(path)
            self.keys.install(config.swarm_key_path)
            save()

        def install_key():
            self.keys.install(config.swarm_key_path)
            save()

        def test_bootstrap():
            host = network.ip4_host(config.bootstrap_multiaddr)
            if host:
                self.tailscale.ping(host)

        steps = [Step("Installing required tools", ensure_tools)]
        if config.uses_overlay:
            steps.append(Step("Setting up Tailscale", setup_overlay))
        steps.append(Step("Stopping existing daemon", self.stop, fatal=False))
        steps.append(Step("Initializing IPFS", self.kubo.init_repo))
        if config.role == Role.BOOTSTRAP:
            steps.append(Step("Generating swarm key", generate_key))
        else:
            steps.append(Step("Installing swarm key", install_key))
            if config.uses_overlay:
                steps.append(Step("Testing connection to bootstrap", test_bootstrap, fatal=False))
        steps.append(Step("Configuring IPFS", lambda: apply_configuration(self.kubo, config)))
        steps.append(Step("Saving configuration", save))
        return steps

    def init(self, desired: NodeConfig, force: bool = False) -> InitReport:
        self.validate(desired, force)
        config = self._merge(desired)
        completed = self._run_steps(self.plan_init(config))
        logger.info("Node initialization complete")
        return InitReport(config=config, completed=completed)

    def _run_steps(self, steps: list[Step]) -> list[str]:
        completed = []
        for index, step in enumerate(steps, 1):
            logger.info(f"[{index}/{len(steps)}] {step.name}")
            try:
                step.action()
            except (SwarmError, OSError) as e:
                if not step.fatal:
                    logger.info(f"{step.name}: {e} (continuing)")
                    continue
                logger.error(f"{step.name} failed: {e}")
                raise StepFailed(step.name, e, completed) from e
            completed.append(step.name)
        return completed

    def connect_overlay(self) -> str:
        """Make sure Tailscale is up and return this node's overlay IP."""
        status = self.tailscale.status()
        if not status.running:
            logger.info("Starting Tailscale...")
            if not self.tailscale.up():
                logger.warning(f"Failed to start Tailscale automatically. {MANUAL_UP_HINT}")
                if not self.prompter.confirm(AUTH_PROMPT, default=False):
                    raise OverlayNotConnectedError("Tailscale setup incomplete")
            status = self.tailscale.status()

        ip = status.ip or (self.tailscale.ip() if status.running else None)
        if not status.running or not ip:
            raise OverlayNotConnectedError("Tailscale is not properly configured")
        logger.info(f"Tailscale ready: {ip} ({status.hostname})")
        return ip

    # --- Daemon ---

    def start(self) -> StartReport:
        if not self.kubo.is_initialized():
            raise InvalidConfigError(f"No IPFS repo at {self.settings.ipfs_path}; run init first")
        config = self.store.load()
        if config.uses_overlay:
            overlay = self.tailscale.require_connected()
            config.overlay_address = overlay.ip

        if self.probe.is_running():
            logger.info("IPFS daemon is already running")
            return StartReport(config, already_running=True, node_id=config.node_id,
                               shareable=self.shareable_multiaddrs(config))

        logger.info(f"Starting {config.role.value} node ({config.network_mode.value} network)")
        self.stop()
        self.kubo.start_daemon()

        timeout = self.settings.start_timeout
        if not self.probe.wait_until_running(timeout, self.settings.poll_interval):
            raise DaemonTimeoutError(
                f"Daemon did not respond within {timeout:g}s; check that ports "
                f"{config.base_port}/{config.api_port}/{config.gateway_port} are free "
                f"and look at the daemon output (`{self.settings.ipfs_bin} daemon`)"
            )
        config.last_started_at = now_iso()
        logger.info("IPFS daemon started successfully")

        self._sleep(self.settings.identity_settle)
        try:
            config.node_id = self.kubo.peer_id()
        except ToolError as e:
            logger.info(f"Node started but its peer ID is unavailable ({e}); "
                        f"use 'info' for connection details")
        self.store.save(config)
        return StartReport(config, node_id=config.node_id,
                           shareable=self.shareable_multiaddrs(config))

    def stop(self) -> StopOutcome:
        """Graceful shutdown first, then kill by name. No daemon is not an error."""
        if self.kubo.shutdown():
            outcome = StopOutcome.GRACEFUL
        elif self.invoker.run("pkill", ["-f", "ipfs daemon"]).ok:
            outcome = StopOutcome.FORCED
        else:
            outcome = StopOutcome.NOT_RUNNING
        self._sleep(self.settings.stop_settle)
        logger.info(f"Daemon stop: {outcome.value}")
        return outcome

    def shareable_multiaddrs(self, config: NodeConfig) -> dict[str, str]:
        """Addresses other nodes can bootstrap from. Empty until the node has an ID."""
        if not config.node_id:
            return {}
        port = config.base_port
        addrs = {"local": network.build_multiaddr("127.0.0.1", port, config.node_id)}
        if config.role != Role.BOOTSTRAP:
            return addrs
        if config.uses_overlay and config.overlay_address:
            addrs["tailscale"] = network.build_multiaddr(config.overlay_address, port, config.node_id)
        elif not config.uses_overlay:
            ip = self._external_ip()
            if ip:
                addrs["external"] = network.build_multiaddr(ip, port, config.node_id)
        return addrs

    # --- Inspection ---

    def info(self) -> InfoReport:
        config = self.store.load()
        overlay = None
        if config.uses_overlay:
            overlay = self.tailscale.status()
            if overlay.ip:
                config.overlay_address = overlay.ip
        if config.role == Role.BOOTSTRAP:
            multiaddrs = self.shareable_multiaddrs(config)
        elif config.bootstrap_multiaddr:
            multiaddrs = {"bootstrap": config.bootstrap_multiaddr}
        else:
            multiaddrs = {}
        return InfoReport(config=config, overlay=overlay, multiaddrs=multiaddrs)

    def smoke_test(self) -> SmokeTestReport:
        """Add a small file and read it back through the daemon."""
        if not self.probe.is_running():
            return SmokeTestReport(False, detail="IPFS daemon is not running")

        content = f"Hello IPFS Private Swarm! {now_iso()}"
        with tempfile.NamedTemporaryFile("w", prefix="ipfs-test-", suffix=".txt", delete=False) as f:
            f.write(content)
            path = f.name
        try:
            cid = self.kubo.add_file(path)
            data = self.kubo.cat(cid)
        except ToolError as e:
            return SmokeTestReport(False, detail=str(e))
        finally:
            os.unlink(path)

        if data.strip() != content:
            return SmokeTestReport(False, cid=cid, detail="Content mismatch")
        return SmokeTestReport(True, cid=cid)

    def overlay(self) -> OverlayStatus:
        """Inspect Tailscale, offering to install it and bring it up."""
        if not self.tailscale.is_installed():
            if not self.prompter.confirm("Would you like to install Tailscale?", default=True):
                return OverlayStatus()
            self.tailscale.install()
        status = self.tailscale.status()
        if not status.running and self.prompter.confirm("Would you like to start Tailscale now?", default=True):
            self.connect_overlay()
            status = self.tailscale.status()
        return status

    # --- Destructive ---

    def clean(self) -> bool:
        """Delete the Kubo repo and our config dir. Returns False if the caller declined."""
        if not self.prompter.confirm(CLEAN_PROMPT, default=False):
            logger.info("Cleanup cancelled")
            return False

        self.stop()
        for path in (self.settings.ipfs_path, self.settings.config_dir):
            if not os.path.exists(path):
                continue
            try:
                shutil.rmtree(path)
            except OSError as e:
                raise CleanupError(f"Could not remove {path}: {e}") from e
            logger.info(f"Removed {path}")
        self.store.delete()
        return True
