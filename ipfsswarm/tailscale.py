"""Tailscale mesh overlay client, driven through its CLI."""

import json
import logging
from typing import Optional

from .config import Settings
from .errors import OverlayNotConnectedError, ToolError
from .models import OverlayStatus
from .process import ProcessInvoker
from .tools import detect_platform

logger = logging.getLogger(__name__)

INSTALL_SCRIPT = "curl -fsSL https://tailscale.com/install.sh | sh"
LOGIN_URL = "https://login.tailscale.com/"
MANUAL_UP_HINT = f"Please run: sudo tailscale up, then visit {LOGIN_URL} to authenticate"


class Tailscale:
    def __init__(self, invoker: ProcessInvoker, settings: Settings):
        self.invoker = invoker
        self.bin = settings.tailscale_bin

    def is_installed(self) -> bool:
        return self.invoker.which(self.bin) is not None

    def status(self) -> OverlayStatus:
        """Machine-readable status. Never raises; a missing client is just 'not running'."""
        installed = self.is_installed()
        result = self.invoker.run(self.bin, ["status", "--json"])
        if not result.ok:
            return OverlayStatus(installed=installed)
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError:
            logger.warning("Could not parse `tailscale status --json` output")
            return OverlayStatus(installed=installed)

        state = data.get("BackendState")
        ips = data.get("TailscaleIPs") or []
        return OverlayStatus(
            installed=True,
            running=state == "Running",
            logged_in=state not in (None, "NeedsLogin"),
            ip=ips[0] if ips else None,
            hostname=(data.get("Self") or {}).get("HostName"),
        )

    def ip(self) -> Optional[str]:
        result = self.invoker.run(self.bin, ["ip", "-4"])
        return (result.stdout.strip() or None) if result.ok else None

    def up(self) -> bool:
        """Bring the client up. May block on interactive login."""
        return self.invoker.run("sudo", [self.bin, "up"], live=True).ok

    def install(self):
        system, _ = detect_platform()
        if system == "linux":
            result = self.invoker.run("sh", ["-c", INSTALL_SCRIPT], live=True)
        elif system == "darwin":
            result = self.invoker.run("brew", ["install", "tailscale"], live=True)
        else:
            raise ToolError(f"Unsupported platform for automatic Tailscale installation: {system}")
        if not result.ok:
            raise ToolError("Tailscale installation failed", result.args, result.output)
        logger.info("Tailscale installed")

    def require_connected(self) -> OverlayStatus:
        status = self.status()
        if not status.connected:
            raise OverlayNotConnectedError(f"Tailscale is not connected. {MANUAL_UP_HINT}")
        return status

    def ping(self, target: str) -> bool:
        """Plain ICMP reachability of a peer over the overlay."""
        ok = self.invoker.run("ping", ["-c", "3", "-W", "3", target]).ok
        if ok:
            logger.info(f"Connection to {target} successful")
        else:
            logger.info(f"Cannot reach {target}")
        return ok
