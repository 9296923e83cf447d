"""Translate a NodeConfig into the `ipfs config` / `ipfs bootstrap` calls for a private swarm."""

import json
import logging
from dataclasses import dataclass

from .kubo import Kubo
from .models import NodeConfig, Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfigCommand:
    args: tuple[str, ...]

    def __str__(self) -> str:
        return "ipfs " + " ".join(self.args)


def _compact(value) -> str:
    return json.dumps(value, separators=(",", ":"))


def configuration_commands(config: NodeConfig) -> list[ConfigCommand]:
    """Ordered commands that put a Kubo repo into private-swarm shape.

    Pure: the same config always yields the same list. Public bootstrap peers
    are always removed; a regular node gets exactly one bootstrap entry.
    """
    port = config.base_port
    announce = []
    if config.uses_overlay and config.overlay_address:
        announce = [f"/ip4/{config.overlay_address}/tcp/{port}"]

    commands = [
        ("config", "--bool", "Discovery.MDNS.Enabled", "false"),
        ("config", "Routing.Type", "dht"),
        ("config", "--json", "AutoTLS", _compact({"Enabled": False})),
        ("config", "--json", "Swarm.ConnMgr", _compact({"LowWater": 10, "HighWater": 100})),
        ("config", "--json", "Addresses.Swarm",
         _compact([f"/ip4/0.0.0.0/tcp/{port}", f"/ip6/::/tcp/{port}"])),
        ("config", "Addresses.API", f"/ip4/127.0.0.1/tcp/{config.api_port}"),
        ("config", "Addresses.Gateway", f"/ip4/127.0.0.1/tcp/{config.gateway_port}"),
        ("config", "--json", "Addresses.Announce", _compact(announce)),
        ("bootstrap", "rm", "--all"),
    ]
    if config.role == Role.REGULAR and config.bootstrap_multiaddr:
        commands.append(("bootstrap", "add", config.bootstrap_multiaddr))
    return [ConfigCommand(args) for args in commands]


def apply_configuration(kubo: Kubo, config: NodeConfig) -> list[ConfigCommand]:
    """Run every command in order, stopping at the first failure (ToolError)."""
    commands = configuration_commands(config)
    for command in commands:
        logger.info(f"Running: {command}")
        kubo.run_config_command(command.args)
    logger.info("IPFS configured for private swarm")
    return commands
