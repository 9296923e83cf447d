"""Settings and persistence of the node configuration record."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from .errors import InvalidConfigError
from .models import NodeConfig

logger = logging.getLogger(__name__)

KUBO_VERSION = "0.35.0"


def _default_config_dir() -> str:
    return os.environ.get("IPFS_SWARM_HOME", str(Path.home() / ".ipfs-swarm"))


def _default_ipfs_path() -> str:
    # Kubo itself reads IPFS_PATH, so honour it the same way
    return os.environ.get("IPFS_PATH", str(Path.home() / ".ipfs"))


@dataclass
class Settings:
    config_dir: str = field(default_factory=_default_config_dir)
    ipfs_path: str = field(default_factory=_default_ipfs_path)
    ipfs_bin: str = "ipfs"
    tailscale_bin: str = "tailscale"
    kubo_version: str = KUBO_VERSION
    kubo_install_path: str = "/usr/local/bin/ipfs"
    poll_interval: float = 1.0
    start_timeout: float = 20.0
    stop_settle: float = 1.0
    identity_settle: float = 2.0
    command_timeout: float = 60.0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            ipfs_bin=os.environ.get("IPFS_SWARM_IPFS_BIN", "ipfs"),
            tailscale_bin=os.environ.get("IPFS_SWARM_TAILSCALE_BIN", "tailscale"),
        )

    @property
    def config_path(self) -> str:
        return os.path.join(self.config_dir, "config.json")

    @property
    def swarm_key_path(self) -> str:
        return os.path.join(self.config_dir, "swarm.key")

    @property
    def repo_swarm_key_path(self) -> str:
        return os.path.join(self.ipfs_path, "swarm.key")

    @property
    def repo_config_path(self) -> str:
        return os.path.join(self.ipfs_path, "config")

    def ensure_dirs(self):
        Path(self.config_dir).mkdir(parents=True, exist_ok=True)


class ConfigStore:
    """Where the NodeConfig record lives. Single process, no locking."""

    def exists(self) -> bool:
        raise NotImplementedError

    def load(self) -> NodeConfig:
        """Return the stored record, creating and saving the default one if absent."""
        raise NotImplementedError

    def save(self, config: NodeConfig):
        raise NotImplementedError

    def delete(self):
        raise NotImplementedError


class JsonConfigStore(ConfigStore):
    """NodeConfig persisted as pretty-printed JSON inside the config directory."""

    def __init__(self, path: str):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> NodeConfig:
        if not self.exists():
            config = NodeConfig()
            self.save(config)
            logger.info(f"Created default configuration at {self.path}")
            return config
        try:
            return NodeConfig.model_validate_json(self.path.read_text())
        except ValidationError as e:
            raise InvalidConfigError(f"Corrupt configuration file {self.path}: {e}") from e

    def save(self, config: NodeConfig):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(config.model_dump_json(indent=2))
        logger.debug(f"Saved configuration to {self.path}")

    def delete(self):
        self.path.unlink(missing_ok=True)
