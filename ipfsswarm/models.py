"""Node configuration record, command results and report models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from .errors import InvalidConfigError

DEFAULT_BASE_PORT = 4001
API_PORT_OFFSET = 1000
GATEWAY_PORT_OFFSET = 4080


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Role(str, Enum):
    BOOTSTRAP = "bootstrap"  # originates the swarm key
    REGULAR = "regular"  # joins with a copy of it


class NetworkMode(str, Enum):
    DIRECT = "direct"
    MESH = "mesh"  # Tailscale overlay


class NodeState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    RUNNING = "running"
    DEGRADED = "degraded"


class StopOutcome(str, Enum):
    GRACEFUL = "graceful"
    FORCED = "forced"
    NOT_RUNNING = "not_running"


class NodeConfig(BaseModel):
    role: Role = Role.BOOTSTRAP
    network_mode: NetworkMode = NetworkMode.DIRECT
    base_port: int = Field(default=DEFAULT_BASE_PORT, ge=1025, le=65534)
    swarm_key_path: Optional[str] = None
    bootstrap_multiaddr: Optional[str] = None
    node_id: Optional[str] = None
    overlay_address: Optional[str] = None
    last_started_at: Optional[str] = None

    @property
    def api_port(self) -> int:
        return self.base_port + API_PORT_OFFSET

    @property
    def gateway_port(self) -> int:
        return self.base_port + GATEWAY_PORT_OFFSET

    @property
    def uses_overlay(self) -> bool:
        return self.network_mode == NetworkMode.MESH


def build_config(**fields) -> NodeConfig:
    """Construct a NodeConfig, turning pydantic errors into InvalidConfigError."""
    try:
        return NodeConfig(**fields)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise InvalidConfigError(f"Invalid node configuration ({problems})") from e


@dataclass
class CommandResult:
    """Outcome of one external command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return (self.stderr or self.stdout).strip()


@dataclass
class OverlayStatus:
    installed: bool = False
    running: bool = False
    logged_in: bool = False
    ip: Optional[str] = None
    hostname: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self.running and bool(self.ip)


@dataclass
class InitReport:
    config: NodeConfig
    completed: list[str] = field(default_factory=list)


@dataclass
class StartReport:
    config: NodeConfig
    already_running: bool = False
    node_id: Optional[str] = None
    shareable: dict[str, str] = field(default_factory=dict)


@dataclass
class StatusReport:
    state: NodeState
    config: Optional[NodeConfig] = None
    peers: list[str] = field(default_factory=list)
    node_id: Optional[str] = None
    addresses: list[str] = field(default_factory=list)
    overlay: Optional[OverlayStatus] = None


@dataclass
class InfoReport:
    config: NodeConfig
    overlay: Optional[OverlayStatus] = None
    multiaddrs: dict[str, str] = field(default_factory=dict)


@dataclass
class SmokeTestReport:
    ok: bool
    cid: Optional[str] = None
    detail: str = ""
