"""Error taxonomy for swarm setup and lifecycle commands."""

from typing import Optional, Sequence


class SwarmError(Exception):
    """Base class for every error this tool raises on purpose."""


class InvalidConfigError(SwarmError):
    """Caller-supplied configuration is missing or malformed. Nothing was changed."""


class ReinitBlockedError(InvalidConfigError):
    """Re-running init would silently change the role or network of a live node."""


class ToolError(SwarmError):
    """An external command failed."""

    def __init__(self, message: str, args: Sequence[str] = (), output: str = ""):
        super().__init__(message)
        self.command = list(args)
        self.output = output

    def __str__(self) -> str:
        msg = super().__str__()
        if self.output:
            return f"{msg}: {self.output}"
        return msg


class OverlayNotConnectedError(SwarmError):
    """The Tailscale client is not up, so there is no routable address."""


class DaemonTimeoutError(SwarmError):
    """The daemon was launched but never answered on its control channel."""


class CleanupError(SwarmError):
    """Removing node data failed partway."""


class StepFailed(SwarmError):
    """A plan step failed. Steps that already ran are not rolled back."""

    def __init__(self, step: str, cause: Exception, completed: Optional[Sequence[str]] = None):
        super().__init__(f"{step} failed: {cause}")
        self.step = step
        self.cause = cause
        self.completed = list(completed or [])
