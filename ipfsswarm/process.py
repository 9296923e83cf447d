"""Thin wrapper around subprocess for every external binary we drive."""

import logging
import shutil
import subprocess
from typing import Optional, Sequence

from .errors import ToolError
from .models import CommandResult

logger = logging.getLogger(__name__)


class ProcessInvoker:
    """Runs external programs. Tests substitute a fake with the same methods."""

    def __init__(self, timeout: Optional[float] = 60.0):
        self.timeout = timeout

    def run(self, command: str, args: Sequence[str] = (), live: bool = False,
            timeout: Optional[float] = None) -> CommandResult:
        """Run a command to completion.

        Args:
            command: Program name or path
            args: Arguments passed verbatim, never through a shell
            live: Inherit stdout/stderr instead of capturing them (installers, prompts)
            timeout: Seconds before the command is killed; defaults to the invoker's
        """
        argv = [command, *args]
        logger.debug(f"Running: {' '.join(argv)}")
        # Live commands may block on interactive auth, so they get no timeout
        limit = None if live else (timeout if timeout is not None else self.timeout)
        try:
            proc = subprocess.run(
                argv,
                capture_output=not live,
                text=True,
                timeout=limit,
            )
        except FileNotFoundError:
            return CommandResult(argv, 127, stderr=f"{command}: command not found")
        except subprocess.TimeoutExpired:
            return CommandResult(argv, 124, stderr=f"{command} timed out after {limit}s")

        result = CommandResult(argv, proc.returncode, proc.stdout or "", proc.stderr or "")
        if not result.ok:
            logger.debug(f"Command failed ({result.returncode}): {' '.join(argv)}")
        return result

    def spawn(self, command: str, args: Sequence[str] = ()) -> int:
        """Launch a detached background process and return its pid."""
        argv = [command, *args]
        logger.debug(f"Spawning: {' '.join(argv)}")
        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise ToolError(f"Could not launch {command}", argv, str(e)) from e
        return proc.pid

    def which(self, command: str) -> Optional[str]:
        return shutil.which(command)
