"""Is the daemon answering on its control channel?"""

import logging
import time
from typing import Callable, Optional

from .kubo import Kubo

logger = logging.getLogger(__name__)


class DaemonProbe:
    """Crashed and never-started daemons look the same from here."""

    def __init__(self, kubo: Kubo, sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.kubo = kubo
        self._sleep = sleep
        self._clock = clock

    def is_running(self, timeout: Optional[float] = None) -> bool:
        return self.kubo.swarm_peers(timeout=timeout) is not None

    def wait_until_running(self, timeout: float = 20.0, interval: float = 1.0) -> bool:
        """Poll every `interval` seconds until the daemon answers or `timeout` passes.

        A probe that hangs is cut off at the remaining deadline (never less than one interval).
        """
        deadline = self._clock() + timeout
        logger.info("Waiting for daemon to start...")
        while True:
            if self.is_running(timeout=max(deadline - self._clock(), interval)):
                return True
            if self._clock() >= deadline:
                return False
            self._sleep(interval)
