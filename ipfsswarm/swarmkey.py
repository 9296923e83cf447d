"""Private network (PSK) swarm key creation and installation.

The key file is the three-line format Kubo expects:

    /key/swarm/psk/1.0.0/
    /base16/
    <64 hex chars>

Once written, a key is never regenerated. Every node in the swarm needs a
byte-identical copy.
"""

import logging
import os
from pathlib import Path

from nacl.utils import random

from .errors import InvalidConfigError

logger = logging.getLogger(__name__)

KEY_FORMAT = "/key/swarm/psk/1.0.0/"
KEY_ENCODING = "/base16/"
KEY_BYTES = 32


def render_key(secret: bytes) -> str:
    return f"{KEY_FORMAT}\n{KEY_ENCODING}\n{secret.hex()}"


def _write_private(path: Path, data: bytes):
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    # O_CREAT mode is ignored when the file already existed
    os.chmod(path, 0o600)


class SwarmKeyManager:
    """Owns the canonical key under the config dir and its copy inside the Kubo repo."""

    def __init__(self, key_path: str, repo_key_path: str):
        self.key_path = Path(key_path)
        self.repo_key_path = Path(repo_key_path)

    def exists(self) -> bool:
        return self.key_path.is_file()

    def generate(self) -> Path:
        """Create the key if there is none yet. Returns the canonical path either way."""
        if self.exists():
            logger.info(f"Swarm key already exists at {self.key_path}")
            return self.key_path
        self.key_path.parent.mkdir(parents=True, exist_ok=True)
        _write_private(self.key_path, render_key(random(KEY_BYTES)).encode())
        logger.info(f"Generated new swarm key at {self.key_path}")
        return self.key_path

    def install(self, source: str) -> Path:
        """Copy a key into the Kubo repo where the daemon looks for it."""
        src = Path(source)
        if not src.is_file():
            raise InvalidConfigError(f"Swarm key file not found: {source}")
        data = src.read_bytes()
        if src.resolve() == self.repo_key_path.resolve():
            return self.repo_key_path
        self.repo_key_path.parent.mkdir(parents=True, exist_ok=True)
        _write_private(self.repo_key_path, data)
        logger.info(f"Installed swarm key into {self.repo_key_path}")
        return self.repo_key_path


def check_readable(path: str):
    """Raise InvalidConfigError unless path is an existing, readable file."""
    p = Path(path)
    if not p.is_file():
        raise InvalidConfigError(f"Swarm key file not found: {path}")
    try:
        with open(p, "rb") as f:
            f.read(1)
    except OSError as e:
        raise InvalidConfigError(f"Swarm key file is not readable: {path} ({e})") from e
