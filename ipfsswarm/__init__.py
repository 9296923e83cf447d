"""ipfs-swarm: installer and lifecycle manager for private IPFS (Kubo) swarms."""

__version__ = "0.1.0"

from ipfsswarm.lifecycle import Orchestrator

__all__ = ["Orchestrator", "__version__"]
