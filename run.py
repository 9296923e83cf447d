#!/usr/bin/env python3
"""ipfs-swarm: private IPFS swarm manager.

Usage:
    python run.py init                     # interactive wizard
    python run.py init --bootstrap --port 4001
    python run.py init --regular --swarm-key ./swarm.key --bootstrap-addr /ip4/10.0.0.1/tcp/4001/p2p/<id>
    python run.py start
    python run.py status

Set IPFS_SWARM_HOME / IPFS_PATH to use directories other than ~/.ipfs-swarm and ~/.ipfs.
"""

import sys

from ipfsswarm.cli import main

if __name__ == "__main__":
    sys.exit(main())
