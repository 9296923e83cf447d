"""Shared fixtures: a fake process invoker with a simulated Kubo daemon."""

import json
import os
from pathlib import Path

import pytest

from ipfsswarm.config import ConfigStore, Settings
from ipfsswarm.lifecycle import Orchestrator
from ipfsswarm.models import CommandResult, NodeConfig
from ipfsswarm.prompts import ScriptedPrompter

PEER_ID = "12D3KooWTestPeerIdentity"


class FakeInvoker:
    """Records every command. Responses are matched by longest argv prefix."""

    def __init__(self):
        self.calls = []
        self.timeouts = []
        self.spawned = []
        self.available = {"wget", "curl", "netstat", "openssl", "ipfs", "tailscale"}
        self._responses = {}
        self.on_spawn = None

    def on(self, *prefix, returncode=0, stdout="", stderr="", handler=None):
        self._responses[tuple(prefix)] = handler or (
            lambda argv: CommandResult(argv, returncode, stdout, stderr)
        )

    def run(self, command, args=(), live=False, timeout=None):
        argv = [command, *args]
        self.calls.append(argv)
        self.timeouts.append(timeout)
        for n in range(len(argv), 0, -1):
            respond = self._responses.get(tuple(argv[:n]))
            if respond:
                return respond(argv)
        return CommandResult(argv, 0)

    def spawn(self, command, args=()):
        argv = [command, *args]
        self.spawned.append(argv)
        if self.on_spawn:
            self.on_spawn()
        return 4242

    def which(self, command):
        return f"/usr/bin/{command}" if command in self.available else None

    def commands(self, *prefix):
        return [c for c in self.calls if tuple(c[:len(prefix)]) == prefix]


class KuboSim:
    """Just enough `ipfs` behaviour for lifecycle tests."""

    def __init__(self, invoker: FakeInvoker, settings: Settings):
        self.invoker = invoker
        self.settings = settings
        self.running = False
        self.starts_on_spawn = True
        self.id_works = True
        self.peers = ["/ip4/10.0.0.2/tcp/4001/p2p/12D3KooWOtherPeer"]
        self.blobs = {}

        invoker.on("ipfs", "version", stdout="ipfs version 0.35.0\n")
        invoker.on("ipfs", "init", handler=self._init)
        invoker.on("ipfs", "swarm", "peers", handler=self._peers)
        invoker.on("ipfs", "shutdown", handler=self._shutdown)
        invoker.on("pkill", handler=self._pkill)
        invoker.on("ipfs", "id", handler=self._id)
        invoker.on("ipfs", "add", handler=self._add)
        invoker.on("ipfs", "cat", handler=self._cat)
        invoker.on_spawn = self._spawn

    def make_repo(self):
        Path(self.settings.ipfs_path).mkdir(parents=True, exist_ok=True)
        Path(self.settings.repo_config_path).write_text("{}")

    def _init(self, argv):
        self.make_repo()
        return CommandResult(argv, 0)

    def _peers(self, argv):
        if not self.running:
            return CommandResult(argv, 1, stderr="Error: this action must be run in online mode")
        return CommandResult(argv, 0, stdout="\n".join(self.peers) + "\n")

    def _shutdown(self, argv):
        if not self.running:
            return CommandResult(argv, 1, stderr="Error: cannot connect to the api")
        self.running = False
        return CommandResult(argv, 0)

    def _pkill(self, argv):
        was_running, self.running = self.running, False
        return CommandResult(argv, 0 if was_running else 1)

    def _id(self, argv):
        if not self.id_works:
            return CommandResult(argv, 1, stderr="Error: api not running")
        body = {"ID": PEER_ID, "Addresses": [f"/ip4/127.0.0.1/tcp/4001/p2p/{PEER_ID}"]}
        return CommandResult(argv, 0, stdout=json.dumps(body))

    def _add(self, argv):
        cid = f"QmTest{len(self.blobs)}"
        with open(argv[-1]) as f:
            self.blobs[cid] = f.read()
        return CommandResult(argv, 0, stdout=cid + "\n")

    def _cat(self, argv):
        return CommandResult(argv, 0, stdout=self.blobs.get(argv[-1], ""))

    def _spawn(self):
        if self.starts_on_spawn:
            self.running = True


class MemoryConfigStore(ConfigStore):
    def __init__(self, config: NodeConfig = None):
        self.config = config
        self.saves = 0

    def exists(self):
        return self.config is not None

    def load(self):
        if self.config is None:
            self.config = NodeConfig()
        return self.config.model_copy()

    def save(self, config):
        self.saves += 1
        self.config = config.model_copy()

    def delete(self):
        self.config = None


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def settings(tmp_path):
    return Settings(config_dir=str(tmp_path / "swarm"), ipfs_path=str(tmp_path / "ipfs"))


@pytest.fixture
def invoker():
    return FakeInvoker()


@pytest.fixture
def kubo_sim(invoker, settings):
    return KuboSim(invoker, settings)


@pytest.fixture
def store():
    return MemoryConfigStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def prompter():
    return ScriptedPrompter(assume_yes=False)


@pytest.fixture
def orchestrator(settings, store, invoker, kubo_sim, prompter, clock):
    return Orchestrator(
        settings,
        store,
        invoker,
        prompter=prompter,
        sleep=clock.sleep,
        clock=clock,
        external_ip=lambda: "203.0.113.7",
    )


@pytest.fixture
def key_file(tmp_path):
    path = tmp_path / "shared.key"
    path.write_text("/key/swarm/psk/1.0.0/\n/base16/\n" + "ab" * 32)
    os.chmod(path, 0o600)
    return path


def tailscale_json(state="Running", ip="100.64.0.5", hostname="pi5"):
    return json.dumps({
        "BackendState": state,
        "TailscaleIPs": [ip] if ip else [],
        "Self": {"HostName": hostname},
    })
