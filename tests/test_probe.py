"""Tests for the daemon probe and its bounded wait."""

from ipfsswarm.kubo import Kubo
from ipfsswarm.probe import DaemonProbe


def make_probe(invoker, settings, clock):
    return DaemonProbe(Kubo(invoker, settings), sleep=clock.sleep, clock=clock)


class TestDaemonProbe:
    def test_running(self, invoker, settings, kubo_sim, clock):
        kubo_sim.running = True
        assert make_probe(invoker, settings, clock).is_running()

    def test_not_running(self, invoker, settings, kubo_sim, clock):
        assert not make_probe(invoker, settings, clock).is_running()

    def test_missing_binary_is_not_running(self, invoker, settings, clock):
        invoker.on("ipfs", returncode=127, stderr="ipfs: command not found")
        assert not make_probe(invoker, settings, clock).is_running()

    def test_wait_returns_once_reachable(self, invoker, settings, kubo_sim, clock):
        probe = make_probe(invoker, settings, clock)
        polls = []

        def peers(argv):
            polls.append(argv)
            if len(polls) == 3:
                kubo_sim.running = True
            return kubo_sim._peers(argv)

        invoker.on("ipfs", "swarm", "peers", handler=peers)
        assert probe.wait_until_running(timeout=20, interval=1)
        assert len(polls) == 3
        assert clock.sleeps == [1, 1]

    def test_wait_gives_up_after_timeout(self, invoker, settings, kubo_sim, clock):
        probe = make_probe(invoker, settings, clock)
        assert not probe.wait_until_running(timeout=20, interval=1)
        assert clock.now == 20
        assert set(clock.sleeps) == {1}
        assert len(invoker.commands("ipfs", "swarm", "peers")) == 21

    def test_each_poll_is_bounded_by_the_deadline(self, invoker, settings, kubo_sim, clock):
        probe = make_probe(invoker, settings, clock)
        probe.wait_until_running(timeout=20, interval=1)
        limits = [t for argv, t in zip(invoker.calls, invoker.timeouts) if argv[1:3] == ["swarm", "peers"]]
        assert limits[0] == 20
        assert limits[1] == 19
        assert max(limits) <= 20
        assert limits[-1] == 1

    def test_hung_poll_counts_as_not_running(self, invoker, settings, clock):
        invoker.on("ipfs", "swarm", "peers", returncode=124, stderr="ipfs timed out after 20s")
        probe = make_probe(invoker, settings, clock)
        assert not probe.wait_until_running(timeout=20, interval=1)
