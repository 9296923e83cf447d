"""ipfs-swarm command line.

Usage:
    ipfs-swarm init                         # interactive wizard
    ipfs-swarm init --bootstrap --port 4001
    ipfs-swarm init --regular --swarm-key ./swarm.key \\
        --bootstrap-addr /ip4/10.0.0.1/tcp/4001/p2p/12D3KooW...
    ipfs-swarm start | stop | status | info | test | clean | tailscale
"""

import argparse
import logging
import os
import sys

from . import __version__
from .config import JsonConfigStore, Settings
from .errors import (
    CleanupError,
    DaemonTimeoutError,
    InvalidConfigError,
    OverlayNotConnectedError,
    StepFailed,
    SwarmError,
)
from .lifecycle import Orchestrator
from .models import DEFAULT_BASE_PORT, NetworkMode, NodeState, OverlayStatus, Role, build_config
from .network import is_peer_multiaddr
from .process import ProcessInvoker
from .prompts import ConsolePrompter, Prompter, ScriptedPrompter

logger = logging.getLogger("ipfsswarm")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID = 2
EXIT_TIMEOUT = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ipfs-swarm", description="Private IPFS swarm manager")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    init = sub.add_parser("init", help="Initialize IPFS swarm node")
    role = init.add_mutually_exclusive_group()
    role.add_argument("--bootstrap", action="store_true", help="Set up as bootstrap node")
    role.add_argument("--regular", action="store_true", help="Set up as regular node")
    mode = init.add_mutually_exclusive_group()
    mode.add_argument("--tailscale", action="store_true", help="Use Tailscale networking")
    mode.add_argument("--direct", action="store_true", help="Use normal IP networking (default)")
    init.add_argument("--swarm-key", metavar="PATH", help="Path to existing swarm key file")
    init.add_argument("--bootstrap-addr", metavar="MULTIADDR", help="Bootstrap node multiaddr")
    init.add_argument("--port", type=int, default=DEFAULT_BASE_PORT, help="Base port number")
    init.add_argument("--force", action="store_true",
                      help="Allow changing role or network of a node that has already started")

    sub.add_parser("start", help="Start IPFS daemon")
    sub.add_parser("stop", help="Stop IPFS daemon")
    sub.add_parser("status", help="Show swarm status")
    sub.add_parser("info", help="Show configuration and connection info")
    sub.add_parser("test", help="Test IPFS functionality")
    clean = sub.add_parser("clean", help="Clean all IPFS data and configuration")
    clean.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    sub.add_parser("tailscale", help="Manage Tailscale connection")
    return parser


def _validate_port(answer: str):
    if answer.isdigit() and 1024 < int(answer) < 65535:
        return None
    return "Port must be a number between 1025 and 65534"


def _validate_key_path(answer: str):
    return None if answer and os.path.isfile(answer) else "File does not exist"


def _validate_multiaddr(answer: str):
    if is_peer_multiaddr(answer):
        return None
    return "Invalid multiaddr format (needs /ip4/<addr>/tcp/<port>/p2p/<peer-id>)"


def desired_config(args, prompter: Prompter):
    """NodeConfig from flags, or from the wizard when no role flag was given."""
    if args.bootstrap or args.regular:
        return build_config(
            role=Role.BOOTSTRAP if args.bootstrap else Role.REGULAR,
            network_mode=NetworkMode.MESH if args.tailscale else NetworkMode.DIRECT,
            base_port=args.port,
            swarm_key_path=args.swarm_key,
            bootstrap_multiaddr=args.bootstrap_addr,
        )

    role = prompter.choose("What type of node is this?", [
        ("Bootstrap Node (First/Primary node)", Role.BOOTSTRAP.value),
        ("Regular Node (Joins existing swarm)", Role.REGULAR.value),
    ])
    mode = prompter.choose("How do you want to connect nodes?", [
        ("Normal IP (Public/LAN)", NetworkMode.DIRECT.value),
        ("Tailscale (Secure mesh network)", NetworkMode.MESH.value),
    ])
    port = prompter.ask("Base port number:", default=str(args.port), validate=_validate_port)
    fields = dict(role=role, network_mode=mode, base_port=int(port))
    if role == Role.REGULAR.value:
        fields["swarm_key_path"] = prompter.ask("Path to swarm key file:", validate=_validate_key_path)
        fields["bootstrap_multiaddr"] = prompter.ask("Bootstrap node multiaddr:",
                                                     validate=_validate_multiaddr)
    return build_config(**fields)


def _print_multiaddrs(multiaddrs: dict):
    for label, addr in multiaddrs.items():
        print(f"  {label.capitalize()}: {addr}")


def _print_overlay(status: OverlayStatus):
    print("Tailscale Status:")
    print(f"  Installed: {'yes' if status.installed else 'no'}")
    print(f"  Running:   {'yes' if status.running else 'no'}")
    print(f"  Logged In: {'yes' if status.logged_in else 'no'}")
    if status.ip:
        print(f"  IP Address: {status.ip}")
    if status.hostname:
        print(f"  Hostname: {status.hostname}")


def cmd_init(orch: Orchestrator, args, prompter: Prompter) -> int:
    print("\n  IPFS Swarm CLI – Private Swarm Manager")
    print(f"  Kubo v{orch.settings.kubo_version} – Private Network Setup\n")
    try:
        desired = desired_config(args, prompter)
        report = orch.init(desired, force=args.force)
    except InvalidConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID
    except StepFailed as e:
        print(f"Error: {e}", file=sys.stderr)
        if e.completed:
            print(f"Completed before failure: {', '.join(e.completed)}", file=sys.stderr)
        print("Fix the problem and re-run init; finished steps are safe to repeat.", file=sys.stderr)
        return EXIT_FAILURE

    cfg = report.config
    print("Node initialization complete!")
    print(f"\n{cfg.role.value.capitalize()} Node Setup Complete:")
    print(f"  Network Type: {cfg.network_mode.value}")
    if cfg.uses_overlay:
        print(f"  Tailscale IP: {cfg.overlay_address}")
    if cfg.role == Role.BOOTSTRAP:
        print(f"  Swarm key generated: {cfg.swarm_key_path}")
        print("  Share this key with other nodes")
        print("  Run 'ipfs-swarm start' to begin")
    else:
        print(f"  Connected to bootstrap: {cfg.bootstrap_multiaddr}")
        print("  Run 'ipfs-swarm start' to join swarm")
    return EXIT_OK


def cmd_start(orch: Orchestrator, args, prompter: Prompter) -> int:
    try:
        report = orch.start()
    except OverlayNotConnectedError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except DaemonTimeoutError as e:
        print(f"Daemon failed to start: {e}", file=sys.stderr)
        return EXIT_TIMEOUT
    except InvalidConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID
    except SwarmError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    cfg = report.config
    if report.already_running:
        print("IPFS daemon is already running")
        return EXIT_OK

    print("IPFS daemon started successfully")
    if not report.node_id:
        print("Node started successfully. Use 'info' command for connection details.")
        return EXIT_OK
    print("\nNode Information:")
    print(f"  Node ID: {report.node_id}")
    print(f"  Type: {cfg.role.value}")
    print(f"  Network: {cfg.network_mode.value}")
    print(f"  Port: {cfg.base_port}")
    if cfg.role == Role.BOOTSTRAP:
        print("\nBootstrap Node Ready:")
        _print_multiaddrs(report.shareable)
        share = report.shareable.get("tailscale") or report.shareable.get("external")
        if share:
            print("\nShare this information with other nodes:")
            print(f"  Swarm Key: {cfg.swarm_key_path}")
            print(f"  Bootstrap Address: {share}")
    else:
        print("\nRegular Node Connected")
        print(f"  Bootstrap: {cfg.bootstrap_multiaddr}")
        if cfg.uses_overlay:
            print(f"  Tailscale IP: {cfg.overlay_address}")
    return EXIT_OK


def cmd_stop(orch: Orchestrator, args, prompter: Prompter) -> int:
    outcome = orch.stop()
    print(f"IPFS daemon stopped ({outcome.value})")
    return EXIT_OK


def cmd_status(orch: Orchestrator, args, prompter: Prompter) -> int:
    report = orch.status()
    print(f"State: {report.state.value}")
    if report.state == NodeState.UNINITIALIZED:
        print("Run 'ipfs-swarm init' first")
        return EXIT_OK
    cfg = report.config
    print(f"Node type: {cfg.role.value}")
    print(f"Network type: {cfg.network_mode.value}")
    if report.overlay is not None:
        mark = "connected" if report.overlay.connected else "not connected"
        print(f"Tailscale: {mark} {report.overlay.ip or ''}")
    if report.state == NodeState.INITIALIZED:
        print("IPFS daemon is not running")
        return EXIT_OK

    print(f"\nConnected peers: {len(report.peers)}")
    for i, peer in enumerate(report.peers, 1):
        print(f"  {i}. {peer}")
    if report.node_id:
        print("\nNode Information:")
        print(f"  ID: {report.node_id}")
        if report.addresses:
            print("  Addresses:")
            for addr in report.addresses:
                print(f"    {addr}")
    return EXIT_OK


def cmd_info(orch: Orchestrator, args, prompter: Prompter) -> int:
    report = orch.info()
    cfg = report.config
    print("Node Configuration:")
    print(f"  Type: {cfg.role.value}")
    print(f"  Network: {cfg.network_mode.value}")
    print(f"  Port: {cfg.base_port} (API {cfg.api_port}, Gateway {cfg.gateway_port})")
    print(f"  Swarm Key: {cfg.swarm_key_path or 'Not set'}")
    if cfg.last_started_at:
        print(f"  Last Started: {cfg.last_started_at}")
    if report.overlay is not None:
        print(f"  Tailscale IP: {report.overlay.ip or 'Not connected'}")
        print(f"  Tailscale Status: {'Running' if report.overlay.running else 'Stopped'}")

    if cfg.role == Role.BOOTSTRAP:
        print("\nBootstrap Node Info:")
        if not cfg.node_id:
            print("  Node not started yet")
            return EXIT_OK
        print(f"  Node ID: {cfg.node_id}")
        _print_multiaddrs(report.multiaddrs)
        if not cfg.uses_overlay and "external" not in report.multiaddrs:
            print("  External IP: Unable to detect")
    else:
        print("\nRegular Node Info:")
        print(f"  Bootstrap: {cfg.bootstrap_multiaddr or 'Not set'}")
    return EXIT_OK


def cmd_test(orch: Orchestrator, args, prompter: Prompter) -> int:
    report = orch.smoke_test()
    if report.ok:
        print(f"Test successful! CID: {report.cid}")
    else:
        print(f"Test failed: {report.detail}")
    return EXIT_OK


def cmd_clean(orch: Orchestrator, args, prompter: Prompter) -> int:
    if args.yes:
        orch.prompter = ScriptedPrompter(assume_yes=True)
    try:
        removed = orch.clean()
    except CleanupError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    print("Cleanup complete" if removed else "Cleanup cancelled")
    return EXIT_OK


def cmd_tailscale(orch: Orchestrator, args, prompter: Prompter) -> int:
    try:
        status = orch.overlay()
    except SwarmError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    _print_overlay(status)
    if not status.running:
        print("\nTo start Tailscale:")
        print("  sudo tailscale up")
        print("  Then visit: https://login.tailscale.com/")
    return EXIT_OK


COMMANDS = {
    "init": cmd_init,
    "start": cmd_start,
    "stop": cmd_stop,
    "status": cmd_status,
    "info": cmd_info,
    "test": cmd_test,
    "clean": cmd_clean,
    "tailscale": cmd_tailscale,
}


def main(argv=None, orchestrator: Orchestrator = None, prompter: Prompter = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if not args.command:
        parser.print_help()
        return EXIT_OK

    prompter = prompter or ConsolePrompter()
    if orchestrator is None:
        settings = Settings.from_env()
        orchestrator = Orchestrator(
            settings,
            JsonConfigStore(settings.config_path),
            ProcessInvoker(timeout=settings.command_timeout),
            prompter=prompter,
        )

    try:
        return COMMANDS[args.command](orchestrator, args, prompter)
    except InvalidConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID
    except SwarmError as e:
        logger.error(f"{args.command} failed: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
