"""Multiaddr helpers and public address discovery."""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

EXTERNAL_IP_URL = "https://api.ipify.org"
PEER_ID_PROTOCOLS = ("p2p", "ipfs")
ADDRESS_PROTOCOLS = ("ip4", "ip6", "dns", "dns4", "dns6", "dnsaddr")
TRANSPORT_PROTOCOLS = ("tcp", "udp")
# Protocols that carry no value, as in /udp/4001/quic-v1
FLAG_PROTOCOLS = frozenset({
    "quic", "quic-v1", "webtransport", "ws", "wss", "tls", "noise",
    "http", "https", "p2p-circuit", "webrtc", "webrtc-direct",
})


def multiaddr_segments(addr: str) -> list[tuple[str, str]]:
    """Split "/ip4/1.2.3.4/tcp/4001" into [("ip4", "1.2.3.4"), ("tcp", "4001")].

    Value-less protocols such as quic-v1 come back as (proto, "").
    Raises ValueError when the string is not protocol/value pairs.
    """
    if not addr or not addr.startswith("/"):
        raise ValueError("multiaddr must start with '/'")
    parts = addr.rstrip("/").split("/")[1:]
    if not parts or any(not p for p in parts):
        raise ValueError("multiaddr must be a sequence of /protocol/value pairs")
    segments = []
    tokens = iter(parts)
    for proto in tokens:
        if proto in FLAG_PROTOCOLS:
            segments.append((proto, ""))
            continue
        value = next(tokens, None)
        if value is None:
            raise ValueError(f"multiaddr protocol /{proto} has no value")
        segments.append((proto, value))
    return segments


def peer_id_of(addr: str) -> Optional[str]:
    """Return the peer identity carried by a multiaddr, or None."""
    try:
        segments = multiaddr_segments(addr)
    except ValueError:
        return None
    for proto, value in reversed(segments):
        if proto in PEER_ID_PROTOCOLS:
            return value
    return None


def is_peer_multiaddr(addr: Optional[str]) -> bool:
    """A dialable peer address: /<net>/<host>/<transport>/<port>[/...]/p2p/<peer-id>.

    /dnsaddr/<domain>/p2p/<peer-id> resolves its transports itself.
    """
    if not addr:
        return False
    try:
        segments = multiaddr_segments(addr)
    except ValueError:
        return False
    if len(segments) < 2 or segments[-1][0] not in PEER_ID_PROTOCOLS:
        return False
    network, middle = segments[0][0], segments[1:-1]
    if network == "dnsaddr":
        return True
    if network not in ADDRESS_PROTOCOLS or not middle:
        return False
    transport, port = middle[0]
    return transport in TRANSPORT_PROTOCOLS and port.isdigit()


def ip4_host(addr: str) -> Optional[str]:
    try:
        segments = multiaddr_segments(addr)
    except ValueError:
        return None
    for proto, value in segments:
        if proto == "ip4":
            return value
    return None


def build_multiaddr(ip: str, port: int, peer_id: str) -> str:
    return f"/ip4/{ip}/tcp/{port}/p2p/{peer_id}"


def external_ip(timeout: float = 5.0) -> Optional[str]:
    """Ask a public echo service for this host's address. None when offline."""
    try:
        with httpx.Client(timeout=timeout) as c:
            resp = c.get(EXTERNAL_IP_URL)
            resp.raise_for_status()
            ip = resp.text.strip()
            return ip or None
    except httpx.HTTPError as e:
        logger.info(f"External IP lookup failed: {e}")
        return None
