"""
LAN discovery over UDP broadcast.

A client broadcasts the probe ``SCAN BY COOL CHAT SERVER`` to the discovery
port; every server that hears it answers the sender directly with
``YES PORT:<tcp-port>``. The client then connects over TCP to the address the
reply came from.
"""

import asyncio
import logging
import socket
from typing import Optional, Tuple

from CoolChat.config import config

logger = logging.getLogger(__name__)


def build_reply(tcp_port: int, prefix: str = config.DISCOVERY_REPLY_PREFIX) -> bytes:
    return f"{prefix}{tcp_port}".encode("utf-8")


def parse_reply(data: bytes) -> Optional[int]:
    """
    Extract the TCP port from a discovery reply.

    Returns:
        The advertised port, or None when the datagram is not a valid reply
    """
    text = data.decode("utf-8", errors="replace").strip()
    if not text.startswith("YES"):
        return None
    _, sep, port = text.partition(":")
    if not sep:
        return None
    try:
        value = int(port)
    except ValueError:
        return None
    return value if 0 < value < 65536 else None


class DiscoveryResponder(asyncio.DatagramProtocol):
    """Answers discovery probes with the chat server's TCP port."""

    def __init__(self, tcp_port: int, probe: str = config.DISCOVERY_PROBE):
        self.tcp_port = tcp_port
        self.probe = probe.encode("utf-8")
        self.transport: Optional[asyncio.DatagramTransport] = None
        self.replies = 0

    def connection_made(self, transport):
        self.transport = transport
        logger.info("Discovery responder listening on %s", transport.get_extra_info("sockname"))

    def datagram_received(self, data, addr):
        if data.strip() != self.probe:
            logger.debug("Ignoring datagram from %s: %r", addr, data[:64])
            return
        self.transport.sendto(build_reply(self.tcp_port), addr)
        self.replies += 1
        logger.debug("Answered discovery probe from %s", addr)

    def error_received(self, exc):
        logger.warning("Discovery socket error: %s", exc)

    def connection_lost(self, exc):
        if exc is not None:
            logger.warning("Discovery responder stopped: %s", exc)


async def start_responder(
    tcp_port: int,
    host: str = "0.0.0.0",
    port: int = config.DISCOVERY_PORT
) -> Tuple[asyncio.DatagramTransport, DiscoveryResponder]:
    """Bind the discovery responder on ``host:port``."""
    loop = asyncio.get_running_loop()
    return await loop.create_datagram_endpoint(
        lambda: DiscoveryResponder(tcp_port),
        local_addr=(host, port),
        family=socket.AF_INET,
        reuse_port=hasattr(socket, "SO_REUSEPORT") or None,
    )


class _ProbeProtocol(asyncio.DatagramProtocol):
    def __init__(self):
        self.replies: asyncio.Queue = asyncio.Queue()

    def datagram_received(self, data, addr):
        self.replies.put_nowait((data, addr))

    def error_received(self, exc):
        logger.debug("Probe socket error: %s", exc)


async def discover_server(
    attempts: int = config.DISCOVERY_ATTEMPTS,
    timeout: float = config.DISCOVERY_TIMEOUT,
    port: int = config.DISCOVERY_PORT,
    broadcast_address: str = "255.255.255.255",
    probe: str = config.DISCOVERY_PROBE
) -> Optional[Tuple[str, int]]:
    """
    Broadcast discovery probes until a server answers.

    Args:
        attempts: Number of probes to send
        timeout: Seconds to wait for a reply after each probe
        port: UDP discovery port
        broadcast_address: Destination of the probe
        probe: Probe payload

    Returns:
        ``(host, tcp_port)`` of the first server that answered, or None
    """
    loop = asyncio.get_running_loop()
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
    sock.bind(("0.0.0.0", 0))
    transport, protocol = await loop.create_datagram_endpoint(_ProbeProtocol, sock=sock)
    try:
        for attempt in range(1, attempts + 1):
            logger.info("Scan network for the chat server. Try %d.", attempt)
            transport.sendto(probe.encode("utf-8"), (broadcast_address, port))
            deadline = loop.time() + timeout
            while (remaining := deadline - loop.time()) > 0:
                try:
                    data, addr = await asyncio.wait_for(protocol.replies.get(), remaining)
                except asyncio.TimeoutError:
                    break
                tcp_port = parse_reply(data)
                if tcp_port is None:
                    logger.debug("Ignoring reply %r from %s", data[:64], addr)
                    continue
                logger.info("Server found at %s:%d", addr[0], tcp_port)
                return addr[0], tcp_port
        logger.warning("Servers not found!")
        return None
    finally:
        transport.close()


__all__ = [
    'DiscoveryResponder',
    'build_reply',
    'parse_reply',
    'start_responder',
    'discover_server',
]
