"""
Transport layer for TCP chat connections.

Wraps an asyncio stream pair into a newline-framed, UTF-8 text connection and
converts socket level failures into ConnectionFault.
"""

import asyncio
import logging
from typing import Optional

from CoolChat.core.server.exceptions import ConnectionFault

logger = logging.getLogger(__name__)


def format_address(address) -> str:
    """Render a socket address tuple as ``host:port``."""
    if isinstance(address, tuple) and len(address) >= 2:
        host, port = address[0], address[1]
        if ":" in str(host):
            return f"[{host}]:{port}"
        return f"{host}:{port}"
    return str(address) if address else "unknown"


class LineConnection:
    """
    Line-framed connection over an asyncio StreamReader/StreamWriter pair.

    Lines are UTF-8 text terminated by ``\\n``; a trailing ``\\r`` is
    stripped on input so CRLF clients work as well.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        encoding: str = "utf-8"
    ):
        """
        Initialize line connection.

        Args:
            reader: Stream reader of the accepted socket
            writer: Stream writer of the accepted socket
            encoding: Text encoding used on the wire
        """
        self._reader = reader
        self._writer = writer
        self._encoding = encoding
        self._closed = False
        self._peer = format_address(writer.get_extra_info("peername"))

    @property
    def peer(self) -> str:
        """Get remote address of the connection."""
        return self._peer

    async def read_line(self) -> Optional[str]:
        """
        Read one line from the peer.

        Returns:
            The decoded line without terminator, or None at end of stream

        Raises:
            ConnectionFault: The socket failed or the line exceeded the limit
        """
        if self._closed:
            return None
        try:
            raw = await self._reader.readline()
        except (ConnectionError, OSError) as e:
            raise ConnectionFault(f"Read from {self._peer} failed: {e}") from e
        except ValueError as e:
            # StreamReader reports an over-long line as ValueError
            raise ConnectionFault(f"Line from {self._peer} too long") from e

        if not raw:
            return None
        return raw.decode(self._encoding, errors="replace").rstrip("\r\n")

    async def write_line(self, line: str) -> None:
        """
        Write one line and wait for the transport buffer to drain.

        Raises:
            ConnectionFault: The connection is closed or the socket failed
        """
        if self._closed or self._writer.is_closing():
            raise ConnectionFault(f"Connection to {self._peer} is closed")
        try:
            self._writer.write(f"{line}\n".encode(self._encoding))
            await self._writer.drain()
        except (ConnectionError, OSError) as e:
            raise ConnectionFault(f"Write to {self._peer} failed: {e}") from e

    async def close(self) -> None:
        """Close the connection and wait for the socket to shut down."""
        if self._closed:
            return
        self._closed = True
        try:
            self._writer.close()
            await self._writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug("Error closing connection %s: %s", self._peer, e)

    def abort(self) -> None:
        """Drop the socket without flushing pending output."""
        if self._closed:
            return
        self._closed = True
        transport = self._writer.transport
        if transport is not None:
            transport.abort()

    def is_open(self) -> bool:
        """Check if connection is open."""
        return not self._closed and not self._writer.is_closing()


__all__ = [
    'LineConnection',
    'format_address',
]
