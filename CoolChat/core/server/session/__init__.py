"""
Session management module for the server.

A Session is the server-side state of one authenticated connection. It owns
the connection's outbound side: lines handed to :meth:`Session.send` are
queued and written by a single writer task, so no two tasks ever write to
the same socket and a slow peer only ever delays itself.
"""

import asyncio
import logging
import time
from enum import Enum, auto
from typing import Optional

from CoolChat.core.server.exceptions import ConnectionFault
from CoolChat.core.server.interfaces import TransportConnection

logger = logging.getLogger(__name__)

# Marks the end of the outbound stream for the writer task
_CLOSE = object()


class SessionState(Enum):
    """Lifecycle states of a connection."""
    CONNECTING = auto()
    AUTHENTICATED = auto()
    ACTIVE = auto()
    CLOSING = auto()
    CLOSED = auto()


class Session:
    """
    Server-side state for one authenticated client connection.

    Attributes:
        id: Remote address of the connection, stable for its lifetime
        state: Current lifecycle state
        created_at: Session creation timestamp
        last_active: Timestamp of the last line read from the peer
    """

    def __init__(
        self,
        connection: TransportConnection,
        username: str,
        queue_size: int = 256,
        send_timeout: float = 5.0
    ):
        """
        Initialize session.

        Args:
            connection: Line connection this session owns
            username: Authenticated username, fixed for the session lifetime
            queue_size: Maximum number of lines waiting to be written
            send_timeout: Seconds a single write may take before the peer
                is considered stalled
        """
        self.id = connection.peer
        self._username = username
        self._connection = connection
        self._outbound: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._send_timeout = send_timeout
        self._writer_task: Optional[asyncio.Task] = None
        self._fault: Optional[BaseException] = None
        self.state = SessionState.AUTHENTICATED
        self.created_at = time.time()
        self.last_active = self.created_at

    def __repr__(self) -> str:
        return f"<Session {self._username}@{self.id} {self.state.name}>"

    @property
    def username(self) -> str:
        """Get the authenticated username."""
        return self._username

    @property
    def connection(self) -> TransportConnection:
        return self._connection

    @property
    def is_open(self) -> bool:
        """True while the session accepts outbound lines."""
        return self.state in (SessionState.AUTHENTICATED, SessionState.ACTIVE) and self._fault is None

    @property
    def duration(self) -> float:
        """Get session duration in seconds."""
        return time.time() - self.created_at

    @property
    def idle_time(self) -> float:
        """Get idle time in seconds."""
        return time.time() - self.last_active

    def touch(self) -> None:
        """Update last activity timestamp."""
        self.last_active = time.time()

    def start(self) -> None:
        """Start the writer task and enter the active state."""
        if self._writer_task is None:
            self._writer_task = asyncio.create_task(
                self._write_loop(), name=f"session-writer-{self.id}"
            )
        self.state = SessionState.ACTIVE

    def send(self, line: str) -> None:
        """
        Queue a line for delivery without waiting for the socket.

        Args:
            line: Line to deliver, without terminator

        Raises:
            ConnectionFault: The session is closing or its queue is full
        """
        if not self.is_open:
            raise ConnectionFault(f"Session {self._username}@{self.id} is not open")
        try:
            self._outbound.put_nowait(line)
        except asyncio.QueueFull:
            raise ConnectionFault(
                f"Outbound queue of {self._username}@{self.id} is full",
                {"queued": self._outbound.qsize()}
            ) from None

    async def read_line(self) -> Optional[str]:
        """
        Read the next line sent by the peer.

        Returns:
            The line, or None when the peer closed the connection
        """
        line = await self._connection.read_line()
        if line is not None:
            self.touch()
        return line

    async def drain(self) -> None:
        """Wait until every queued line has been written or discarded."""
        await self._outbound.join()

    def abort(self) -> None:
        """
        Tear the session down immediately.

        Pending lines are discarded and the socket is dropped, which also
        ends the receive loop blocked on it.
        """
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSING
        self._connection.abort()
        task = self._writer_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def close(self, timeout: Optional[float] = None) -> None:
        """
        Close the session after flushing pending lines.

        Args:
            timeout: Seconds to wait for the flush (defaults to send_timeout)
        """
        if self.state is SessionState.CLOSED:
            return
        already_closing = self.state is SessionState.CLOSING
        self.state = SessionState.CLOSING

        task = self._writer_task
        if task is not None and not task.done():
            if not already_closing:
                try:
                    self._outbound.put_nowait(_CLOSE)
                except asyncio.QueueFull:
                    task.cancel()
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout or self._send_timeout)
            except asyncio.TimeoutError:
                logger.debug("Flush of %r timed out", self)
                task.cancel()
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise

        await self._connection.close()
        self._discard_pending()
        self.state = SessionState.CLOSED
        logger.debug("Session %r closed", self)

    async def _write_loop(self) -> None:
        """Write queued lines to the connection, one at a time."""
        try:
            while True:
                line = await self._outbound.get()
                try:
                    if line is _CLOSE:
                        return
                    await asyncio.wait_for(
                        self._connection.write_line(line), self._send_timeout
                    )
                finally:
                    self._outbound.task_done()
        except (ConnectionFault, asyncio.TimeoutError) as e:
            self._fault = e
            logger.warning("Delivery to %s@%s failed: %s", self._username, self.id, e or "timed out")
            self.abort()
        finally:
            self._discard_pending()

    def _discard_pending(self) -> None:
        while True:
            try:
                self._outbound.get_nowait()
            except asyncio.QueueEmpty:
                return
            self._outbound.task_done()


__all__ = [
    'Session',
    'SessionState',
]
