"""
Chat server that composes all server components.

This is the main entry point: it accepts TCP connections, runs the
username/password handshake, registers a Session per authenticated user and
feeds every received line to the message router.

Architecture:
    ┌───────────────────────────────────────────────────────────┐
    │                        ChatServer                         │
    │  ┌──────────────┐  ┌──────────────┐  ┌─────────────────┐  │
    │  │ Password     │  │ Client       │  │ Message         │  │
    │  │ Authenticator│  │ Registry     │  │ Router          │  │
    │  └──────────────┘  └──────────────┘  └─────────────────┘  │
    │  ┌──────────────┐  ┌──────────────┐  ┌─────────────────┐  │
    │  │ Credential   │  │ History      │  │ Discovery       │  │
    │  │ Store        │  │ Log          │  │ Responder       │  │
    │  └──────────────┘  └──────────────┘  └─────────────────┘  │
    └───────────────────────────────────────────────────────────┘

Connection lifecycle:
    1. prompt username → prompt password → authenticate
    2. register Session → welcome line → optional history replay
    3. read line → router.submit(...) → repeat
    4. ``exit`` / end of stream / fault → unregister → close
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional, Set

from CoolChat.config import config
from CoolChat.core.discovery import start_responder
from CoolChat.core.message.protocol import (
    AUTH_REJECTED,
    PASSWORD_PROMPT,
    USERNAME_PROMPT,
    Message,
    is_exit,
    render_welcome,
)
from CoolChat.core.server.auth import CredentialStore, PasswordAuthenticator
from CoolChat.core.server.exceptions import (
    AuthenticationFailed,
    ConnectionFault,
    DuplicateUsername,
    StorageFault,
)
from CoolChat.core.server.history import HistoryLog
from CoolChat.core.server.interfaces import Authenticator, ServerLifecycle
from CoolChat.core.server.registry import ClientRegistry
from CoolChat.core.server.routing import MessageRouter
from CoolChat.core.server.session import Session
from CoolChat.core.server.transport import LineConnection, format_address

logger = logging.getLogger(__name__)


class ChatServer(ServerLifecycle):
    """
    TCP chat server.

    Example:
        server = ChatServer(CredentialStore("users.txt"), HistoryLog("chat_history.txt"))

        async with server.run("0.0.0.0", 7700):
            await asyncio.Future()
    """

    def __init__(
        self,
        credentials: Optional[CredentialStore] = None,
        history: Optional[HistoryLog] = None,
        registry: Optional[ClientRegistry] = None,
        authenticator: Optional[Authenticator] = None,
        auth_attempts: int = config.AUTH_ATTEMPTS,
        history_replay: int = config.HISTORY_REPLAY,
        queue_size: int = config.OUTBOUND_QUEUE_SIZE,
        send_timeout: float = config.SEND_TIMEOUT,
        strict_durability: bool = config.STRICT_DURABILITY,
        max_line_length: int = config.MAX_LINE_LENGTH,
        enable_discovery: bool = True,
        discovery_port: int = config.DISCOVERY_PORT
    ):
        """
        Initialize the chat server.

        Args:
            credentials: Credential store (creates default if None)
            history: History log (creates default if None)
            registry: Client registry (creates default if None)
            authenticator: Login check (checks ``credentials`` if None)
            auth_attempts: Handshake attempts before the connection is dropped
            history_replay: Number of history lines sent after the welcome line
            queue_size: Outbound queue size of each session
            send_timeout: Seconds a single write may take
            strict_durability: Refuse delivery when the history append fails
            max_line_length: Longest accepted client line in bytes
            enable_discovery: Answer UDP discovery probes
            discovery_port: UDP port of the discovery responder
        """
        self._credentials = credentials or CredentialStore(config.USER_DB_FILE, config.BCRYPT_ROUNDS)
        self._authenticator: Authenticator = authenticator or PasswordAuthenticator(self._credentials)
        self._history = history or HistoryLog(config.HISTORY_FILE, config.HISTORY_TIME_FORMAT)
        self._registry = registry or ClientRegistry()
        self._router = MessageRouter(self._registry, self._history, strict_durability)

        self._auth_attempts = max(1, auth_attempts)
        self._history_replay = history_replay
        self._queue_size = queue_size
        self._send_timeout = send_timeout
        self._max_line_length = max_line_length
        self._enable_discovery = enable_discovery
        self._discovery_port = discovery_port

        self._server: Optional[asyncio.AbstractServer] = None
        self._discovery: Optional[asyncio.DatagramTransport] = None
        self._handlers: Set[asyncio.Task] = set()
        self._pending: Set[LineConnection] = set()
        self._host: Optional[str] = None
        self._port: Optional[int] = None
        self._running = False

    @property
    def registry(self) -> ClientRegistry:
        return self._registry

    @property
    def history(self) -> HistoryLog:
        return self._history

    @property
    def credentials(self) -> CredentialStore:
        return self._credentials

    @property
    def router(self) -> MessageRouter:
        return self._router

    @property
    def host(self) -> Optional[str]:
        return self._host

    @property
    def port(self) -> Optional[int]:
        """Get the bound TCP port (the real one when started on port 0)."""
        return self._port

    @property
    def is_running(self) -> bool:
        """Check if server is running."""
        return self._running

    def online_users(self) -> List[str]:
        """Get the sorted usernames of every live session."""
        return self._registry.usernames()

    @asynccontextmanager
    async def run(self, host: str = config.DEFAULT_HOST, port: int = config.DEFAULT_SERVER_PORT):
        """
        Run the chat server as an async context manager.

        Args:
            host: Host to bind to
            port: Port to listen on (0 picks a free port)

        Yields:
            The server instance
        """
        await self.start(host, port)
        try:
            yield self
        finally:
            await self.stop()

    async def start(self, host: str = config.DEFAULT_HOST, port: int = config.DEFAULT_SERVER_PORT) -> None:
        """
        Load the stores and start accepting connections.

        Raises:
            OSError: The TCP port cannot be bound
        """
        if self._running:
            return

        await asyncio.to_thread(self._credentials.load)
        await self._history.open()
        self._router.start()

        try:
            self._server = await asyncio.start_server(
                self._handle_connection,
                host,
                port,
                limit=self._max_line_length
            )
        except OSError:
            await self._router.stop()
            await self._history.close()
            raise

        self._host = host
        self._port = self._server.sockets[0].getsockname()[1]
        self._running = True
        logger.info("Chat server started on %s:%s", host, self._port)

        if self._enable_discovery:
            try:
                self._discovery, _ = await start_responder(self._port, port=self._discovery_port)
            except OSError as e:
                logger.warning("Discovery disabled, cannot bind UDP port %s: %s", self._discovery_port, e)

    async def stop(self) -> None:
        """
        Stop the chat server.

        New connections are refused first; open sessions are flushed and
        closed, the router dispatches what it already accepted, and finally
        the history log and credential file are written out.
        """
        if not self._running:
            return
        self._running = False

        if self._server is not None:
            self._server.close()
        if self._discovery is not None:
            self._discovery.close()
            self._discovery = None

        for connection in list(self._pending):
            connection.abort()
        await asyncio.gather(
            *(session.close() for session in self._registry.snapshot_all()),
            return_exceptions=True
        )
        if self._handlers:
            await asyncio.wait(list(self._handlers), timeout=self._send_timeout)

        await self._router.stop()
        if self._server is not None:
            await self._server.wait_closed()
            self._server = None
        await self._history.close()

        if self._credentials.dirty:
            try:
                await asyncio.to_thread(self._credentials.flush)
            except StorageFault as e:
                logger.error("Credential store not saved: %s", e)

        logger.info("Chat server stopped")

    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Serve one client from handshake to teardown."""
        task = asyncio.current_task()
        self._handlers.add(task)
        connection = LineConnection(reader, writer)
        session: Optional[Session] = None
        username: Optional[str] = None
        logger.debug("Connection from %s", format_address(writer.get_extra_info("peername")))

        try:
            self._pending.add(connection)
            try:
                username = await self._handshake(connection)
            finally:
                self._pending.discard(connection)
            if username is None:
                logger.debug("Connection %s closed during handshake", connection.peer)
                return

            session = Session(connection, username, self._queue_size, self._send_timeout)
            try:
                self._registry.register(username, session)
            except DuplicateUsername as e:
                logger.warning("Rejected %s from %s: already logged in", username, connection.peer)
                session = None
                await connection.write_line(e.message)
                return

            session.send(render_welcome(username))
            self._replay_history(session)
            session.start()
            logger.info("User %s connected from %s", username, connection.peer)

            await self._receive_loop(session)

        except AuthenticationFailed as e:
            logger.warning("Authentication failed for %s from %s", e.username, connection.peer)
            await self._send_quietly(connection, AUTH_REJECTED)
        except ConnectionFault as e:
            logger.info("Connection %s lost: %s", connection.peer, e)
        except Exception as e:
            logger.exception("Error handling connection %s: %s", connection.peer, e)
        finally:
            if session is not None:
                self._registry.unregister(username, session)
                await session.close()
                logger.info("User %s disconnected", username)
            else:
                await connection.close()
            self._handlers.discard(task)

    async def _handshake(self, connection: LineConnection) -> Optional[str]:
        """
        Prompt for credentials until they check out or attempts run out.

        Returns:
            The authenticated username, or None when the peer hung up

        Raises:
            AuthenticationFailed: The last attempt was rejected
        """
        for attempt in range(1, self._auth_attempts + 1):
            await connection.write_line(USERNAME_PROMPT)
            username = await connection.read_line()
            if username is None:
                return None
            await connection.write_line(PASSWORD_PROMPT)
            password = await connection.read_line()
            if password is None:
                return None

            result = await self._authenticator.authenticate(username, password)
            if result.success:
                return result.username
            if attempt == self._auth_attempts:
                raise AuthenticationFailed(username, result.error_message or AUTH_REJECTED)
            await connection.write_line(AUTH_REJECTED)
        return None

    def _replay_history(self, session: Session) -> None:
        limit = self._history_replay
        if self._queue_size > 0:
            # leave room for the welcome line
            limit = min(limit, self._queue_size - 1)
        if limit <= 0:
            return
        for entry in self._history.recent(limit):
            session.send(entry.text)

    async def _receive_loop(self, session: Session) -> None:
        """Hand every line of an active session to the router."""
        while True:
            line = await session.read_line()
            if line is None:
                logger.debug("End of stream from %r", session)
                return
            if is_exit(line):
                logger.debug("%s sent exit", session.username)
                return

            message = Message.parse(session.username, line)
            if message is None:
                logger.debug("Dropping malformed private command from %s: %r", session.username, line)
                continue
            await self._router.submit(message)

    @staticmethod
    async def _send_quietly(connection: LineConnection, line: str) -> None:
        try:
            await connection.write_line(line)
        except ConnectionFault as e:
            logger.debug("Could not send %r to %s: %s", line, connection.peer, e)


def create_server(
    user_db_file: str = config.USER_DB_FILE,
    history_file: str = config.HISTORY_FILE,
    **kwargs
) -> ChatServer:
    """
    Factory function to create a configured chat server.

    Args:
        user_db_file: Credential file path
        history_file: History file path
        **kwargs: Additional arguments passed to ChatServer

    Returns:
        Configured ChatServer instance
    """
    credentials = CredentialStore(user_db_file, config.BCRYPT_ROUNDS)
    history = HistoryLog(history_file, config.HISTORY_TIME_FORMAT)
    return ChatServer(credentials, history, **kwargs)


__all__ = [
    'ChatServer',
    'create_server',
]
