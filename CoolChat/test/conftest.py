"""
Test configuration and fixtures for CoolChat server tests.

Provides:
- Server configuration for testing
- In-memory connections for unit tests
- Credential, history and registry fixtures backed by temporary files
- A running server on an ephemeral port and a line-based test client
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import pytest
import pytest_asyncio

from CoolChat.core.server.auth import CredentialStore
from CoolChat.core.server.chat_server import ChatServer
from CoolChat.core.server.exceptions import ConnectionFault
from CoolChat.core.server.history import HistoryLog
from CoolChat.core.server.registry import ClientRegistry
from CoolChat.core.server.session import Session

USERS = {
    "alice": "wonderland",
    "bob": "builder",
    "carol": "singer",
}


@dataclass
class TestConfig:
    """Configuration for server tests."""
    __test__ = False

    host: str = "127.0.0.1"
    timeout: float = 5.0
    bcrypt_rounds: int = 4
    queue_size: int = 64
    send_timeout: float = 1.0


class FakeConnection:
    """
    In-memory TransportConnection.

    Lines pushed with :meth:`feed` are returned by ``read_line``; lines the
    server writes are collected in ``written``.
    """

    def __init__(self, peer: str = "127.0.0.1:50000", fail_writes: bool = False):
        self.peer = peer
        self.fail_writes = fail_writes
        self.written: List[str] = []
        self.closed = False
        self.aborted = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    def feed(self, *lines: Optional[str]) -> None:
        for line in lines:
            self._incoming.put_nowait(line)

    async def read_line(self) -> Optional[str]:
        if self.closed:
            return None
        return await self._incoming.get()

    async def write_line(self, line: str) -> None:
        if self.closed:
            raise ConnectionFault(f"Connection to {self.peer} is closed")
        if self.fail_writes:
            raise ConnectionFault("Broken pipe")
        self.written.append(line)

    async def close(self) -> None:
        self.closed = True
        self._incoming.put_nowait(None)

    def abort(self) -> None:
        self.closed = True
        self.aborted = True
        self._incoming.put_nowait(None)

    def is_open(self) -> bool:
        return not self.closed


def make_session(username: str, port: int = 50000, **kwargs) -> Tuple[Session, FakeConnection]:
    """Create a session over a FakeConnection."""
    fail_writes = kwargs.pop("fail_writes", False)
    connection = FakeConnection(f"127.0.0.1:{port}", fail_writes=fail_writes)
    return Session(connection, username, **kwargs), connection


def write_users(path: Path, users=None) -> Path:
    users = USERS if users is None else users
    path.write_text("".join(f"{name},{password}\n" for name, password in users.items()), encoding="utf-8")
    return path


class LineClient:
    """Minimal TCP client speaking the chat line protocol."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, timeout: float):
        self.reader = reader
        self.writer = writer
        self.timeout = timeout

    @classmethod
    async def connect(cls, host: str, port: int, timeout: float = 5.0) -> "LineClient":
        reader, writer = await asyncio.open_connection(host, port)
        return cls(reader, writer, timeout)

    async def read_line(self) -> Optional[str]:
        raw = await asyncio.wait_for(self.reader.readline(), self.timeout)
        if not raw:
            return None
        return raw.decode("utf-8").rstrip("\r\n")

    async def send(self, line: str) -> None:
        self.writer.write(f"{line}\n".encode("utf-8"))
        await self.writer.drain()

    async def login(self, username: str, password: str) -> Optional[str]:
        """Answer both prompts and return the server's verdict line."""
        assert await self.read_line() == "Enter your username:"
        await self.send(username)
        assert await self.read_line() == "Enter your password:"
        await self.send(password)
        return await self.read_line()

    async def close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            pass


@pytest.fixture(scope="session")
def test_config() -> TestConfig:
    return TestConfig()


@pytest.fixture
def users_file(tmp_path: Path) -> Path:
    return write_users(tmp_path / "users.txt")


@pytest.fixture
def credentials(users_file: Path, test_config: TestConfig) -> CredentialStore:
    store = CredentialStore(str(users_file), rounds=test_config.bcrypt_rounds)
    store.load()
    return store


@pytest.fixture
def registry() -> ClientRegistry:
    return ClientRegistry()


@pytest_asyncio.fixture
async def history(tmp_path: Path):
    log = HistoryLog(str(tmp_path / "chat_history.txt"))
    await log.open()
    yield log
    await log.close()


@pytest_asyncio.fixture
async def server_instance(tmp_path: Path, users_file: Path, test_config: TestConfig):
    """Run a chat server on an ephemeral port for one test."""
    from CoolChat.core.logging import configure_logging, create_testing_config

    configure_logging(create_testing_config())

    server = ChatServer(
        CredentialStore(str(users_file), rounds=test_config.bcrypt_rounds),
        HistoryLog(str(tmp_path / "chat_history.txt")),
        queue_size=test_config.queue_size,
        send_timeout=test_config.send_timeout,
        enable_discovery=False,
    )
    await server.start(test_config.host, 0)

    yield server

    await server.stop()


@pytest_asyncio.fixture
async def connect(server_instance: ChatServer, test_config: TestConfig):
    """Factory fixture opening clients to ``server_instance``; all are closed afterwards."""
    clients: List[LineClient] = []

    async def _connect() -> LineClient:
        client = await LineClient.connect(test_config.host, server_instance.port, test_config.timeout)
        clients.append(client)
        return client

    yield _connect

    for client in clients:
        await client.close()


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "integration: tests that run a real server on a local port")
    config.addinivalue_line("markers", "slow: tests that take more than a second")
