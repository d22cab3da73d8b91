"""
Abstract base classes and interfaces for the server module.

These contracts keep the routing core independent from asyncio streams and
from the on-disk stores, so tests can substitute in-memory fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from CoolChat.core.server.session import Session


@dataclass
class AuthResult:
    """Result of an authentication attempt."""
    success: bool
    username: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None


@runtime_checkable
class TransportConnection(Protocol):
    """Protocol for a line-framed, bidirectional connection."""

    @property
    def peer(self) -> str:
        """Printable remote address of the connection."""
        ...

    @abstractmethod
    async def read_line(self) -> Optional[str]:
        """
        Read the next line without its terminator.

        Returns:
            The line, or None once the peer has closed the stream
        """
        ...

    @abstractmethod
    async def write_line(self, line: str) -> None:
        """Write one line and wait until it is handed to the OS."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection gracefully."""
        ...

    @abstractmethod
    def abort(self) -> None:
        """Drop the connection immediately, discarding buffered output."""
        ...

    @abstractmethod
    def is_open(self) -> bool:
        """Check if connection is open."""
        ...


@runtime_checkable
class Authenticator(Protocol):
    """Protocol for username/password authentication handlers."""

    @abstractmethod
    async def authenticate(self, username: str, password: str) -> AuthResult:
        """
        Check a username/password pair.

        Args:
            username: Username sent during the handshake
            password: Password sent during the handshake

        Returns:
            AuthResult describing the outcome
        """
        ...


class ConnectionRegistry(ABC):
    """Abstract base class for the directory of live sessions."""

    @abstractmethod
    def register(self, username: str, session: 'Session') -> None:
        """Register a session, failing if the username is taken."""
        pass

    @abstractmethod
    def unregister(self, username: str, session: Optional['Session'] = None) -> Optional['Session']:
        """Remove a session; a no-op when absent."""
        pass

    @abstractmethod
    def lookup(self, username: str) -> Optional['Session']:
        """Get the live session of a user."""
        pass

    @abstractmethod
    def snapshot_all(self) -> List['Session']:
        """Get a point-in-time copy of all live sessions."""
        pass


class ServerLifecycle(ABC):
    """Abstract base class for server lifecycle management."""

    @abstractmethod
    async def start(self, host: str, port: int) -> None:
        """Start the server."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the server."""
        pass

    @property
    @abstractmethod
    def is_running(self) -> bool:
        """Check if server is running."""
        pass


__all__ = [
    'AuthResult',
    'TransportConnection',
    'Authenticator',
    'ConnectionRegistry',
    'ServerLifecycle',
]
