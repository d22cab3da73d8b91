"""
Client registry: the server's directory of live sessions.

Every operation runs under one lock, so a reader never observes a half
inserted or half removed entry. The lock is a threading lock because the
status web app reads the registry from uvicorn's thread.
"""

import logging
import threading
from typing import Dict, List, Optional

from CoolChat.core.server.exceptions import DuplicateUsername
from CoolChat.core.server.interfaces import ConnectionRegistry
from CoolChat.core.server.session import Session

logger = logging.getLogger(__name__)


class ClientRegistry(ConnectionRegistry):
    """
    Mapping of username to the single live Session of that user.

    Usernames are case-sensitive. The raw mapping is never handed out;
    callers get sessions or copies.
    """

    def __init__(self):
        """Initialize client registry."""
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.RLock()

    def register(self, username: str, session: Session) -> None:
        """
        Register a session under a username.

        Args:
            username: Authenticated username
            session: Session of the new connection

        Raises:
            DuplicateUsername: The username already has a live session
        """
        with self._lock:
            if username in self._sessions:
                raise DuplicateUsername(username)
            self._sessions[username] = session
            total = len(self._sessions)
        logger.debug("Registered session %r (online: %d)", session, total)

    def unregister(self, username: str, session: Optional[Session] = None) -> Optional[Session]:
        """
        Remove the session of a user. Removing an absent user is a no-op.

        Args:
            username: Username to remove
            session: When given, only remove the entry if it is this session

        Returns:
            The removed session, or None
        """
        with self._lock:
            current = self._sessions.get(username)
            if current is None or (session is not None and current is not session):
                return None
            del self._sessions[username]
        logger.debug("Unregistered session %r", current)
        return current

    def lookup(self, username: str) -> Optional[Session]:
        """
        Get the live session of a user.

        Args:
            username: Username to look up

        Returns:
            Session or None
        """
        with self._lock:
            return self._sessions.get(username)

    def snapshot_all(self) -> List[Session]:
        """
        Get a point-in-time copy of all live sessions.

        The returned list is independent of the registry and can be iterated
        while connections come and go.
        """
        with self._lock:
            return list(self._sessions.values())

    def usernames(self) -> List[str]:
        """Get the sorted list of online usernames."""
        with self._lock:
            return sorted(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, username: object) -> bool:
        with self._lock:
            return username in self._sessions


__all__ = [
    'ClientRegistry',
]
