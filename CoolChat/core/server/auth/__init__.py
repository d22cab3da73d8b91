"""
Authentication module for the server.

Provides the credential store (one ``username,secret`` record per line) and
the password authenticator used by the connection handshake.

Secrets are stored as bcrypt hashes. Files written by older servers hold
plaintext passwords; such records are accepted on load, hashed in memory and
written back hashed on the next flush.
"""

import asyncio
import logging
import threading
from pathlib import Path
from typing import Dict, Optional

import bcrypt

from CoolChat.core.server.exceptions import ChatServerError, StorageFault
from CoolChat.core.server.interfaces import AuthResult

logger = logging.getLogger(__name__)

_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with a fresh bcrypt salt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, hashed_password: str) -> bool:
    """Check a password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def is_hashed(secret: str) -> bool:
    return secret.startswith(_BCRYPT_PREFIXES)


class CredentialStore:
    """
    File-backed username/password store.

    Thread-safe: authentication runs in worker threads so bcrypt does not
    block the event loop.
    """

    def __init__(self, path: str, rounds: int = 12):
        """
        Initialize credential store.

        Args:
            path: Credential file path
            rounds: bcrypt cost factor for new hashes
        """
        self.path = Path(path)
        self._rounds = rounds
        self._users: Dict[str, str] = {}
        self._dirty = False
        self._lock = threading.RLock()

    def load(self) -> int:
        """
        Load records from the credential file.

        Lines that do not split into exactly two fields are skipped.
        Plaintext secrets are upgraded to bcrypt hashes in memory.

        Returns:
            Number of users loaded
        """
        users: Dict[str, str] = {}
        upgraded = 0
        if not self.path.exists():
            logger.warning("Credential file not found: %s", self.path)
        else:
            try:
                lines = self.path.read_text(encoding="utf-8").splitlines()
            except OSError as e:
                logger.error("Error loading users from %s: %s", self.path, e)
                lines = []
            for line in lines:
                parts = line.strip().split(",")
                if len(parts) != 2 or not parts[0]:
                    continue
                username, secret = parts
                if not is_hashed(secret):
                    try:
                        secret = hash_password(secret, self._rounds)
                    except ValueError as e:
                        logger.warning("Skipping user %s: %s", username, e)
                        continue
                    upgraded += 1
                users[username] = secret

        with self._lock:
            self._users = users
            self._dirty = upgraded > 0 or not self.path.exists()
        if upgraded:
            logger.info("Upgraded %d plaintext passwords to bcrypt hashes", upgraded)
        logger.info("Loaded %d users from %s", len(users), self.path)
        return len(users)

    def flush(self) -> None:
        """
        Write all records back to the credential file.

        Raises:
            StorageFault: The file cannot be written
        """
        with self._lock:
            lines = [f"{username},{secret}" for username, secret in self._users.items()]
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
            except OSError as e:
                raise StorageFault(f"Error saving users to {self.path}: {e}") from e
            self._dirty = False
        logger.debug("Saved %d users to %s", len(lines), self.path)

    @property
    def dirty(self) -> bool:
        """True when in-memory records differ from the file."""
        return self._dirty

    def authenticate(self, username: str, password: str) -> bool:
        """Check a username/password pair."""
        with self._lock:
            secret = self._users.get(username)
        if secret is None or not password:
            return False
        return verify_password(password, secret)

    def add_user(self, username: str, password: str) -> None:
        """
        Add a new account.

        Raises:
            ChatServerError: Invalid username/password or username taken
        """
        if not username or "," in username or username != username.strip():
            raise ChatServerError("Username must be non-empty, without commas or surrounding spaces")
        if not password or "," in password:
            raise ChatServerError("Password must be non-empty and must not contain commas")
        if len(password.encode("utf-8")) > 72:
            raise ChatServerError("Password must be at most 72 bytes long")
        hashed = hash_password(password, self._rounds)
        with self._lock:
            if username in self._users:
                raise ChatServerError(f"User '{username}' already exists")
            self._users[username] = hashed
            self._dirty = True
        logger.info("Added user %s", username)

    def __contains__(self, username: object) -> bool:
        with self._lock:
            return username in self._users

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)


class PasswordAuthenticator:
    """
    Authenticator backed by a CredentialStore.

    bcrypt checks run in the default executor so a login never stalls
    other connections.
    """

    def __init__(self, store: CredentialStore):
        self._store = store

    @property
    def store(self) -> CredentialStore:
        return self._store

    async def authenticate(self, username: Optional[str], password: Optional[str]) -> AuthResult:
        """
        Check a username/password pair.

        Args:
            username: Username line from the handshake
            password: Password line from the handshake

        Returns:
            AuthResult with authentication status and username
        """
        if not username or not password:
            return AuthResult(
                success=False,
                username=username,
                error_message="Username and password are required",
                error_code="MISSING_CREDENTIALS"
            )

        ok = await asyncio.to_thread(self._store.authenticate, username, password)
        if not ok:
            logger.warning("Authentication failed for user %s", username)
            return AuthResult(
                success=False,
                username=username,
                error_message="Incorrect username or password",
                error_code="INVALID_CREDENTIALS"
            )
        return AuthResult(success=True, username=username)


__all__ = [
    'CredentialStore',
    'PasswordAuthenticator',
    'hash_password',
    'verify_password',
    'is_hashed',
]
