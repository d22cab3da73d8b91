"""
Exception classes for the chat server.

Every error raised by the server components derives from ChatServerError.
Faults are local to the component or connection that raised them; none of
them is fatal to the server process.
"""

from typing import Optional

from CoolChat.core.message.protocol import render_duplicate, render_not_found


class ChatServerError(Exception):
    """Base exception for all chat server errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize chat server error.

        Args:
            message: Error message
            details: Optional extra context for logging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class AuthenticationFailed(ChatServerError):
    """Raised when a handshake does not produce a valid username/password pair."""

    def __init__(self, username: Optional[str], message: str = "Authentication failed"):
        self.username = username
        super().__init__(message, {"username": username} if username else None)


class DuplicateUsername(ChatServerError):
    """Raised by the registry when a username already has a live session."""

    def __init__(self, username: str):
        self.username = username
        super().__init__(render_duplicate(username))


class RecipientNotFound(ChatServerError):
    """Raised by the router when a private message names an unknown user."""

    def __init__(self, recipient: str):
        self.recipient = recipient
        super().__init__(render_not_found(recipient))


class ConnectionFault(ChatServerError):
    """Raised when a connection can no longer be read from or written to."""
    pass


class StorageFault(ChatServerError):
    """Raised when the history log or the credential file cannot be written."""
    pass


__all__ = [
    'ChatServerError',
    'AuthenticationFailed',
    'DuplicateUsername',
    'RecipientNotFound',
    'ConnectionFault',
    'StorageFault',
]
