"""
Message protocol module for CoolChat application.
Defines the line-based wire format exchanged between clients and the server.

Client -> server lines:
    <text>                          broadcast to everyone
    /private <recipient> <text>     private message
    exit                            end the session

Server -> client lines:
    [<username>]: <text>
    [Private from <sender>]: <text>
    plain text for prompts and errors
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional

PRIVATE_COMMAND = "/private"
EXIT_COMMAND = "exit"

USERNAME_PROMPT = "Enter your username:"
PASSWORD_PROMPT = "Enter your password:"
AUTH_REJECTED = "Invalid username or password."
STORAGE_FAILED = "Message could not be saved."


class MessageKind(Enum):
    """
    Enumeration of routable message kinds.
    """
    BROADCAST = 1  # Delivered to every registered session
    PRIVATE = 2  # Delivered to one recipient and echoed to the sender


@dataclass(frozen=True)
class Message:
    """
    Immutable chat message produced from one client line.

    Attributes:
        sender (str): Username of the originator
        body (str): Message text, never contains a newline
        kind (MessageKind): Broadcast or private
        recipient (str, optional): Target username for private messages
        timestamp (datetime, optional): Assigned when the router picks it up
    """
    sender: str
    body: str
    kind: MessageKind = MessageKind.BROADCAST
    recipient: Optional[str] = None
    timestamp: Optional[datetime] = None

    @property
    def is_private(self) -> bool:
        return self.kind is MessageKind.PRIVATE

    def stamped(self, when: Optional[datetime] = None) -> 'Message':
        """Return a copy of this message carrying a routing timestamp."""
        return replace(self, timestamp=when or datetime.now())

    def render(self) -> str:
        """
        Render the line delivered to clients and written to the history.

        Returns:
            str: ``[sender]: body`` or ``[Private from sender]: body``
        """
        if self.is_private:
            return render_private(self.sender, self.body)
        return render_broadcast(self.sender, self.body)

    @classmethod
    def broadcast(cls, sender: str, body: str) -> 'Message':
        return cls(sender=sender, body=body)

    @classmethod
    def private(cls, sender: str, recipient: str, body: str) -> 'Message':
        return cls(sender=sender, body=body, kind=MessageKind.PRIVATE, recipient=recipient)

    @classmethod
    def parse(cls, sender: str, line: str) -> Optional['Message']:
        """
        Create a Message from a raw client line.

        A line starting with ``/private`` is split on single spaces: the first
        token after the command names the recipient and the remaining tokens,
        joined again with single spaces, form the body. Private commands with
        fewer than two tokens after the command yield ``None``.

        Args:
            sender (str): Authenticated username of the connection
            line (str): Line received from the client, without terminator

        Returns:
            Message or None when the line must be dropped
        """
        if line.startswith(PRIVATE_COMMAND):
            parts = line.split(" ")
            if len(parts) < 3:
                return None
            return cls.private(sender, parts[1], " ".join(parts[2:]))
        return cls.broadcast(sender, line)


def render_broadcast(sender: str, body: str) -> str:
    return f"[{sender}]: {body}"


def render_private(sender: str, body: str) -> str:
    return f"[Private from {sender}]: {body}"


def render_not_found(recipient: str) -> str:
    return f"User '{recipient}' not found."


def render_welcome(username: str) -> str:
    return f"Welcome, {username}!"


def render_duplicate(username: str) -> str:
    return f"User '{username}' is already logged in."


def is_exit(line: str) -> bool:
    return line == EXIT_COMMAND
