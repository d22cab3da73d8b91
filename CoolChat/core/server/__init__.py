"""
Server module for CoolChat.

This module provides the TCP chat server with a modular architecture:

Architecture Overview:
---------------------

1. **Authentication** (`auth/`)
   - CredentialStore: ``username,secret`` file with bcrypt hashes
   - PasswordAuthenticator: Handshake credential check

2. **Sessions** (`session/`)
   - Session: One authenticated connection with its own writer task

3. **Transport Layer** (`transport/`)
   - LineConnection: Newline framed text over asyncio streams

4. **Client Registry** (`registry/`)
   - ClientRegistry: Username to Session directory

5. **Message Routing** (`routing/`)
   - MessageRouter: History append and fan-out, one message at a time

6. **History** (`history.py`)
   - HistoryLog: Append-only history file

7. **Chat Server** (`chat_server.py`)
   - ChatServer: Accepts connections and composes all components

Usage:
------

    from CoolChat.core.server import create_server

    server = create_server()
    async with server.run("0.0.0.0", 7700):
        await asyncio.Future()
"""

from .auth import CredentialStore, PasswordAuthenticator
from .chat_server import ChatServer, create_server
from .exceptions import (
    AuthenticationFailed,
    ChatServerError,
    ConnectionFault,
    DuplicateUsername,
    RecipientNotFound,
    StorageFault,
)
from .history import HistoryEntry, HistoryLog
from .interfaces import AuthResult, ConnectionRegistry, ServerLifecycle
from .registry import ClientRegistry
from .routing import DeliveryResult, DeliveryStatus, MessageRouter
from .session import Session, SessionState
from .transport import LineConnection

__all__ = [
    'ChatServer',
    'create_server',
    'CredentialStore',
    'PasswordAuthenticator',
    'Session',
    'SessionState',
    'LineConnection',
    'ClientRegistry',
    'MessageRouter',
    'DeliveryResult',
    'DeliveryStatus',
    'HistoryEntry',
    'HistoryLog',
    'AuthResult',
    'ConnectionRegistry',
    'ServerLifecycle',
    'ChatServerError',
    'AuthenticationFailed',
    'DuplicateUsername',
    'RecipientNotFound',
    'ConnectionFault',
    'StorageFault',
]
