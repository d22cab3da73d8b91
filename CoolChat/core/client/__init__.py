"""
Client module for CoolChat application.
Provides base client functionality and standard command-line client implementation.
"""

from .client_base import Client
from .command_line_client import DISCONNECTED, StandardCommandlineClient

__all__ = [
    'Client', 'StandardCommandlineClient', 'DISCONNECTED'
]
