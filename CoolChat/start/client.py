"""
Client startup module for CoolChat application.
Provides the entry point for starting the chat client.
"""

import asyncio
import logging

from CoolChat.config import config
from CoolChat.core.client import DISCONNECTED, StandardCommandlineClient
from CoolChat.core.discovery import discover_server

logger = logging.getLogger(__name__)

__all__ = ['client']


async def _locate_and_run(host, port):
    if host is None:
        found = await discover_server()
        if found is None:
            print("Servers not found!")
            return
        host, port = found
        print(f"Server found at {host}:{port}")
    await StandardCommandlineClient(host, port).run()


def client(host=None, port=config.DEFAULT_SERVER_PORT):
    """
    Start the chat client.

    Args:
        host (str): Server hostname; the LAN is scanned when omitted
        port (int): Server port number (default: 7700)
    """
    print("Welcome CoolChat Client!")
    try:
        asyncio.run(_locate_and_run(host, port))
    except KeyboardInterrupt:
        print(DISCONNECTED)
