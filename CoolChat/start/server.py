"""
Server startup module for CoolChat application.
Provides the entry point for starting the chat server and the status web app.
"""

import asyncio
import logging
import signal

from CoolChat.config import config
from CoolChat.core.server import create_server

logger = logging.getLogger(__name__)

__all__ = ['server']


async def _serve(chat_server, host: str, port: int, web_port) -> None:
    try:
        await chat_server.start(host, port)
    except OSError as e:
        logger.error("Cannot listen on %s:%s: %s", host, port, e)
        raise SystemExit(1) from e

    if web_port is not None:
        from CoolChat.web import create_app, start_in_thread
        start_in_thread(create_app(chat_server), host, web_port)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows: Ctrl+C still arrives as KeyboardInterrupt
            pass

    try:
        await stop_event.wait()
        logger.info("Termination signal received, shutting down")
    finally:
        await chat_server.stop()


def server(host=config.DEFAULT_HOST, port=config.DEFAULT_SERVER_PORT, web=True, web_port=config.WEB_PORT):
    """
    Start the chat server and web services.

    Args:
        host (str): Address to listen on (default: 0.0.0.0)
        port (int): TCP chat port (default: 7700)
        web (bool): Also serve the status web app
        web_port (int): Port of the status web app (default: 8081)
    """
    chat_server = create_server()
    try:
        asyncio.run(_serve(chat_server, host, port, web_port if web else None))
    except KeyboardInterrupt:
        print("Closed by user.")
