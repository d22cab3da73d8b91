"""
Status web app for CoolChat.

Served by uvicorn next to the chat server, on its own daemon thread.
"""

import logging
import threading

import uvicorn

from .routes import create_app, greeting_page

logger = logging.getLogger(__name__)


def run(app, host: str = "0.0.0.0", port: int = 8081) -> None:
    """
    Run the FastAPI application with Uvicorn server.

    Args:
        app: FastAPI application
        host: Host to bind to
        port: Port for the web app
    """
    try:
        uvicorn.run(app, host=host, port=port, log_config=None)
    except (OSError, SystemExit) as e:
        logger.error("Error running web server on %s:%s: %s", host, port, e)


def start_in_thread(app, host: str = "0.0.0.0", port: int = 8081) -> threading.Thread:
    """Start the web app on a daemon thread and return the thread."""
    http_thread = threading.Thread(target=run, args=(app, host, port), name="coolchat-web", daemon=True)
    http_thread.start()
    logger.info("Web app starting on http://%s:%s", host, port)
    return http_thread


__all__ = [
    'create_app',
    'greeting_page',
    'run',
    'start_in_thread',
]
