# Standard library imports
import html
import logging
from typing import List, Optional

# Third-party imports
from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

# Local imports
from CoolChat import __version__ as __main_version__
from CoolChat.core.server.chat_server import ChatServer

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str
    version: str
    online: int


class OnlineResponse(BaseModel):
    users: List[str]


class HistoryItem(BaseModel):
    timestamp: str
    username: str
    text: str


class HistoryResponse(BaseModel):
    entries: List[HistoryItem]


def greeting_page(name: Optional[str] = None) -> str:
    who = html.escape(name) if name else "World"
    return f"<html> <body><h1>Hello, {who}!</h1></body></html>"


def create_app(chat_server: ChatServer) -> FastAPI:
    """
    Build the status web app for a chat server.

    The app only reads server state; it runs in uvicorn's thread, so it goes
    through the thread-safe registry and history accessors.

    Args:
        chat_server: Server whose state is reported

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title="CoolChat web",
        version=__main_version__,
        description="Status pages for CoolChat, a LAN text chat server.",
        contact={
            "name": "CoolChat Team"
        }
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    @app.get("/", response_class=HTMLResponse)
    async def read_root(name: Optional[str] = None):
        return greeting_page(name)

    @app.get("/api/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(
            status="ok",
            version=__main_version__,
            online=len(chat_server.registry)
        )

    @app.get("/api/online", response_model=OnlineResponse)
    async def online():
        return OnlineResponse(users=chat_server.online_users())

    @app.get("/api/history", response_model=HistoryResponse)
    async def history(limit: int = Query(50, ge=1, le=1000)):
        entries = chat_server.history.recent(limit)
        logger.debug("Serving %d history entries", len(entries))
        return HistoryResponse(entries=[HistoryItem(**entry.to_dict()) for entry in entries])

    return app
