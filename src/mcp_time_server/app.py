"""Starlette application for the time server."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from mcp_time_server import SERVER_NAME, __version__
from mcp_time_server.dispatcher import ToolDispatcher, utc_now
from mcp_time_server.server import Server
from mcp_time_server.sessions import SessionTable
from mcp_time_server.settings import Settings
from mcp_time_server.sse import SseServerTransport
from mcp_time_server.tools import format_iso

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    dispatcher: ToolDispatcher | None = None,
    sessions: SessionTable | None = None,
) -> Starlette:
    """Build the ASGI app.

    Routes:
        GET  <mcp_path>   open an SSE session stream
        POST <mcp_path>   post a message to a session (``?sessionId=...``)
        GET  /health      liveness probe

    On lifespan shutdown every open session is closed and the table cleared.
    """
    settings = settings or Settings()
    server = Server(SERVER_NAME, __version__, dispatcher)
    sse = SseServerTransport(
        settings.mcp_path,
        server,
        sessions,
        shutdown_timeout=settings.shutdown_timeout,
    )

    async def health(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "server": SERVER_NAME,
                "version": __version__,
                "timestamp": format_iso(utc_now()),
            }
        )

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        try:
            yield
        finally:
            logger.info("Shutting down gracefully...")
            await sse.aclose()

    app = Starlette(
        debug=settings.debug,
        routes=[
            Route(settings.mcp_path, endpoint=sse, methods=["GET", "POST"]),
            Route("/health", endpoint=health, methods=["GET"]),
        ],
        lifespan=lifespan,
    )
    app.state.transport = sse
    return app
