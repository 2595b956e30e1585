from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from arena.messaging.router import MessageRouter
from arena.server.settings import ArenaServerSettings
from arena.server.websocket import websocket_endpoint
from arena.session.manager import SessionManager
from arena.session.results_sink import ResultsSink
from shared.build_info import build_metadata
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request
    from starlette.websockets import WebSocket


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", **build_metadata()})


async def status(request: Request) -> JSONResponse:
    session_manager: SessionManager = request.app.state.session_manager
    settings: ArenaServerSettings = request.app.state.settings
    return JSONResponse(
        {
            "status": "ok",
            **build_metadata(),
            "active_sessions": session_manager.session_count,
            "sessions_in_grace": session_manager.sessions_in_grace,
            "connections": session_manager.connection_count,
            "max_sessions": settings.max_sessions,
        },
    )


def create_app(
    settings: ArenaServerSettings | None = None,
    session_manager: SessionManager | None = None,
    message_router: MessageRouter | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = ArenaServerSettings()  # ty: ignore[missing-argument]

    if session_manager is None:
        sink = ResultsSink(settings.results_url, timeout=settings.results_timeout_seconds)
        session_manager = SessionManager(
            sink,
            grace_seconds=settings.grace_seconds,
            max_sessions=settings.max_sessions,
        )

    if message_router is None:
        message_router = MessageRouter(session_manager)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, message_router)

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        yield
        await session_manager.shutdown()

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.session_manager = session_manager

    logger.info("arena server ready", grace_seconds=settings.grace_seconds)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (uvicorn --factory arena.server.app:get_app)."""
    settings = ArenaServerSettings()  # ty: ignore[missing-argument]
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)
