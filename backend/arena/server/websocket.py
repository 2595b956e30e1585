from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from arena.messaging.encoder import DecodeError, decode
from arena.messaging.protocol import ConnectionProtocol
from arena.messaging.types import ErrorMessage, SessionErrorCode

logger = structlog.get_logger()

if TYPE_CHECKING:
    from arena.messaging.router import MessageRouter

CLOSE_TOO_MANY_BAD_FRAMES = 4004
_MAX_CONSECUTIVE_BAD_FRAMES = 5


class WebSocketConnection(ConnectionProtocol):
    """Adapt a Starlette WebSocket to ConnectionProtocol.

    Every accepted socket gets a fresh uuid, which is also the participant's
    player id for as long as it stays connected.
    """

    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._connection_id = connection_id or str(uuid4())

    @property
    def connection_id(self) -> str:
        return self._connection_id

    async def send_bytes(self, data: bytes) -> None:
        try:
            await self._websocket.send_bytes(data)
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def receive_bytes(self) -> bytes:
        message = await self._websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise ConnectionError("WebSocket disconnected")
        data = message.get("bytes")
        if data is None:
            # Text frames are not part of the protocol; let the decoder reject them.
            return (message.get("text") or "").encode()
        return data

    async def close(self, code: int = 1000, reason: str = "") -> None:
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


async def _serve(connection: WebSocketConnection, router: MessageRouter) -> None:
    bad_frames = 0
    while True:
        raw = await connection.receive_bytes()
        try:
            data = decode(raw)
        except DecodeError as e:
            bad_frames += 1
            logger.warning("undecodable frame", error=str(e), strikes=bad_frames)
            await connection.send_model(ErrorMessage(code=SessionErrorCode.INVALID_MESSAGE, message=str(e)))
            if bad_frames >= _MAX_CONSECUTIVE_BAD_FRAMES:
                logger.info("closing connection after repeated undecodable frames")
                await connection.close(code=CLOSE_TOO_MANY_BAD_FRAMES, reason="too_many_decode_errors")
                return
            continue

        bad_frames = 0
        await router.handle_message(connection, data)


async def websocket_endpoint(websocket: WebSocket, router: MessageRouter) -> None:
    await websocket.accept()

    connection = WebSocketConnection(websocket)
    structlog.contextvars.bind_contextvars(connection_id=connection.connection_id)
    logger.info("websocket connected")
    await router.handle_connect(connection)

    try:
        await _serve(connection, router)
    except (WebSocketDisconnect, RuntimeError, ConnectionError):
        pass
    finally:
        logger.info("websocket disconnected")
        await router.handle_disconnect(connection)
        structlog.contextvars.clear_contextvars()
