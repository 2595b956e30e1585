from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from arena.messaging.types import (
    AdminEndQuizMessage,
    ErrorMessage,
    PingMessage,
    PlayerMovementMessage,
    RequestSessionMessage,
    SessionErrorCode,
    UpdateScoreMessage,
    parse_client_message,
)
from arena.session.exceptions import RegistryInvariantViolation

if TYPE_CHECKING:
    from arena.messaging.protocol import ConnectionProtocol
    from arena.messaging.types import ClientMessage
    from arena.session.manager import SessionManager

logger = structlog.get_logger()


class MessageRouter:
    """
    Routes decoded client messages to SessionManager handlers.

    Contains no transport code, so it can be driven by in-memory connections.
    A failing handler affects only the connection that sent the message.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message", connection_id=connection.connection_id, error=str(e))
            await connection.send_model(ErrorMessage(code=SessionErrorCode.INVALID_MESSAGE, message=str(e)))
            return

        try:
            await self._dispatch(connection, message)
        except RegistryInvariantViolation:
            raise
        except Exception:
            logger.exception("unhandled error while processing message", message_type=message.type)

    async def _dispatch(self, connection: ConnectionProtocol, message: ClientMessage) -> None:
        if isinstance(message, RequestSessionMessage):
            await self._session_manager.request_session(
                connection,
                game_id=message.game_id,
                player_info=message.player_info,
                admin_token=message.admin_token,
            )
        elif isinstance(message, PlayerMovementMessage):
            await self._session_manager.player_movement(connection, message.room_code, message.x, message.y)
        elif isinstance(message, UpdateScoreMessage):
            await self._session_manager.update_score(connection, message.room_code, message.score)
        elif isinstance(message, AdminEndQuizMessage):
            await self._session_manager.admin_end_quiz(connection, message.room_code, message.token)
        elif isinstance(message, PingMessage):
            await self._session_manager.handle_ping(connection)

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.register_connection(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        try:
            await self._session_manager.disconnect(connection)
        finally:
            self._session_manager.unregister_connection(connection)
