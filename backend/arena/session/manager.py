from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog

from arena.messaging.types import (
    ErrorEndingQuizMessage,
    ErrorMessage,
    LeaderboardUpdateMessage,
    NewPlayerMessage,
    PlayerDisconnectedMessage,
    PlayerMovedMessage,
    PongMessage,
    SessionErrorCode,
    SessionMessageType,
    SessionReadyMessage,
)
from arena.session.broadcast import BroadcastDispatcher
from arena.session.cleanup import DEFAULT_GRACE_SECONDS, CleanupScheduler
from arena.session.connections import ConnectionHub
from arena.session.exceptions import (
    FinalizationInProgressError,
    NotFoundError,
    RegistryFullError,
    SinkFailure,
    UnauthorizedError,
)
from arena.session.finalizer import AdminFinalizer
from arena.session.models import ADMIN_ROLE
from arena.session.registry import SessionRegistry

if TYPE_CHECKING:
    from arena.messaging.protocol import ConnectionProtocol
    from arena.session.cleanup import EvictionHandle
    from arena.session.models import Session
    from arena.session.results_sink import ResultsSink
    from arena.session.room_code import RoomCodeAllocator
    from arena.session.types import PlayerInfo

logger = structlog.get_logger()


class SessionManager:
    """Entry point for every inbound session event.

    Each public coroutine is one transaction: it runs under the lock of the
    session it touches, and every broadcast it triggers leaves before the lock
    is released. The only exception is the results upload during admin
    finalization, which AdminFinalizer performs with no lock held.
    """

    def __init__(
        self,
        sink: ResultsSink,
        *,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        max_sessions: int | None = None,
        allocator: RoomCodeAllocator | None = None,
    ) -> None:
        self._sink = sink
        self._hub = ConnectionHub()
        self._registry = SessionRegistry(allocator=allocator, max_sessions=max_sessions)
        self._dispatcher = BroadcastDispatcher(self._registry, self._hub)
        self._cleanup = CleanupScheduler(on_expire=self._handle_eviction, grace_seconds=grace_seconds)
        self._finalizer = AdminFinalizer(
            registry=self._registry,
            dispatcher=self._dispatcher,
            sink=sink,
            teardown=self._teardown,
        )

    # --- Connections ---

    def register_connection(self, connection: ConnectionProtocol) -> None:
        self._hub.register(connection)

    def unregister_connection(self, connection: ConnectionProtocol) -> None:
        self._hub.unregister(connection.connection_id)

    # --- Introspection ---

    @property
    def session_count(self) -> int:
        return self._registry.session_count

    @property
    def sessions_in_grace(self) -> int:
        return sum(1 for session in self._registry.sessions() if session.in_grace)

    @property
    def connection_count(self) -> int:
        return self._hub.connection_count

    def get_session(self, game_id: str) -> Session | None:
        return self._registry.find_by_game_id(game_id)

    def find_by_room_code(self, room_code: str) -> Session | None:
        return self._registry.find_by_room_code(room_code)

    def session_of(self, connection_id: str) -> Session | None:
        game_id = self._hub.session_of(connection_id)
        return self._registry.find_by_game_id(game_id) if game_id is not None else None

    # --- Inbound events ---

    async def request_session(
        self,
        connection: ConnectionProtocol,
        game_id: str,
        player_info: PlayerInfo,
        admin_token: str | None = None,
    ) -> None:
        """Find or create the session for game_id and seat the caller in it."""
        connection_id = connection.connection_id
        if self._hub.session_of(connection_id) is not None:
            await self._send_error(
                connection,
                SessionErrorCode.ALREADY_IN_SESSION,
                "Connection is already in a session",
            )
            return

        admin_claim = admin_token if player_info.role == ADMIN_ROLE else None

        while True:
            try:
                session, created = await self._registry.find_or_create(game_id, admin_claim)
            except RegistryFullError as e:
                await self._send_error(connection, SessionErrorCode.SERVER_AT_CAPACITY, str(e))
                return

            async with session.lock:
                # Lost a race with eviction or finalization; the next
                # find_or_create builds a fresh session.
                if session.destroyed:
                    continue

                if self._cleanup.cancel(session.pending_eviction):
                    logger.info("session reactivated during grace window", game_id=game_id)
                session.pending_eviction = None

                player = session.presence.add(connection_id, player_info)
                self._hub.bind(connection_id, game_id)
                if created and admin_claim is not None and session.admin_connection_id is None:
                    session.admin_connection_id = connection_id

                structlog.contextvars.bind_contextvars(game_id=game_id, room_code=session.room_code)
                logger.info("player joined session", players=len(session.presence))

                await self._dispatcher.to_participant(
                    connection_id,
                    SessionReadyMessage(
                        type=SessionMessageType.SESSION_CREATED if created else SessionMessageType.SESSION_READY,
                        game_id=game_id,
                        room_code=session.room_code,
                        players=session.presence.roster(),
                        own_connection_id=connection_id,
                    ),
                )
                await self._dispatcher.to_room_except_sender(
                    session.room_code,
                    connection_id,
                    NewPlayerMessage(player_id=connection_id, player_info=player.to_view()),
                )
                await self._dispatcher.to_room(
                    session.room_code,
                    LeaderboardUpdateMessage(players=session.presence.snapshot()),
                )
                return

    async def player_movement(self, connection: ConnectionProtocol, room_code: str, x: float, y: float) -> None:
        session = await self._resolve_room(connection, room_code)
        if session is None:
            return
        async with session.lock:
            if session.destroyed or not session.presence.update_position(connection.connection_id, x, y):
                return
            await self._dispatcher.to_room_except_sender(
                room_code,
                connection.connection_id,
                PlayerMovedMessage(player_id=connection.connection_id, x=x, y=y),
            )

    async def update_score(self, connection: ConnectionProtocol, room_code: str, score: float) -> None:
        session = await self._resolve_room(connection, room_code)
        if session is None:
            return
        async with session.lock:
            if session.destroyed or not session.presence.update_score(connection.connection_id, score):
                return
            await self._dispatcher.to_room(
                room_code,
                LeaderboardUpdateMessage(players=session.presence.snapshot()),
            )

    async def admin_end_quiz(self, connection: ConnectionProtocol, room_code: str, token: str | None) -> None:
        """Finalize the quiz for room_code; failures are reported to the caller only."""
        try:
            await self._finalizer.finalize(room_code, token)
        except UnauthorizedError as e:
            logger.warning("unauthorized finalize attempt", room_code=room_code)
            await self._send_finalize_error(connection, SessionErrorCode.UNAUTHORIZED, str(e))
        except FinalizationInProgressError as e:
            await self._send_finalize_error(connection, SessionErrorCode.FINALIZE_IN_PROGRESS, str(e))
        except SinkFailure as e:
            code = SessionErrorCode.RESULTS_REJECTED if e.rejected else SessionErrorCode.RESULTS_UNREACHABLE
            await self._send_finalize_error(connection, code, str(e))

    async def disconnect(self, connection: ConnectionProtocol) -> None:
        """Remove the connection from its session, arming eviction if the room empties."""
        connection_id = connection.connection_id
        game_id = self._hub.session_of(connection_id)
        if game_id is None:
            return
        session = self._registry.find_by_game_id(game_id)
        if session is None:
            self._hub.unbind(connection_id, game_id)
            return

        async with session.lock:
            self._hub.unbind(connection_id, game_id)
            if session.destroyed:
                return
            removed = session.presence.remove(connection_id)
            if removed is None:
                return

            if session.admin_connection_id == connection_id:
                session.admin_token = None
                session.admin_connection_id = None
                logger.info("session admin disconnected, admin token cleared", game_id=game_id)

            logger.info("player left session", game_id=game_id, players=len(session.presence))
            await self._dispatcher.to_room(session.room_code, PlayerDisconnectedMessage(player_id=connection_id))

            if session.is_empty:
                session.pending_eviction = self._cleanup.arm(game_id)
            else:
                await self._dispatcher.to_room(
                    session.room_code,
                    LeaderboardUpdateMessage(players=session.presence.snapshot()),
                )

    async def handle_ping(self, connection: ConnectionProtocol) -> None:
        await connection.send_model(PongMessage())

    async def shutdown(self) -> None:
        """Cancel all grace timers and release the results client."""
        self._cleanup.cancel_all()
        await self._sink.aclose()

    # --- Internal helpers ---

    async def _handle_eviction(self, game_id: str, handle: EvictionHandle) -> None:
        session = self._registry.find_by_game_id(game_id)
        if session is None:
            return
        async with session.lock:
            # A join between the timer firing and this lock acquisition
            # replaces or clears pending_eviction; the session then stays.
            if session.destroyed or session.pending_eviction is not handle or not session.is_empty:
                return
            logger.info("grace window expired, evicting session", game_id=game_id, room_code=session.room_code)
            await self._teardown(session)

    async def _teardown(self, session: Session) -> None:
        """Destroy a session. Caller must hold session.lock."""
        session.destroyed = True
        self._cleanup.cancel(session.pending_eviction)
        session.pending_eviction = None
        for connection_id in session.presence.connection_ids():
            self._hub.unbind(connection_id, session.game_id)
        await self._registry.destroy(session.game_id)

    async def _resolve_room(self, connection: ConnectionProtocol, room_code: str) -> Session | None:
        try:
            return self._registry.require_by_room_code(room_code)
        except NotFoundError as e:
            await self._send_error(connection, SessionErrorCode.ROOM_NOT_FOUND, str(e))
            return None

    async def _send_error(self, connection: ConnectionProtocol, code: SessionErrorCode, message: str) -> None:
        logger.warning("session error sent to client", error_code=code.value, error_message=message)
        with contextlib.suppress(RuntimeError, OSError, ConnectionError):
            await connection.send_model(ErrorMessage(code=code, message=message))

    async def _send_finalize_error(self, connection: ConnectionProtocol, code: SessionErrorCode, message: str) -> None:
        logger.warning("quiz finalization failed", error_code=code.value, error_message=message)
        with contextlib.suppress(RuntimeError, OSError, ConnectionError):
            await connection.send_model(ErrorEndingQuizMessage(code=code, message=message))
