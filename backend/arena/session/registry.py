"""Process-wide index of active sessions."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from arena.session.exceptions import NotFoundError, RegistryFullError, RegistryInvariantViolation
from arena.session.models import Session
from arena.session.room_code import RoomCodeAllocator

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = structlog.get_logger()


class SessionRegistry:
    """Own every active session, indexed by game id and by room code.

    Starts empty; nothing is persisted across restarts. Both indexes are only
    touched together while holding the registry lock, and room codes are
    allocated under that same lock so two concurrent creations can never draw
    the same code.
    """

    def __init__(
        self,
        allocator: RoomCodeAllocator | None = None,
        max_sessions: int | None = None,
    ) -> None:
        self._allocator = allocator or RoomCodeAllocator()
        self._max_sessions = max_sessions
        self._by_game_id: dict[str, Session] = {}
        self._by_room_code: dict[str, Session] = {}
        self._lock = asyncio.Lock()

    @property
    def session_count(self) -> int:
        return len(self._by_game_id)

    def sessions(self) -> Iterator[Session]:
        return iter(list(self._by_game_id.values()))

    def find_by_game_id(self, game_id: str) -> Session | None:
        return self._by_game_id.get(game_id)

    def find_by_room_code(self, room_code: str) -> Session | None:
        return self._by_room_code.get(room_code)

    def require_by_room_code(self, room_code: str) -> Session:
        """Like find_by_room_code, but raise NotFoundError when the room is unknown."""
        session = self._by_room_code.get(room_code)
        if session is None:
            raise NotFoundError(room_code)
        return session

    async def find_or_create(self, game_id: str, admin_token: str | None = None) -> tuple[Session, bool]:
        """Return the session for game_id, creating it if needed.

        The admin token is bound only when this call creates the session.
        Returns (session, created).
        """
        async with self._lock:
            session = self._by_game_id.get(game_id)
            if session is not None:
                return session, False

            if self._max_sessions is not None and len(self._by_game_id) >= self._max_sessions:
                raise RegistryFullError("Server at capacity")

            room_code = self._allocator.allocate(self._by_room_code)
            session = Session(game_id=game_id, room_code=room_code, admin_token=admin_token)
            self._by_game_id[game_id] = session
            self._by_room_code[room_code] = session
            self.check_consistency()

        logger.info("session created", game_id=game_id, room_code=room_code, has_admin=admin_token is not None)
        return session, True

    async def destroy(self, game_id: str) -> Session | None:
        """Remove a session from both indexes. Destroying an absent game id is a no-op."""
        async with self._lock:
            session = self._by_game_id.pop(game_id, None)
            if session is None:
                return None
            self._by_room_code.pop(session.room_code, None)
            self.check_consistency()

        logger.info("session destroyed", game_id=game_id, room_code=session.room_code)
        return session

    def check_consistency(self) -> None:
        """Raise RegistryInvariantViolation if the two indexes disagree."""
        if len(self._by_game_id) != len(self._by_room_code):
            raise RegistryInvariantViolation(
                f"index sizes differ: {len(self._by_game_id)} game ids, {len(self._by_room_code)} room codes",
            )
        for game_id, session in self._by_game_id.items():
            if session.game_id != game_id or self._by_room_code.get(session.room_code) is not session:
                raise RegistryInvariantViolation(f"session {game_id} is not reachable by room code")
