"""Admin-authorized end of a quiz: persist results, announce, tear down."""

from __future__ import annotations

import hmac
from typing import TYPE_CHECKING, Any

import structlog

from arena.messaging.types import QuizEndedMessage
from arena.session.exceptions import FinalizationInProgressError, UnauthorizedError

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from arena.session.broadcast import BroadcastDispatcher
    from arena.session.models import Session
    from arena.session.registry import SessionRegistry
    from arena.session.results_sink import ResultsSink
    from arena.session.types import PlayerView

logger = structlog.get_logger()


def _tokens_match(expected: str | None, presented: str | None) -> bool:
    if not expected or not presented:
        return False
    return hmac.compare_digest(expected.encode(), presented.encode())


class AdminFinalizer:
    """Finalize a session on behalf of its admin.

    The results upload is the only slow step and runs with no lock held:
    the leaderboard is snapshotted under the session lock, the lock is
    released for the upload, and re-acquired for the broadcast and teardown.
    `teardown` is supplied by the owner (SessionManager) and must be called
    with the session lock held.
    """

    def __init__(
        self,
        *,
        registry: SessionRegistry,
        dispatcher: BroadcastDispatcher,
        sink: ResultsSink,
        teardown: Callable[[Session], Coroutine[Any, Any, None]],
    ) -> None:
        self._registry = registry
        self._dispatcher = dispatcher
        self._sink = sink
        self._teardown = teardown

    async def finalize(self, room_code: str, token: str | None) -> list[PlayerView]:
        """Persist the leaderboard and end the session. Return the leaderboard sent.

        Raises UnauthorizedError (no session, no admin bound, or token mismatch),
        FinalizationInProgressError, or SinkFailure. On SinkFailure the session
        is left intact and may be finalized again later.
        """
        session = self._registry.find_by_room_code(room_code)
        if session is None:
            raise UnauthorizedError("No session to finalize")

        async with session.lock:
            if session.destroyed or not _tokens_match(session.admin_token, token):
                raise UnauthorizedError("Invalid admin token")
            if session.finalizing:
                raise FinalizationInProgressError("Quiz is already being finalized")
            session.finalizing = True
            game_id = session.game_id
            leaderboard = session.presence.snapshot()

        persisted = False
        try:
            await self._sink.submit(game_id, leaderboard, token)
            persisted = True
        finally:
            if not persisted:
                session.finalizing = False

        async with session.lock:
            if not session.destroyed:
                await self._dispatcher.to_room(
                    session.room_code,
                    QuizEndedMessage(game_id=game_id, room_code=session.room_code, leaderboard=leaderboard),
                )
                await self._teardown(session)
        logger.info("quiz finalized", game_id=game_id, room_code=room_code, players=len(leaderboard))
        return leaderboard
