"""
Grace-window eviction for empty sessions.

When the last participant leaves, the session enters a grace window instead of
being destroyed at once, so a page reload or a brief network drop does not lose
the room code. A join during the window cancels the eviction; otherwise the
expiry callback destroys the session.

Per session the states are:
- active: `session.pending_eviction` is None (or holds a finished handle)
- grace: a PENDING EvictionHandle is stored on the session
- destroyed: the handle FIRED and the callback removed the session
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import StrEnum

import structlog

logger = structlog.get_logger()

DEFAULT_GRACE_SECONDS = 60.0


class EvictionState(StrEnum):
    PENDING = "pending"
    CANCELLED = "cancelled"
    FIRED = "fired"


class EvictionHandle:
    """A single armed eviction timer.

    Transitions are one-way: PENDING -> CANCELLED or PENDING -> FIRED.
    """

    def __init__(self, game_id: str, delay: float) -> None:
        self.game_id = game_id
        self.delay = delay
        self._state = EvictionState.PENDING
        self._task: asyncio.Task[None] | None = None

    def _attach(self, task: asyncio.Task[None]) -> None:
        self._task = task

    @property
    def state(self) -> EvictionState:
        return self._state

    @property
    def is_pending(self) -> bool:
        return self._state == EvictionState.PENDING

    def cancel(self) -> bool:
        """Cancel the timer. Return False if it already fired or was cancelled."""
        if self._state != EvictionState.PENDING:
            return False
        self._state = EvictionState.CANCELLED
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        return True

    def _mark_fired(self) -> bool:
        if self._state != EvictionState.PENDING:
            return False
        self._state = EvictionState.FIRED
        # The callback runs inside this task; drop the reference so a later
        # cancel() cannot cancel the callback mid-flight.
        self._task = None
        return True


# Callback type: (game_id, handle) -> Awaitable[None]
ExpireCallback = Callable[[str, EvictionHandle], Awaitable[None]]


class CleanupScheduler:
    """Arm and track grace-window timers for empty sessions.

    Knows nothing about sessions beyond their id: the owner supplies
    `on_expire` and re-validates session state under its own lock when the
    callback runs.
    """

    def __init__(
        self,
        on_expire: ExpireCallback,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
    ) -> None:
        if grace_seconds <= 0:
            raise ValueError(f"grace_seconds must be positive, got {grace_seconds}")
        self._on_expire = on_expire
        self._grace_seconds = grace_seconds
        self._handles: set[EvictionHandle] = set()

    @property
    def grace_seconds(self) -> float:
        return self._grace_seconds

    @property
    def pending_count(self) -> int:
        return sum(1 for handle in self._handles if handle.is_pending)

    def arm(self, game_id: str) -> EvictionHandle:
        """Start the grace timer for a session that just became empty."""
        handle = EvictionHandle(game_id, self._grace_seconds)
        handle._attach(asyncio.create_task(self._run(handle)))
        self._handles.add(handle)
        logger.info(
            "session eviction armed",
            game_id=game_id,
            grace_seconds=self._grace_seconds,
            pending=self.pending_count,
        )
        return handle

    def cancel(self, handle: EvictionHandle | None) -> bool:
        """Cancel an armed handle. Safe to call with None or a finished handle."""
        if handle is None:
            return False
        self._handles.discard(handle)
        cancelled = handle.cancel()
        if cancelled:
            logger.info("session eviction cancelled", game_id=handle.game_id)
        return cancelled

    def cancel_all(self) -> None:
        """Cancel every outstanding timer (process shutdown)."""
        for handle in list(self._handles):
            handle.cancel()
        self._handles.clear()

    async def _run(self, handle: EvictionHandle) -> None:
        try:
            await asyncio.sleep(handle.delay)
        except asyncio.CancelledError:
            return
        self._handles.discard(handle)
        if not handle._mark_fired():
            return
        logger.info("session eviction fired", game_id=handle.game_id)
        try:
            await self._on_expire(handle.game_id, handle)
        except Exception:
            logger.exception("eviction callback failed", game_id=handle.game_id)
