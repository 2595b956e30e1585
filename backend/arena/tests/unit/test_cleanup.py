"""Tests for the grace-window eviction state machine."""

import asyncio

import pytest

from arena.session.cleanup import CleanupScheduler, EvictionHandle, EvictionState

DELAY = 0.02


class Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, EvictionHandle]] = []

    async def __call__(self, game_id: str, handle: EvictionHandle) -> None:
        self.calls.append((game_id, handle))


async def _wait_past_delay() -> None:
    await asyncio.sleep(DELAY * 5)


class TestCleanupScheduler:
    def test_rejects_non_positive_grace(self):
        with pytest.raises(ValueError, match="grace_seconds"):
            CleanupScheduler(Recorder(), grace_seconds=0)

    async def test_arm_fires_after_delay(self):
        recorder = Recorder()
        scheduler = CleanupScheduler(recorder, grace_seconds=DELAY)

        handle = scheduler.arm("quiz42")
        assert handle.is_pending
        assert scheduler.pending_count == 1

        await _wait_past_delay()

        assert recorder.calls == [("quiz42", handle)]
        assert handle.state == EvictionState.FIRED
        assert scheduler.pending_count == 0

    async def test_cancel_prevents_fire(self):
        recorder = Recorder()
        scheduler = CleanupScheduler(recorder, grace_seconds=DELAY)
        handle = scheduler.arm("quiz42")

        assert scheduler.cancel(handle) is True
        await _wait_past_delay()

        assert recorder.calls == []
        assert handle.state == EvictionState.CANCELLED
        assert scheduler.pending_count == 0

    async def test_cancel_is_idempotent(self):
        scheduler = CleanupScheduler(Recorder(), grace_seconds=DELAY)
        handle = scheduler.arm("quiz42")

        assert scheduler.cancel(handle) is True
        assert scheduler.cancel(handle) is False
        assert handle.cancel() is False

    async def test_cancel_stops_attached_timer_task(self):
        scheduler = CleanupScheduler(Recorder(), grace_seconds=60)
        handle = scheduler.arm("quiz42")
        task = handle._task

        scheduler.cancel(handle)
        await asyncio.sleep(0)

        assert task is not None
        assert task.done()
        assert handle._task is None

    def test_cancel_none_is_noop(self):
        scheduler = CleanupScheduler(Recorder(), grace_seconds=DELAY)

        assert scheduler.cancel(None) is False

    async def test_cancel_after_fire_is_noop(self):
        recorder = Recorder()
        scheduler = CleanupScheduler(recorder, grace_seconds=DELAY)
        handle = scheduler.arm("quiz42")
        await _wait_past_delay()

        assert scheduler.cancel(handle) is False
        assert handle.state == EvictionState.FIRED

    async def test_cancel_all(self):
        recorder = Recorder()
        scheduler = CleanupScheduler(recorder, grace_seconds=DELAY)
        handles = [scheduler.arm(f"quiz{i}") for i in range(3)]

        scheduler.cancel_all()
        await _wait_past_delay()

        assert recorder.calls == []
        assert all(h.state == EvictionState.CANCELLED for h in handles)
        assert scheduler.pending_count == 0

    async def test_timers_are_independent(self):
        recorder = Recorder()
        scheduler = CleanupScheduler(recorder, grace_seconds=DELAY)
        keep = scheduler.arm("quiz1")
        fire = scheduler.arm("quiz2")

        scheduler.cancel(keep)
        await _wait_past_delay()

        assert recorder.calls == [("quiz2", fire)]

    async def test_callback_error_is_contained(self):
        async def failing(_game_id: str, _handle: EvictionHandle) -> None:
            raise RuntimeError("boom")

        scheduler = CleanupScheduler(failing, grace_seconds=DELAY)
        handle = scheduler.arm("quiz42")

        await _wait_past_delay()

        assert handle.state == EvictionState.FIRED
        assert scheduler.pending_count == 0

    async def test_unexpected_callback_error_is_logged_not_leaked(self, caplog):
        async def failing(_game_id: str, _handle: EvictionHandle) -> None:
            raise KeyError("quiz42")

        scheduler = CleanupScheduler(failing, grace_seconds=DELAY)
        handle = scheduler.arm("quiz42")
        task = handle._task

        await _wait_past_delay()

        assert task is not None
        assert task.done()
        assert task.exception() is None
        assert "eviction callback failed" in caplog.text

    async def test_cancel_from_inside_callback_does_not_abort_it(self):
        finished: list[str] = []
        scheduler: CleanupScheduler

        async def on_expire(game_id: str, handle: EvictionHandle) -> None:
            scheduler.cancel(handle)
            await asyncio.sleep(0)
            finished.append(game_id)

        scheduler = CleanupScheduler(on_expire, grace_seconds=DELAY)
        scheduler.arm("quiz42")

        await _wait_past_delay()

        assert finished == ["quiz42"]
