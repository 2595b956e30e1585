"""Tests for leaving a session, the grace window, and eviction."""

import asyncio

from arena.messaging.types import SessionErrorCode, SessionMessageType
from arena.session.cleanup import EvictionState
from arena.tests.mocks import MockConnection

from .helpers import ADMIN_TOKEN, SHORT_GRACE_SECONDS, join, join_as_admin, leave, room_code_of


async def _wait_past_grace() -> None:
    await asyncio.sleep(SHORT_GRACE_SECONDS * 4)


class TestDisconnect:
    async def test_remaining_players_notified(self, manager):
        alice = await join(manager, "quiz42", "alice")
        bob = await join(manager, "quiz42", "bob")
        bob.clear()

        await leave(manager, alice)

        disconnected = bob.messages_of_type(SessionMessageType.PLAYER_DISCONNECTED)
        assert disconnected == [{"type": "player_disconnected", "player_id": alice.connection_id}]
        updates = bob.messages_of_type(SessionMessageType.LEADERBOARD_UPDATE)
        assert len(updates) == 1
        assert [p["username"] for p in updates[0]["players"]] == ["bob"]

    async def test_leaving_player_removed_from_roster(self, manager):
        alice = await join(manager, "quiz42", "alice")
        bob = await join(manager, "quiz42", "bob")

        await leave(manager, alice)

        session = manager.get_session("quiz42")
        assert alice.connection_id not in session.presence
        assert bob.connection_id in session.presence
        assert manager.session_of(alice.connection_id) is None
        assert not session.in_grace

    async def test_last_leave_arms_eviction(self, manager):
        alice = await join(manager, "quiz42", "alice")

        await leave(manager, alice)

        session = manager.get_session("quiz42")
        assert session is not None
        assert session.is_empty
        assert session.in_grace
        assert manager.sessions_in_grace == 1

    async def test_disconnect_without_session_is_noop(self, manager):
        conn = MockConnection()
        manager.register_connection(conn)

        await manager.disconnect(conn)

        assert conn.sent_messages == []
        assert manager.session_count == 0

    async def test_disconnect_twice_is_noop(self, manager):
        alice = await join(manager, "quiz42", "alice")
        bob = await join(manager, "quiz42", "bob")
        await manager.disconnect(alice)
        bob.clear()

        await manager.disconnect(alice)

        assert bob.sent_messages == []

    async def test_room_code_stable_while_occupied(self, manager):
        alice = await join(manager, "quiz42", "alice")
        code = room_code_of(alice)
        bob = await join(manager, "quiz42", "bob")
        await leave(manager, alice)
        carol = await join(manager, "quiz42", "carol")
        await leave(manager, bob)

        assert room_code_of(bob) == code
        assert room_code_of(carol) == code
        assert manager.find_by_room_code(code) is manager.get_session("quiz42")


class TestGraceWindow:
    async def test_rejoin_during_grace_keeps_session(self, manager):
        alice = await join(manager, "quiz42", "alice")
        code = room_code_of(alice)
        session = manager.get_session("quiz42")
        await leave(manager, alice)
        handle = session.pending_eviction

        bob = await join(manager, "quiz42", "bob")

        ready = bob.messages_of_type(SessionMessageType.SESSION_READY)
        assert len(ready) == 1
        assert ready[0]["room_code"] == code
        assert manager.get_session("quiz42") is session
        assert handle.state == EvictionState.CANCELLED
        assert session.pending_eviction is None
        assert manager.sessions_in_grace == 0

    async def test_rejoin_before_expiry_survives_timer(self, short_grace_manager):
        manager = short_grace_manager
        alice = await join(manager, "quiz42", "alice")
        code = room_code_of(alice)
        await leave(manager, alice)

        await join(manager, "quiz42", "bob")
        await _wait_past_grace()

        assert manager.find_by_room_code(code) is manager.get_session("quiz42")
        assert manager.session_count == 1

    async def test_empty_session_evicted_after_grace(self, short_grace_manager):
        manager = short_grace_manager
        alice = await join(manager, "quiz42", "alice")
        code = room_code_of(alice)

        await leave(manager, alice)
        await _wait_past_grace()

        assert manager.get_session("quiz42") is None
        assert manager.find_by_room_code(code) is None
        assert manager.session_count == 0
        assert manager.sessions_in_grace == 0

    async def test_join_after_expiry_creates_new_session(self, short_grace_manager):
        manager = short_grace_manager
        alice = await join(manager, "quiz42", "alice")
        old_session = manager.get_session("quiz42")
        await leave(manager, alice)
        await _wait_past_grace()

        bob = await join(manager, "quiz42", "bob")

        assert len(bob.messages_of_type(SessionMessageType.SESSION_CREATED)) == 1
        new_session = manager.get_session("quiz42")
        assert new_session is not old_session
        assert list(new_session.presence) == [bob.connection_id]

    async def test_join_racing_teardown_gets_fresh_session(self, manager):
        alice = await join(manager, "quiz42", "alice")
        old = manager.get_session("quiz42")
        await leave(manager, alice)

        async with old.lock:
            joining = asyncio.create_task(join(manager, "quiz42", "bob"))
            for _ in range(5):
                await asyncio.sleep(0)
            assert not joining.done()
            await manager._teardown(old)
        bob = await joining

        new = manager.get_session("quiz42")
        assert old.destroyed
        assert bob.connection_id not in old.presence
        assert new is not None
        assert new is not old
        assert bob.connection_id in new.presence
        assert manager.session_of(bob.connection_id) is new
        ready = bob.messages_of_type(SessionMessageType.SESSION_CREATED)
        assert [m["room_code"] for m in ready] == [new.room_code]
        assert bob.messages_of_type(SessionMessageType.SESSION_READY) == []

    async def test_stale_eviction_callback_ignored(self, manager):
        """An expiry that lost the race with a rejoin leaves the session alone."""
        alice = await join(manager, "quiz42", "alice")
        session = manager.get_session("quiz42")
        await leave(manager, alice)
        stale_handle = session.pending_eviction
        await join(manager, "quiz42", "bob")

        await manager._handle_eviction("quiz42", stale_handle)

        assert manager.get_session("quiz42") is session
        assert not session.destroyed

    async def test_eviction_callback_for_unknown_game_is_noop(self, manager):
        alice = await join(manager, "quiz42", "alice")
        session = manager.get_session("quiz42")
        await leave(manager, alice)

        await manager._handle_eviction("missing", session.pending_eviction)

        assert manager.get_session("quiz42") is session

    async def test_shutdown_cancels_grace_timers(self, short_grace_manager):
        manager = short_grace_manager
        alice = await join(manager, "quiz42", "alice")
        session = manager.get_session("quiz42")
        await leave(manager, alice)
        handle = session.pending_eviction

        await manager.shutdown()
        await _wait_past_grace()

        assert handle.state == EvictionState.CANCELLED
        assert manager.sessions_in_grace == 0
        assert manager.get_session("quiz42") is session


class TestQuizScenario:
    async def test_two_players_join_leave_and_room_expires(self, short_grace_manager):
        manager = short_grace_manager
        a = await join(manager, "quiz42", "alice")
        code = room_code_of(a)
        assert len(code) == 6

        b = await join(manager, "quiz42", "bob")
        assert room_code_of(b) == code
        assert [m["player_id"] for m in a.messages_of_type(SessionMessageType.NEW_PLAYER)] == [b.connection_id]

        await leave(manager, a)
        assert b.messages_of_type(SessionMessageType.PLAYER_DISCONNECTED)[-1]["player_id"] == a.connection_id
        assert list(manager.get_session("quiz42").presence) == [b.connection_id]

        await leave(manager, b)
        assert manager.get_session("quiz42").in_grace

        await _wait_past_grace()
        assert manager.get_session("quiz42") is None
        assert manager.find_by_room_code(code) is None


class TestAdminDisconnect:
    async def test_admin_leaving_clears_token(self, manager, results_service):
        host = await join_as_admin(manager, "quiz42")
        alice = await join(manager, "quiz42", "alice")
        code = room_code_of(alice)

        await leave(manager, host)

        session = manager.get_session("quiz42")
        assert session.admin_token is None
        assert session.admin_connection_id is None

        alice.clear()
        await manager.admin_end_quiz(alice, code, ADMIN_TOKEN)

        errors = alice.messages_of_type(SessionMessageType.ERROR_ENDING_QUIZ)
        assert len(errors) == 1
        assert errors[0]["code"] == SessionErrorCode.UNAUTHORIZED
        assert results_service.call_count == 0
        assert manager.get_session("quiz42") is session

    async def test_non_admin_leaving_keeps_token(self, manager):
        await join_as_admin(manager, "quiz42")
        alice = await join(manager, "quiz42", "alice")

        await leave(manager, alice)

        assert manager.get_session("quiz42").admin_token == ADMIN_TOKEN
