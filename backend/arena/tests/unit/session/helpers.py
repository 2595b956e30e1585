"""Shared helpers for driving SessionManager in unit tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

from arena.session.types import PlayerInfo
from arena.tests.mocks import MockConnection

if TYPE_CHECKING:
    from arena.session.manager import SessionManager

ADMIN_TOKEN = "admin-secret-token"
SHORT_GRACE_SECONDS = 0.05


def make_player_info(
    username: str = "alice",
    *,
    character: str = "fox",
    x: float = 0,
    y: float = 0,
    role: str | None = None,
    user_id: str | None = None,
) -> PlayerInfo:
    return PlayerInfo(username=username, character=character, x=x, y=y, role=role, user_id=user_id)


async def join(
    manager: SessionManager,
    game_id: str = "quiz42",
    username: str = "alice",
    *,
    admin_token: str | None = None,
    role: str | None = None,
    connection: MockConnection | None = None,
) -> MockConnection:
    """Register a new connection and request a session for it."""
    conn = connection or MockConnection()
    manager.register_connection(conn)
    await manager.request_session(
        conn,
        game_id,
        make_player_info(username, role=role, user_id=f"user-{username}"),
        admin_token=admin_token,
    )
    return conn


async def join_as_admin(manager: SessionManager, game_id: str = "quiz42", username: str = "host") -> MockConnection:
    return await join(manager, game_id, username, admin_token=ADMIN_TOKEN, role="admin")


async def leave(manager: SessionManager, conn: MockConnection) -> None:
    """Simulate the transport dropping a connection."""
    await manager.disconnect(conn)
    manager.unregister_connection(conn)


def room_code_of(conn: MockConnection) -> str:
    ready = [m for m in conn.sent_messages if m["type"] in ("session_created", "session_ready")]
    assert ready, "connection never received a session_ready/session_created message"
    return ready[-1]["room_code"]
