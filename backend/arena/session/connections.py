"""Registry of open connections, keyed by connection id."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from arena.messaging.protocol import ConnectionProtocol


class ConnectionHub:
    """Track open connections so events can be addressed by connection id.

    Also records which session (by game id) each connection currently
    participates in. A connection belongs to at most one session.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ConnectionProtocol] = {}
        self._memberships: dict[str, str] = {}  # connection_id -> game_id

    def register(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    def unregister(self, connection_id: str) -> None:
        self._connections.pop(connection_id, None)
        self._memberships.pop(connection_id, None)

    def get(self, connection_id: str) -> ConnectionProtocol | None:
        return self._connections.get(connection_id)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def session_of(self, connection_id: str) -> str | None:
        return self._memberships.get(connection_id)

    def bind(self, connection_id: str, game_id: str) -> None:
        self._memberships[connection_id] = game_id

    def unbind(self, connection_id: str, game_id: str | None = None) -> None:
        """Forget a membership. With game_id given, only if it still matches."""
        if game_id is None or self._memberships.get(connection_id) == game_id:
            self._memberships.pop(connection_id, None)
