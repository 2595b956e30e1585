"""Live participant state for a single session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from arena.session.types import PlayerView

if TYPE_CHECKING:
    from collections.abc import Iterator

    from arena.session.types import PlayerInfo


@dataclass
class PlayerState:
    """A participant's mutable presentation state.

    Position and score are whatever the owning connection last reported.
    """

    username: str
    character: str
    x: float
    y: float
    score: float = 0
    role: str | None = None
    user_id: str | None = None

    @classmethod
    def from_info(cls, info: PlayerInfo) -> PlayerState:
        return cls(
            username=info.username,
            character=info.character,
            x=info.x,
            y=info.y,
            role=info.role,
            user_id=info.user_id,
        )

    def to_view(self) -> PlayerView:
        return PlayerView(
            username=self.username,
            character=self.character,
            x=self.x,
            y=self.y,
            score=self.score,
            role=self.role,
            user_id=self.user_id,
        )


class PresenceTable:
    """Map connection ids to PlayerState for one session.

    Updates addressed to an absent connection are ignored: movement and score
    messages can still be in flight after their sender has left.
    """

    def __init__(self) -> None:
        self._players: dict[str, PlayerState] = {}  # connection_id -> PlayerState

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._players

    def __len__(self) -> int:
        return len(self._players)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._players))

    @property
    def is_empty(self) -> bool:
        return not self._players

    def add(self, connection_id: str, info: PlayerInfo) -> PlayerState:
        """Seat a connection with score 0, replacing any previous entry."""
        player = PlayerState.from_info(info)
        self._players[connection_id] = player
        return player

    def remove(self, connection_id: str) -> PlayerState | None:
        return self._players.pop(connection_id, None)

    def update_position(self, connection_id: str, x: float, y: float) -> bool:
        player = self._players.get(connection_id)
        if player is None:
            return False
        player.x = x
        player.y = y
        return True

    def update_score(self, connection_id: str, score: float) -> bool:
        """Overwrite the score; scores are reported absolute, never accumulated."""
        player = self._players.get(connection_id)
        if player is None:
            return False
        player.score = score
        return True

    def connection_ids(self) -> list[str]:
        return list(self._players)

    def roster(self) -> dict[str, PlayerView]:
        return {connection_id: p.to_view() for connection_id, p in self._players.items()}

    def snapshot(self) -> list[PlayerView]:
        """Detached copies of every participant, in join order."""
        return [p.to_view() for p in self._players.values()]
