"""
Pydantic models for player data crossing the session boundary.
"""

from pydantic import BaseModel, Field


class PlayerInfo(BaseModel):
    """Player data supplied by the client when requesting a session.

    Only the presence of the display and position fields is checked; values
    are taken as reported.
    """

    username: str
    character: str
    x: float
    y: float
    role: str | None = None
    user_id: str | None = None


class PlayerView(BaseModel):
    """A participant as shown to other clients and sent to the results sink."""

    username: str
    character: str
    x: float
    y: float
    score: float = 0
    role: str | None = None
    user_id: str | None = None


class ResultsPayload(BaseModel):
    """Body of the final results upload."""

    game_id: str
    leaderboard: list[PlayerView] = Field(default_factory=list)
