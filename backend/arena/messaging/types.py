from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

from arena.session.types import PlayerInfo, PlayerView

_ID_FIELD = Field(min_length=1, max_length=100)


class ClientMessageType(StrEnum):
    REQUEST_SESSION = "request_session"
    PLAYER_MOVEMENT = "player_movement"
    UPDATE_SCORE = "update_score"
    ADMIN_END_QUIZ = "admin_end_quiz"
    PING = "ping"


class SessionMessageType(StrEnum):
    SESSION_CREATED = "session_created"
    SESSION_READY = "session_ready"
    NEW_PLAYER = "new_player"
    LEADERBOARD_UPDATE = "leaderboard_update"
    PLAYER_MOVED = "player_moved"
    PLAYER_DISCONNECTED = "player_disconnected"
    QUIZ_ENDED = "quiz_ended"
    ERROR_ENDING_QUIZ = "error_ending_quiz"
    ERROR = "session_error"
    PONG = "pong"


class SessionErrorCode(StrEnum):
    ROOM_NOT_FOUND = "room_not_found"
    ALREADY_IN_SESSION = "already_in_session"
    SERVER_AT_CAPACITY = "server_at_capacity"
    INVALID_MESSAGE = "invalid_message"
    UNAUTHORIZED = "unauthorized"
    FINALIZE_IN_PROGRESS = "finalize_in_progress"
    RESULTS_REJECTED = "results_rejected"
    RESULTS_UNREACHABLE = "results_unreachable"


# --- Client -> server ---


class RequestSessionMessage(BaseModel):
    type: Literal[ClientMessageType.REQUEST_SESSION] = ClientMessageType.REQUEST_SESSION
    game_id: str = _ID_FIELD
    player_info: PlayerInfo
    admin_token: str | None = Field(default=None, min_length=1, max_length=2000)


class PlayerMovementMessage(BaseModel):
    type: Literal[ClientMessageType.PLAYER_MOVEMENT] = ClientMessageType.PLAYER_MOVEMENT
    room_code: str = _ID_FIELD
    x: float
    y: float


class UpdateScoreMessage(BaseModel):
    type: Literal[ClientMessageType.UPDATE_SCORE] = ClientMessageType.UPDATE_SCORE
    room_code: str = _ID_FIELD
    score: float


class AdminEndQuizMessage(BaseModel):
    type: Literal[ClientMessageType.ADMIN_END_QUIZ] = ClientMessageType.ADMIN_END_QUIZ
    room_code: str = _ID_FIELD
    token: str | None = Field(default=None, max_length=2000)


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


ClientMessage = Annotated[
    RequestSessionMessage | PlayerMovementMessage | UpdateScoreMessage | AdminEndQuizMessage | PingMessage,
    Field(discriminator="type"),
]

_client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Parse a decoded frame into a typed client message."""
    return _client_message_adapter.validate_python(data)


# --- Server -> client ---


class SessionReadyMessage(BaseModel):
    """Sent to the joining connection. type is SESSION_CREATED when the join created the session."""

    type: Literal[SessionMessageType.SESSION_CREATED, SessionMessageType.SESSION_READY] = (
        SessionMessageType.SESSION_READY
    )
    game_id: str
    room_code: str
    players: dict[str, PlayerView]  # connection_id -> player
    own_connection_id: str


class NewPlayerMessage(BaseModel):
    type: Literal[SessionMessageType.NEW_PLAYER] = SessionMessageType.NEW_PLAYER
    player_id: str
    player_info: PlayerView


class LeaderboardUpdateMessage(BaseModel):
    type: Literal[SessionMessageType.LEADERBOARD_UPDATE] = SessionMessageType.LEADERBOARD_UPDATE
    players: list[PlayerView]


class PlayerMovedMessage(BaseModel):
    type: Literal[SessionMessageType.PLAYER_MOVED] = SessionMessageType.PLAYER_MOVED
    player_id: str
    x: float
    y: float


class PlayerDisconnectedMessage(BaseModel):
    type: Literal[SessionMessageType.PLAYER_DISCONNECTED] = SessionMessageType.PLAYER_DISCONNECTED
    player_id: str


class QuizEndedMessage(BaseModel):
    type: Literal[SessionMessageType.QUIZ_ENDED] = SessionMessageType.QUIZ_ENDED
    game_id: str
    room_code: str
    leaderboard: list[PlayerView]


class ErrorEndingQuizMessage(BaseModel):
    type: Literal[SessionMessageType.ERROR_ENDING_QUIZ] = SessionMessageType.ERROR_ENDING_QUIZ
    code: SessionErrorCode
    message: str


class ErrorMessage(BaseModel):
    type: Literal[SessionMessageType.ERROR] = SessionMessageType.ERROR
    code: SessionErrorCode
    message: str


class PongMessage(BaseModel):
    type: Literal[SessionMessageType.PONG] = SessionMessageType.PONG
