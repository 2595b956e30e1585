"""Typed errors raised by the session layer.

Recoverable errors subclass SessionError and are converted to an error
message for the triggering connection by SessionManager. The coordinator
process never stops because of them. RegistryInvariantViolation is a
programming fault and sits outside that hierarchy.
"""


class SessionError(Exception):
    """Base class for per-event failures reported back to one connection."""


class NotFoundError(SessionError):
    """No active session is registered under the requested room code."""

    def __init__(self, room_code: str) -> None:
        super().__init__(f"Room {room_code} not found")
        self.room_code = room_code


class UnauthorizedError(SessionError):
    """Admin token is missing, cleared, or does not match the session."""


class RegistryFullError(SessionError):
    """Creating another session would exceed the configured capacity."""


class FinalizationInProgressError(SessionError):
    """Another finalize call for the same session is awaiting the results sink."""


class SinkFailure(SessionError):  # noqa: N818
    """The results sink rejected the upload or could not be reached.

    Attributes:
        rejected: True when the sink answered with an error status,
            False for transport errors and timeouts.
    """

    def __init__(self, message: str, *, rejected: bool) -> None:
        super().__init__(message)
        self.rejected = rejected


class RegistryInvariantViolation(Exception):  # noqa: N818
    """The game id and room code indexes disagree."""
