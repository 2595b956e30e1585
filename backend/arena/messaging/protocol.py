"""The connection interface the session layer talks to."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from arena.messaging.encoder import decode, encode_model

if TYPE_CHECKING:
    from pydantic import BaseModel


class ConnectionProtocol(ABC):
    """
    One participant's transport.

    Session code addresses participants by `connection_id` and sends them
    message models; how frames reach the client is up to the implementation.
    Tests use an in-memory double instead of a real WebSocket.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Stable for the life of the transport; also used as the player id on the wire."""
        ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None: ...

    @abstractmethod
    async def receive_bytes(self) -> bytes: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def send_model(self, message: BaseModel) -> None:
        await self.send_bytes(encode_model(message))

    async def receive_message(self) -> dict[str, Any]:
        return decode(await self.receive_bytes())
