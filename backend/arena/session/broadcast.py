"""Fan-out of session events to participants."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

from arena.messaging.encoder import encode_model

if TYPE_CHECKING:
    from pydantic import BaseModel

    from arena.session.connections import ConnectionHub
    from arena.session.registry import SessionRegistry


class BroadcastDispatcher:
    """Deliver messages to one participant, a whole room, or a room minus its sender.

    Holds no state of its own: room membership is read from the registry and
    connections are resolved through the hub at send time. Callers dispatch
    while holding the session lock, which keeps per-room delivery in the order
    the mutations were applied. A message is encoded once per call, however
    many participants receive it.
    """

    def __init__(self, registry: SessionRegistry, hub: ConnectionHub) -> None:
        self._registry = registry
        self._hub = hub

    async def to_participant(self, connection_id: str, message: BaseModel) -> None:
        await self._send(connection_id, encode_model(message))

    async def to_room(self, room_code: str, message: BaseModel) -> None:
        await self._send_to_room(room_code, message)

    async def to_room_except_sender(self, room_code: str, sender_connection_id: str, message: BaseModel) -> None:
        await self._send_to_room(room_code, message, exclude_connection_id=sender_connection_id)

    async def _send_to_room(
        self,
        room_code: str,
        message: BaseModel,
        exclude_connection_id: str | None = None,
    ) -> None:
        session = self._registry.find_by_room_code(room_code)
        if session is None:
            return
        recipients = [cid for cid in session.presence.connection_ids() if cid != exclude_connection_id]
        if not recipients:
            return
        frame = encode_model(message)
        for connection_id in recipients:
            await self._send(connection_id, frame)

    async def _send(self, connection_id: str, frame: bytes) -> None:
        connection = self._hub.get(connection_id)
        if connection is None:
            return
        with contextlib.suppress(RuntimeError, OSError, ConnectionError):
            await connection.send_bytes(frame)
