"""
MessagePack framing for the arena WebSocket.

Every frame is a single map. Outbound maps come from pydantic models;
inbound maps are validated by messaging.types after decoding.
"""

from dataclasses import dataclass
from typing import Any

import msgpack
from pydantic import BaseModel


class DecodeError(Exception):
    """The frame is not a MessagePack map within the applied limits."""


@dataclass(frozen=True)
class FrameLimits:
    """Upper bounds applied while unpacking a frame.

    Client frames carry a position, a score or a player card, so the defaults
    are tight. Server frames with a full leaderboard need a wider instance.
    """

    max_frame_bytes: int = 64 * 1024
    max_str_len: int = 4 * 1024
    max_array_len: int = 256
    max_map_len: int = 64


CLIENT_FRAME_LIMITS = FrameLimits()


def encode(data: dict[str, Any]) -> bytes:
    return msgpack.packb(data)


def encode_model(message: BaseModel) -> bytes:
    """Serialize an outbound message; enum members go out as their values."""
    return encode(message.model_dump(mode="json"))


def decode(data: bytes, limits: FrameLimits = CLIENT_FRAME_LIMITS) -> dict[str, Any]:
    """
    Decode one frame.

    Raises DecodeError if data is not MessagePack, not a map, or exceeds limits.
    Extension types are never valid in this protocol.
    """
    if len(data) > limits.max_frame_bytes:
        raise DecodeError(f"frame too large: {len(data)} bytes (max {limits.max_frame_bytes})")
    try:
        result = msgpack.unpackb(
            data,
            raw=False,
            max_str_len=limits.max_str_len,
            max_bin_len=limits.max_str_len,
            max_array_len=limits.max_array_len,
            max_map_len=limits.max_map_len,
            max_ext_len=0,
        )
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode MessagePack data: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected map, got {type(result).__name__}")

    return result
