from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from arena.session.presence import PresenceTable

if TYPE_CHECKING:
    from arena.session.cleanup import EvictionHandle

ADMIN_ROLE = "admin"


@dataclass
class Session:
    """One running quiz instance, reachable by game id and by room code.

    Lifecycle:
    - Created by SessionRegistry.find_or_create on the first request for a game id
    - Mutated under `lock` by join, leave, movement, score and eviction arm/cancel
    - Destroyed by the grace timer (empty room) or by admin finalization;
      `destroyed` is set under `lock` so late joiners can detect it and retry
    """

    game_id: str
    room_code: str
    admin_token: str | None = None
    admin_connection_id: str | None = None
    presence: PresenceTable = field(default_factory=PresenceTable)
    pending_eviction: EvictionHandle | None = None
    destroyed: bool = False
    finalizing: bool = False
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def is_empty(self) -> bool:
        return self.presence.is_empty

    @property
    def in_grace(self) -> bool:
        return self.pending_eviction is not None and self.pending_eviction.is_pending
