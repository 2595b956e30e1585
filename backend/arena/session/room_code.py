"""Short human-shareable room codes."""

import random
from collections.abc import Container

# Uppercase letters without O, plus digits 1-9 (no 0), so codes read aloud
# or copied by hand do not mix up O and 0.
ROOM_CODE_ALPHABET = "ABCDEFGHIJKLMNPQRSTUVWXYZ123456789"
ROOM_CODE_LENGTH = 6


class RoomCodeAllocator:
    """Draw room codes that do not collide with any active session.

    Callers must hold the registry lock while allocating so that the
    collision check and the insert of the new code happen atomically.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.SystemRandom()

    def generate(self) -> str:
        return "".join(self._rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))

    def allocate(self, in_use: Container[str]) -> str:
        """Return a code not present in in_use, resampling on collision."""
        while True:
            code = self.generate()
            if code not in in_use:
                return code
