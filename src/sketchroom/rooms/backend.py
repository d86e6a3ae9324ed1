from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from sketchroom.errors import RoomCodeCollision
from sketchroom.protocol.messages import Room

LOGGER = logging.getLogger(__name__)


class RoomBackend(Protocol):
    """
    Backing store for rooms. Implementations own code uniqueness:
    `insert` must raise `RoomCodeCollision` when the code is taken.
    """

    async def insert(self, room: Room) -> Room: ...

    async def save(self, room: Room) -> Room: ...

    async def get_by_code(self, code: str) -> Optional[Room]: ...

    async def get_by_id(self, room_id: str) -> Optional[Room]: ...

    async def delete(self, room_id: str) -> bool: ...

    async def list_rooms(self) -> list[Room]: ...


class InMemoryRoomBackend:
    """Process-local store with optional simulated latency."""

    def __init__(self, *, create_delay_s: float = 0.0, join_delay_s: float = 0.0):
        self.create_delay_s = create_delay_s
        self.join_delay_s = join_delay_s
        self._by_code: dict[str, Room] = {}
        self._lock = asyncio.Lock()

    async def _sleep(self, delay_s: float) -> None:
        if delay_s > 0:
            await asyncio.sleep(delay_s)

    async def insert(self, room: Room) -> Room:
        await self._sleep(self.create_delay_s)
        async with self._lock:
            if room.code in self._by_code:
                raise RoomCodeCollision(room.code)
            self._by_code[room.code] = room
        return room

    async def save(self, room: Room) -> Room:
        async with self._lock:
            self._by_code[room.code] = room
        return room

    async def get_by_code(self, code: str) -> Optional[Room]:
        await self._sleep(self.join_delay_s)
        return self._by_code.get(code)

    async def get_by_id(self, room_id: str) -> Optional[Room]:
        for room in self._by_code.values():
            if room.id == room_id:
                return room
        return None

    async def delete(self, room_id: str) -> bool:
        async with self._lock:
            for code, room in list(self._by_code.items()):
                if room.id == room_id:
                    del self._by_code[code]
                    return True
        return False

    async def list_rooms(self) -> list[Room]:
        return sorted(self._by_code.values(), key=lambda r: r.created_at, reverse=True)
