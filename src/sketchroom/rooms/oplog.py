from __future__ import annotations

import logging
from typing import Optional

from sketchroom.protocol.messages import DrawingOperation

LOGGER = logging.getLogger(__name__)


class OperationLog:
    """
    Append-only buffer of drawing operations for the active room.

    Replay order is arrival order here, not `DrawingOperation.timestamp`.
    No compaction, eviction or persistence; a sync transport would read it
    with `since(cursor)`.
    """

    def __init__(self, room_id: Optional[str] = None):
        self.room_id = room_id
        self._ops: list[DrawingOperation] = []

    def append(self, op: DrawingOperation) -> int:
        self._ops.append(op)
        return len(self._ops)

    def clear(self) -> None:
        self._ops.clear()

    def reset(self, room_id: Optional[str]) -> None:
        """Re-scope to `room_id` (None = no room) and drop everything."""
        if self._ops:
            LOGGER.debug("dropping %d operation(s) from room %s", len(self._ops), self.room_id)
        self.room_id = room_id
        self._ops.clear()

    def snapshot(self) -> tuple[DrawingOperation, ...]:
        return tuple(self._ops)

    def since(self, offset: int) -> tuple[DrawingOperation, ...]:
        return tuple(self._ops[max(0, offset):])

    def __len__(self) -> int:
        return len(self._ops)
