from .backend import InMemoryRoomBackend, RoomBackend
from .directory import (
    RoomDirectory,
    build_room,
    is_valid_room_code,
    normalize_room_code,
    validate_create_request,
)
from .manager import RoomManager, RoomState
from .oplog import OperationLog
from .tools import DrawingTools, ToolState

__all__ = [
    "DrawingTools",
    "InMemoryRoomBackend",
    "OperationLog",
    "RoomBackend",
    "RoomDirectory",
    "RoomManager",
    "RoomState",
    "ToolState",
    "build_room",
    "is_valid_room_code",
    "normalize_room_code",
    "validate_create_request",
]
