from .constants import (
    KIND_GUEST,
    KIND_REGISTERED,
    OP_DRAW,
    OP_ERASE,
    ROOM_CODE_ALPHABET,
    ROOM_CODE_LENGTH,
    TOKEN_KEY,
    USER_KEY,
)
from .messages import (
    CreateRoomRequest,
    Credential,
    DrawingOperation,
    Identity,
    JoinRoomRequest,
    Participant,
    Point,
    Room,
    Violation,
)

__all__ = [
    "KIND_GUEST",
    "KIND_REGISTERED",
    "OP_DRAW",
    "OP_ERASE",
    "ROOM_CODE_ALPHABET",
    "ROOM_CODE_LENGTH",
    "TOKEN_KEY",
    "USER_KEY",
    "CreateRoomRequest",
    "Credential",
    "DrawingOperation",
    "Identity",
    "JoinRoomRequest",
    "Participant",
    "Point",
    "Room",
    "Violation",
]
