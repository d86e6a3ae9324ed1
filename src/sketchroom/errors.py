from __future__ import annotations

from typing import Iterable

from sketchroom.protocol.messages import Violation


class SketchroomError(Exception):
    """Base for every recoverable error raised by the engine."""


class ValidationError(SketchroomError):
    def __init__(self, violations: Iterable[Violation]):
        self.violations = list(violations)
        super().__init__("; ".join(v.message for v in self.violations) or "invalid request")


class RoomNotFound(SketchroomError):
    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Room {code} not found")


class RoomFull(SketchroomError):
    def __init__(self, code: str, capacity: int):
        self.code = code
        self.capacity = capacity
        super().__init__(f"Room {code} is full ({capacity} participants)")


class AuthRequired(SketchroomError):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class NotRoomCreator(SketchroomError):
    def __init__(self, room_id: str, user_id: str):
        self.room_id = room_id
        self.user_id = user_id
        super().__init__(f"Only the room creator can do that (room {room_id})")


class NotInRoom(SketchroomError):
    def __init__(self, message: str = "Not in a room"):
        super().__init__(message)


class RoomCodeCollision(SketchroomError):
    """Raised by a backing store when a generated room code is already taken."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Room code {code} already in use")


class RoomCodeExhausted(SketchroomError):
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Could not allocate a unique room code after {attempts} attempts")


class DecodeFailure(SketchroomError):
    """A credential could not be decoded. Never escapes the credential codec."""
