from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sketchroom.protocol.messages import JoinRoomRequest, Participant, Room

# Rooms are values: every mutation returns a new Room and leaves the input untouched.


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def find_participant(room: Room, user_id: str) -> Optional[Participant]:
    for p in room.participants:
        if p.user_id == user_id:
            return p
    return None


def is_user_in_room(room: Room, user_id: str) -> bool:
    return find_participant(room, user_id) is not None


def add_participant(room: Room, request: JoinRoomRequest, *, now: datetime | None = None) -> Room:
    """Append a participant, or reactivate the existing record (joined_at is kept)."""
    if is_user_in_room(room, request.user_id):
        return set_participant_active(room, request.user_id, True)
    participant = Participant(
        user_id=request.user_id,
        username=request.username,
        anonymous=request.anonymous,
        joined_at=now or _now_utc(),
        is_active=True,
    )
    return room.model_copy(update={"participants": room.participants + (participant,)})


def remove_participant(room: Room, user_id: str) -> Room:
    kept = tuple(p for p in room.participants if p.user_id != user_id)
    if len(kept) == len(room.participants):
        return room
    return room.model_copy(update={"participants": kept})


def set_participant_active(room: Room, user_id: str, active: bool) -> Room:
    changed = False
    out: list[Participant] = []
    for p in room.participants:
        if p.user_id == user_id and p.is_active != active:
            p = p.model_copy(update={"is_active": active})
            changed = True
        out.append(p)
    if not changed:
        return room
    return room.model_copy(update={"participants": tuple(out)})


def is_room_creator(room: Room, user_id: str | None) -> bool:
    return user_id is not None and room.created_by == user_id


def active_participant_count(room: Room) -> int:
    return sum(1 for p in room.participants if p.is_active)


def is_room_full(room: Room) -> bool:
    # Capacity counts active participants only; disconnected records hold no slot.
    return active_participant_count(room) >= room.max_participants


def active_user_ids(room: Room) -> tuple[str, ...]:
    return tuple(p.user_id for p in room.participants if p.is_active)
