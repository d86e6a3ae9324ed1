from __future__ import annotations

import logging
import re
import secrets
import uuid
from datetime import datetime, timezone

from sketchroom.errors import (
    NotRoomCreator,
    RoomCodeCollision,
    RoomCodeExhausted,
    RoomFull,
    RoomNotFound,
    ValidationError,
)
from sketchroom.protocol.constants import (
    ROOM_CAPACITY_MAX,
    ROOM_CAPACITY_MIN,
    ROOM_CODE_ALPHABET,
    ROOM_CODE_LENGTH,
    ROOM_DESCRIPTION_MAX,
    ROOM_NAME_MAX,
    ROOM_NAME_MIN,
)
from sketchroom.protocol.messages import CreateRoomRequest, JoinRoomRequest, Room, Violation
from sketchroom.server.config import Settings, get_settings

from . import membership
from .backend import InMemoryRoomBackend, RoomBackend

LOGGER = logging.getLogger(__name__)

_ROOM_CODE_RE = re.compile(rf"^[A-Z0-9]{{{ROOM_CODE_LENGTH}}}$")
_NON_CODE_CHARS = re.compile(r"[^A-Z0-9]")


# -------------------- codes --------------------


def normalize_room_code(raw: str | None) -> str:
    """Upper-case, drop anything outside [A-Z0-9], keep at most 6 chars."""
    if not raw:
        return ""
    return _NON_CODE_CHARS.sub("", raw.upper())[:ROOM_CODE_LENGTH]


def is_valid_room_code(code: str) -> bool:
    return bool(_ROOM_CODE_RE.match(code or ""))


def generate_room_code() -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def generate_room_id() -> str:
    return str(uuid.uuid4())


def room_url(code: str, base_url: str | None = None) -> str:
    base = (base_url or get_settings().public_base_url).rstrip("/")
    return f"{base}/room/{normalize_room_code(code)}"


def format_created_date(dt: datetime) -> str:
    """e.g. 'Oct 19, 08:15 AM'"""
    return f"{dt:%b} {dt.day}, {dt:%I:%M %p}"


# -------------------- create --------------------


def validate_create_request(request: CreateRoomRequest) -> list[Violation]:
    violations: list[Violation] = []

    name = (request.name or "").strip()
    if not name:
        violations.append(Violation(field="name", message="Room name is required"))
    elif len(name) < ROOM_NAME_MIN:
        violations.append(
            Violation(field="name", message=f"Room name must be at least {ROOM_NAME_MIN} characters")
        )
    elif len(name) > ROOM_NAME_MAX:
        violations.append(
            Violation(field="name", message=f"Room name must be at most {ROOM_NAME_MAX} characters")
        )

    if request.description is not None and len(request.description) > ROOM_DESCRIPTION_MAX:
        violations.append(
            Violation(
                field="description",
                message=f"Room description must be at most {ROOM_DESCRIPTION_MAX} characters",
            )
        )

    cap = request.max_participants
    if cap is not None and not (ROOM_CAPACITY_MIN <= cap <= ROOM_CAPACITY_MAX):
        violations.append(
            Violation(
                field="max_participants",
                message=(
                    f"Room capacity must be between {ROOM_CAPACITY_MIN} "
                    f"and {ROOM_CAPACITY_MAX} participants"
                ),
            )
        )

    return violations


def build_room(
    request: CreateRoomRequest,
    created_by: str,
    *,
    default_max_participants: int = 10,
    now: datetime | None = None,
) -> Room:
    description = request.description.strip() if request.description else None
    return Room(
        id=generate_room_id(),
        code=generate_room_code(),
        name=(request.name or "").strip(),
        description=description or None,
        created_by=created_by,
        created_at=now or datetime.now(timezone.utc),
        participants=(),
        max_participants=request.max_participants or default_max_participants,
        is_active=True,
        is_public=True if request.is_public is None else request.is_public,
    )


# -------------------- directory --------------------


class RoomDirectory:
    def __init__(self, backend: RoomBackend | None = None, *, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.backend: RoomBackend = backend or InMemoryRoomBackend(
            create_delay_s=self.settings.backend_create_delay_s,
            join_delay_s=self.settings.backend_join_delay_s,
        )

    async def create_room(self, request: CreateRoomRequest, creator_id: str) -> Room:
        violations = validate_create_request(request)
        if violations:
            raise ValidationError(violations)

        attempts = max(1, self.settings.room_code_attempts)
        for attempt in range(1, attempts + 1):
            room = build_room(
                request,
                creator_id,
                default_max_participants=self.settings.default_max_participants,
            )
            try:
                await self.backend.insert(room)
            except RoomCodeCollision:
                LOGGER.warning("room code collision on attempt %d/%d", attempt, attempts)
                continue
            LOGGER.info("room %s created by %s", room.code, creator_id)
            return room
        raise RoomCodeExhausted(attempts)

    async def fetch_room(self, code: str) -> Room:
        norm = self._checked_code(code)
        room = await self.backend.get_by_code(norm)
        if room is None:
            raise RoomNotFound(norm)
        return room

    async def join_by_code(self, code: str, request: JoinRoomRequest) -> Room:
        room = await self.fetch_room(code)
        existing = membership.find_participant(room, request.user_id)
        # An already-active member rejoining takes no new slot.
        if (existing is None or not existing.is_active) and membership.is_room_full(room):
            raise RoomFull(room.code, room.max_participants)
        updated = membership.add_participant(room, request)
        if updated is not room:
            await self.backend.save(updated)
        return updated

    async def leave(self, code: str, user_id: str, *, permanent: bool = False) -> Room | None:
        room = await self.backend.get_by_code(normalize_room_code(code))
        if room is None:
            return None
        if permanent:
            updated = membership.remove_participant(room, user_id)
        else:
            updated = membership.set_participant_active(room, user_id, False)
        if updated is not room:
            await self.backend.save(updated)
        return updated

    async def list_rooms_created_by(self, user_id: str) -> list[Room]:
        return [r for r in await self.backend.list_rooms() if membership.is_room_creator(r, user_id)]

    async def delete_room(self, room_id: str, user_id: str) -> None:
        room = await self.backend.get_by_id(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        if not membership.is_room_creator(room, user_id):
            raise NotRoomCreator(room_id, user_id)
        await self.backend.delete(room_id)
        LOGGER.info("room %s deleted by %s", room.code, user_id)

    def _checked_code(self, code: str) -> str:
        norm = normalize_room_code(code)
        if not is_valid_room_code(norm):
            message = (
                "Room code is required"
                if not norm
                else "Room code must be 6 characters (letters and numbers)"
            )
            raise ValidationError([Violation(field="code", message=message)])
        return norm
