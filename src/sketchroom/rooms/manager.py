from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from sketchroom.errors import AuthRequired, NotInRoom, SketchroomError
from sketchroom.protocol.messages import (
    CreateRoomRequest,
    DrawingOperation,
    JoinRoomRequest,
    Room,
)
from sketchroom.session.manager import SessionManager, SessionState
from sketchroom.state import Store

from . import membership
from .directory import RoomDirectory
from .oplog import OperationLog

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoomState:
    current_room: Optional[Room] = None
    connected_users: tuple[str, ...] = ()
    operations: tuple[DrawingOperation, ...] = ()
    is_connected: bool = False
    is_loading: bool = False
    error: Optional[str] = None


class RoomManager:
    """
    Owner of the active room, its roster snapshot and its operation log.

    Every join/leave bumps a transition counter. A join response that comes
    back after a newer transition (or after the session identity changed) is
    returned to its caller but not applied, so the log is reset exactly once
    per applied transition.

    Whenever the user stops being in a room (including a stale join the
    backing store had already saved, and session teardown) the store marks
    them inactive there, so they hold no capacity slot.
    """

    def __init__(self, session: SessionManager, directory: RoomDirectory | None = None):
        self.session = session
        self.directory = directory or RoomDirectory(settings=session.settings)
        self.store: Store[RoomState] = Store(RoomState())
        self.log = OperationLog()
        self._transition = 0
        self._pending: set[asyncio.Task[None]] = set()
        self._unsubscribe = session.store.subscribe(self._on_session_change)

    # -------------------- reads --------------------

    @property
    def state(self) -> RoomState:
        return self.store.get()

    @property
    def current_room(self) -> Optional[Room]:
        return self.state.current_room

    @property
    def operations(self) -> tuple[DrawingOperation, ...]:
        return self.log.snapshot()

    # -------------------- directory calls --------------------

    async def create_room(self, request: CreateRoomRequest, creator_id: str | None = None) -> Room:
        identity = self.session.require_identity()
        creator = creator_id or identity.id
        if creator != identity.id:
            raise AuthRequired("Rooms can only be created by the signed-in user")
        self.store.set(is_loading=True, error=None)
        try:
            room = await self.directory.create_room(request, creator)
        except SketchroomError as e:
            self.store.set(is_loading=False, error=str(e))
            raise
        self.store.set(is_loading=False)
        return room

    async def join_room_by_code(self, code: str, request: JoinRoomRequest | None = None) -> Room:
        identity = self.session.require_identity()
        if request is None:
            request = JoinRoomRequest(
                code=code,
                user_id=identity.id,
                username=identity.display_name,
                anonymous=identity.anonymous,
            )
        elif request.user_id != identity.id:
            raise AuthRequired("Cannot join a room on behalf of another user")

        ticket = self._begin_transition()
        self.store.set(is_loading=True, error=None)
        try:
            room = await self.directory.join_by_code(code, request)
        except SketchroomError as e:
            if self._is_current(ticket, identity.id):
                self.store.set(is_loading=False, error=str(e))
            raise

        if not self._is_current(ticket, identity.id):
            LOGGER.info("discarding stale join response for room %s", room.code)
            current, now_as = self.current_room, self.session.identity
            same_seat = (
                current is not None
                and current.id == room.id
                and now_as is not None
                and now_as.id == identity.id
            )
            if not same_seat:
                await self._release(room.code, identity.id)
            return room
        previous = self.current_room
        self._enter(room)
        if previous is not None and previous.id != room.id:
            await self._release(previous.code, identity.id)
        return room

    async def leave_room(self, *, permanent: bool = False) -> Optional[Room]:
        room = self.current_room
        self._begin_transition()
        if room is None:
            return None
        identity = self.session.identity
        self._exit()
        LOGGER.info("left room %s", room.code)
        if identity is None:
            return None
        return await self.directory.leave(room.code, identity.id, permanent=permanent)

    async def list_my_rooms(self) -> list[Room]:
        identity = self.session.require_identity()
        return await self.directory.list_rooms_created_by(identity.id)

    async def delete_room(self, room_id: str) -> None:
        identity = self.session.require_identity()
        await self.directory.delete_room(room_id, identity.id)
        current = self.current_room
        if current is not None and current.id == room_id:
            self._begin_transition()
            self._exit()

    # -------------------- operation log --------------------

    def add_drawing_operation(self, op: DrawingOperation) -> int:
        self._require_session()
        if self.current_room is None:
            raise NotInRoom("Join a room before drawing")
        size = self.log.append(op)
        self.store.set(operations=self.log.snapshot())
        return size

    def clear_canvas(self) -> None:
        self._require_session()
        self.log.clear()
        self.store.set(operations=())

    # -------------------- roster events --------------------

    def participant_joined(self, request: JoinRoomRequest) -> Room:
        self._require_session()
        return self._replace_room(lambda r: membership.add_participant(r, request))

    def participant_presence(self, user_id: str, active: bool) -> Room:
        self._require_session()
        return self._replace_room(lambda r: membership.set_participant_active(r, user_id, active))

    def participant_left(self, user_id: str) -> Room:
        self._require_session()
        return self._replace_room(lambda r: membership.remove_participant(r, user_id))

    def set_connection_status(self, connected: bool) -> None:
        self.store.set(is_connected=connected)

    async def settle(self) -> None:
        """Wait for backing-store releases scheduled by session teardown."""
        while self._pending:
            await asyncio.gather(*self._pending)

    def close(self) -> None:
        self._unsubscribe()
        for task in self._pending:
            if not task.done():
                task.cancel()
        self._pending.clear()
        self.store.close()

    # -------------------- internals --------------------

    def _begin_transition(self) -> int:
        self._transition += 1
        return self._transition

    def _require_session(self):
        try:
            return self.session.require_identity()
        except AuthRequired:
            if self.session.identity is not None:
                LOGGER.info("credential expired mid-session; signing out")
                self.session.logout()
            raise

    async def _release(self, code: str, user_id: str) -> None:
        try:
            await self.directory.leave(code, user_id)
        except SketchroomError as e:
            LOGGER.warning("could not mark %s inactive in room %s: %s", user_id, code, e)

    def _schedule_release(self, code: str, user_id: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._release(code, user_id))
            return
        task = loop.create_task(self._release(code, user_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _is_current(self, ticket: int, subject_id: str) -> bool:
        identity = self.session.identity
        return ticket == self._transition and identity is not None and identity.id == subject_id

    def _enter(self, room: Room) -> None:
        current = self.current_room
        if current is None or current.id != room.id:
            self.log.reset(room.id)
        self.store.set(
            current_room=room,
            connected_users=membership.active_user_ids(room),
            operations=self.log.snapshot(),
            is_connected=True,
            is_loading=False,
            error=None,
        )
        LOGGER.info("joined room %s", room.code)

    def _exit(self) -> None:
        self.log.reset(None)
        self.store.set(
            current_room=None,
            connected_users=(),
            operations=(),
            is_connected=False,
            is_loading=False,
            error=None,
        )

    def _replace_room(self, update) -> Room:
        room = self.current_room
        if room is None:
            raise NotInRoom()
        updated = update(room)
        self.store.set(current_room=updated, connected_users=membership.active_user_ids(updated))
        return updated

    def _on_session_change(self, new: SessionState, old: SessionState) -> None:
        room = self.current_room
        if old.identity is None or room is None:
            return
        if new.identity is not None and new.identity.id == old.identity.id:
            return
        LOGGER.info("session changed; dropping room %s", room.code)
        self._begin_transition()
        self._exit()
        self._schedule_release(room.code, old.identity.id)
