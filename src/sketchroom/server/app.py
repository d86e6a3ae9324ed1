from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Literal, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from sketchroom.errors import (
    AuthRequired,
    NotInRoom,
    NotRoomCreator,
    RoomCodeExhausted,
    RoomFull,
    RoomNotFound,
    SketchroomError,
    ValidationError,
)
from sketchroom.protocol.messages import CreateRoomRequest, DrawingOperation, Room
from sketchroom.rooms.directory import format_created_date, room_url
from sketchroom.rooms.membership import active_participant_count, is_room_creator

from .config import Settings, configure_logging, get_settings
from .sessions import Engine, build_engine

LOGGER = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[SketchroomError], int], ...] = (
    (ValidationError, 422),
    (AuthRequired, 401),
    (NotRoomCreator, 403),
    (RoomNotFound, 404),
    (RoomFull, 409),
    (NotInRoom, 409),
    (RoomCodeExhausted, 503),
)


class LoginBody(BaseModel):
    user_id: str
    display_name: str
    email: Optional[str] = None


class JoinBody(BaseModel):
    code: str


class LeaveBody(BaseModel):
    permanent: bool = False


class StrokeBody(BaseModel):
    points: list[list[float]]


class ToolsPatch(BaseModel):
    selected_tool: Optional[Literal["pen", "eraser"]] = None
    selected_color: Optional[str] = None
    brush_size: Optional[float] = Field(None, gt=0)
    is_drawing: Optional[bool] = None


def _session_view(engine: Engine, *, with_token: bool = False) -> dict:
    s = engine.session
    out = {
        "status": s.state.status.value,
        "authenticated": s.is_authenticated,
        "anonymous": s.is_anonymous,
        "identity": s.identity.model_dump(mode="json") if s.identity else None,
    }
    if with_token:
        out["token"] = s.token
    return out


def _room_view(engine: Engine, room: Room) -> dict:
    identity = engine.session.identity
    out = room.model_dump(mode="json")
    out["active_participants"] = active_participant_count(room)
    out["is_creator"] = is_room_creator(room, identity.id if identity else None)
    out["url"] = room_url(room.code, engine.settings.public_base_url)
    out["created_label"] = format_created_date(room.created_at)
    return out


def create_app(settings: Settings | None = None, *, engine: Engine | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        eng = engine or build_engine(settings)
        app.state.engine = eng
        eng.start()
        try:
            yield
        finally:
            eng.close()

    app = FastAPI(lifespan=lifespan)

    def _engine(request: Request) -> Engine:
        return request.app.state.engine

    @app.exception_handler(SketchroomError)
    async def _sketchroom_error(request: Request, exc: SketchroomError):
        status = 400
        for cls, code in _STATUS_BY_ERROR:
            if isinstance(exc, cls):
                status = code
                break
        LOGGER.debug("%s -> %d: %s", type(exc).__name__, status, exc)
        body: dict = {"error": type(exc).__name__, "message": str(exc)}
        if isinstance(exc, ValidationError):
            body["violations"] = [v.model_dump() for v in exc.violations]
        return JSONResponse(body, status_code=status)

    @app.get("/healthz")
    async def healthz():
        return {"ok": True}

    # -------------------- session --------------------

    @app.get("/session")
    async def get_session(request: Request):
        return _session_view(_engine(request))

    @app.post("/session/guest")
    async def login_guest(request: Request):
        eng = _engine(request)
        eng.session.login_as_guest()
        return _session_view(eng, with_token=True)

    @app.post("/session/login")
    async def login(body: LoginBody, request: Request):
        eng = _engine(request)
        eng.session.login_registered(body.user_id, body.display_name, body.email)
        return _session_view(eng, with_token=True)

    @app.post("/session/logout")
    async def logout(request: Request):
        eng = _engine(request)
        eng.session.logout()
        await eng.rooms.settle()
        return _session_view(eng)

    # -------------------- rooms --------------------

    @app.post("/rooms", status_code=201)
    async def create_room(body: CreateRoomRequest, request: Request):
        eng = _engine(request)
        room = await eng.rooms.create_room(body)
        return _room_view(eng, room)

    @app.get("/rooms/mine")
    async def my_rooms(request: Request):
        eng = _engine(request)
        return {"rooms": [_room_view(eng, r) for r in await eng.rooms.list_my_rooms()]}

    @app.delete("/rooms/{room_id}")
    async def delete_room(room_id: str, request: Request):
        await _engine(request).rooms.delete_room(room_id)
        return {"ok": True}

    @app.post("/rooms/join")
    async def join_room(body: JoinBody, request: Request):
        eng = _engine(request)
        room = await eng.rooms.join_room_by_code(body.code)
        return _room_view(eng, room)

    # -------------------- active room --------------------

    @app.get("/room")
    async def current_room(request: Request):
        eng = _engine(request)
        st = eng.rooms.state
        return {
            "room": _room_view(eng, st.current_room) if st.current_room else None,
            "connected_users": list(st.connected_users),
            "is_connected": st.is_connected,
            "operation_count": len(eng.rooms.log),
        }

    @app.post("/room/leave")
    async def leave_room(request: Request, body: LeaveBody | None = None):
        eng = _engine(request)
        await eng.rooms.leave_room(permanent=body.permanent if body else False)
        return {"ok": True}

    @app.get("/room/operations")
    async def list_operations(request: Request, since: int = 0):
        eng = _engine(request)
        ops = eng.rooms.log.since(since)
        return {
            "operations": [op.model_dump(mode="json", by_alias=True) for op in ops],
            "next": len(eng.rooms.log),
        }

    @app.post("/room/operations", status_code=201)
    async def add_operation(op: DrawingOperation, request: Request):
        size = _engine(request).rooms.add_drawing_operation(op)
        return {"ok": True, "size": size}

    @app.post("/room/strokes", status_code=201)
    async def add_stroke(body: StrokeBody, request: Request):
        eng = _engine(request)
        identity = eng.session.require_identity()
        op = eng.tools.build_operation(identity.id, body.points)
        eng.rooms.add_drawing_operation(op)
        return op.model_dump(mode="json", by_alias=True)

    @app.delete("/room/operations")
    async def clear_canvas(request: Request):
        _engine(request).rooms.clear_canvas()
        return {"ok": True}

    # -------------------- tools --------------------

    @app.get("/tools")
    async def get_tools(request: Request):
        return _tools_view(_engine(request))

    @app.patch("/tools")
    async def patch_tools(body: ToolsPatch, request: Request):
        eng = _engine(request)
        if body.selected_tool is not None:
            eng.tools.set_tool(body.selected_tool)
        if body.selected_color is not None:
            eng.tools.set_color(body.selected_color)
        if body.brush_size is not None:
            eng.tools.set_brush_size(body.brush_size)
        if body.is_drawing is not None:
            eng.tools.set_drawing(body.is_drawing)
        return _tools_view(eng)

    return app


def _tools_view(engine: Engine) -> dict:
    st = engine.tools.state
    return {
        "selected_tool": st.selected_tool,
        "selected_color": st.selected_color,
        "brush_size": st.brush_size,
        "is_drawing": st.is_drawing,
    }
