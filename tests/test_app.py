from __future__ import annotations

import asyncio
import re

import pytest
from fastapi.testclient import TestClient

from sketchroom.rooms.membership import active_participant_count
from sketchroom.server.app import create_app


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c


def _guest(client: TestClient) -> dict:
    resp = client.post("/session/guest")
    assert resp.status_code == 200
    return resp.json()


def test_healthz_and_initial_session(client: TestClient) -> None:
    assert client.get("/healthz").json() == {"ok": True}
    payload = client.get("/session").json()
    assert payload["authenticated"] is False
    assert payload["identity"] is None
    assert payload["status"] == "unauthenticated"


def test_room_routes_require_session(client: TestClient) -> None:
    resp = client.post("/rooms", json={"name": "Art"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "AuthRequired"


def test_guest_session_round_trip(client: TestClient) -> None:
    payload = _guest(client)
    assert payload["authenticated"] is True
    assert payload["anonymous"] is True
    assert payload["identity"]["id"].startswith("anon_")
    assert payload["token"]

    out = client.post("/session/logout").json()
    assert out["authenticated"] is False
    assert "token" not in out


def test_registered_login(client: TestClient) -> None:
    resp = client.post("/session/login", json={"user_id": "u1", "display_name": "Ada"})
    payload = resp.json()
    assert payload["anonymous"] is False
    assert payload["token"].count(".") == 2


def test_create_room_validation_errors(client: TestClient) -> None:
    _guest(client)
    resp = client.post("/rooms", json={"name": "ab", "max_participants": 99})
    assert resp.status_code == 422
    fields = [v["field"] for v in resp.json()["violations"]]
    assert fields == ["name", "max_participants"]


def test_room_lifecycle(client: TestClient) -> None:
    uid = _guest(client)["identity"]["id"]

    resp = client.post("/rooms", json={"name": "Art", "max_participants": 2, "is_public": False})
    assert resp.status_code == 201
    room = resp.json()
    assert re.fullmatch(r"[A-Z0-9]{6}", room["code"])
    assert room["created_by"] == uid
    assert room["participants"] == []
    assert room["is_creator"] is True
    assert room["url"].endswith(f"/room/{room['code']}")

    mine = client.get("/rooms/mine").json()["rooms"]
    assert [r["id"] for r in mine] == [room["id"]]

    joined = client.post("/rooms/join", json={"code": room["code"].lower()})
    assert joined.status_code == 200
    assert joined.json()["active_participants"] == 1

    current = client.get("/room").json()
    assert current["room"]["id"] == room["id"]
    assert current["connected_users"] == [uid]

    op = {
        "id": "op1",
        "type": "draw",
        "points": [{"x": 0.1, "y": 0.2}, {"x": 0.3, "y": 0.4, "pressure": 0.5}],
        "color": "#ff0000",
        "brushSize": 4,
        "userId": uid,
        "timestamp": 1,
    }
    assert client.post("/room/operations", json=op).json() == {"ok": True, "size": 1}

    patched = client.patch(
        "/tools", json={"selected_tool": "eraser", "brush_size": 12, "is_drawing": True}
    )
    assert patched.json()["is_drawing"] is True
    assert patched.json()["selected_tool"] == "eraser"
    stroke = client.post("/room/strokes", json={"points": [[0.5, 0.5, 0.9], [0.6, 0.6]]})
    assert stroke.status_code == 201
    assert stroke.json()["type"] == "erase"
    assert stroke.json()["brushSize"] == 12

    ops = client.get("/room/operations").json()
    assert [o["id"] for o in ops["operations"]][0] == "op1"
    assert ops["next"] == 2
    tail = client.get("/room/operations", params={"since": 1}).json()["operations"]
    assert len(tail) == 1 and tail[0]["type"] == "erase"

    assert client.delete("/room/operations").json() == {"ok": True}
    assert client.get("/room/operations").json()["operations"] == []

    assert client.post("/room/leave").json() == {"ok": True}
    assert client.get("/room").json()["room"] is None

    assert client.delete(f"/rooms/{room['id']}").json() == {"ok": True}
    assert client.get("/rooms/mine").json()["rooms"] == []


def test_join_errors(client: TestClient) -> None:
    _guest(client)
    assert client.post("/rooms/join", json={"code": "ZZZ999"}).status_code == 404
    bad = client.post("/rooms/join", json={"code": "ab"})
    assert bad.status_code == 422
    assert bad.json()["violations"][0]["field"] == "code"


def test_drawing_outside_room_conflicts(client: TestClient) -> None:
    _guest(client)
    resp = client.post("/room/strokes", json={"points": [[0.1, 0.1]]})
    assert resp.status_code == 409
    assert resp.json()["error"] == "NotInRoom"


def test_logout_frees_room_slot(client: TestClient) -> None:
    _guest(client)
    room = client.post("/rooms", json={"name": "Art", "max_participants": 2}).json()
    assert client.post("/rooms/join", json={"code": room["code"]}).status_code == 200

    assert client.post("/session/logout").json()["authenticated"] is False
    backend = client.app.state.engine.rooms.directory.backend
    stored = asyncio.run(backend.get_by_code(room["code"]))
    assert active_participant_count(stored) == 0
    assert client.get("/room").json()["room"] is None
