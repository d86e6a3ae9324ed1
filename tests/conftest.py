from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from sketchroom.protocol.messages import Participant, Room  # noqa: E402
from sketchroom.server.config import Settings  # noqa: E402
from sketchroom.server.sessions import build_engine  # noqa: E402
from sketchroom.session.storage import MemoryStorage  # noqa: E402

T0 = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, watchdog_interval_s=3600.0, log_level="DEBUG")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def engine(settings, storage, clock):
    eng = build_engine(settings, storage=storage, clock=clock)
    try:
        yield eng
    finally:
        eng.close()


def make_room(
    code: str = "ABC123",
    *,
    max_participants: int = 10,
    members: tuple[tuple[str, bool], ...] = (),
    created_by: str = "owner",
) -> Room:
    joined = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return Room(
        id=f"room-{code}",
        code=code,
        name=f"Room {code}",
        created_by=created_by,
        created_at=joined,
        participants=tuple(
            Participant(user_id=uid, username=uid.title(), joined_at=joined, is_active=active)
            for uid, active in members
        ),
        max_participants=max_participants,
    )
