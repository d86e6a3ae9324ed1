from __future__ import annotations

from dataclasses import dataclass, field

from sketchroom.rooms.backend import InMemoryRoomBackend, RoomBackend
from sketchroom.rooms.directory import RoomDirectory
from sketchroom.rooms.manager import RoomManager
from sketchroom.rooms.tools import DrawingTools
from sketchroom.session.manager import SessionManager
from sketchroom.session.storage import CredentialStorage, FileStorage, MemoryStorage

from .config import Settings, get_settings


@dataclass
class Engine:
    """Owned state container: one session, one active room, one tool palette."""

    settings: Settings
    session: SessionManager
    rooms: RoomManager
    tools: DrawingTools = field(default_factory=DrawingTools)

    def start(self) -> bool:
        return self.session.initialize()

    def close(self) -> None:
        self.rooms.close()
        self.session.close()
        self.tools.store.close()


def _storage_for(settings: Settings) -> CredentialStorage:
    if settings.credential_path is not None:
        return FileStorage(settings.credential_path)
    return MemoryStorage()


def build_engine(
    settings: Settings | None = None,
    *,
    storage: CredentialStorage | None = None,
    backend: RoomBackend | None = None,
    clock=None,
) -> Engine:
    settings = settings or get_settings()
    kwargs = {"clock": clock} if clock is not None else {}
    session = SessionManager(
        storage=storage if storage is not None else _storage_for(settings),
        settings=settings,
        **kwargs,
    )
    directory = RoomDirectory(
        backend
        or InMemoryRoomBackend(
            create_delay_s=settings.backend_create_delay_s,
            join_delay_s=settings.backend_join_delay_s,
        ),
        settings=settings,
    )
    return Engine(settings=settings, session=session, rooms=RoomManager(session, directory))
