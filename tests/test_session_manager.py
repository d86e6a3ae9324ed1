from __future__ import annotations

import asyncio

import pytest

from sketchroom.errors import AuthRequired
from sketchroom.protocol.constants import KIND_REGISTERED, TOKEN_KEY, USER_KEY
from sketchroom.protocol.messages import Identity
from sketchroom.session import credentials
from sketchroom.session.manager import SessionManager, SessionStatus
from sketchroom.session.storage import FileStorage, MemoryStorage

DAY = 24 * 60 * 60


def _manager(settings, storage, clock) -> SessionManager:
    return SessionManager(storage=storage, settings=settings, clock=clock)


def test_initialize_without_credential_stays_logged_out(settings, storage, clock) -> None:
    mgr = _manager(settings, storage, clock)
    assert mgr.initialize() is False
    assert mgr.state.status is SessionStatus.UNAUTHENTICATED
    assert mgr.is_authenticated is False
    assert mgr.is_anonymous is False
    assert mgr.state.is_loading is False


def test_guest_login_then_logout(settings, storage, clock) -> None:
    mgr = _manager(settings, storage, clock)
    ident = mgr.login_as_guest()

    assert mgr.is_authenticated is True
    assert mgr.is_anonymous is True
    assert mgr.state.status is SessionStatus.AUTHENTICATED
    assert storage.get(TOKEN_KEY) == mgr.token
    assert mgr.cached_user() == ident

    mgr.logout()
    assert mgr.is_authenticated is False
    assert mgr.identity is None
    assert storage.get(TOKEN_KEY) is None
    assert storage.get(USER_KEY) is None


def test_login_passes_through_authenticating(settings, storage, clock) -> None:
    mgr = _manager(settings, storage, clock)
    seen: list[SessionStatus] = []
    mgr.store.subscribe(lambda new, old: seen.append(new.status))
    mgr.login_registered("u1", "Ada")
    assert seen == [SessionStatus.AUTHENTICATING, SessionStatus.AUTHENTICATED]
    assert mgr.is_anonymous is False


def test_initialize_restores_persisted_session_idempotently(settings, clock) -> None:
    ident = Identity(id="u1", display_name="Ada")
    token = credentials.encode(ident, KIND_REGISTERED, now=clock(), settings=settings)
    storage = MemoryStorage({TOKEN_KEY: token})
    mgr = _manager(settings, storage, clock)

    assert mgr.initialize() is True
    assert mgr.identity == ident
    assert mgr.initialize() is True
    assert mgr.identity == ident
    assert mgr.token == token
    assert mgr.state.status is SessionStatus.AUTHENTICATED


@pytest.mark.parametrize("bad", ["garbage", "a.b.c", ""])
def test_initialize_purges_corrupted_credential(settings, clock, bad) -> None:
    storage = MemoryStorage({TOKEN_KEY: bad, USER_KEY: "{}"})
    mgr = _manager(settings, storage, clock)
    assert mgr.initialize() is False
    assert storage.get(TOKEN_KEY) is None
    assert mgr.is_authenticated is False


def test_initialize_purges_expired_credential(settings, clock) -> None:
    ident = Identity(id="u1", display_name="Ada")
    token = credentials.encode(ident, KIND_REGISTERED, now=clock() - 8 * DAY, settings=settings)
    storage = MemoryStorage({TOKEN_KEY: token})
    mgr = _manager(settings, storage, clock)
    assert mgr.initialize() is False
    assert storage.get(TOKEN_KEY) is None


def test_expiry_is_detected_deterministically(settings, storage, clock) -> None:
    mgr = _manager(settings, storage, clock)
    mgr.login_as_guest()
    clock.advance(DAY - 1)
    assert mgr.is_authenticated is True
    assert mgr.check_expiry() is True

    clock.advance(1)
    assert mgr.is_authenticated is False
    assert mgr.check_expiry() is False
    assert mgr.identity is None
    assert storage.get(TOKEN_KEY) is None


def test_require_identity(settings, storage, clock) -> None:
    mgr = _manager(settings, storage, clock)
    with pytest.raises(AuthRequired):
        mgr.require_identity()
    ident = mgr.login_as_guest()
    assert mgr.require_identity() == ident


def test_watchdog_not_scheduled_without_event_loop(settings, storage, clock) -> None:
    mgr = _manager(settings, storage, clock)
    mgr.login_as_guest()
    assert mgr.watchdog.running is False
    assert mgr.is_authenticated is True


def test_watchdog_logs_out_on_expiry(storage, clock, settings) -> None:
    fast = settings.model_copy(update={"watchdog_interval_s": 0.01})
    mgr = _manager(fast, storage, clock)

    async def scenario() -> None:
        mgr.login_as_guest()
        assert mgr.watchdog.running is True
        await asyncio.sleep(0.05)
        assert mgr.is_authenticated is True

        clock.advance(DAY + 1)
        for _ in range(50):
            if mgr.identity is None:
                break
            await asyncio.sleep(0.01)
        assert mgr.identity is None
        assert mgr.watchdog.running is False
        assert storage.get(TOKEN_KEY) is None

    asyncio.run(scenario())


def test_new_login_replaces_previous_watchdog(settings, storage, clock) -> None:
    mgr = _manager(settings, storage, clock)

    async def scenario() -> None:
        mgr.login_as_guest()
        first = mgr.watchdog._task
        assert first is not None

        mgr.login_registered("u1", "Ada")
        second = mgr.watchdog._task
        assert second is not None and second is not first
        await asyncio.sleep(0.01)
        assert first.cancelled()
        assert not second.done()

        mgr.logout()
        await asyncio.sleep(0.01)
        assert second.cancelled()
        assert mgr.watchdog.running is False

    asyncio.run(scenario())


def test_file_storage_survives_restart(settings, clock, tmp_path) -> None:
    path = tmp_path / "state" / "credentials.json"
    first = _manager(settings, FileStorage(path), clock)
    ident = first.login_registered("u1", "Ada")
    first.close()

    second = _manager(settings, FileStorage(path), clock)
    assert second.initialize() is True
    assert second.identity == ident

    second.logout()
    assert FileStorage(path).get(TOKEN_KEY) is None


def test_file_storage_tolerates_corrupt_file(tmp_path) -> None:
    path = tmp_path / "credentials.json"
    path.write_text("{not json", encoding="utf-8")
    store = FileStorage(path)
    assert store.get(TOKEN_KEY) is None
    store.set(TOKEN_KEY, "t")
    assert store.get(TOKEN_KEY) == "t"
