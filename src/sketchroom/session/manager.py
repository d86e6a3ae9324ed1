from __future__ import annotations

import enum
import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from sketchroom.errors import AuthRequired
from sketchroom.protocol.constants import KIND_GUEST, KIND_REGISTERED, TOKEN_KEY, USER_KEY
from sketchroom.protocol.messages import Identity
from sketchroom.server.config import Settings, get_settings
from sketchroom.state import Store

from . import credentials
from .storage import CredentialStorage, MemoryStorage
from .watchdog import ExpiryWatchdog

LOGGER = logging.getLogger(__name__)


class SessionStatus(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class SessionState:
    identity: Optional[Identity] = None
    token: Optional[str] = None
    status: SessionStatus = SessionStatus.UNAUTHENTICATED
    is_loading: bool = False


class SessionManager:
    """Single owner of the current identity and its credential."""

    def __init__(
        self,
        *,
        storage: CredentialStorage | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or get_settings()
        self.storage: CredentialStorage = storage if storage is not None else MemoryStorage()
        self.clock = clock
        self.store: Store[SessionState] = Store(SessionState())
        self.watchdog = ExpiryWatchdog(
            still_valid=self._persisted_credential_valid,
            on_expired=self._expire,
            interval_s=self.settings.watchdog_interval_s,
        )

    # -------------------- reads --------------------

    @property
    def state(self) -> SessionState:
        return self.store.get()

    @property
    def identity(self) -> Optional[Identity]:
        return self.state.identity

    @property
    def token(self) -> Optional[str]:
        return self.state.token

    @property
    def is_authenticated(self) -> bool:
        st = self.state
        if st.identity is None or st.token is None:
            return False
        return credentials.is_valid(st.token, now=self.clock())

    @property
    def is_anonymous(self) -> bool:
        return self.identity.anonymous if self.identity is not None else False

    def require_identity(self) -> Identity:
        if not self.is_authenticated:
            raise AuthRequired()
        assert self.identity is not None
        return self.identity

    # -------------------- transitions --------------------

    def initialize(self) -> bool:
        """Hydrate from the persisted credential. Safe to call repeatedly."""
        self.store.set(is_loading=True)
        token = self.storage.get(TOKEN_KEY)
        identity = credentials.identity_from_token(token) if token else None
        if token and identity is not None and credentials.is_valid(token, now=self.clock()):
            if self.state.token == token and self.state.status is SessionStatus.AUTHENTICATED:
                self.store.set(is_loading=False)
                if not self.watchdog.running:
                    self.watchdog.start()
                return True
            self._apply(identity, token)
            LOGGER.info("session restored for %s", identity.id)
            return True

        if token is not None:
            LOGGER.info("discarding stale or unreadable persisted credential")
            self._purge()
        self.watchdog.stop()
        self.store.set(
            identity=None,
            token=None,
            status=SessionStatus.UNAUTHENTICATED,
            is_loading=False,
        )
        return False

    def login(self, identity: Identity, token: str) -> None:
        self.store.set(status=SessionStatus.AUTHENTICATING, is_loading=True)
        self.storage.set(TOKEN_KEY, token)
        self.storage.set(USER_KEY, identity.model_dump_json())
        self._apply(identity, token)
        LOGGER.info("logged in as %s (anonymous=%s)", identity.id, identity.anonymous)

    def login_as_guest(self) -> Identity:
        identity = credentials.generate_guest_identity()
        token = credentials.encode(identity, KIND_GUEST, now=self.clock(), settings=self.settings)
        self.login(identity, token)
        return identity

    def login_registered(
        self, user_id: str, display_name: str, email: str | None = None
    ) -> Identity:
        identity = Identity(id=user_id, display_name=display_name, anonymous=False, email=email)
        token = credentials.encode(
            identity, KIND_REGISTERED, now=self.clock(), settings=self.settings
        )
        self.login(identity, token)
        return identity

    def logout(self) -> None:
        self.watchdog.stop()
        self._purge()
        previous = self.identity
        self.store.set(
            identity=None,
            token=None,
            status=SessionStatus.UNAUTHENTICATED,
            is_loading=False,
        )
        if previous is not None:
            LOGGER.info("logged out %s", previous.id)

    def check_expiry(self) -> bool:
        """One synchronous watchdog pass; logs out and returns False on expiry."""
        if self.identity is None:
            return False
        return self.watchdog.check()

    def cached_user(self) -> Optional[Identity]:
        raw = self.storage.get(USER_KEY)
        if not raw:
            return None
        try:
            return Identity.model_validate(json.loads(raw))
        except ValueError:
            return None

    def close(self) -> None:
        self.watchdog.stop()
        self.store.close()

    # -------------------- internals --------------------

    def _apply(self, identity: Identity, token: str) -> None:
        self.store.set(
            identity=identity,
            token=token,
            status=SessionStatus.AUTHENTICATED,
            is_loading=False,
        )
        self.watchdog.start()

    def _purge(self) -> None:
        self.storage.remove(TOKEN_KEY)
        self.storage.remove(USER_KEY)

    def _persisted_credential_valid(self) -> bool:
        token = self.storage.get(TOKEN_KEY)
        return token is not None and credentials.is_valid(token, now=self.clock())

    def _expire(self) -> None:
        self.logout()
