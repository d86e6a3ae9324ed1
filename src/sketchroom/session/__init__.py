from .manager import SessionManager, SessionState, SessionStatus
from .storage import CredentialStorage, FileStorage, MemoryStorage
from .watchdog import ExpiryWatchdog

__all__ = [
    "CredentialStorage",
    "ExpiryWatchdog",
    "FileStorage",
    "MemoryStorage",
    "SessionManager",
    "SessionState",
    "SessionStatus",
]
