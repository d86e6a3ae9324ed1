from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime config.

    - Loaded from environment variables (prefix `SKETCHROOM_`)
    - Also reads `.env` if present (via pydantic-settings + python-dotenv)
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="SKETCHROOM_", extra="ignore")

    # Credentials
    token_secret: str = "sketchroom-local-dev-secret-change-me"
    token_algorithm: str = "HS256"
    registered_token_ttl_s: int = 7 * 24 * 60 * 60
    guest_token_ttl_s: int = 24 * 60 * 60

    # Expiry watchdog period
    watchdog_interval_s: float = 60.0

    # If set, the credential is persisted to this JSON file instead of memory.
    credential_path: Path | None = None

    # Rooms
    default_max_participants: int = 10
    room_code_attempts: int = 5
    public_base_url: str = "http://localhost:5173"

    # Simulated backing-store latency (the demo frontend used 0.8s / 0.6s)
    backend_create_delay_s: float = 0.0
    backend_join_delay_s: float = 0.0

    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str | int = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
