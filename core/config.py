"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the forum backend happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. redis_url -> REDIS_URL). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, cache/, or posts/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("forum.config")

_DATA_DIR = Path(__file__).resolve().parent.parent

# Matches the 10-year session cookie lifetime.
_TEN_YEARS = 60 * 60 * 24 * 365 * 10


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    database_url: str = f"sqlite:///{_DATA_DIR / 'forum.db'}"

    # ------------------------------------------------------------------
    # Cache (sessions + reset tokens)
    # ------------------------------------------------------------------

    # Empty string means "no Redis": fall back to the local SQLite cache.
    redis_url: str = ""
    cache_db_path: str = str(_DATA_DIR / "forum_cache.db")

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    session_cookie_name: str = "qid"
    session_ttl_seconds: int = _TEN_YEARS
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    reset_token_ttl_seconds: int = 60 * 60 * 24
    # Base URL of the web frontend; reset links point at
    # {frontend_url}/change-password/{token}.
    frontend_url: str = "http://localhost:3000"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost:3000"]

    @model_validator(mode="after")
    def validate_urls_and_ttls(self) -> "Settings":
        """Normalize frontend_url and reject TTLs that would never store anything.

        A zero or negative TTL makes every SET expire immediately, which turns
        login and password reset into silent no-ops -- fail at startup instead.
        """
        self.frontend_url = self.frontend_url.rstrip("/")
        if self.session_ttl_seconds <= 0:
            raise ValueError("SESSION_TTL_SECONDS must be a positive number of seconds.")
        if self.reset_token_ttl_seconds <= 0:
            raise ValueError("RESET_TOKEN_TTL_SECONDS must be a positive number of seconds.")
        if not self.redis_url and not self.debug:
            logger.warning("REDIS_URL not set -- sessions and reset tokens use the local SQLite cache.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
