"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for RoleKeeper happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY).

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved. Dev mode (DEBUG=true) fills in missing secrets with a warning;
      production mode refuses to start without them.

Secrets are read here but never used here. The app lifespan passes them into
TokenIssuer and AuthService constructors, so tests can build those objects
with their own keys without touching the environment.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("rolekeeper.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'rolekeeper.db'}"

# Development fallback for the shared privileged code. Never accepted in
# production mode -- see validate_secrets().
_DEV_ADMIN_CODE = "addwise"


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
    # Empty string is the sentinel for "not configured".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_expire_seconds: int = 24 * 60 * 60
    # Shared code that admin and superadmin accounts must present at signup
    # and signin. One value for every privileged account.
    admin_unique_code: str = ""
    max_login_attempts: int = 5
    lock_duration_seconds: int = 2 * 60 * 60

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    signup_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    # Comma-separated list of browser origins allowed by CORS.
    cors_allow_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def cors_origins(self) -> list[str]:
        return [item.strip() for item in self.cors_allow_origins.split(",") if item.strip()]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("token_expire_seconds", "lock_duration_seconds")
    @classmethod
    def validate_positive_duration(cls, v: int) -> int:
        if v < 1:
            raise ValueError("durations must be at least 1 second")
        return v

    @field_validator("max_login_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if v < 1 or v > 100:
            raise ValueError("MAX_LOGIN_ATTEMPTS must be between 1 and 100")
        return v

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce SECRET_KEY and ADMIN_UNIQUE_CODE policy.

        Dev mode (DEBUG=true): auto-generate a random SECRET_KEY and fall back
            to the development admin code, each with a warning. Tokens will not
            survive a restart -- acceptable for local dev.

        Production mode: refuse to start if either value is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")

        if not self.admin_unique_code:
            if self.debug:
                self.admin_unique_code = _DEV_ADMIN_CODE
                logger.warning("WARNING: Using the development ADMIN_UNIQUE_CODE.")
            else:
                raise ValueError("ADMIN_UNIQUE_CODE is required in production mode.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
