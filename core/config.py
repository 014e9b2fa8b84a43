"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for CondoSwift happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. Stores and
      services never read it themselves; api/main.py passes the values they
      need into their constructors.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, bcrypt_rounds -> BCRYPT_ROUNDS).

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Implements the DEBUG-conditional SECRET_KEY rule and resolves
      the development conveniences (verification code in the register response,
      public /stats) to the DEBUG value when they are not set explicitly.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing relies on
  key entropy -- a short key weakens every issued token.

  In production mode (DEBUG not set or false), a missing SECRET_KEY is a hard
  startup failure. Tokens would otherwise be signed with a random key that
  changes on every restart.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("condoswift.config")


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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    frontend_url: str = "http://localhost:8080"
    # Host headers accepted by TrustedHostMiddleware. JSON list in the env,
    # e.g. ALLOWED_HOSTS='["api.condoswift.com"]'.
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Credentials and sessions
    # ------------------------------------------------------------------

    # bcrypt accepts 4..31; each step doubles the hashing cost.
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    session_duration_seconds: int = Field(default=7 * 24 * 60 * 60, gt=0)
    session_purge_interval_seconds: int = Field(default=60 * 60, gt=0)

    # Empty string keeps users in process memory.
    # Any SQLAlchemy URL switches to the SQL-backed repository.
    database_url: str = ""

    # ------------------------------------------------------------------
    # Rate limiting (limits library notation, e.g. "5 per 15 minutes")
    # ------------------------------------------------------------------

    rate_limit_storage_uri: str = "memory://"
    general_rate_limit: str = "100 per 15 minutes"
    auth_rate_limit: str = "5 per 15 minutes"

    # ------------------------------------------------------------------
    # Development conveniences -- None means "follow DEBUG"
    # ------------------------------------------------------------------

    expose_verification_code: Optional[bool] = None
    public_stats: Optional[bool] = None

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive a restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. " "Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def resolve_dev_conveniences(self) -> "Settings":
        """Default the verification-code echo and public /stats to DEBUG.

        Both exist for local testing against the web client. Production
        operators get neither unless they opt in explicitly.
        """
        if self.expose_verification_code is None:
            self.expose_verification_code = self.debug
        if self.public_stats is None:
            self.public_stats = self.debug
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
