"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads happen here. No module should call os.getenv()
or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. database_url -> DATABASE_URL). Type coercion and validation are built in.

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. The SMTP backend refuses to start without a host rather than
      failing on the first signup.

Layer rule: core/ is the kernel. This module may not import from api/,
accounts/, store/, or mail/.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("accounts.config")

_DEFAULT_DB_URL = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'accounts.db'}"


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
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    verification_ttl_seconds: int = Field(default=24 * 3600, gt=0)
    # bcrypt accepts 4..31. Tests drop to 4 to keep the suite fast.
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    # Empty string means the HTTP layer derives the base from the request URL.
    verification_link_base: str = ""

    # ------------------------------------------------------------------
    # Mail
    # ------------------------------------------------------------------

    mail_backend: Literal["log", "smtp"] = "log"
    mail_from: str = "no-reply@localhost"
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_starttls: bool = True
    smtp_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_mail_backend(self) -> "Settings":
        """Refuse an SMTP backend with no host configured.

        The log backend is always valid; it is the development default and
        writes the recipient and subject to the accounts.mail logger instead
        of delivering anything.
        """
        if self.mail_backend == "smtp" and not self.smtp_host:
            raise ValueError("SMTP_HOST is required when MAIL_BACKEND=smtp.")
        if self.mail_backend == "log" and not self.debug:
            logger.warning("MAIL_BACKEND=log: verification emails are logged, not delivered.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
