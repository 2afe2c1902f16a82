"""Tests for core/config.py -- Settings defaults and startup validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings


def test_defaults_need_no_environment(monkeypatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    settings = Settings(_env_file=None)
    assert settings.database_url.startswith("sqlite+aiosqlite:///")
    assert settings.mail_backend == "log"
    assert settings.verification_ttl_seconds == 24 * 3600
    assert settings.bcrypt_rounds == 12


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("VERIFICATION_TTL_SECONDS", "600")
    monkeypatch.setenv("BCRYPT_ROUNDS", "5")
    settings = Settings(_env_file=None)
    assert settings.database_url == "sqlite+aiosqlite:///:memory:"
    assert settings.verification_ttl_seconds == 600
    assert settings.bcrypt_rounds == 5


def test_smtp_backend_requires_host() -> None:
    with pytest.raises(ValidationError, match="SMTP_HOST"):
        Settings(_env_file=None, mail_backend="smtp")


def test_smtp_backend_with_host_is_valid() -> None:
    settings = Settings(_env_file=None, mail_backend="smtp", smtp_host="mail.example.com")
    assert settings.smtp_port == 587


@pytest.mark.parametrize("rounds", [3, 32])
def test_bcrypt_rounds_bounds(rounds: int) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, bcrypt_rounds=rounds)


def test_ttl_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, verification_ttl_seconds=0)


def test_get_settings_is_cached() -> None:
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
