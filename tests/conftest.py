"""
tests/conftest.py -- Shared fixtures for the account service tests.

This module provides:
  - database:    a fresh in-memory SQLite Database with the schema created
  - mailer:      RecordingEmailService that keeps every message it is handed
  - service:     AccountService over both, bcrypt cost lowered to 4
  - audit:       a fixed AuditContext for store mutations
  - make_account: helper that inserts an account straight through the store
  - api_client:  TestClient around create_app() with its own in-memory DB

Plain "sqlite+aiosqlite:///:memory:" is enough here: Database switches to a
StaticPool for in-memory URLs, so every checkout shares one connection and one
schema.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from accounts.models import Account, Role
from accounts.passwords import generate_salt, hash_password
from accounts.repositories import AccountRepository
from accounts.service import AccountService
from api.main import create_app
from core.audit import AuditContext
from core.config import Settings
from store.database import Database
from tests.support import MEMORY_URL, TEST_ROUNDS, RecordingEmailService


@pytest_asyncio.fixture
async def database() -> AsyncIterator[Database]:
    db = Database(MEMORY_URL)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def mailer() -> RecordingEmailService:
    return RecordingEmailService()


@pytest.fixture
def service(database: Database, mailer: RecordingEmailService) -> AccountService:
    return AccountService(database, mailer, bcrypt_rounds=TEST_ROUNDS)


@pytest.fixture
def audit() -> AuditContext:
    return AuditContext(actor="test-suite", reason="pytest")


@pytest.fixture
def make_account(database: Database, audit: AuditContext):
    """Return an async factory inserting an account with a real bcrypt hash."""
    repo = AccountRepository(database)

    async def _make(email: str, password: str = "correct horse", *, verified: bool = False) -> Account:
        salt = generate_salt(TEST_ROUNDS)
        account = await repo.create(
            {
                "email": email,
                "password_hash": hash_password(password, salt),
                "password_salt": salt,
                "role": Role.END_USER,
            },
            audit,
        )
        if verified:
            account.is_verified = True
            await repo.save(account, audit)
        return account

    return _make


@pytest.fixture
def api_client() -> Iterator[tuple[TestClient, RecordingEmailService]]:
    """Yield (client, mailer) around a fresh app and in-memory database.

    The lifespan (and so the engine) runs inside the TestClient's event loop;
    entering the client as a context manager is what triggers it.
    """
    mailer = RecordingEmailService()
    settings = Settings(database_url=MEMORY_URL, bcrypt_rounds=TEST_ROUNDS, debug=True)
    app = create_app(settings, email_service=mailer)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, mailer
