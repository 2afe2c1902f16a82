"""
store/database.py -- Async engine and unit-of-work scoping.

SQLAlchemy's asyncio extension over any async driver (aiosqlite by default,
asyncpg for PostgreSQL). Swapping databases is a URL change.

Unit of work: `async with db.transaction() as unit:` yields an AsyncConnection
inside BEGIN. The block commits on normal exit and rolls back if anything
raises. Repositories take that connection as their `unit=` argument so every
read and write in a flow shares one transaction. There is no implicit or
context-local transaction: a call without `unit=` runs in its own.

Usage:
    db = Database("sqlite+aiosqlite:///accounts.db")
    await db.create_all()
    async with db.transaction() as unit:
        account = await accounts.find_by_email(email, unit=unit)
    await db.dispose()
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import MetaData, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from store.schema import metadata as default_metadata

logger = logging.getLogger("accounts.store")


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or "mode=memory" in url or url.endswith("://"))


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable foreign keys on every new SQLite connection.

    SQLite PRAGMAs are per-connection and off by default; without
    foreign_keys=ON the ON DELETE CASCADE on verification tokens is ignored.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """WAL lets readers proceed while a writer holds the database (file databases only)."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


class Database:
    """Owns the async engine. One instance per process."""

    def __init__(self, url: str, *, echo: bool = False, metadata: MetaData = default_metadata) -> None:
        self.url = url
        self.metadata = metadata
        kwargs: dict = {}
        if _is_memory_sqlite(url):
            # One shared connection, otherwise each checkout sees an empty database.
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        self.engine: AsyncEngine = create_async_engine(url, echo=echo, **kwargs)
        if url.startswith("sqlite"):
            event.listen(self.engine.sync_engine, "connect", _set_sqlite_pragmas)
            if not _is_memory_sqlite(url):
                event.listen(self.engine.sync_engine, "connect", _set_wal_mode)

    async def create_all(self) -> None:
        """Create any missing tables. Idempotent; not a migration tool."""
        async with self.engine.begin() as conn:
            await conn.run_sync(self.metadata.create_all)
        logger.info("Schema ready (%d tables)", len(self.metadata.tables))

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(self.metadata.drop_all)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncConnection]:
        """Yield a connection inside one transaction; commit on exit, roll back on error."""
        async with self.engine.begin() as conn:
            yield conn

    async def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False
        return True

    async def dispose(self) -> None:
        await self.engine.dispose()
