"""
store/repository.py -- One CRUD contract for every simple entity.

Pattern: Repository, written once and specialised per entity by subclassing:

    class AccountRepository(SimpleEntityRepository[Account]):
        schema = ACCOUNTS

Every operation takes an optional `unit` (an AsyncConnection from
Database.transaction()). With a unit, the call reads and writes inside that
transaction; without one it opens and commits its own.

Mutations take an AuditContext and write one INFO line to accounts.store per
change. Integrity violations surface as EntityConflictError, never as
sqlalchemy.exc.IntegrityError.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncConnection

from core.audit import AuditContext
from store.database import Database
from store.entity import SOFT_DELETE_FIELD, SimpleEntity, utcnow
from store.errors import EntityConflictError, PreconditionViolation
from store.ids import generate_unique_id
from store.query import Order, Where, order_clauses, where_clause
from store.schema import EntitySchema

logger = logging.getLogger("accounts.store")

E = TypeVar("E", bound=SimpleEntity)

# Hard cap on rows returned by find(). Callers page with skip.
MAX_PAGE_SIZE = 50


@dataclass
class Page(Generic[E]):
    """One page of find() results. total counts every match, ignoring paging."""

    limit: int
    total: int
    rows: list[E] = field(default_factory=list)


class SimpleEntityRepository(Generic[E]):
    """Generic find/create/save/remove over one EntitySchema."""

    schema: ClassVar[EntitySchema]

    def __init__(self, database: Database, schema: EntitySchema | None = None) -> None:
        self._database = database
        if schema is not None:
            self.schema = schema
        if getattr(self, "schema", None) is None:
            raise TypeError(f"{type(self).__name__} needs a schema (class attribute or argument)")

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _connection(self, unit: AsyncConnection | None) -> AsyncIterator[AsyncConnection]:
        if unit is not None:
            yield unit
        else:
            async with self._database.transaction() as conn:
                yield conn

    def _check_origin(self, entity: object, action: str) -> None:
        if not self.schema.owns(entity):
            raise PreconditionViolation(
                f"{action}() on {self.schema.name} received {type(entity).__name__} not produced by this store"
            )

    def _log(self, action: str, entity_id: str, audit: AuditContext) -> None:
        logger.info("%s %s id=%s %s", action, self.schema.name, entity_id, audit.describe())

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _select(self, where: Where | None, with_deleted: bool, order: Order | None):
        stmt = select(*self.schema.selectable_columns()).select_from(self.schema.from_clause(with_deleted=with_deleted))
        clause = where_clause(self.schema, where, with_deleted=with_deleted)
        if clause is not None:
            stmt = stmt.where(clause)
        return stmt.order_by(*order_clauses(self.schema, order))

    async def find_one(
        self,
        where: Where,
        *,
        with_deleted: bool = False,
        order: Order | None = None,
        unit: AsyncConnection | None = None,
    ) -> E | None:
        """Return the first matching entity, or None. Never raises on zero or many matches."""
        stmt = self._select(where, with_deleted, order).limit(1)
        async with self._connection(unit) as conn:
            row = (await conn.execute(stmt)).mappings().first()
        return self.schema.materialize(row) if row is not None else None

    async def find(
        self,
        where: Where | None = None,
        *,
        skip: int = 0,
        take: int | None = None,
        with_deleted: bool = False,
        order: Order | None = None,
        unit: AsyncConnection | None = None,
    ) -> Page[E]:
        """Return one offset-based page of matches plus the total match count.

        take is capped at MAX_PAGE_SIZE; asking for more silently returns at
        most the cap. Page.limit reports the limit actually applied.
        """
        if skip < 0:
            raise PreconditionViolation(f"skip must be >= 0, got {skip}")
        limit = MAX_PAGE_SIZE if take is None or take <= 0 else min(take, MAX_PAGE_SIZE)
        stmt = self._select(where, with_deleted, order).offset(skip).limit(limit)
        async with self._connection(unit) as conn:
            total = await self._count(conn, where, with_deleted)
            rows = (await conn.execute(stmt)).mappings().all()
        return Page(limit=limit, total=total, rows=[self.schema.materialize(r) for r in rows])

    async def count(
        self,
        where: Where | None = None,
        *,
        with_deleted: bool = False,
        unit: AsyncConnection | None = None,
    ) -> int:
        async with self._connection(unit) as conn:
            return await self._count(conn, where, with_deleted)

    async def _count(self, conn: AsyncConnection, where: Where | None, with_deleted: bool) -> int:
        stmt = select(func.count()).select_from(self.schema.table)
        clause = where_clause(self.schema, where, with_deleted=with_deleted)
        if clause is not None:
            stmt = stmt.where(clause)
        return (await conn.execute(stmt)).scalar() or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(
        self,
        payload: Mapping[str, Any],
        audit: AuditContext,
        *,
        unit: AsyncConnection | None = None,
    ) -> E:
        """Insert a new entity and return it as read back from the database.

        payload holds the entity's fields minus the id, the audit timestamps
        and the schema's server-computed fields; passing any of those is a
        PreconditionViolation. The id is generated here, before the INSERT.

        Raises EntityConflictError on a uniqueness or foreign-key violation.
        """
        forbidden = set(payload) & self.schema.creation_omitted
        if forbidden:
            raise PreconditionViolation(f"{self.schema.name}: fields {sorted(forbidden)!r} are set by the store")
        unknown = set(payload) - set(self.schema.field_names)
        if unknown:
            raise PreconditionViolation(f"{self.schema.name}: unknown fields {sorted(unknown)!r}")

        entity_id = generate_unique_id()
        row = self.schema.to_row({**payload, "id": entity_id})
        async with self._connection(unit) as conn:
            try:
                await conn.execute(self.schema.table.insert().values(**row))
            except IntegrityError as exc:
                raise EntityConflictError(self.schema.name, str(exc.orig)) from exc
            # Read back so server defaults (timestamps, flags) are on the instance.
            entity = await self.find_one({"id": entity_id}, with_deleted=True, unit=conn)
        self._log("create", entity_id, audit)
        return entity

    async def save(
        self,
        entity: E,
        audit: AuditContext,
        *,
        unit: AsyncConnection | None = None,
    ) -> None:
        """Write every client-writable field of entity, inserting if its row is gone.

        Full-state upsert by id, not a diff. entity must have come from this
        store (find_one/find/create, or a relation loaded by one of them).
        """
        self._check_origin(entity, "save")
        table = self.schema.table
        row = self.schema.writable_row(entity)
        async with self._connection(unit) as conn:
            try:
                result = await conn.execute(table.update().where(table.c.id == entity.id).values(**row))
                if result.rowcount == 0:
                    await conn.execute(table.insert().values(id=entity.id, **row))
            except IntegrityError as exc:
                raise EntityConflictError(self.schema.name, str(exc.orig)) from exc
            stamps = (
                await conn.execute(select(table.c.created_at, table.c.updated_at).where(table.c.id == entity.id))
            ).one()
        entity.created_at, entity.updated_at = stamps.created_at, stamps.updated_at
        self._log("save", entity.id, audit)

    async def remove(
        self,
        entity: E,
        audit: AuditContext,
        *,
        unit: AsyncConnection | None = None,
    ) -> None:
        """Soft-delete (stamp deleted_at) when the schema supports it, otherwise DELETE the row."""
        self._check_origin(entity, "remove")
        table = self.schema.table
        async with self._connection(unit) as conn:
            if self.schema.soft_delete:
                deleted_at = utcnow()
                await conn.execute(table.update().where(table.c.id == entity.id).values({SOFT_DELETE_FIELD: deleted_at}))
                setattr(entity, SOFT_DELETE_FIELD, deleted_at)
            else:
                await conn.execute(table.delete().where(table.c.id == entity.id))
        self._log("soft-remove" if self.schema.soft_delete else "remove", entity.id, audit)

    async def delete_where(
        self,
        where: Where,
        audit: AuditContext,
        *,
        unit: AsyncConnection | None = None,
    ) -> int:
        """Remove every live row matching where; returns how many were affected.

        Honours soft delete the same way remove() does. An empty predicate is
        refused rather than wiping the table.
        """
        clause = where_clause(self.schema, where, with_deleted=False)
        if not where or clause is None:
            raise PreconditionViolation(f"delete_where() on {self.schema.name} needs a non-empty predicate")
        table = self.schema.table
        if self.schema.soft_delete:
            stmt = table.update().where(clause).values({SOFT_DELETE_FIELD: utcnow()})
        else:
            stmt = table.delete().where(clause)
        async with self._connection(unit) as conn:
            result = await conn.execute(stmt)
        if result.rowcount:
            logger.info(
                "delete_where %s rows=%d %s",
                self.schema.name,
                result.rowcount,
                audit.describe(),
            )
        return result.rowcount
