"""store/ -- Generic persistence for simple entities.

One repository contract (find_one / find / create / save / remove) shared by
every UUID-keyed, audit-tracked entity. SQLAlchemy Core over an async engine;
entities are plain dataclasses, never ORM-mapped.

Layer rule: store/ imports only core/ + third-party libraries. It does NOT
import from accounts/, mail/, or api/.
"""

from store.database import Database
from store.entity import SimpleEntity, SoftDeletableEntity
from store.errors import EntityConflictError, PreconditionViolation, StoreError
from store.repository import MAX_PAGE_SIZE, Page, SimpleEntityRepository
from store.schema import EntitySchema, Relation, metadata

__all__ = [
    "MAX_PAGE_SIZE",
    "Database",
    "EntityConflictError",
    "EntitySchema",
    "Page",
    "PreconditionViolation",
    "Relation",
    "SimpleEntity",
    "SimpleEntityRepository",
    "SoftDeletableEntity",
    "StoreError",
    "metadata",
]
