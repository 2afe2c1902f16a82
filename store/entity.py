"""
store/entity.py -- Base dataclasses for every persisted simple entity.

Pattern: Data class (pure data container, zero logic). Subclasses add their
own fields; the store fills the audit timestamps and the id.

Provenance: the store stamps each instance it materializes with the schema it
came from (ORIGIN_ATTR). save() and remove() refuse instances without the
matching stamp, so a hand-built Account(...) can never be written through the
wrong repository or slip past create(). dataclasses.replace() returns an
unstamped copy for the same reason.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

ORIGIN_ATTR = "_store_origin"

# Fields every simple entity has; never accepted in a creation payload.
SIMPLE_ENTITY_FIELDS: frozenset[str] = frozenset({"id", "created_at", "updated_at"})
SOFT_DELETE_FIELD = "deleted_at"


def utcnow() -> datetime:
    """Naive UTC timestamp -- the representation every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(kw_only=True)
class SimpleEntity:
    """A UUID-keyed, audit-tracked record.

    created_at and updated_at are None only on an instance that has not been
    read back from the database (they are filled by server defaults).
    """

    id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(kw_only=True)
class SoftDeletableEntity(SimpleEntity):
    """A simple entity whose remove() stamps deleted_at instead of deleting the row."""

    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
