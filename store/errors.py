"""
store/errors.py -- Exceptions raised by the entity store.

Expected outcomes (no row found) are return values, not exceptions. What is
raised here is either a programmer error (PreconditionViolation) or a storage
constraint failure translated out of SQLAlchemy's vocabulary
(EntityConflictError), so callers above store/ never import sqlalchemy.exc.
"""


class StoreError(Exception):
    """Base class for every error raised by store/."""


class PreconditionViolation(StoreError):
    """A call site broke the store contract.

    Raised when save()/remove() receive an entity the store did not produce,
    when a creation payload carries server-computed fields, or when a
    predicate names a field the entity does not have. Never expected in
    correct code, so it is raised rather than returned.
    """


class EntityConflictError(StoreError):
    """A write violated a uniqueness or integrity constraint."""

    def __init__(self, table: str, detail: str = "") -> None:
        self.table = table
        self.detail = detail
        message = f"Conflicting write on {table!r}"
        super().__init__(f"{message}: {detail}" if detail else message)
