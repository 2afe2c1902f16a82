"""
store/query.py -- Turn predicate dicts and order specs into SQL clauses.

Where shapes accepted:
    {"email": "a@b.c", "is_verified": True}          -- AND of the fields
    [{"email": "a@b.c"}, {"role": "admin"}]          -- OR of ANDs
    None / {} / []                                   -- no filter

Order: {"created_at": "DESC", "email": 1}. Accepts "ASC"/"DESC" (any case)
and 1/-1. Insertion order of the dict is the sort priority.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Union

from sqlalchemy import ColumnElement, and_, or_, true

from store.errors import PreconditionViolation
from store.operators import value_clause
from store.schema import EntitySchema, resolve_id

WhereObject = Mapping[str, Any]
Where = Union[WhereObject, Sequence[WhereObject]]
Order = Mapping[str, Union[str, int]]

_ASCENDING = {"ASC", 1}
_DESCENDING = {"DESC", -1}


def _and_clause(schema: EntitySchema, where: WhereObject) -> ColumnElement[bool]:
    clauses = [value_clause(schema.column_for(name), value, resolve_id) for name, value in where.items()]
    if not clauses:
        return true()
    return and_(*clauses)


def where_clause(schema: EntitySchema, where: Where | None, *, with_deleted: bool = False) -> ColumnElement[bool] | None:
    """Build the WHERE expression, adding the soft-delete filter unless with_deleted."""
    clause: ColumnElement[bool] | None = None
    if isinstance(where, Mapping):
        if where:
            clause = _and_clause(schema, where)
    elif where:
        clause = or_(*(_and_clause(schema, w) for w in where))

    if schema.soft_delete and not with_deleted:
        not_deleted = schema.table.c.deleted_at.is_(None)
        clause = not_deleted if clause is None else and_(clause, not_deleted)
    return clause


def order_clauses(schema: EntitySchema, order: Order | None) -> list:
    if not order:
        return []
    clauses = []
    for name, direction in order.items():
        column = schema.column_for(name)
        key = direction.upper() if isinstance(direction, str) else direction
        if key in _ASCENDING:
            clauses.append(column.asc())
        elif key in _DESCENDING:
            clauses.append(column.desc())
        else:
            raise PreconditionViolation(f"Invalid sort direction {direction!r} for {name!r}")
    return clauses
