"""
store/operators.py -- Comparison operators usable as predicate values.

A predicate maps field names to either a plain value (equality, or IS NULL for
None), a related entity (compared by id), or one of the operators below:

    repo.find({"expires_at": MoreThan(now), "account": account})
    repo.find([{"email": Like("%@example.com")}, {"role": In(["admin"])}])

Each operator renders itself against a SQLAlchemy column. resolve() turns a
related entity into its id so relation fields accept either form everywhere.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import ColumnElement, not_

Resolver = Callable[[Any], Any]


class Operator:
    """Base class. Subclasses return a boolean SQL expression for one column."""

    def clause(self, column: ColumnElement, resolve: Resolver) -> ColumnElement[bool]:
        raise NotImplementedError


def value_clause(column: ColumnElement, value: Any, resolve: Resolver) -> ColumnElement[bool]:
    """Render any predicate value -- operator or plain -- against column."""
    if isinstance(value, Operator):
        return value.clause(column, resolve)
    resolved = resolve(value)
    if resolved is None:
        return column.is_(None)
    return column == resolved


@dataclass(frozen=True)
class Equal(Operator):
    value: Any

    def clause(self, column, resolve):
        return value_clause(column, self.value, resolve)


@dataclass(frozen=True)
class Not(Operator):
    """Negate a plain value or another operator: Not(None) means IS NOT NULL."""

    value: Any

    def clause(self, column, resolve):
        return not_(value_clause(column, self.value, resolve))


@dataclass(frozen=True)
class In(Operator):
    values: Sequence[Any]

    def clause(self, column, resolve):
        return column.in_([resolve(v) for v in self.values])


@dataclass(frozen=True)
class IsNull(Operator):
    def clause(self, column, resolve):
        return column.is_(None)


@dataclass(frozen=True)
class LessThan(Operator):
    value: Any

    def clause(self, column, resolve):
        return column < resolve(self.value)


@dataclass(frozen=True)
class LessThanOrEqual(Operator):
    value: Any

    def clause(self, column, resolve):
        return column <= resolve(self.value)


@dataclass(frozen=True)
class MoreThan(Operator):
    value: Any

    def clause(self, column, resolve):
        return column > resolve(self.value)


@dataclass(frozen=True)
class MoreThanOrEqual(Operator):
    value: Any

    def clause(self, column, resolve):
        return column >= resolve(self.value)


@dataclass(frozen=True)
class Like(Operator):
    """SQL LIKE with the caller's own wildcards (% and _)."""

    pattern: str

    def clause(self, column, resolve):
        return column.like(self.pattern)


@dataclass(frozen=True)
class Between(Operator):
    """Inclusive on both ends, as SQL BETWEEN is."""

    low: Any
    high: Any

    def clause(self, column, resolve):
        return column.between(resolve(self.low), resolve(self.high))
