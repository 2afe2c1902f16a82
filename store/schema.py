"""
store/schema.py -- Table + dataclass pairing for one entity type.

Pattern: Data Mapper. An EntitySchema knows how a dataclass field maps to a
column, which fields the database computes on its own, which fields are
relations to other entities, and whether the table supports soft delete. The
repository is written once against this descriptor and instantiated per
entity kind.

All tables share one MetaData (`metadata`) so a single create_all() builds the
whole schema, foreign keys included.

Soft delete is an explicit flag checked against the table and the dataclass
when the schema is built (import time), not probed per call.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Column, DateTime, MetaData, String, Table, and_, func

from store.entity import ORIGIN_ATTR, SIMPLE_ENTITY_FIELDS, SOFT_DELETE_FIELD, SimpleEntity
from store.errors import PreconditionViolation

metadata = MetaData()

# Columns the database maintains on every write. save() never sends them.
_AUDIT_TIMESTAMP_FIELDS: frozenset[str] = frozenset({"created_at", "updated_at"})

# Separator between a relation field name and the joined table's column label.
_LABEL_SEP = "__"


# ---------------------------------------------------------------------------
# Column helpers -- every simple-entity table starts with these
# ---------------------------------------------------------------------------


def id_column() -> Column:
    return Column("id", String(36), primary_key=True)


def timestamp_columns() -> list[Column]:
    return [
        Column("created_at", DateTime, nullable=False, server_default=func.now()),
        Column("updated_at", DateTime, nullable=False, server_default=func.now(), onupdate=func.now()),
    ]


def soft_delete_column() -> Column:
    return Column(SOFT_DELETE_FIELD, DateTime, nullable=True, index=True)


# ---------------------------------------------------------------------------
# Descriptor
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Relation:
    """A many-to-one link: `column` on this table references `target`'s id.

    Relations are always joined eagerly; the related entity is materialized
    and stamped with its own schema so it can be saved through its own
    repository.
    """

    column: str
    target: EntitySchema


class EntitySchema:
    """Describe how `entity_cls` instances are stored in `table`.

    Args:
        table:           The SQLAlchemy Table (must have an "id" primary key).
        entity_cls:      SimpleEntity dataclass materialized from rows.
        server_computed: Fields the database fills on insert (server defaults).
                         They are rejected in creation payloads but written by save().
        relations:       Field name -> Relation for fields holding another entity.
        soft_delete:     True if remove() stamps deleted_at instead of deleting.
    """

    def __init__(
        self,
        table: Table,
        entity_cls: type[SimpleEntity],
        *,
        server_computed: Iterable[str] = (),
        relations: Mapping[str, Relation] | None = None,
        soft_delete: bool = False,
    ) -> None:
        self.table = table
        self.entity_cls = entity_cls
        self.relations: dict[str, Relation] = dict(relations or {})
        self.soft_delete = soft_delete
        self.field_names: tuple[str, ...] = tuple(f.name for f in dataclasses.fields(entity_cls))

        # One alias per relation, shared by the column list and the join.
        self._aliases = {name: rel.target.table.alias(f"rel_{name}") for name, rel in self.relations.items()}

        self._check_soft_delete()
        self._check_columns()
        self._check_relations()

        computed = frozenset(server_computed)
        unknown = computed - set(self.field_names)
        if unknown:
            raise ValueError(f"{self.name}: server_computed names unknown fields {sorted(unknown)!r}")
        omitted = SIMPLE_ENTITY_FIELDS | computed
        if soft_delete:
            omitted |= {SOFT_DELETE_FIELD}
        self.creation_omitted: frozenset[str] = omitted

    def __repr__(self) -> str:
        return f"<EntitySchema {self.name} -> {self.entity_cls.__name__}>"

    @property
    def name(self) -> str:
        return self.table.name

    def _check_soft_delete(self) -> None:
        has_column = SOFT_DELETE_FIELD in self.table.c
        has_field = SOFT_DELETE_FIELD in self.field_names
        if self.soft_delete and not (has_column and has_field):
            raise ValueError(f"{self.name}: soft_delete=True needs a {SOFT_DELETE_FIELD} column and field")
        if not self.soft_delete and has_column:
            raise ValueError(f"{self.name}: table declares {SOFT_DELETE_FIELD} but soft_delete=False")

    def _check_columns(self) -> None:
        for field_name in self.field_names:
            column_name = self.relations[field_name].column if field_name in self.relations else field_name
            if column_name not in self.table.c:
                raise ValueError(f"{self.name}: field {field_name!r} has no column {column_name!r}")

    def _check_relations(self) -> None:
        # materialize() reads one level of joined columns only.
        for field_name, relation in self.relations.items():
            if relation.target.relations:
                raise ValueError(
                    f"{self.name}: relation {field_name!r} targets {relation.target.name}, which has relations of its own"
                )

    # ------------------------------------------------------------------
    # Field -> column
    # ------------------------------------------------------------------

    def column_for(self, field_name: str) -> Column:
        """Return the column backing a field (the FK column for relations)."""
        if field_name in self.relations:
            return self.table.c[self.relations[field_name].column]
        if field_name not in self.field_names:
            raise PreconditionViolation(f"{self.name} has no field {field_name!r}")
        return self.table.c[field_name]

    def to_row(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Translate field values into column values (related entities -> their id)."""
        row: dict[str, Any] = {}
        for field_name, value in values.items():
            column = self.column_for(field_name)
            row[column.name] = resolve_id(value) if field_name in self.relations else value
        return row

    def writable_row(self, entity: SimpleEntity) -> dict[str, Any]:
        """Column values save() writes: everything except the id and audit timestamps."""
        skip = _AUDIT_TIMESTAMP_FIELDS | {"id"}
        return self.to_row({name: getattr(entity, name) for name in self.field_names if name not in skip})

    # ------------------------------------------------------------------
    # Row -> entity
    # ------------------------------------------------------------------

    def selectable_columns(self) -> list:
        """Own columns under their plain names, joined columns as <field>__<column>."""
        columns = [c.label(c.name) for c in self.table.c]
        for field_name, target in self._aliases.items():
            columns.extend(c.label(f"{field_name}{_LABEL_SEP}{c.name}") for c in target.c)
        return columns

    def from_clause(self, *, with_deleted: bool = False):
        """self.table LEFT OUTER JOIN each relation target on <fk> = target.id.

        A soft-deleted target is left out of the join unless with_deleted, so
        the relation field comes back as None.
        """
        joined = self.table
        for field_name, relation in self.relations.items():
            target = self._aliases[field_name]
            condition = self.table.c[relation.column] == target.c.id
            if relation.target.soft_delete and not with_deleted:
                condition = and_(condition, target.c[SOFT_DELETE_FIELD].is_(None))
            joined = joined.outerjoin(target, condition)
        return joined

    def materialize(self, mapping: Mapping[str, Any], prefix: str = "") -> SimpleEntity:
        """Build and stamp an entity from a labeled row mapping."""
        kwargs: dict[str, Any] = {}
        for field_name in self.field_names:
            if field_name in self.relations:
                nested_prefix = f"{field_name}{_LABEL_SEP}"
                if mapping.get(f"{nested_prefix}id") is None:
                    kwargs[field_name] = None
                else:
                    kwargs[field_name] = self.relations[field_name].target.materialize(mapping, nested_prefix)
            else:
                kwargs[field_name] = mapping[f"{prefix}{field_name}"]
        entity = self.entity_cls(**kwargs)
        setattr(entity, ORIGIN_ATTR, self)
        return entity

    def owns(self, entity: object) -> bool:
        """True if entity was materialized by a store for this schema."""
        return isinstance(entity, self.entity_cls) and getattr(entity, ORIGIN_ATTR, None) is self


def resolve_id(value: Any) -> Any:
    """Accept an entity or a bare id wherever a relation is referenced."""
    if isinstance(value, SimpleEntity):
        return value.id
    return value
