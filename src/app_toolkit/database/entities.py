"""
Entity metadata for convention-based data access.

A record type T maps to the table named T.__name__. Its primary key column is
{T.__name__}Id (matched case-insensitively); every other public attribute maps
to a column of the same name. There is no other mapping configuration.

Metadata is derived once per type and cached.
"""

import dataclasses
import functools
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..errors import InvalidArgument


@dataclass(frozen=True)
class EntityMetadata:
    """Table binding of a record type."""

    entity_type: type
    table: str
    primary_key: str
    columns: tuple[str, ...]  # every column, primary key included, declaration order
    # column -> zero-argument callable producing its default value
    defaults: dict[str, Callable[[], Any]] = dataclasses.field(default_factory=dict, compare=False)

    @property
    def insert_columns(self) -> tuple[str, ...]:
        """Columns written by an insert (everything but the primary key)."""
        return tuple(c for c in self.columns if c != self.primary_key)

    def check_columns(self, names) -> list[str]:
        """
        Validate caller-supplied column names against the type.

        Names match case-insensitively, like SQLite identifiers.

        Returns:
            The declared spelling of each name, in the given order

        Raises:
            InvalidArgument: If a name is not a column of this entity
        """
        declared = {column.lower(): column for column in self.columns}
        names = list(names)
        unknown = [n for n in names if str(n).lower() not in declared]
        if unknown:
            raise InvalidArgument(
                f"Unknown column(s) for {self.table}: {', '.join(map(str, unknown))}"
            )
        return [declared[str(n).lower()] for n in names]

    def values_of(self, entity: Any) -> dict[str, Any]:
        """Insert parameters for an entity instance."""
        return {column: getattr(entity, column, None) for column in self.insert_columns}

    def _default(self, column: str) -> Any:
        factory = self.defaults.get(column)
        return factory() if factory is not None else None

    def build(self, row: dict[str, Any]) -> Any:
        """Create an instance from a row, defaulting unselected columns.

        Row keys match attribute names case-insensitively, like SQLite
        identifiers.
        """
        lowered = {str(key).lower(): value for key, value in row.items()}
        kwargs = {
            column: lowered[column.lower()] if column.lower() in lowered else self._default(column)
            for column in self.columns
        }
        if dataclasses.is_dataclass(self.entity_type):
            init_fields = {f.name for f in dataclasses.fields(self.entity_type) if f.init}
            instance = self.entity_type(**{k: v for k, v in kwargs.items() if k in init_fields})
            for name, value in kwargs.items():
                if name not in init_fields:
                    object.__setattr__(instance, name, value)
            return instance

        instance = self.entity_type.__new__(self.entity_type)
        for name, value in kwargs.items():
            setattr(instance, name, value)
        return instance


def _constant(value: Any) -> Any:
    return value


def _public_attributes(entity_type: type) -> tuple[list[str], dict[str, Callable[[], Any]]]:
    """Public attribute names in declaration order, plus their defaults."""
    if dataclasses.is_dataclass(entity_type):
        names = []
        defaults: dict[str, Callable[[], Any]] = {}
        for f in dataclasses.fields(entity_type):
            if f.name.startswith("_"):
                continue
            names.append(f.name)
            if f.default is not dataclasses.MISSING:
                defaults[f.name] = functools.partial(_constant, f.default)
            elif f.default_factory is not dataclasses.MISSING:
                defaults[f.name] = f.default_factory
        return names, defaults

    names = []
    defaults = {}
    for klass in reversed(entity_type.__mro__):
        for name in getattr(klass, "__annotations__", {}):
            if name.startswith("_") or name in names:
                continue
            names.append(name)
            if hasattr(klass, name):
                defaults[name] = functools.partial(_constant, getattr(klass, name))
    return names, defaults


@functools.lru_cache(maxsize=None)
def entity_metadata(entity_type: type) -> EntityMetadata:
    """
    Derive (and cache) the table binding of a record type.

    Raises:
        TypeError: If the type has no public attributes or no {Name}Id attribute
    """
    if not isinstance(entity_type, type):
        raise TypeError(f"Expected a record type, got {entity_type!r}")

    table = entity_type.__name__
    columns, defaults = _public_attributes(entity_type)
    if not columns:
        raise TypeError(f"{table} declares no public attributes")

    expected_key = f"{table}Id".lower()
    primary_key = next((c for c in columns if c.lower() == expected_key), None)
    if primary_key is None:
        raise TypeError(f"{table} has no primary key attribute named {table}Id")

    return EntityMetadata(
        entity_type=entity_type,
        table=table,
        primary_key=primary_key,
        columns=tuple(columns),
        defaults=defaults,
    )
