"""
Row -> record mapping.

A record shape is described once by a ``RecordMapper``: a zero-argument
factory plus an ordered table of ``FieldMap`` entries, each binding a
record attribute to a column (by position or by name). Mapping a row
creates a fresh record with the factory and assigns every field, so a
zero-row result can still produce a record with all fields at their
defaults.

Architecture:
    ::

        RecordMapper(factory=User, fields=[
            FieldMap("id",    0,       int),
            FieldMap("name",  "name",  str),
            FieldMap("email", "email"),
        ])
            │
            ├── new()                       -> User()
            ├── map_row(row, columns)       -> User(id=.., name=.., email=..)
            └── map_result(result_set)      -> [User, ...]

Examples:
    >>> @dataclass
    ... class User:
    ...     id: int = 0
    ...     name: str = ""
    >>> mapper = RecordMapper.of(User)          # positional, built once
    >>> mapper.map_row((7, "ada"))
    User(id=7, name='ada')
    >>> RecordMapper.by_name(User, ("id", int), "name").map_row(
    ...     ("ada", 7), columns=("NAME", "ID"))
    User(id=7, name='ada')

Guardrails:
    ❌ DON'T: Rely on column order for procedures whose SELECT may change
    ✅ DO: Use ``by_name`` mappers for those

Tags:
    mapping, records, dataclasses, dataex
"""

from __future__ import annotations

import dataclasses
import functools
import types
import typing
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from dataex.coercion import coerce
from dataex.errors import CoercionError, MappingError
from dataex.types import ResultSet, Row

T = TypeVar("T")


@dataclass(frozen=True)
class FieldMap:
    """One mapping entry: record attribute <- column (index or name)."""

    attr: str
    column: int | str
    type: type | None = None
    nullable: bool = False


class RecordMapper(Generic[T]):
    """Explicit, statically declared mapping from rows to records of one shape."""

    def __init__(self, factory: Callable[[], T], fields: Iterable[FieldMap]):
        self.factory = factory
        self.fields: tuple[FieldMap, ...] = tuple(fields)

    @classmethod
    def positional(cls, factory: Callable[[], T], *attrs: str | tuple[str, type]) -> RecordMapper[T]:
        """Map columns 0, 1, 2... onto ``attrs`` in order."""
        return cls(factory, [FieldMap(name, index, kind) for index, (name, kind) in enumerate(_split(attrs))])

    @classmethod
    def by_name(cls, factory: Callable[[], T], *attrs: str | tuple[str, type]) -> RecordMapper[T]:
        """Map each attr from the column of the same name (case-insensitive)."""
        return cls(factory, [FieldMap(name, name, kind) for name, kind in _split(attrs)])

    @classmethod
    def of(cls, record_type: type[T]) -> RecordMapper[T]:
        """Positional mapper for a dataclass, in field order. Cached per type."""
        return _dataclass_mapper(record_type)

    def new(self) -> T:
        """A record with every field at its default."""
        return self.factory()

    def map_row(self, row: Row, columns: Sequence[str] | None = None) -> T:
        """Populate a fresh record from ``row``."""
        return self._map(row, self._resolve(columns))

    def map_result(self, result: ResultSet) -> list[T]:
        """Map every row of a result set, in order."""
        if not result.rows:
            return []
        indexes = self._resolve(result.columns)
        return [self._map(row, indexes) for row in result.rows]

    def _resolve(self, columns: Sequence[str] | None) -> list[int]:
        """Column index of every field for one result set."""
        lookup: dict[str, int] | None = None
        indexes = []
        for fm in self.fields:
            if isinstance(fm.column, int):
                indexes.append(fm.column)
                continue
            if lookup is None:
                if columns is None:
                    raise MappingError(
                        f"Field {fm.attr!r} is mapped by name but no column names are available"
                    ).with_context(field=fm.attr, column=fm.column)
                lookup = {}
                for index, name in enumerate(columns):
                    lookup.setdefault(name.lower(), index)
            index = lookup.get(fm.column.lower())
            if index is None:
                raise MappingError(
                    f"Column {fm.column!r} for field {fm.attr!r} is not in the result set"
                ).with_context(field=fm.attr, column=fm.column, columns=list(columns or ()))
            indexes.append(index)
        return indexes

    def _map(self, row: Row, indexes: list[int]) -> T:
        record = self.factory()
        for fm, index in zip(self.fields, indexes):
            if index >= len(row):
                raise MappingError(
                    f"Row has {len(row)} columns, field {fm.attr!r} needs column {index}"
                ).with_context(field=fm.attr, column=fm.column)
            raw = row[index]
            try:
                value = None if raw is None and fm.nullable else coerce(raw, fm.type)
            except CoercionError as e:
                raise MappingError(
                    f"Column {fm.column!r} cannot populate field {fm.attr!r}: {e.message}",
                    cause=e,
                ).with_context(field=fm.attr, column=fm.column) from e
            try:
                setattr(record, fm.attr, value)
            except (AttributeError, TypeError) as e:
                raise MappingError(
                    f"Cannot assign field {fm.attr!r} on {type(record).__name__}: {e}",
                    cause=e,
                ).with_context(field=fm.attr) from e
        return record

    def __repr__(self) -> str:
        name = getattr(self.factory, "__name__", repr(self.factory))
        return f"RecordMapper({name}, fields={[fm.attr for fm in self.fields]})"


def _split(attrs: Iterable[str | tuple[str, type]]) -> list[tuple[str, type | None]]:
    return [(a, None) if isinstance(a, str) else (a[0], a[1]) for a in attrs]


def _field_type(hint: Any) -> tuple[type | None, bool]:
    """Coercion target and nullability for a type hint; ``X | None`` is a nullable ``X``."""
    nullable = False
    if typing.get_origin(hint) in (typing.Union, types.UnionType):
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        nullable = len(args) < len(typing.get_args(hint))
        if len(args) != 1:
            return None, nullable
        hint = args[0]
    if isinstance(hint, type) and typing.get_origin(hint) is None:
        return hint, nullable
    return None, nullable


@functools.cache
def _dataclass_mapper(record_type: type) -> RecordMapper[Any]:
    if not dataclasses.is_dataclass(record_type):
        raise MappingError(
            f"{record_type!r} is not a dataclass; build a RecordMapper for it explicitly"
        )

    hints = typing.get_type_hints(record_type)
    fields = []
    for index, f in enumerate(dataclasses.fields(record_type)):
        if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            raise MappingError(
                f"{record_type.__name__}.{f.name} has no default; records must be constructible with no arguments"
            ).with_context(field=f.name)
        kind, nullable = _field_type(hints.get(f.name))
        fields.append(FieldMap(f.name, index, kind, nullable))
    return RecordMapper(record_type, fields)


def resolve_mapper(record: RecordMapper[T] | type[T]) -> RecordMapper[T]:
    """Accept a ready mapper or a dataclass type."""
    if isinstance(record, RecordMapper):
        return record
    return RecordMapper.of(record)


__all__ = [
    "FieldMap",
    "RecordMapper",
    "resolve_mapper",
]
