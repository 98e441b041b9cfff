"""Values, parameters and result sets exchanged with the database."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Union

# Tagged value union for a single column value. ``datetime`` is a subclass
# of ``date`` and ``bool`` of ``int``; both are listed to keep the union
# self-documenting.
SqlValue = Union[None, bool, int, float, Decimal, str, bytes, date, datetime, time, timedelta]

Row = tuple[SqlValue, ...]
Table = list[Row]


def to_sql_value(value: Any) -> SqlValue:
    """Normalize a driver value into the ``SqlValue`` union."""
    if isinstance(value, bytearray):
        return bytes(value)
    if isinstance(value, (set, frozenset)):
        # MySQL SET columns
        return ",".join(sorted(str(v) for v in value))
    return value


def to_row(values: Any) -> Row:
    return tuple(to_sql_value(v) for v in values)


class ParameterDirection(str, Enum):
    """Direction of a stored-procedure parameter."""

    INPUT = "input"
    OUTPUT = "output"
    INPUT_OUTPUT = "input_output"

    @property
    def returns_value(self) -> bool:
        """Whether the procedure writes a value back into the parameter."""
        return self is not ParameterDirection.INPUT


@dataclass
class Parameter:
    """
    A named stored-procedure argument.

    Parameters are attached to the call in the order given; the name is
    carried for logging and for reading output values back, the driver
    binds positionally. After the call, ``OUTPUT`` and ``INPUT_OUTPUT``
    parameters hold the value assigned by the procedure.
    """

    name: str
    value: SqlValue = None
    direction: ParameterDirection = ParameterDirection.INPUT

    @classmethod
    def input(cls, name: str, value: SqlValue) -> Parameter:
        return cls(name, value, ParameterDirection.INPUT)

    @classmethod
    def input_output(cls, name: str, value: SqlValue) -> Parameter:
        return cls(name, value, ParameterDirection.INPUT_OUTPUT)

    @classmethod
    def output(cls, name: str) -> Parameter:
        return cls(name, None, ParameterDirection.OUTPUT)

    def __repr__(self) -> str:
        # Values may be sensitive, keep them out of reprs and logs
        return f"Parameter({self.name!r}, direction={self.direction.value})"


@dataclass(frozen=True)
class ResultSet:
    """One result set: driver-reported column names plus rows in order."""

    columns: tuple[str, ...] = ()
    rows: Table = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def first_row(self) -> Row | None:
        return self.rows[0] if self.rows else None


@dataclass(frozen=True)
class CallResult:
    """Outcome of one stored-procedure round trip."""

    rowcount: int = 0
    result_sets: list[ResultSet] = field(default_factory=list)
    out_values: tuple[SqlValue, ...] = ()

    @property
    def first(self) -> ResultSet:
        """First result set, or an empty one when the procedure returned none."""
        return self.result_sets[0] if self.result_sets else ResultSet()


__all__ = [
    "SqlValue",
    "Row",
    "Table",
    "to_sql_value",
    "to_row",
    "ParameterDirection",
    "Parameter",
    "ResultSet",
    "CallResult",
]
