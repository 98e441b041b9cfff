"""MySQL stored-procedure data source.

Uses ``mysql.connector`` from the ``mysql-connector-python`` package. Every
call opens its own connection, issues ``CALL proc(...)`` through
``cursor.execute()``, walks the results with ``cursor.nextset()`` and closes
cursor and connection before returning, on success and on failure alike.
Pooling, if wanted, is configured on the driver through connection-string
options (``pool_name``, ``pool_size``).

Round trip::

    SET @_dataex_2 = NULL, @_dataex_3 = 6   # only with OUT / INOUT parameters
    CALL `sp_close_order`(42, @_dataex_2, @_dataex_3)
        -> result set*, OK packet (affected rows)
    SELECT @_dataex_2, @_dataex_3           # only with OUT / INOUT parameters

The affected-row count is read from the OK packet that ends the ``CALL``,
before the output read-back runs.

Driver errors (``mysql.connector.Error`` and subclasses) propagate
unchanged.

Usage::

    from dataex import MySqlSource

    db = MySqlSource("Server=localhost;Database=shop;Uid=app;Pwd=secret")
    db.execute("sp_update_counter")                       # -> 3
    db.get_scalar("sp_count_items", as_type=int)          # -> 0 on empty table
    total = db.make_output_parameter("p_total")
    db.execute("sp_close_order", db.make_input_parameter("p_id", 42), total)
    total.value                                           # set by the procedure
"""

from __future__ import annotations

from collections.abc import Sequence
from contextlib import closing
from typing import Any

import mysql.connector

from dataex.errors import ConfigError
from dataex.settings import DataExSettings
from dataex.types import CallResult, Parameter, ResultSet, SqlValue, to_row

from .base import ProcedureSource


class MySqlSource(ProcedureSource):
    """Minimalistic MySQL / MariaDB stored-procedure backend."""

    @classmethod
    def from_settings(cls, settings: DataExSettings | None = None) -> MySqlSource:
        """Build a source from ``DATAEX_*`` environment settings."""
        settings = settings or DataExSettings()
        if settings.connection_string is None:
            raise ConfigError("DATAEX_CONNECTION_STRING is not set")
        return cls(settings.connection_string.get_secret_value())

    def _connect(self) -> Any:
        return mysql.connector.connect(**self.descriptor.connect_kwargs())

    def _call(self, procedure: str, parameters: Sequence[Parameter]) -> CallResult:
        arguments = []
        values = []
        outputs: dict[int, str] = {}
        for index, param in enumerate(parameters, start=1):
            if param.direction.returns_value:
                outputs[index] = f"@_dataex_{index}"
                arguments.append(outputs[index])
            else:
                arguments.append("%s")
                values.append(param.value)

        with closing(self._connect()) as connection, closing(connection.cursor()) as cursor:
            if outputs:
                assignments = ", ".join(f"{name} = %s" for name in outputs.values())
                cursor.execute(f"SET {assignments}", tuple(parameters[i - 1].value for i in outputs))

            cursor.execute(f"CALL {quote_procedure(procedure)}({', '.join(arguments)})", tuple(values))
            result_sets, rowcount = _read_results(cursor)

            out_values: tuple[SqlValue, ...] = ()
            if outputs:
                cursor.execute(f"SELECT {', '.join(outputs.values())}")
                returned = dict(zip(outputs, cursor.fetchall()[0]))
                out_values = tuple(returned.get(i, p.value) for i, p in enumerate(parameters, start=1))

        return CallResult(rowcount=rowcount, result_sets=result_sets, out_values=out_values)


def quote_procedure(name: str) -> str:
    """Backtick-quote a procedure name, keeping an optional ``schema.`` prefix."""
    return ".".join("`" + part.replace("`", "``") + "`" for part in name.split("."))


def _read_results(cursor: Any) -> tuple[list[ResultSet], int]:
    """Every result set of the current statement, plus its affected rows."""
    result_sets = []
    rowcount = 0
    while True:
        if cursor.with_rows:
            result_sets.append(_read_result(cursor))
        elif cursor.rowcount > 0:
            rowcount += cursor.rowcount
        if not cursor.nextset():
            return result_sets, rowcount


def _read_result(cursor: Any) -> ResultSet:
    columns = tuple(desc[0] for desc in cursor.description or ())
    return ResultSet(columns=columns, rows=[to_row(values) for values in cursor.fetchall()])


__all__ = [
    "MySqlSource",
    "quote_procedure",
]
