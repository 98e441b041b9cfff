"""Stored-procedure data source base class.

Features:
    - Parameter factories (input, input/output, output)
    - Result shaping shared by all backends: affected rows, scalar, table,
      records, multiple result sets
    - Output-parameter write-back after every call
    - Awaitable ``*_async`` twins running the blocking call on a worker thread
    - One ``procedure.call`` log span per round trip

Backends implement a single method, ``_call()``, which opens a connection,
invokes the procedure, materializes every result set and releases the
connection on every exit path.

Tags:
    dataex, database, abstract-base, adapter-pattern, stored-procedures
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, TypeVar

from dataex.coercion import coerce, default_for
from dataex.connection import ConnectionDescriptor
from dataex.errors import CoercionError, MappingError
from dataex.logging import get_logger, log_call
from dataex.mapping import RecordMapper, resolve_mapper
from dataex.types import CallResult, Parameter, Row, SqlValue, to_sql_value

T = TypeVar("T")

# Marks "no default= given" for get_scalar
_UNSET: Any = object()


class ProcedureSource(ABC):
    """
    Abstract base class for stored-procedure data sources.

    The only state is the immutable connection descriptor, so one instance
    can serve any number of concurrent calls.
    """

    def __init__(self, connection_string: str):
        self._descriptor = ConnectionDescriptor.parse(connection_string)
        self._log = get_logger(type(self).__module__)

    @property
    def descriptor(self) -> ConnectionDescriptor:
        """Parsed connection descriptor."""
        return self._descriptor

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._descriptor!r})"

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def make_input_parameter(self, name: str, value: SqlValue) -> Parameter:
        return Parameter.input(name, value)

    def make_input_output_parameter(self, name: str, value: SqlValue) -> Parameter:
        return Parameter.input_output(name, value)

    def make_output_parameter(self, name: str) -> Parameter:
        return Parameter.output(name)

    # ------------------------------------------------------------------
    # Round trip
    # ------------------------------------------------------------------

    @abstractmethod
    def _call(self, procedure: str, parameters: Sequence[Parameter]) -> CallResult:
        """Open a connection, call the procedure, read all results, close."""
        ...

    def call(self, procedure: str, *parameters: Parameter) -> CallResult:
        """Invoke ``procedure`` once and return the raw outcome."""
        with log_call(
            "procedure.call",
            logger=self._log,
            procedure=procedure,
            parameters=[p.name for p in parameters],
        ) as timer:
            result = self._call(procedure, parameters)
            timer.add_metric("rowcount", result.rowcount)
            timer.add_metric("result_sets", len(result.result_sets))

        if result.out_values:
            for param, value in zip(parameters, result.out_values):
                if param.direction.returns_value:
                    param.value = to_sql_value(value)
        return result

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def execute(self, procedure: str, *parameters: Parameter) -> int:
        """Execute a stored procedure. Returns the number of rows affected."""
        return self.call(procedure, *parameters).rowcount

    def get_scalar(
        self,
        procedure: str,
        *parameters: Parameter,
        as_type: type[T] | None = None,
        default: Any = _UNSET,
    ) -> Any:
        """
        First column of the first row of the first result set.

        A missing row or a NULL value yields ``default`` when given,
        otherwise the default of ``as_type`` (``0``, ``""``, ``None``...).
        """
        row = self.call(procedure, *parameters).first.first_row
        value = row[0] if row else None
        if value is None:
            return default_for(as_type) if default is _UNSET else default
        try:
            return coerce(value, as_type)
        except CoercionError as e:
            raise e.with_context(procedure=procedure)

    def get_table(self, procedure: str, *parameters: Parameter) -> list[Row]:
        """Rows of the first result set, in driver order."""
        return list(self.call(procedure, *parameters).first.rows)

    def get_records(self, record: RecordMapper[T] | type[T], procedure: str, *parameters: Parameter) -> list[T]:
        """Rows of the first result set mapped onto records."""
        mapper = resolve_mapper(record)
        result = self.call(procedure, *parameters).first
        try:
            return mapper.map_result(result)
        except MappingError as e:
            raise e.with_context(procedure=procedure)

    def get_record(self, record: RecordMapper[T] | type[T], procedure: str, *parameters: Parameter) -> T:
        """First row mapped onto a record; a default record when there is no row."""
        mapper = resolve_mapper(record)
        found = self._first_record(mapper, procedure, parameters)
        return mapper.new() if found is None else found

    def find_record(self, record: RecordMapper[T] | type[T], procedure: str, *parameters: Parameter) -> T | None:
        """First row mapped onto a record, or ``None`` when there is no row."""
        return self._first_record(resolve_mapper(record), procedure, parameters)

    def get_data(self, procedure: str, *parameters: Parameter) -> list[list[Row]]:
        """
        Every result set, in the order produced, rows in order.

        A procedure that produces no result set yields an empty list, not a
        list holding one empty table.
        """
        return [list(rs.rows) for rs in self.call(procedure, *parameters).result_sets]

    def _first_record(self, mapper: RecordMapper[T], procedure: str, parameters: Sequence[Parameter]) -> T | None:
        result = self.call(procedure, *parameters).first
        row = result.first_row
        if row is None:
            return None
        try:
            return mapper.map_row(row, result.columns)
        except MappingError as e:
            raise e.with_context(procedure=procedure)

    # ------------------------------------------------------------------
    # Async twins
    # ------------------------------------------------------------------

    async def execute_async(self, procedure: str, *parameters: Parameter) -> int:
        return await asyncio.to_thread(self.execute, procedure, *parameters)

    async def get_scalar_async(
        self,
        procedure: str,
        *parameters: Parameter,
        as_type: type[T] | None = None,
        default: Any = _UNSET,
    ) -> Any:
        return await asyncio.to_thread(
            lambda: self.get_scalar(procedure, *parameters, as_type=as_type, default=default)
        )

    async def get_table_async(self, procedure: str, *parameters: Parameter) -> list[Row]:
        return await asyncio.to_thread(self.get_table, procedure, *parameters)

    async def get_records_async(
        self, record: RecordMapper[T] | type[T], procedure: str, *parameters: Parameter
    ) -> list[T]:
        return await asyncio.to_thread(self.get_records, record, procedure, *parameters)

    async def get_record_async(self, record: RecordMapper[T] | type[T], procedure: str, *parameters: Parameter) -> T:
        return await asyncio.to_thread(self.get_record, record, procedure, *parameters)

    async def find_record_async(
        self, record: RecordMapper[T] | type[T], procedure: str, *parameters: Parameter
    ) -> T | None:
        return await asyncio.to_thread(self.find_record, record, procedure, *parameters)

    async def get_data_async(self, procedure: str, *parameters: Parameter) -> list[list[Row]]:
        return await asyncio.to_thread(self.get_data, procedure, *parameters)


__all__ = [
    "ProcedureSource",
]
