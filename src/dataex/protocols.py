"""
Structural contract for stored-procedure data sources.

Application code should depend on ``DataSource`` rather than on
``MySqlSource`` so tests can pass any object of the same shape.

Examples:
    >>> def active_users(db: DataSource) -> list[User]:
    ...     return db.get_records(User, "sp_list_users", db.make_input_parameter("p_active", True))
"""

from __future__ import annotations

from typing import Any, Protocol, TypeVar, runtime_checkable

from dataex.mapping import RecordMapper
from dataex.types import Parameter, Row, SqlValue

T = TypeVar("T")


@runtime_checkable
class DataSource(Protocol):
    """Stored-procedure data source: one connection per call, results in memory."""

    def make_input_parameter(self, name: str, value: SqlValue) -> Parameter: ...

    def make_input_output_parameter(self, name: str, value: SqlValue) -> Parameter: ...

    def make_output_parameter(self, name: str) -> Parameter: ...

    def execute(self, procedure: str, *parameters: Parameter) -> int:
        """Run the procedure, return the affected-row count."""
        ...

    def get_scalar(
        self,
        procedure: str,
        *parameters: Parameter,
        as_type: type[T] | None = None,
        default: Any = ...,
    ) -> Any:
        """First column of the first row of the first result set."""
        ...

    def get_table(self, procedure: str, *parameters: Parameter) -> list[Row]:
        """Rows of the first result set."""
        ...

    def get_records(self, record: RecordMapper[T] | type[T], procedure: str, *parameters: Parameter) -> list[T]:
        """Rows of the first result set mapped onto records."""
        ...

    def get_record(self, record: RecordMapper[T] | type[T], procedure: str, *parameters: Parameter) -> T:
        """First row mapped onto a record, or a default record."""
        ...

    def find_record(self, record: RecordMapper[T] | type[T], procedure: str, *parameters: Parameter) -> T | None:
        """First row mapped onto a record, or ``None``."""
        ...

    def get_data(self, procedure: str, *parameters: Parameter) -> list[list[Row]]:
        """Every result set, in the order the procedure produced them."""
        ...


__all__ = [
    "DataSource",
]
