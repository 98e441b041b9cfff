"""Tests for ``dataex.adapters.mysql`` - MySQL stored-procedure source.

The driver's own ``MySQLCursor`` runs against a scripted connection (see
``tests._support.driver``), so result iteration, row counts and output
read-back go through ``mysql.connector`` code.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal

import mysql.connector
import pytest
from structlog.testing import capture_logs

from dataex import (
    CoercionError,
    ConfigError,
    DataExSettings,
    DataSource,
    MappingError,
    MySqlSource,
    ParameterDirection,
    RecordMapper,
)
from dataex.adapters.mysql import quote_procedure

from tests._support.driver import CONNECTION_STRING, make_result


@dataclass
class User:
    id: int = 0
    name: str = ""
    email: str | None = None


class TestMySqlSourceInit:
    def test_parses_connection_string(self, db):
        assert db.descriptor.host == "db.example.com"
        assert db.descriptor.database == "shop"
        assert db.descriptor.user == "app"

    def test_repr_hides_password(self, db):
        assert "s3cret" not in repr(db)

    def test_bad_connection_string(self):
        with pytest.raises(ConfigError):
            MySqlSource("")

    def test_satisfies_protocol(self, db):
        assert isinstance(db, DataSource)

    def test_no_connection_at_construction(self, driver):
        MySqlSource(CONNECTION_STRING)
        driver.connect.assert_not_called()


class TestFromSettings:
    def test_from_settings(self, monkeypatch):
        monkeypatch.setenv("DATAEX_CONNECTION_STRING", "mysql://u:p@h:3307/d")
        db = MySqlSource.from_settings()
        assert db.descriptor.port == 3307
        assert db.descriptor.database == "d"

    def test_missing_connection_string(self, monkeypatch):
        monkeypatch.delenv("DATAEX_CONNECTION_STRING", raising=False)
        with pytest.raises(ConfigError, match="DATAEX_CONNECTION_STRING"):
            MySqlSource.from_settings(DataExSettings(_env_file=None))


class TestParameters:
    def test_input(self, db):
        p = db.make_input_parameter("p_id", 42)
        assert (p.name, p.value, p.direction) == ("p_id", 42, ParameterDirection.INPUT)

    def test_input_output(self, db):
        p = db.make_input_output_parameter("p_counter", 1)
        assert p.direction is ParameterDirection.INPUT_OUTPUT
        assert p.value == 1

    def test_output(self, db):
        p = db.make_output_parameter("p_total")
        assert p.direction is ParameterDirection.OUTPUT
        assert p.value is None

    def test_inputs_bound_in_order(self, db, driver):
        db.execute(
            "sp_add_user",
            db.make_input_parameter("p_name", "ada"),
            db.make_input_parameter("p_age", 36),
            db.make_input_parameter("p_note", None),
        )
        assert driver.statements == ["CALL `sp_add_user`('ada', 36, NULL)"]

    def test_outputs_bound_through_session_variables(self, db, driver):
        driver.script(out_values=(b"ok", 7))
        db.execute(
            "sp_close_order",
            db.make_input_parameter("p_order", 42),
            db.make_output_parameter("p_status"),
            db.make_input_output_parameter("p_counter", 6),
        )
        assert driver.statements == [
            "SET @_dataex_2 = NULL, @_dataex_3 = 6",
            "CALL `sp_close_order`(42, @_dataex_2, @_dataex_3)",
            "SELECT @_dataex_2, @_dataex_3",
        ]

    def test_output_values_written_back(self, db, driver):
        driver.script(out_values=(bytearray(b"ok"), 7))
        p_in = db.make_input_parameter("p_order", 42)
        p_status = db.make_output_parameter("p_status")
        p_counter = db.make_input_output_parameter("p_counter", 6)

        db.execute("sp_close_order", p_in, p_status, p_counter)

        assert p_in.value == 42
        assert p_status.value == b"ok"
        assert p_counter.value == 7


class TestExecute:
    def test_returns_affected_rows(self, db, driver):
        driver.script(affected_rows=3)
        assert db.execute("sp_update_counter") == 3

    def test_affected_rows_not_replaced_by_output_read_back(self, db, driver):
        driver.script(affected_rows=3, out_values=(9,))
        total = db.make_output_parameter("p_total")
        assert db.execute("sp_update_counter", db.make_input_parameter("p_by", 1), total) == 3
        assert total.value == 9

    def test_affected_rows_after_result_sets(self, db, driver):
        driver.script(make_result(["n"], [(1,)]), affected_rows=2)
        assert db.execute("sp_update_and_report") == 2

    def test_no_affected_rows(self, db, driver):
        assert db.execute("sp_noop") == 0

    def test_single_call_statement(self, db, driver):
        db.execute("sp_update_counter")
        assert driver.statements == ["CALL `sp_update_counter`()"]

    def test_opens_and_closes_one_connection(self, db, driver):
        db.execute("sp_update_counter")
        driver.connect.assert_called_once()
        assert driver.connect.call_args.kwargs["autocommit"] is True
        assert len(driver.cursors) == 1
        assert driver.open_cursors == []
        driver.connection.close.assert_called_once()

    def test_fresh_connection_per_call(self, db, driver):
        db.execute("sp_a")
        db.execute("sp_b")
        assert driver.connect.call_count == 2
        assert all(c.close.call_count == 1 for c in driver.connections)


class TestQuoteProcedure:
    def test_plain_name(self):
        assert quote_procedure("sp_list_users") == "`sp_list_users`"

    def test_schema_qualified(self):
        assert quote_procedure("shop.sp_list_users") == "`shop`.`sp_list_users`"

    def test_backtick_escaped(self):
        assert quote_procedure("sp`x") == "`sp``x`"


class TestGetScalar:
    def test_first_column_of_first_row(self, db, driver):
        driver.script(make_result(["n", "x"], [(5, "a"), (6, "b")]), make_result(["y"], [(99,)]))
        assert db.get_scalar("sp_count_items", as_type=int) == 5

    def test_empty_result_returns_type_default(self, db, driver):
        driver.script(make_result(["n"], []))
        assert db.get_scalar("sp_count_items", as_type=int) == 0

    def test_no_result_set_returns_type_default(self, db, driver):
        assert db.get_scalar("sp_count_items", as_type=str) == ""

    def test_null_returns_type_default(self, db, driver):
        driver.script(make_result(["n"], [(None,)]))
        assert db.get_scalar("sp_sum", as_type=Decimal) == Decimal(0)

    def test_explicit_default(self, db, driver):
        driver.script(make_result(["n"], []))
        assert db.get_scalar("sp_count_items", as_type=int, default=None) is None

    def test_untyped_returns_raw_value(self, db, driver):
        driver.script(make_result(["n"], [(Decimal("1.50"),)]))
        assert db.get_scalar("sp_price") == Decimal("1.50")

    def test_coercion(self, db, driver):
        driver.script(make_result(["n"], [(Decimal("12"),)]))
        value = db.get_scalar("sp_count_items", as_type=int)
        assert value == 12
        assert type(value) is int

    def test_coercion_failure(self, db, driver):
        driver.script(make_result(["name"], [("ada",)]))
        with pytest.raises(CoercionError) as exc_info:
            db.get_scalar("sp_user_name", as_type=int)
        assert exc_info.value.context.procedure == "sp_user_name"
        assert isinstance(exc_info.value, TypeError)


class TestGetTable:
    def test_rows_and_columns_in_order(self, db, driver):
        driver.script(
            make_result(
                ["id", "name", "email"],
                [(1, "ada", "ada@example.com"), (2, "bob", None)],
            )
        )
        rows = db.get_table("sp_list_users")
        assert rows == [(1, "ada", "ada@example.com"), (2, "bob", None)]
        assert all(len(row) == 3 for row in rows)

    def test_only_first_result_set(self, db, driver):
        driver.script(make_result(["a"], [(1,)]), make_result(["b"], [(2,)]))
        assert db.get_table("sp_two_sets") == [(1,)]

    def test_no_result_set(self, db, driver):
        assert db.get_table("sp_nothing") == []

    def test_binary_values_normalized(self, db, driver):
        driver.script(make_result(["blob"], [(bytearray(b"\x00\x01"),)]))
        assert db.get_table("sp_blob") == [(b"\x00\x01",)]


class TestGetRecords:
    def test_dataclass_positional(self, db, driver):
        driver.script(make_result(["id", "name", "email"], [(1, "ada", None), (2, "bob", "b@x")]))
        users = db.get_records(User, "sp_list_users")
        assert users == [User(1, "ada", None), User(2, "bob", "b@x")]

    def test_explicit_mapper_by_name(self, db, driver):
        driver.script(make_result(["NAME", "ID"], [("ada", "7")]))
        mapper = RecordMapper.by_name(User, ("id", int), "name")
        assert db.get_records(mapper, "sp_list_users") == [User(7, "ada")]

    def test_by_name_mapper_without_result_set(self, db, driver):
        mapper = RecordMapper.by_name(User, ("id", int), "name")
        assert db.get_records(mapper, "sp_list_users") == []

    def test_mapping_error_names_procedure(self, db, driver):
        driver.script(make_result(["id"], [(1,)]))
        with pytest.raises(MappingError) as exc_info:
            db.get_records(User, "sp_list_users")
        assert exc_info.value.context.procedure == "sp_list_users"
        assert exc_info.value.context.field == "name"

    def test_invalid_record_type_fails_before_call(self, db, driver):
        with pytest.raises(MappingError):
            db.get_records(dict, "sp_list_users")
        driver.connect.assert_not_called()


class TestGetRecord:
    def test_first_row(self, db, driver):
        driver.script(make_result(["id", "name", "email"], [(1, "ada", None), (2, "bob", None)]))
        assert db.get_record(User, "sp_get_user") == User(1, "ada", None)

    def test_zero_rows_returns_default_record(self, db, driver):
        driver.script(make_result(["id", "name", "email"], []))
        assert db.get_record(User, "sp_get_user") == User()

    def test_find_record_zero_rows_returns_none(self, db, driver):
        driver.script(make_result(["id", "name", "email"], []))
        assert db.find_record(User, "sp_get_user") is None

    def test_find_record_first_row(self, db, driver):
        driver.script(make_result(["id", "name", "email"], [(3, "cy", "c@x")]))
        assert db.find_record(User, "sp_get_user") == User(3, "cy", "c@x")


class TestGetData:
    def test_all_result_sets_in_order(self, db, driver):
        driver.script(
            make_result(["id"], [(1,), (2,)]),
            make_result(["total"], []),
            make_result(["a", "b"], [("x", 1)]),
        )
        assert db.get_data("sp_dashboard") == [[(1,), (2,)], [], [("x", 1)]]

    def test_no_result_sets(self, db, driver):
        assert db.get_data("sp_nothing") == []


class TestErrorPropagation:
    def test_connection_failure_propagates(self, db, driver):
        error = mysql.connector.errors.InterfaceError("Can't connect to MySQL server")
        driver.connect.side_effect = error
        with pytest.raises(mysql.connector.errors.InterfaceError) as exc_info:
            db.get_table("sp_list_users")
        assert exc_info.value is error

    def test_execution_failure_propagates_and_releases(self, db, driver):
        error = mysql.connector.errors.ProgrammingError("PROCEDURE shop.sp_missing does not exist")
        driver.fail_on("CALL", error)
        with pytest.raises(mysql.connector.errors.ProgrammingError) as exc_info:
            db.execute("sp_missing")
        assert exc_info.value is error
        assert driver.open_cursors == []
        driver.connection.close.assert_called_once()

    def test_fetch_failure_releases_connection(self, db, driver):
        driver.script(make_result(["id"], [(1,)]))
        driver.fetch_error = mysql.connector.errors.OperationalError("Lost connection")
        with pytest.raises(mysql.connector.errors.OperationalError):
            db.get_data("sp_dashboard")
        assert driver.open_cursors == []
        driver.connection.close.assert_called_once()


class TestLogging:
    def test_call_logged_with_parameter_names_only(self, db, driver):
        driver.script(make_result(["n"], [(1,)]), affected_rows=2)
        with capture_logs() as logs:
            db.execute("sp_update_counter", db.make_input_parameter("p_secret", "hunter2"))

        events = [entry["event"] for entry in logs]
        assert events == ["procedure.call.start", "procedure.call.end"]
        end = logs[-1]
        assert end["procedure"] == "sp_update_counter"
        assert end["parameters"] == ["p_secret"]
        assert end["rowcount"] == 2
        assert end["result_sets"] == 1
        assert "duration_ms" in end
        assert "hunter2" not in repr(logs)

    def test_failure_logged_and_reraised(self, db, driver):
        driver.fail_on("CALL", mysql.connector.errors.DatabaseError("boom"))
        with capture_logs() as logs:
            with pytest.raises(mysql.connector.errors.DatabaseError):
                db.execute("sp_fail")
        assert logs[-1]["event"] == "procedure.call.error"
        assert logs[-1]["error_type"] == "DatabaseError"


class TestAsync:
    @pytest.mark.asyncio
    async def test_execute_async(self, db, driver):
        driver.script(affected_rows=3)
        assert await db.execute_async("sp_update_counter") == 3

    @pytest.mark.asyncio
    async def test_get_scalar_async_default(self, db, driver):
        driver.script(make_result(["n"], []))
        assert await db.get_scalar_async("sp_count_items", as_type=int) == 0

    @pytest.mark.asyncio
    async def test_record_operations_async(self, db, driver):
        driver.script(make_result(["id", "name", "email"], [(1, "ada", None)]))
        assert await db.get_records_async(User, "sp_list_users") == [User(1, "ada")]
        assert await db.get_record_async(User, "sp_get_user") == User(1, "ada")
        assert await db.find_record_async(User, "sp_get_user") == User(1, "ada")

    @pytest.mark.asyncio
    async def test_table_and_data_async(self, db, driver):
        driver.script(make_result(["id"], [(1,)]), make_result(["id"], [(2,)]))
        assert await db.get_table_async("sp_two_sets") == [(1,)]
        assert await db.get_data_async("sp_two_sets") == [[(1,)], [(2,)]]

    @pytest.mark.asyncio
    async def test_concurrent_calls_use_separate_connections(self, db, driver):
        driver.script(affected_rows=1)
        results = await asyncio.gather(*(db.execute_async(f"sp_{i}") for i in range(4)))
        assert results == [1, 1, 1, 1]
        assert driver.connect.call_count == 4
        assert len(driver.connections) == 4
        assert all(c.close.call_count == 1 for c in driver.connections)
