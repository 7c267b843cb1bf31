"""
tests/test_runtime.py
Integration tests for entitymap.runtime against SQLite through SQLAlchemy.
"""

from __future__ import annotations

from typing import Any, List

import pytest
from sqlalchemy.exc import IntegrityError

from entitymap.generator import generate_unit
from entitymap.resolver import resolve
from entitymap.runtime import EntityDataAccess, SQLAlchemyConnectionProvider, adapt_placeholders, read_value


class TestAdaptPlaceholders:
    def test_qmark_untouched(self) -> None:
        sql = "SELECT * FROM t WHERE a = ?"
        assert adapt_placeholders(sql, "qmark") == sql

    def test_format(self) -> None:
        assert adapt_placeholders("UPDATE t SET a = ? WHERE b LIKE 'x%?'", "format") == (
            "UPDATE t SET a = %s WHERE b LIKE 'x%%?'"
        )

    def test_numeric(self) -> None:
        assert adapt_placeholders("a = ? AND b = ?", "numeric") == "a = :1 AND b = :2"

    def test_named(self) -> None:
        assert adapt_placeholders("a = ? AND `c?` = ?", "named") == "a = :p1 AND `c?` = :p2"

    def test_unknown_style(self) -> None:
        with pytest.raises(ValueError):
            adapt_placeholders("a = ?", "weird")


class TestReadValue:
    def test_mapping_and_attribute(self, user_type) -> None:
        assert read_value({"age": 3}, "age") == 3
        assert read_value(user_type(id=1, name="a", age=9), "age") == 9


@pytest.fixture()
def users(user_unit, provider: SQLAlchemyConnectionProvider, user_type) -> EntityDataAccess:
    access = EntityDataAccess(user_unit, provider, user_type)
    access.create_table()
    return access


class TestCreateTable:
    def test_reports_existing(self, user_unit, provider, user_type) -> None:
        access = EntityDataAccess(user_unit, provider, user_type)
        seen: List[bool] = []
        assert access.create_table(seen.append) is False
        assert access.create_table(seen.append) is True
        assert seen == [False, True]


class TestCrudRoundTrip:
    def test_insert_and_select(self, users: EntityDataAccess, user_type) -> None:
        new_id = users.insert(user_type(id=0, name="ada", age=36))
        assert new_id == 1
        assert users.select_by_id(new_id) == user_type(id=1, name="ada", age=36)

    def test_insert_from_mapping(self, users: EntityDataAccess, user_type) -> None:
        new_id = users.insert({"name": "grace", "age": 45})
        assert users.select_by_id(new_id).name == "grace"

    def test_select_missing_returns_none(self, users: EntityDataAccess) -> None:
        assert users.select_by_id(404) is None

    def test_update(self, users: EntityDataAccess, user_type) -> None:
        new_id = users.insert(user_type(id=0, name="ada", age=36))
        assert users.update(user_type(id=new_id, name="ada lovelace", age=37)) == 1
        assert users.select_by_id(new_id) == user_type(id=new_id, name="ada lovelace", age=37)

    def test_update_missing_row_reports_zero(self, users: EntityDataAccess, user_type) -> None:
        assert users.update(user_type(id=99, name="ghost", age=1)) == 0

    def test_delete_by_id(self, users: EntityDataAccess, user_type) -> None:
        new_id = users.insert(user_type(id=0, name="ada", age=36))
        counts: List[int] = []
        users.delete_by_id(new_id, counts.append)
        users.delete_by_id(new_id, counts.append)
        assert counts == [1, 0]
        assert users.select_by_id(new_id) is None

    def test_self_operations(self, users: EntityDataAccess, user_type) -> None:
        new_id = users.insert(user_type(id=0, name="ada", age=36))
        users.current_subject = user_type(id=new_id, name="", age=0)
        assert users.select_self().name == "ada"
        counts: List[int] = []
        users.delete_self(counts.append)
        assert counts == [1]

    def test_self_without_subject(self, users: EntityDataAccess) -> None:
        with pytest.raises(ValueError, match="No current subject"):
            users.select_self()


class TestRawQueries:
    def test_run_query(self, users: EntityDataAccess, user_type) -> None:
        for name, age in (("a", 10), ("b", 20), ("c", 30)):
            users.insert(user_type(id=0, name=name, age=age))
        names: Any = users.run_query("older_than", 15, block=lambda result: [row.name for row in result])
        assert names == ["b", "c"]

    def test_argument_count_checked(self, users: EntityDataAccess) -> None:
        with pytest.raises(TypeError, match="takes 1 argument"):
            users.run_query("older_than", block=list)


class TestErrors:
    def test_driver_errors_propagate(self, users: EntityDataAccess) -> None:
        with pytest.raises(IntegrityError):
            users.insert({"name": None, "age": 1})

    def test_failed_statement_rolls_back(self, users: EntityDataAccess, provider) -> None:
        with pytest.raises(RuntimeError):
            with provider.acquire_connection() as connection:
                connection.execute("INSERT INTO users (name, age) VALUES (?, ?)", ("temp", 1))
                raise RuntimeError("abort")
        assert users.run_query("older_than", 0, block=lambda result: result.fetchall()) == []


class TestReservedWordNames:
    def test_round_trip_on_reserved_table_and_column(self, provider) -> None:
        schema = resolve(
            "Order",
            None,
            [
                {"name": "id", "host_type": "int", "type": "INTEGER", "primary_key": True},
                {"name": "key", "host_type": "str", "type": "VARCHAR", "size": 20},
            ],
        )
        orders = EntityDataAccess(generate_unit(schema), provider, lambda *values: values)
        assert orders.create_table() is False
        new_id = orders.insert({"key": "A-1"})
        assert orders.select_by_id(new_id) == (new_id, "A-1")
        assert orders.update({"id": new_id, "key": "A-2"}) == 1
        counts: List[int] = []
        orders.delete_by_id(new_id, counts.append)
        assert counts == [1]
