"""
tests/test_ddl.py
Unit tests for entitymap.ddl: exact CREATE TABLE text.
"""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from entitymap.ddl import (
    quote_identifier,
    render_column_clause,
    render_default_literal,
    synthesize_create_table,
)
from entitymap.models import DefaultValue, EntitySchema, GenerationConfig
from entitymap.resolver import resolve


def _post_fields(foreign_key: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {"name": "id", "type": "INT", "primary_key": True},
        {"name": "author_id", "type": "INT", "foreign_key": foreign_key},
    ]


class TestCreateTable:
    def test_reference_statement(self, simple_schema: EntitySchema) -> None:
        assert synthesize_create_table(simple_schema) == (
            "CREATE TABLE `entity` (`id` INT PRIMARY KEY , `name` VARCHAR(50) )"
        )

    def test_constraints_and_default(self, user_schema: EntitySchema) -> None:
        assert synthesize_create_table(user_schema) == (
            "CREATE TABLE `users` (`id` INTEGER PRIMARY KEY , "
            "`name` VARCHAR(50) NOT NULL , `age` INT DEFAULT 0)"
        )

    def test_constraint_order_fixed(self) -> None:
        schema = resolve(
            "Account",
            None,
            [
                {"name": "id", "type": "INT", "primary_key": True, "not_null": True, "unique": True},
            ],
        )
        assert synthesize_create_table(schema) == (
            "CREATE TABLE `account` (`id` INT PRIMARY KEY UNIQUE NOT NULL )"
        )

    def test_column_order_matches_declaration(self) -> None:
        schema = resolve(
            "Row",
            None,
            [
                {"name": "z", "type": "TEXT"},
                {"name": "a", "type": "INT", "primary_key": True},
                {"name": "m", "type": "BIGINT"},
            ],
        )
        ddl = synthesize_create_table(schema)
        assert ddl.index("`z`") < ddl.index("`a`") < ddl.index("`m`")

    def test_only_first_primary_key_when_tolerated(self) -> None:
        schema = resolve(
            "Pair",
            None,
            [
                {"name": "a", "type": "INT", "primary_key": True},
                {"name": "b", "type": "INT", "primary_key": True},
            ],
            config=GenerationConfig(reject_duplicate_primary_keys=False),
        )
        assert synthesize_create_table(schema) == (
            "CREATE TABLE `pair` (`a` INT PRIMARY KEY , `b` INT )"
        )


class TestForeignKeys:
    def test_no_action_renders_no_clause(self) -> None:
        schema = resolve("Post", None, _post_fields({"target_table": "users", "target_column": "id"}))
        assert synthesize_create_table(schema) == (
            "CREATE TABLE `post` (`id` INT PRIMARY KEY , `author_id` INT , "
            "FOREIGN KEY (`author_id`) REFERENCES `users` (`id`))"
        )

    def test_cascade_on_delete(self) -> None:
        schema = resolve(
            "Post",
            None,
            _post_fields({"target_table": "users", "target_column": "id", "on_delete": "CASCADE"}),
        )
        assert synthesize_create_table(schema).endswith(
            "FOREIGN KEY (`author_id`) REFERENCES `users` (`id`) ON DELETE CASCADE)"
        )

    def test_both_actions(self) -> None:
        schema = resolve(
            "Post",
            None,
            _post_fields(
                {
                    "target_table": "users",
                    "target_column": "id",
                    "on_delete": "set_null",
                    "on_update": "restrict",
                }
            ),
        )
        assert synthesize_create_table(schema).endswith(
            "REFERENCES `users` (`id`) ON DELETE SET NULL ON UPDATE RESTRICT)"
        )

    def test_foreign_keys_follow_columns(self) -> None:
        schema = resolve(
            "Post",
            None,
            _post_fields({"target_table": "users", "target_column": "id"})
            + [{"name": "title", "type": "TEXT"}],
        )
        ddl = synthesize_create_table(schema)
        assert ddl.index("`title` TEXT") < ddl.index("FOREIGN KEY")


class TestLiterals:
    @pytest.mark.parametrize(
        "default, expected",
        [
            (DefaultValue(kind="string", value="it's"), "'it''s'"),
            (DefaultValue(kind="bool", value=True), "true"),
            (DefaultValue(kind="bool", value=False), "false"),
            (DefaultValue(kind="int", value=-3), "-3"),
            (DefaultValue(kind="double", value=1.5), "1.5"),
            (DefaultValue(), ""),
        ],
    )
    def test_default_literal(self, default: DefaultValue, expected: str) -> None:
        assert render_default_literal(default) == expected

    def test_string_default_in_column(self) -> None:
        schema = resolve(
            "Note",
            None,
            [
                {"name": "id", "type": "INT", "primary_key": True},
                {"name": "body", "type": "VARCHAR", "size": 10, "default": {"kind": "string", "value": "n/a"}},
            ],
        )
        assert render_column_clause(schema.fields[1]) == "`body` VARCHAR(10) DEFAULT 'n/a'"

    def test_quote_identifier_escapes_backticks(self) -> None:
        assert quote_identifier("we`ird") == "`we``ird`"

    def test_bad_default_rejected(self) -> None:
        with pytest.raises(ValueError):
            DefaultValue(kind="int", value="seven")
