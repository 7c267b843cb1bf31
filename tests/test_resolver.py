"""
tests/test_resolver.py
Unit tests for entitymap.resolver.

Tests cover:
- Table name defaulting
- Effective sizes and size bounds
- Missing column types
- Primary key rules (none, several, first-match when tolerated)
- Malformed declarations
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import pytest

from entitymap import generator
from entitymap.catalog import ColumnType, sizeable_types
from entitymap.errors import (
    ConfigurationError,
    InvalidElement,
    MissingColumnType,
    MultiplePrimaryKeys,
    NoPrimaryKey,
    SizeExceeded,
)
from entitymap.models import EntityDeclaration, GenerationConfig, RawFieldDecl, ReferentialAction
from entitymap.resolver import resolve, resolve_declaration, resolve_table_name


class TestTableName:
    def test_declared_name_wins(self) -> None:
        assert resolve_table_name("User", "app_users") == "app_users"

    @pytest.mark.parametrize("declared", [None, "", "   "])
    def test_defaults_to_lowercase_entity(self, declared: Any) -> None:
        assert resolve_table_name("UserAccount", declared) == "useraccount"

    def test_resolve_uses_default(self, simple_fields: List[Dict[str, Any]]) -> None:
        schema = resolve("Entity", "", simple_fields)
        assert schema.table_name == "entity"


class TestFieldResolution:
    def test_order_preserved(self, user_fields: List[Dict[str, Any]]) -> None:
        schema = resolve("User", "users", user_fields)
        assert schema.field_names == ["id", "name", "age"]

    def test_size_shorthand(self, user_fields: List[Dict[str, Any]]) -> None:
        schema = resolve("User", "users", user_fields)
        name = schema.get_field("name")
        assert name is not None
        assert name.column_type is ColumnType.VARCHAR
        assert name.size == 50
        assert name.sql_type == "VARCHAR(50)"

    def test_default_size_applied(self) -> None:
        schema = resolve(
            "Tag",
            None,
            [
                {"name": "id", "type": "INT", "primary_key": True},
                {"name": "label", "type": "VARCHAR"},
                {"name": "code", "type": "CHAR", "size": 0},
            ],
        )
        assert schema.get_field("label").sql_type == "VARCHAR(255)"
        assert schema.get_field("code").sql_type == "CHAR(1)"

    def test_size_at_maximum_accepted(self) -> None:
        schema = resolve(
            "Blob",
            None,
            [
                {"name": "id", "type": "INT", "primary_key": True},
                {"name": "payload", "type": "VARCHAR", "size": 65535},
            ],
        )
        assert schema.get_field("payload").size == 65535

    def test_size_exceeded(self) -> None:
        with pytest.raises(SizeExceeded) as exc_info:
            resolve(
                "Blob",
                None,
                [
                    {"name": "id", "type": "INT", "primary_key": True},
                    {"name": "payload", "type": "VARCHAR", "size": 65536},
                ],
            )
        err = exc_info.value
        assert err.field_name == "payload"
        assert err.requested == 65536
        assert err.maximum == 65535
        assert err.entity == "Blob"
        assert "65535 or lower" in str(err)

    @pytest.mark.parametrize("column_type", sizeable_types(), ids=lambda t: t.value)
    def test_every_sizeable_type_bounded(self, column_type: ColumnType) -> None:
        def fields(size: int) -> List[Dict[str, Any]]:
            return [
                {"name": "id", "type": "INT", "primary_key": True},
                {"name": "payload", "type": column_type.value, "size": size},
            ]

        at_limit = resolve("Sized", None, fields(column_type.max_size))
        assert at_limit.get_field("payload").sql_type == f"{column_type.value}({column_type.max_size})"
        with pytest.raises(SizeExceeded) as exc_info:
            resolve("Sized", None, fields(column_type.max_size + 1))
        assert exc_info.value.maximum == column_type.max_size

    def test_oversize_stops_before_any_sql(self, monkeypatch: pytest.MonkeyPatch) -> None:
        reached: List[str] = []
        monkeypatch.setattr(generator, "generate_unit", lambda schema, *a, **kw: reached.append(schema.entity_name))
        declaration = {
            "name": "Sized",
            "fields": [
                {"name": "id", "type": "INT", "primary_key": True},
                {"name": "code", "type": "CHAR", "size": 256},
            ],
        }
        report = generator.EntityGenerator().generate_all([declaration])
        assert report.failures[0].code == "SIZE_EXCEEDED"
        assert report.units == {}
        assert reached == []

    @pytest.mark.parametrize("declared", ["DECIMAL(10,2)", "VARCHAR(abc)", "CHAR()"])
    def test_malformed_size_suffix_rejected(self, declared: str) -> None:
        with pytest.raises(InvalidElement, match="whole number"):
            resolve(
                "Price",
                None,
                [
                    {"name": "id", "type": "INT", "primary_key": True},
                    {"name": "amount", "type": declared},
                ],
            )

    def test_size_on_fixed_type_ignored(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="entitymap.resolver"):
            schema = resolve(
                "Counter",
                None,
                [{"name": "id", "type": "INT", "size": 11, "primary_key": True}],
            )
        assert schema.primary_key.size is None
        assert schema.primary_key.sql_type == "INT"
        assert "takes no size" in caplog.text

    def test_missing_column_type(self) -> None:
        with pytest.raises(MissingColumnType) as exc_info:
            resolve(
                "Thing",
                None,
                [
                    {"name": "id", "type": "INT", "primary_key": True},
                    {"name": "label"},
                ],
            )
        assert exc_info.value.field_name == "label"
        assert exc_info.value.code == "MISSING_COLUMN_TYPE"

    def test_foreign_key_action_normalised(self) -> None:
        schema = resolve(
            "Post",
            None,
            [
                {"name": "id", "type": "INT", "primary_key": True},
                {
                    "name": "author_id",
                    "type": "INT",
                    "foreign_key": {
                        "target_table": "users",
                        "target_column": "id",
                        "on_delete": "set null",
                    },
                },
            ],
        )
        ref = schema.get_field("author_id").foreign_key
        assert ref.on_delete is ReferentialAction.SET_NULL
        assert ref.on_update is ReferentialAction.NO_ACTION

    def test_accepts_model_instances(self) -> None:
        fields = [RawFieldDecl(name="id", type="BIGINT", primary_key=True)]
        assert resolve("Big", None, fields).primary_key.column_type is ColumnType.BIGINT


class TestPrimaryKey:
    def test_no_primary_key(self) -> None:
        with pytest.raises(NoPrimaryKey) as exc_info:
            resolve("Orphan", None, [{"name": "label", "type": "TEXT"}])
        assert "Orphan" in str(exc_info.value)

    def test_multiple_primary_keys_rejected_by_default(self) -> None:
        fields = [
            {"name": "a", "type": "INT", "primary_key": True},
            {"name": "b", "type": "INT", "primary_key": True},
        ]
        with pytest.raises(MultiplePrimaryKeys) as exc_info:
            resolve("Pair", None, fields)
        assert exc_info.value.field_names == ["a", "b"]

    def test_first_match_when_tolerated(self) -> None:
        fields = [
            {"name": "a", "type": "INT", "primary_key": True},
            {"name": "b", "type": "INT", "primary_key": True},
        ]
        config = GenerationConfig(reject_duplicate_primary_keys=False)
        schema = resolve("Pair", None, fields, config=config)
        assert schema.primary_key.name == "a"

    def test_errors_are_value_errors(self) -> None:
        with pytest.raises(ValueError):
            resolve("Orphan", None, [{"name": "label", "type": "TEXT"}])
        assert issubclass(NoPrimaryKey, ConfigurationError)


class TestMalformedInput:
    def test_duplicate_field_names(self) -> None:
        with pytest.raises(InvalidElement, match="more than once"):
            resolve(
                "Dup",
                None,
                [
                    {"name": "id", "type": "INT", "primary_key": True},
                    {"name": "id", "type": "TEXT"},
                ],
            )

    def test_unknown_type_is_invalid_element(self) -> None:
        with pytest.raises(InvalidElement):
            resolve("Geo", None, [{"name": "id", "type": "GEOMETRY", "primary_key": True}])

    def test_non_mapping_field(self) -> None:
        with pytest.raises(InvalidElement, match="must be a field declaration"):
            resolve("Odd", None, ["id INT"])

    def test_empty_entity_name(self, simple_fields: List[Dict[str, Any]]) -> None:
        with pytest.raises(InvalidElement):
            resolve("", None, simple_fields)

    def test_resolve_declaration(self, user_fields: List[Dict[str, Any]]) -> None:
        decl = EntityDeclaration(name="User", table=None, fields=user_fields)
        schema = resolve_declaration(decl)
        assert schema.table_name == "user"
        assert schema.primary_key.name == "id"
