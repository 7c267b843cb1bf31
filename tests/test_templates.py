"""
tests/test_templates.py
Tests for entitymap.templates: rendered modules must parse, import and
behave like the runtime accessors.
"""

from __future__ import annotations

import ast
import json
from typing import Any, Dict, List

from entitymap.generator import generate_unit
from entitymap.models import GenerationConfig, QuerySpec
from entitymap.resolver import resolve
from entitymap.templates import (
    model_class_name,
    module_file_name,
    query_constant_name,
    render_json,
    render_module,
    render_sql_script,
)


def _load(source: str) -> Dict[str, Any]:
    namespace: Dict[str, Any] = {"__name__": "generated_module"}
    exec(compile(source, "<generated>", "exec"), namespace)
    return namespace


class TestNames:
    def test_class_name(self) -> None:
        assert model_class_name("user_account") == "UserAccountDatabaseModel"
        assert model_class_name("User", GenerationConfig(model_suffix="Dao")) == "UserDao"

    def test_module_file_name(self) -> None:
        assert module_file_name("UserAccount") == "user_account_database_model.py"

    def test_query_constant(self) -> None:
        assert query_constant_name("olderThan") == "QUERY_OLDER_THAN_SQL"


class TestRenderModule:
    def test_parses(self, user_unit) -> None:
        tree = ast.parse(render_module(user_unit))
        classes = [n.name for n in tree.body if isinstance(n, ast.ClassDef)]
        assert classes == ["UserDatabaseModel"]

    def test_constants_match_unit(self, user_unit) -> None:
        namespace = _load(render_module(user_unit))
        assert namespace["CREATE_TABLE_SQL"] == user_unit.ddl
        assert namespace["UPDATE_SQL"] == "UPDATE `users` SET `id` = ?, `name` = ?, `age` = ? WHERE `id` = ?"
        assert namespace["QUERY_OLDER_THAN_SQL"] == user_unit.query("older_than").sql

    def test_imports_only_used_decoders(self, user_unit) -> None:
        source = render_module(user_unit)
        assert "from entitymap.decoding import get_int, get_string" in source

    def test_generated_accessors_work(self, user_unit, provider, user_type) -> None:
        model_cls = _load(render_module(user_unit))["UserDatabaseModel"]
        model = model_cls(provider, user_type)
        assert model.create_table() is False
        assert model.insert(user_type(id=0, name="ada", age=36)) == 1
        assert model.insert({"name": "alan", "age": 41}) == 2
        assert model.select_by_id(1) == user_type(id=1, name="ada", age=36)
        assert model.update(user_type(id=2, name="alan turing", age=41)) == 1
        assert model.older_than(40, block=lambda result: [row.name for row in result]) == ["alan turing"]

        model.current_subject = user_type(id=1, name="", age=0)
        assert model.select_self().name == "ada"
        counts: List[int] = []
        model.delete_self(counts.append)
        model.delete_by_id(2, counts.append)
        assert counts == [1, 1]

    def test_awkward_names_stay_valid(self) -> None:
        schema = resolve(
            "Odd Thing",
            "odd",
            [
                {"name": "id", "host_type": "int", "type": "INT", "primary_key": True},
                {"name": "class", "host_type": "str", "type": "TEXT"},
            ],
        )
        unit = generate_unit(
            schema,
            [
                QuerySpec(
                    name="find",
                    sql="SELECT * FROM odd WHERE class = ? AND id > ?",
                    params=({"name": "block"}, {"name": "self"}),
                )
            ],
        )
        tree = ast.parse(render_module(unit))
        assert [n.name for n in tree.body if isinstance(n, ast.ClassDef)] == ["OddThingDatabaseModel"]


class TestScripts:
    def test_sql_script(self, user_unit, simple_schema) -> None:
        script = render_sql_script([user_unit, generate_unit(simple_schema)])
        assert f"{user_unit.ddl};" in script
        assert script.index("-- User") < script.index("-- Entity")

    def test_json(self, user_unit) -> None:
        payload = json.loads(render_json([user_unit]))
        assert payload[0]["entity_name"] == "User"
        assert payload[0]["statements"]["insert"]["parameter_count"] == 2
        assert payload[0]["decode_plan"][0]["decode_function"] == "get_int"
