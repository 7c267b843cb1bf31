"""
tests/conftest.py
Shared fixtures for the entitymap test suite.

No external mocking libraries are used; file I/O happens inside pytest's
tmp_path directories and database tests run against a throw-away SQLite
file through SQLAlchemy.
"""

from __future__ import annotations

import copy
import logging
import pathlib
from dataclasses import dataclass
from typing import Any, Dict, List

import pytest
import yaml

from entitymap.generator import generate_unit
from entitymap.models import EntitySchema, GeneratedUnit, QuerySpec
from entitymap.resolver import resolve
from entitymap.runtime import SQLAlchemyConnectionProvider


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

ROOT_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
EXAMPLE_PATH: pathlib.Path = ROOT_DIR / "entities_example.yaml"


# ---------------------------------------------------------------------------
# Entity classes used as decode targets
# ---------------------------------------------------------------------------


@dataclass
class User:
    id: int
    name: str
    age: int


# ---------------------------------------------------------------------------
# Raw declaration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_declarations() -> Dict[str, Any]:
    """Load entities_example.yaml once per session."""
    assert EXAMPLE_PATH.exists(), f"Reference declarations not found at {EXAMPLE_PATH}."
    with open(EXAMPLE_PATH, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    assert isinstance(data, dict), "Top-level YAML must be a mapping."
    return data


@pytest.fixture()
def declarations_dict(raw_declarations: Dict[str, Any]) -> Dict[str, Any]:
    """Deep copy so each test can mutate freely."""
    return copy.deepcopy(raw_declarations)


@pytest.fixture()
def declarations_yaml_path(declarations_dict: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "entities.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(declarations_dict, fh, default_flow_style=False, allow_unicode=True)
    return path


@pytest.fixture()
def simple_fields() -> List[Dict[str, Any]]:
    """``id INT`` primary key plus ``name VARCHAR(50)``."""
    return [
        {"name": "id", "host_type": "int", "type": "INT", "primary_key": True},
        {"name": "name", "host_type": "str", "type": "VARCHAR", "size": 50},
    ]


@pytest.fixture()
def user_fields() -> List[Dict[str, Any]]:
    return [
        {"name": "id", "host_type": "int", "type": "INTEGER", "primary_key": True},
        {"name": "name", "host_type": "str", "type": "VARCHAR(50)", "not_null": True},
        {"name": "age", "host_type": "int", "type": "INT", "default": {"kind": "int", "value": 0}},
    ]


# ---------------------------------------------------------------------------
# Resolved / generated fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def simple_schema(simple_fields: List[Dict[str, Any]]) -> EntitySchema:
    return resolve("Entity", None, simple_fields)


@pytest.fixture()
def user_schema(user_fields: List[Dict[str, Any]]) -> EntitySchema:
    return resolve("User", "users", user_fields)


@pytest.fixture()
def user_unit(user_schema: EntitySchema) -> GeneratedUnit:
    queries = [
        QuerySpec(
            name="older_than",
            sql="SELECT id, name, age FROM users WHERE age > ? ORDER BY id",
            params=({"name": "min_age", "host_type": "int"},),
        )
    ]
    return generate_unit(user_schema, queries)


@pytest.fixture()
def user_type() -> type:
    return User


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def provider(tmp_path: pathlib.Path):
    """Connection provider over a fresh SQLite database file."""
    db_provider = SQLAlchemyConnectionProvider(f"sqlite:///{tmp_path / 'test.db'}")
    yield db_provider
    db_provider.dispose()


@pytest.fixture(autouse=True)
def _reset_entitymap_logger():
    """Undo CLI logging setup so caplog keeps seeing entitymap records."""
    yield
    root = logging.getLogger("entitymap")
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)
    logging.disable(logging.NOTSET)
