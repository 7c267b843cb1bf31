# File: entitymap/templates.py
"""
EntityMap - Source Renderer
============================
Turns ``GeneratedUnit`` objects into text:

    1. a Python module per entity: SQL constants plus a
       ``<Entity>DatabaseModel`` class with the accessor methods;
    2. a SQL script holding every ``CREATE TABLE`` statement;
    3. a JSON dump of the units.

The generated module imports its decoders from ``entitymap.decoding`` and
its connector types from ``entitymap.runtime``; it behaves like
``EntityDataAccess`` without the binding-plan indirection.

All string assembly uses the ``List[str]`` + ``"\\n".join()`` pattern.
Rendering is stateless.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, List, Optional, Sequence, Set

from entitymap.crud import query_method_name
from entitymap.models import (
    BindParameter,
    BindSource,
    CrudOperation,
    GeneratedUnit,
    GenerationConfig,
    StatementTemplate,
)
from entitymap.utils import indent_lines, safe_identifier, to_pascal_case, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitymap.templates")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_INDENT: str = "    "

_STATEMENT_CONSTANTS: Dict[CrudOperation, str] = {
    CrudOperation.INSERT: "INSERT_SQL",
    CrudOperation.SELECT_BY_ID: "SELECT_BY_ID_SQL",
    CrudOperation.UPDATE: "UPDATE_SQL",
    CrudOperation.DELETE_BY_ID: "DELETE_BY_ID_SQL",
}

# Names already taken inside generated query methods
_RESERVED_ARGUMENTS: Set[str] = {"self", "block", "connection", "result"}


def model_class_name(entity_name: str, config: Optional[GenerationConfig] = None) -> str:
    cfg: GenerationConfig = config or GenerationConfig()
    base: str = to_pascal_case(entity_name) or "Entity"
    return f"{base}{cfg.model_suffix}"


def module_file_name(entity_name: str) -> str:
    return f"{to_snake_case(entity_name) or 'entity'}_database_model.py"


def query_constant_name(query_name: str) -> str:
    return f"QUERY_{to_snake_case(query_name).upper()}_SQL"


def _argument_names(statement: StatementTemplate) -> List[str]:
    """Python parameter names for a query's arguments, unique and non-clashing."""
    names: List[str] = []
    for param in statement.bind_order:
        candidate: str = safe_identifier(param.name)
        if candidate in _RESERVED_ARGUMENTS:
            candidate = f"{candidate}_"
        while candidate in names:
            candidate = f"{candidate}_{param.position}"
        names.append(candidate)
    return names


def _value_expression(param: BindParameter, obj_var: str, id_var: str, primary_key: str) -> str:
    if param.source == BindSource.FIELD:
        return f"read_value({obj_var}, {param.name!r})"
    if param.source == BindSource.ID:
        return id_var
    if param.source == BindSource.SUBJECT:
        return f"read_value(self.current_subject, {primary_key!r})"
    raise ValueError(f"Argument binds are rendered by the query method, not {param!r}.")


def _params_tuple(expressions: Sequence[str]) -> str:
    if not expressions:
        return "()"
    if len(expressions) == 1:
        return f"({expressions[0]},)"
    return "(" + ", ".join(expressions) + ")"


def _bound_params(statement: StatementTemplate, unit: GeneratedUnit, obj_var: str = "obj", id_var: str = "id_") -> str:
    return _params_tuple(
        [_value_expression(p, obj_var, id_var, unit.primary_key) for p in statement.bind_order]
    )


# ---------------------------------------------------------------------------
# Python module
# ---------------------------------------------------------------------------


def _render_constants(unit: GeneratedUnit) -> List[str]:
    lines: List[str] = [f"TABLE_NAME: str = {unit.table_name!r}", ""]
    lines.append(f"CREATE_TABLE_SQL: str = {unit.ddl!r}")
    for operation, constant in _STATEMENT_CONSTANTS.items():
        lines.append(f"{constant}: str = {unit.statement(operation).sql!r}")
    for name, statement in unit.queries.items():
        lines.append(f"{query_constant_name(name)}: str = {statement.sql!r}")
    return lines


def _render_decode_method(unit: GeneratedUnit) -> List[str]:
    lines: List[str] = ["def _decode(self, row: Any) -> Any:"]
    body: List[str] = ["return self._entity_type("]
    for step in unit.decode_plan:
        body.append(f"{_INDENT}{step.decode_function.value}(row[{step.position}]),  # {step.column}")
    body.append(")")
    lines.extend(indent_lines(body))
    return lines


def _render_crud_methods(unit: GeneratedUnit) -> List[str]:
    insert: StatementTemplate = unit.statement(CrudOperation.INSERT)
    select: StatementTemplate = unit.statement(CrudOperation.SELECT_BY_ID)
    update: StatementTemplate = unit.statement(CrudOperation.UPDATE)
    delete: StatementTemplate = unit.statement(CrudOperation.DELETE_BY_ID)
    pk: str = unit.primary_key

    return [
        "def create_table(self, block: Optional[Callable[[bool], Any]] = None) -> bool:",
        f'{_INDENT}"""Create the table unless it exists; returns whether it already existed."""',
        f"{_INDENT}with self._provider.acquire_connection() as connection:",
        f"{_INDENT * 2}exists: bool = connection.table_exists(TABLE_NAME)",
        f"{_INDENT * 2}if not exists:",
        f"{_INDENT * 3}connection.execute(CREATE_TABLE_SQL)",
        f"{_INDENT}if block is not None:",
        f"{_INDENT * 2}block(exists)",
        f"{_INDENT}return exists",
        "",
        "def insert(self, obj: Any) -> Any:",
        f'{_INDENT}"""Insert *obj* without its primary key; returns the new row id if the driver reports one."""',
        f"{_INDENT}with self._provider.acquire_connection() as connection:",
        f"{_INDENT * 2}result = connection.execute(INSERT_SQL, {_bound_params(insert, unit)})",
        f"{_INDENT * 2}return getattr(result, 'lastrowid', None)",
        "",
        "def select_by_id(self, id_: Any) -> Any:",
        f"{_INDENT}with self._provider.acquire_connection() as connection:",
        f"{_INDENT * 2}row = connection.execute(SELECT_BY_ID_SQL, {_bound_params(select, unit)}).fetchone()",
        f"{_INDENT * 2}return None if row is None else self._decode(row)",
        "",
        "def select_self(self) -> Any:",
        f"{_INDENT}return self.select_by_id(read_value(self.current_subject, {pk!r}))",
        "",
        "def update(self, obj: Any) -> int:",
        f"{_INDENT}with self._provider.acquire_connection() as connection:",
        f"{_INDENT * 2}return connection.execute(UPDATE_SQL, {_bound_params(update, unit)}).rowcount",
        "",
        "def delete_by_id(self, id_: Any, block: Callable[[int], Any]) -> None:",
        f"{_INDENT}with self._provider.acquire_connection() as connection:",
        f"{_INDENT * 2}affected: int = connection.execute(DELETE_BY_ID_SQL, {_bound_params(delete, unit)}).rowcount",
        f"{_INDENT}block(affected)",
        "",
        "def delete_self(self, block: Callable[[int], Any]) -> None:",
        f"{_INDENT}self.delete_by_id(read_value(self.current_subject, {pk!r}), block)",
    ]


def _render_query_method(name: str, statement: StatementTemplate) -> List[str]:
    arguments: List[str] = _argument_names(statement)
    signature: str = ", ".join(["self"] + [f"{a}: Any" for a in arguments] + ["block: Callable[[Any], Any]"])
    return [
        f"def {query_method_name(name)}({signature}) -> Any:",
        f"{_INDENT}with self._provider.acquire_connection() as connection:",
        f"{_INDENT * 2}return block(connection.execute({query_constant_name(name)}, {_params_tuple(arguments)}))",
    ]


def render_module(unit: GeneratedUnit, config: Optional[GenerationConfig] = None) -> str:
    """
    Render the data-access module for one entity.

    The result is a complete, importable Python source file.
    """
    class_name: str = model_class_name(unit.entity_name, config)
    decoders: List[str] = sorted({step.decode_function.value for step in unit.decode_plan})

    lines: List[str] = [
        '"""',
        f"Data access for entity {unit.entity_name} (table {unit.table_name}).",
        "Auto-generated by EntityMap.",
        '"""',
        "",
        "from __future__ import annotations",
        "",
        "from typing import Any, Callable, Optional",
        "",
        f"from entitymap.decoding import {', '.join(decoders)}",
        "from entitymap.runtime import ConnectionProvider, read_value",
        "",
    ]
    lines.extend(_render_constants(unit))
    lines.extend(["", ""])

    lines.append(f"class {class_name}:")
    lines.append(f'{_INDENT}"""Accessors for the {unit.table_name!r} table."""')
    lines.append("")
    lines.extend(indent_lines([
        "def __init__(",
        f"{_INDENT}self,",
        f"{_INDENT}provider: ConnectionProvider,",
        f"{_INDENT}entity_type: Callable[..., Any],",
        f"{_INDENT}current_subject: Any = None,",
        ") -> None:",
        f"{_INDENT}self._provider: ConnectionProvider = provider",
        f"{_INDENT}self._entity_type: Callable[..., Any] = entity_type",
        f"{_INDENT}self.current_subject: Any = current_subject",
        "",
    ]))
    lines.extend(indent_lines(_render_decode_method(unit)))
    lines.append("")
    lines.extend(indent_lines(_render_crud_methods(unit)))
    for name, statement in unit.queries.items():
        lines.append("")
        lines.extend(indent_lines(_render_query_method(name, statement)))
    lines.append("")

    content: str = "\n".join(lines)
    logger.debug("Rendered %s: %d lines.", class_name, content.count("\n") + 1)
    return content


# ---------------------------------------------------------------------------
# SQL script & JSON
# ---------------------------------------------------------------------------


def render_sql_script(units: Sequence[GeneratedUnit]) -> str:
    """Every ``CREATE TABLE`` statement, one per entity, in the given order."""
    lines: List[str] = ["-- Generated by EntityMap", ""]
    for unit in units:
        lines.append(f"-- {unit.entity_name}")
        lines.append(f"{unit.ddl};")
        lines.append("")
    return "\n".join(lines)


def render_json(units: Sequence[GeneratedUnit]) -> str:
    payload: List[Dict[str, object]] = [unit.model_dump(mode="json") for unit in units]
    return json.dumps(payload, indent=2) + "\n"


__all__: List[str] = [
    "model_class_name",
    "module_file_name",
    "query_constant_name",
    "render_json",
    "render_module",
    "render_sql_script",
]
