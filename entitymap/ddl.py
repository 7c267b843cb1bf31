# File: entitymap/ddl.py
"""
EntityMap - DDL Synthesizer
============================
Pure text generation of ``CREATE TABLE`` statements from an ``EntitySchema``.

Column clause layout::

    `name` TYPE[(size)][ PRIMARY KEY][ UNIQUE][ NOT NULL] [DEFAULT literal]

The default slot is always preceded by a single space, so a column without
a default ends in a trailing blank.  Constraint order is fixed (PRIMARY KEY,
UNIQUE, NOT NULL) and foreign-key clauses follow all column clauses.

Creating the table only when it does not exist yet is the connector's job
(see ``entitymap.runtime``); nothing here performs I/O.
"""

from __future__ import annotations

import logging
from typing import List

from entitymap.models import (
    DefaultKind,
    DefaultValue,
    EntitySchema,
    FieldDescriptor,
    ForeignKeyRef,
    ReferentialAction,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitymap.ddl")


def quote_identifier(name: str) -> str:
    """Backtick-quote an identifier, doubling embedded backticks."""
    return "`" + name.replace("`", "``") + "`"


def render_default_literal(default: DefaultValue) -> str:
    """SQL literal for a default value; empty string when there is none."""
    kind: DefaultKind = default.kind
    if kind == DefaultKind.NONE:
        return ""
    if kind == DefaultKind.STRING:
        return "'" + str(default.value).replace("'", "''") + "'"
    if kind == DefaultKind.BOOL:
        return "true" if default.value else "false"
    return str(default.value)


def render_default_clause(default: DefaultValue) -> str:
    literal: str = render_default_literal(default)
    return f"DEFAULT {literal}" if literal else ""


def render_constraints(field: FieldDescriptor) -> List[str]:
    constraints: List[str] = []
    if field.primary_key:
        constraints.append("PRIMARY KEY")
    if field.unique:
        constraints.append("UNIQUE")
    if field.not_null:
        constraints.append("NOT NULL")
    return constraints


def render_column_clause(field: FieldDescriptor, *, is_primary_key: bool = True) -> str:
    """
    Render the definition of one column.

    ``is_primary_key=False`` drops the PRIMARY KEY constraint, used for the
    extra flagged fields when duplicates are tolerated.
    """
    constraints: List[str] = render_constraints(field)
    if not is_primary_key and field.primary_key:
        constraints.remove("PRIMARY KEY")
    head: str = f"{quote_identifier(field.name)} {field.sql_type}"
    tail: str = "".join(f" {c}" for c in constraints)
    return f"{head}{tail} {render_default_clause(field.default)}"


def render_referential_actions(ref: ForeignKeyRef) -> List[str]:
    """ON DELETE / ON UPDATE fragments; NO_ACTION renders nothing."""
    actions: List[str] = []
    if ref.on_delete != ReferentialAction.NO_ACTION:
        actions.append(f"ON DELETE {ref.on_delete.sql}")
    if ref.on_update != ReferentialAction.NO_ACTION:
        actions.append(f"ON UPDATE {ref.on_update.sql}")
    return actions


def render_foreign_key_clause(field: FieldDescriptor) -> str:
    ref = field.foreign_key
    if ref is None:
        raise ValueError(f"Field '{field.name}' has no foreign key.")
    clause: str = (
        f"FOREIGN KEY ({quote_identifier(field.name)}) "
        f"REFERENCES {quote_identifier(ref.target_table)} "
        f"({quote_identifier(ref.target_column)})"
    )
    return clause + "".join(f" {a}" for a in render_referential_actions(ref))


def synthesize_create_table(schema: EntitySchema) -> str:
    """
    Build the ``CREATE TABLE`` statement for *schema*.

    Example::

        CREATE TABLE `entity` (`id` INT PRIMARY KEY , `name` VARCHAR(50) )
    """
    pk_name: str = schema.primary_key.name
    parts: List[str] = [
        render_column_clause(f, is_primary_key=f.name == pk_name)
        for f in schema.fields
    ]
    parts.extend(render_foreign_key_clause(f) for f in schema.foreign_key_fields)
    ddl: str = f"CREATE TABLE {quote_identifier(schema.table_name)} ({', '.join(parts)})"
    logger.debug("DDL for %s: %s", schema.entity_name, ddl)
    return ddl


__all__: List[str] = [
    "quote_identifier",
    "render_column_clause",
    "render_default_clause",
    "render_default_literal",
    "render_foreign_key_clause",
    "render_referential_actions",
    "synthesize_create_table",
]
