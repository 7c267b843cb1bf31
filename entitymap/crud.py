# File: entitymap/crud.py
"""
EntityMap - CRUD Template Synthesizer
======================================
Builds the parameterized statements generated for every entity, each with
its binding plan (1-based placeholder positions and the source of every
value).

Binding rules:

- ``insert``: every field except the primary key, in declared order.
- ``select_by_id`` / ``select_self``: full column list; one parameter, the
  explicit id or the current subject's key.  Same statement text.
- ``update``: every field in declared order, then the primary key value.
- ``delete_by_id`` / ``delete_self``: one parameter, as for select.

Table and column names are backtick-quoted as in the DDL. Raw queries are
passed through verbatim and bound positionally.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, FrozenSet, List, Sequence, Set

from entitymap.ddl import quote_identifier
from entitymap.errors import InvalidElement
from entitymap.models import (
    BindParameter,
    BindSource,
    CrudOperation,
    EntitySchema,
    FieldDescriptor,
    QuerySpec,
    StatementTemplate,
)
from entitymap.utils import safe_identifier, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitymap.crud")

_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

QUERY_OPERATION_PREFIX: str = "query:"

# Methods every accessor already defines; query accessors may not reuse them.
RESERVED_METHOD_NAMES: FrozenSet[str] = frozenset(
    {op.value for op in CrudOperation} | {"create_table", "current_subject"}
)


def query_method_name(query_name: str) -> str:
    """Accessor method name for a raw query, e.g. ``olderThan`` -> ``older_than``."""
    return safe_identifier(to_snake_case(query_name))


def _field_binds(fields: Sequence[FieldDescriptor], start: int = 1) -> List[BindParameter]:
    return [
        BindParameter(
            position=start + offset,
            name=f.name,
            source=BindSource.FIELD,
            host_type=f.host_type,
        )
        for offset, f in enumerate(fields)
    ]


def _key_bind(pk: FieldDescriptor, source: BindSource, position: int = 1) -> BindParameter:
    return BindParameter(
        position=position,
        name=pk.name,
        source=source,
        host_type=pk.host_type,
    )


# ---------------------------------------------------------------------------
# Individual statements
# ---------------------------------------------------------------------------


def synthesize_insert(schema: EntitySchema) -> StatementTemplate:
    fields: List[FieldDescriptor] = schema.non_key_fields
    if not fields:
        logger.warning(
            "[%s] Insert has no columns: the primary key is the only field.",
            schema.entity_name,
        )
    columns: str = ", ".join(quote_identifier(f.name) for f in fields)
    placeholders: str = ", ".join("?" for _ in fields)
    sql: str = f"INSERT INTO {quote_identifier(schema.table_name)} ({columns}) VALUES ({placeholders})"
    return StatementTemplate(
        operation=CrudOperation.INSERT.value,
        sql=sql,
        bind_order=tuple(_field_binds(fields)),
    )


def select_statement_text(schema: EntitySchema) -> str:
    columns: str = ", ".join(quote_identifier(name) for name in schema.field_names)
    return (
        f"SELECT {columns} FROM {quote_identifier(schema.table_name)} "
        f"WHERE {quote_identifier(schema.primary_key.name)} = ?"
    )


def synthesize_select(schema: EntitySchema, *, self_variant: bool = False) -> StatementTemplate:
    operation: CrudOperation = (
        CrudOperation.SELECT_SELF if self_variant else CrudOperation.SELECT_BY_ID
    )
    source: BindSource = BindSource.SUBJECT if self_variant else BindSource.ID
    return StatementTemplate(
        operation=operation.value,
        sql=select_statement_text(schema),
        bind_order=(_key_bind(schema.primary_key, source),),
    )


def synthesize_update(schema: EntitySchema) -> StatementTemplate:
    pk: FieldDescriptor = schema.primary_key
    set_clause: str = ", ".join(f"{quote_identifier(f.name)} = ?" for f in schema.fields)
    sql: str = (
        f"UPDATE {quote_identifier(schema.table_name)} SET {set_clause} "
        f"WHERE {quote_identifier(pk.name)} = ?"
    )
    binds: List[BindParameter] = _field_binds(schema.fields)
    binds.append(_key_bind(pk, BindSource.FIELD, position=len(binds) + 1))
    return StatementTemplate(
        operation=CrudOperation.UPDATE.value,
        sql=sql,
        bind_order=tuple(binds),
    )


def synthesize_delete(schema: EntitySchema, *, self_variant: bool = False) -> StatementTemplate:
    operation: CrudOperation = (
        CrudOperation.DELETE_SELF if self_variant else CrudOperation.DELETE_BY_ID
    )
    source: BindSource = BindSource.SUBJECT if self_variant else BindSource.ID
    sql: str = (
        f"DELETE FROM {quote_identifier(schema.table_name)} "
        f"WHERE {quote_identifier(schema.primary_key.name)} = ?"
    )
    return StatementTemplate(
        operation=operation.value,
        sql=sql,
        bind_order=(_key_bind(schema.primary_key, source),),
    )


def synthesize_crud(schema: EntitySchema) -> Dict[CrudOperation, StatementTemplate]:
    """All six CRUD statements, keyed by operation."""
    return {
        CrudOperation.INSERT: synthesize_insert(schema),
        CrudOperation.SELECT_BY_ID: synthesize_select(schema),
        CrudOperation.SELECT_SELF: synthesize_select(schema, self_variant=True),
        CrudOperation.UPDATE: synthesize_update(schema),
        CrudOperation.DELETE_BY_ID: synthesize_delete(schema),
        CrudOperation.DELETE_SELF: synthesize_delete(schema, self_variant=True),
    }


# ---------------------------------------------------------------------------
# Raw queries
# ---------------------------------------------------------------------------


def synthesize_raw_query(query: QuerySpec, *, entity: str = "") -> StatementTemplate:
    """
    Wrap a caller-supplied query.

    The SQL text is not parsed or rewritten; only the accessor name and the
    parameter list are checked.

    Raises:
        InvalidElement: Empty SQL, a non-identifier name, a name that
            clashes with a CRUD accessor, or duplicate parameter names.
    """
    ctx_entity = entity or None
    if not _IDENTIFIER_RE.match(query.name):
        raise InvalidElement(
            f"Query name '{query.name}' is not a valid identifier.",
            entity=ctx_entity,
            context={"query": query.name},
        )
    method_name: str = query_method_name(query.name)
    if method_name in RESERVED_METHOD_NAMES or method_name.startswith("_"):
        raise InvalidElement(
            f"Query name '{query.name}' clashes with the accessor method '{method_name}'.",
            entity=ctx_entity,
            context={"query": query.name},
        )
    if not query.sql.strip():
        raise InvalidElement(
            f"Query '{query.name}' has no SQL text.",
            entity=ctx_entity,
            context={"query": query.name},
        )
    seen: Set[str] = set()
    for param in query.params:
        if not _IDENTIFIER_RE.match(param.name):
            raise InvalidElement(
                f"Query '{query.name}' parameter '{param.name}' is not a valid identifier.",
                entity=ctx_entity,
                context={"query": query.name, "param": param.name},
            )
        if param.name in seen:
            raise InvalidElement(
                f"Query '{query.name}' declares parameter '{param.name}' twice.",
                entity=ctx_entity,
                context={"query": query.name, "param": param.name},
            )
        seen.add(param.name)

    placeholder_count: int = query.sql.count("?")
    if placeholder_count != len(query.params):
        logger.warning(
            "Query '%s' has %d '?' placeholder(s) but %d parameter(s).",
            query.name,
            placeholder_count,
            len(query.params),
        )

    return StatementTemplate(
        operation=f"{QUERY_OPERATION_PREFIX}{query.name}",
        sql=query.sql,
        bind_order=tuple(
            BindParameter(
                position=i + 1,
                name=p.name,
                source=BindSource.ARGUMENT,
                host_type=p.host_type,
            )
            for i, p in enumerate(query.params)
        ),
    )


__all__: List[str] = [
    "QUERY_OPERATION_PREFIX",
    "RESERVED_METHOD_NAMES",
    "query_method_name",
    "select_statement_text",
    "synthesize_crud",
    "synthesize_delete",
    "synthesize_insert",
    "synthesize_raw_query",
    "synthesize_select",
    "synthesize_update",
]
