# File: entitymap/resolver.py
"""
EntityMap - Entity Schema Resolver
===================================
Turns an ordered list of raw field declarations into a validated
``EntitySchema``.

Checks, in this order, stopping at the first failure:

1. every field declares a column type (``MissingColumnType``);
2. sizeable types stay within their bound (``SizeExceeded``);
3. field names are unique within the entity (``InvalidElement``);
4. exactly one field is the primary key (``NoPrimaryKey`` /
   ``MultiplePrimaryKeys``; the latter only when the configuration rejects
   duplicates, otherwise the first flagged field wins).

Field order is preserved exactly as declared.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Sequence, Set, Union

from pydantic import ValidationError

from entitymap.errors import (
    InvalidElement,
    MissingColumnType,
    MultiplePrimaryKeys,
    NoPrimaryKey,
    SizeExceeded,
)
from entitymap.models import (
    DefaultValue,
    EntityDeclaration,
    EntitySchema,
    FieldDescriptor,
    GenerationConfig,
    RawFieldDecl,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitymap.resolver")

FieldInput = Union[RawFieldDecl, Mapping[str, Any]]


def resolve_table_name(entity_name: str, declared_table_name: Optional[str]) -> str:
    """Declared name when non-empty, otherwise the lower-cased entity name."""
    if declared_table_name and declared_table_name.strip():
        return declared_table_name.strip()
    return entity_name.lower()


def _coerce_field(entity_name: str, index: int, item: FieldInput) -> RawFieldDecl:
    if isinstance(item, RawFieldDecl):
        return item
    if isinstance(item, Mapping):
        try:
            return RawFieldDecl.model_validate(dict(item))
        except ValidationError as exc:
            raise InvalidElement(
                f"Field #{index} is not a valid field declaration: {exc}",
                entity=entity_name,
                context={"index": index},
            ) from exc
    raise InvalidElement(
        f"Field #{index} must be a field declaration, got {type(item).__name__}.",
        entity=entity_name,
        context={"index": index},
    )


def resolve_field(entity_name: str, decl: RawFieldDecl) -> FieldDescriptor:
    """Validate one field and settle its effective size."""
    column_type = decl.column_type
    if column_type is None:
        raise MissingColumnType(decl.name, entity=entity_name)

    size: Optional[int] = None
    if column_type.is_sizeable:
        size = decl.size if decl.size else column_type.default_size
        if size > column_type.max_size:
            raise SizeExceeded(
                decl.name, size, column_type.max_size, entity=entity_name
            )
    elif decl.size:
        logger.warning(
            "[%s] Field '%s': %s takes no size; ignoring size %d.",
            entity_name,
            decl.name,
            column_type.value,
            decl.size,
        )

    return FieldDescriptor(
        name=decl.name,
        host_type=decl.host_type,
        column_type=column_type,
        size=size,
        primary_key=decl.primary_key,
        unique=decl.unique,
        not_null=decl.not_null,
        default=decl.default if decl.default is not None else DefaultValue.none(),
        foreign_key=decl.foreign_key,
    )


def resolve(
    entity_name: str,
    declared_table_name: Optional[str],
    fields: Sequence[FieldInput],
    *,
    config: Optional[GenerationConfig] = None,
) -> EntitySchema:
    """
    Build the normalized schema of one entity.

    Args:
        entity_name: Name of the entity (class) being mapped.
        declared_table_name: Table override; empty or None means default.
        fields: Field declarations in declaration order.
        config: Generation settings (defaults apply when omitted).

    Returns:
        The validated ``EntitySchema``.

    Raises:
        ConfigurationError: One of its subclasses, describing the first
            problem found.
    """
    cfg: GenerationConfig = config or GenerationConfig()

    if not entity_name or not entity_name.strip():
        raise InvalidElement("Entity name must be a non-empty string.")

    descriptors: List[FieldDescriptor] = []
    seen: Set[str] = set()
    for index, item in enumerate(fields):
        decl: RawFieldDecl = _coerce_field(entity_name, index, item)
        descriptor: FieldDescriptor = resolve_field(entity_name, decl)
        if descriptor.name in seen:
            raise InvalidElement(
                f"Field '{descriptor.name}' is declared more than once.",
                entity=entity_name,
                context={"field": descriptor.name},
            )
        seen.add(descriptor.name)
        descriptors.append(descriptor)

    pk_names: List[str] = [f.name for f in descriptors if f.primary_key]
    if not pk_names:
        raise NoPrimaryKey(entity_name)
    if len(pk_names) > 1:
        if cfg.reject_duplicate_primary_keys:
            raise MultiplePrimaryKeys(entity_name, pk_names)
        logger.warning(
            "[%s] %d fields flagged as primary key (%s); using '%s'.",
            entity_name,
            len(pk_names),
            ", ".join(pk_names),
            pk_names[0],
        )

    table_name: str = resolve_table_name(entity_name, declared_table_name)
    schema: EntitySchema = EntitySchema(
        entity_name=entity_name,
        table_name=table_name,
        fields=tuple(descriptors),
    )
    logger.debug(
        "Resolved %s → table '%s' with %d field(s), primary key '%s'.",
        entity_name,
        table_name,
        len(descriptors),
        schema.primary_key.name,
    )
    return schema


def resolve_declaration(
    declaration: EntityDeclaration,
    config: Optional[GenerationConfig] = None,
) -> EntitySchema:
    """Resolve a parsed ``EntityDeclaration``."""
    return resolve(
        declaration.name,
        declaration.table,
        declaration.fields,
        config=config,
    )


__all__: List[str] = [
    "resolve",
    "resolve_declaration",
    "resolve_field",
    "resolve_table_name",
]
