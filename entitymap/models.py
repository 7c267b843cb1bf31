# File: entitymap/models.py
"""
EntityMap - Core Data Models
=============================
Pydantic V2 models describing entity declarations, the normalized schema the
resolver produces, and the ``GeneratedUnit`` bundle handed to emitters.

Pipeline: RawFieldDecl → (resolver) → EntitySchema → (ddl / crud /
decoding) → GeneratedUnit.

Declaration models are permissive input shapes.  Everything downstream of
the resolver is frozen: an ``EntitySchema`` is built once per entity and a
``GeneratedUnit`` never changes after it is returned.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from entitymap.catalog import ColumnType, DecodeFunction, lookup_column_type

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitymap.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class HostType(str, Enum):
    """Host-language value types the decode planner dispatches on directly."""

    INT = "int"
    STRING = "str"
    BOOLEAN = "bool"
    FLOAT = "float"
    LONG = "long"
    DOUBLE = "double"
    SHORT = "short"

    @classmethod
    def parse(cls, tag: Optional[str]) -> Optional["HostType"]:
        """Return the recognised host type for *tag*, or None."""
        if not tag:
            return None
        return _HOST_TYPE_ALIASES.get(tag.strip().lower())


_HOST_TYPE_ALIASES: Dict[str, HostType] = {
    "int": HostType.INT,
    "integer": HostType.INT,
    "str": HostType.STRING,
    "string": HostType.STRING,
    "text": HostType.STRING,
    "bool": HostType.BOOLEAN,
    "boolean": HostType.BOOLEAN,
    "float": HostType.FLOAT,
    "float32": HostType.FLOAT,
    "long": HostType.LONG,
    "int64": HostType.LONG,
    "double": HostType.DOUBLE,
    "float64": HostType.DOUBLE,
    "short": HostType.SHORT,
    "int16": HostType.SHORT,
}


class ReferentialAction(str, Enum):
    """Foreign-key ON DELETE / ON UPDATE behaviour."""

    NO_ACTION = "NO_ACTION"
    CASCADE = "CASCADE"
    SET_NULL = "SET_NULL"
    SET_DEFAULT = "SET_DEFAULT"
    RESTRICT = "RESTRICT"

    @property
    def sql(self) -> str:
        return self.value.replace("_", " ").upper()


class DefaultKind(str, Enum):
    """Tag of a declared column default."""

    INT = "int"
    STRING = "string"
    FLOAT = "float"
    DOUBLE = "double"
    LONG = "long"
    SHORT = "short"
    BOOL = "bool"
    NONE = "none"


class CrudOperation(str, Enum):
    """Statements synthesized for every entity."""

    INSERT = "insert"
    SELECT_BY_ID = "select_by_id"
    SELECT_SELF = "select_self"
    UPDATE = "update"
    DELETE_BY_ID = "delete_by_id"
    DELETE_SELF = "delete_self"


class BindSource(str, Enum):
    """Where the value bound to a placeholder comes from."""

    FIELD = "field"          # attribute of the entity instance passed in
    ID = "id"                # explicit id argument
    SUBJECT = "subject"      # primary key of the ambient current subject
    ARGUMENT = "argument"    # positional argument of a raw query


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    frozen=False,
    extra="forbid",
)

_FROZEN_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    frozen=True,
    extra="forbid",
)


def _normalise_enum_name(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper().replace(" ", "_")
    return value


# ---------------------------------------------------------------------------
# Field-level primitives
# ---------------------------------------------------------------------------

_INTEGRAL_KINDS = frozenset({DefaultKind.INT, DefaultKind.LONG, DefaultKind.SHORT})
_REAL_KINDS = frozenset({DefaultKind.FLOAT, DefaultKind.DOUBLE})


class DefaultValue(BaseModel):
    """Tagged default value; ``kind == NONE`` means no DEFAULT clause."""

    model_config = _FROZEN_CONFIG

    kind: DefaultKind = Field(default=DefaultKind.NONE, description="Value tag.")
    value: Any = Field(default=None, description="Literal value for the tag.")

    @field_validator("kind", mode="before")
    @classmethod
    def _lower_kind(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _value_matches_kind(self) -> "DefaultValue":
        kind: DefaultKind = self.kind
        v: Any = self.value
        if kind == DefaultKind.NONE:
            if v is not None:
                raise ValueError("Default of kind 'none' cannot carry a value.")
        elif kind in _INTEGRAL_KINDS:
            if isinstance(v, bool) or not isinstance(v, int):
                raise ValueError(f"Default of kind '{kind.value}' needs an integer, got {v!r}.")
        elif kind in _REAL_KINDS:
            if isinstance(v, bool) or not isinstance(v, (int, float)):
                raise ValueError(f"Default of kind '{kind.value}' needs a number, got {v!r}.")
        elif kind == DefaultKind.BOOL:
            if not isinstance(v, bool):
                raise ValueError(f"Default of kind 'bool' needs true/false, got {v!r}.")
        elif kind == DefaultKind.STRING:
            if not isinstance(v, str):
                raise ValueError(f"Default of kind 'string' needs a string, got {v!r}.")
        return self

    @property
    def is_present(self) -> bool:
        return self.kind != DefaultKind.NONE

    @classmethod
    def none(cls) -> "DefaultValue":
        return cls()


class ForeignKeyRef(BaseModel):
    """Reference from a field to a column of another table."""

    model_config = _FROZEN_CONFIG

    target_table: str = Field(..., min_length=1, description="Referenced table.")
    target_column: str = Field(..., min_length=1, description="Referenced column.")
    on_delete: ReferentialAction = Field(default=ReferentialAction.NO_ACTION)
    on_update: ReferentialAction = Field(default=ReferentialAction.NO_ACTION)

    @field_validator("on_delete", "on_update", mode="before")
    @classmethod
    def _normalise_action(cls, v: Any) -> Any:
        return _normalise_enum_name(v)

    def __repr__(self) -> str:
        return f"<FK → {self.target_table}.{self.target_column}>"


class RawFieldDecl(BaseModel):
    """
    One field exactly as declared, before any validation of the mapping.

    ``column_type`` may be absent here; the resolver reports that as a
    configuration error so the message names the field and entity.
    """

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Field / column name.")
    host_type: str = Field(default="object", description="Host-language type tag.")
    column_type: Optional[ColumnType] = Field(
        default=None, alias="type", description="SQL column type."
    )
    size: Optional[int] = Field(default=None, ge=0, description="Requested column size.")
    primary_key: bool = Field(default=False)
    unique: bool = Field(default=False)
    not_null: bool = Field(default=False)
    default: Optional[DefaultValue] = Field(default=None)
    foreign_key: Optional[ForeignKeyRef] = Field(default=None)

    @model_validator(mode="before")
    @classmethod
    def _split_sized_type(cls, data: Any) -> Any:
        # "VARCHAR(50)" is accepted as shorthand for type VARCHAR, size 50.
        if not isinstance(data, dict):
            return data
        key: Optional[str] = next(
            (k for k in ("type", "column_type") if k in data), None
        )
        if key is None or not isinstance(data[key], str):
            return data
        raw: str = data[key]
        out: Dict[str, Any] = dict(data)
        if "(" in raw and raw.rstrip().endswith(")"):
            size_text: str = raw[raw.index("(") + 1: raw.rindex(")")].strip()
            if not size_text.isdigit():
                raise ValueError(
                    f"Size suffix in '{raw}' must be a single whole number."
                )
            if out.get("size") is None:
                out["size"] = int(size_text)
        out[key] = lookup_column_type(raw)
        return out

    def __repr__(self) -> str:
        ctype: str = self.column_type.value if self.column_type else "?"
        return f"<RawField {self.name}: {self.host_type} {ctype}>"


# ---------------------------------------------------------------------------
# Normalized schema
# ---------------------------------------------------------------------------


class FieldDescriptor(BaseModel):
    """A validated field: column type resolved, size settled."""

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1)
    host_type: str = Field(default="object")
    column_type: ColumnType
    size: Optional[int] = Field(
        default=None, description="Effective size; None for non-sizeable types."
    )
    primary_key: bool = False
    unique: bool = False
    not_null: bool = False
    default: DefaultValue = Field(default_factory=DefaultValue.none)
    foreign_key: Optional[ForeignKeyRef] = None

    @property
    def sql_type(self) -> str:
        """SQL type including the size suffix, e.g. ``VARCHAR(50)``."""
        if self.size is not None:
            return f"{self.column_type.value}({self.size})"
        return self.column_type.value

    @property
    def recognised_host_type(self) -> Optional[HostType]:
        return HostType.parse(self.host_type)

    def __repr__(self) -> str:
        pk: str = " PK" if self.primary_key else ""
        return f"<Field {self.name} {self.sql_type}{pk}>"


class EntitySchema(BaseModel):
    """
    Normalized description of one entity.

    Field order is the declaration order and is load-bearing: it drives the
    DDL column order, positional binding and decoding.
    """

    model_config = _FROZEN_CONFIG

    entity_name: str = Field(..., min_length=1)
    table_name: str = Field(..., min_length=1)
    fields: Tuple[FieldDescriptor, ...] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _has_primary_key(self) -> "EntitySchema":
        if not any(f.primary_key for f in self.fields):
            raise ValueError(f"Entity '{self.entity_name}' has no primary key field.")
        return self

    @property
    def primary_key(self) -> FieldDescriptor:
        """The first field flagged as primary key."""
        return next(f for f in self.fields if f.primary_key)

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    @property
    def non_key_fields(self) -> List[FieldDescriptor]:
        pk_name: str = self.primary_key.name
        return [f for f in self.fields if f.name != pk_name]

    @property
    def foreign_key_fields(self) -> List[FieldDescriptor]:
        return [f for f in self.fields if f.foreign_key is not None]

    def get_field(self, name: str) -> Optional[FieldDescriptor]:
        return next((f for f in self.fields if f.name == name), None)

    def __repr__(self) -> str:
        return f"<EntitySchema {self.entity_name} → {self.table_name} ({len(self.fields)} fields)>"


# ---------------------------------------------------------------------------
# Ad hoc queries
# ---------------------------------------------------------------------------


class QueryParam(BaseModel):
    """Named bind parameter of a raw query."""

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1)
    host_type: str = Field(default="object")


class QuerySpec(BaseModel):
    """Caller-supplied SQL text with its parameters in binding order."""

    model_config = _FROZEN_CONFIG

    name: str = Field(..., description="Accessor name for the query.")
    sql: str = Field(..., description="Statement text, used verbatim.")
    params: Tuple[QueryParam, ...] = Field(default=())


# ---------------------------------------------------------------------------
# Generated artifacts
# ---------------------------------------------------------------------------


class BindParameter(BaseModel):
    """One placeholder of a statement and the value that fills it."""

    model_config = _FROZEN_CONFIG

    position: int = Field(..., ge=1, description="1-based placeholder index.")
    name: str = Field(..., min_length=1)
    source: BindSource
    host_type: str = Field(default="object")


class StatementTemplate(BaseModel):
    """Parameterized statement text plus its binding plan."""

    model_config = _FROZEN_CONFIG

    operation: str = Field(..., min_length=1)
    sql: str
    bind_order: Tuple[BindParameter, ...] = Field(default=())

    @computed_field  # type: ignore[misc]
    @property
    def parameter_count(self) -> int:
        return len(self.bind_order)

    @property
    def parameter_names(self) -> List[str]:
        return [p.name for p in self.bind_order]


class DecodeStep(BaseModel):
    """Extraction function chosen for one result column."""

    model_config = _FROZEN_CONFIG

    position: int = Field(..., ge=0, description="0-based column index.")
    column: str = Field(..., min_length=1)
    host_type: str = Field(default="object")
    sql_type: str
    decode_function: DecodeFunction
    opaque: bool = Field(
        default=False, description="True when no typed decoder covers the column."
    )

    def as_pair(self) -> Tuple[str, DecodeFunction]:
        return (self.column, self.decode_function)


class GeneratedUnit(BaseModel):
    """
    Everything generated for one entity.

    Immutable once returned; the emitter or runtime owns it from then on.
    """

    model_config = _FROZEN_CONFIG

    entity_name: str
    table_name: str
    primary_key: str
    ddl: str
    statements: Dict[CrudOperation, StatementTemplate]
    queries: Dict[str, StatementTemplate] = Field(default_factory=dict)
    decode_plan: Tuple[DecodeStep, ...]

    def statement(self, operation: CrudOperation) -> StatementTemplate:
        return self.statements[CrudOperation(operation)]

    def query(self, name: str) -> StatementTemplate:
        try:
            return self.queries[name]
        except KeyError:
            raise KeyError(
                f"Entity '{self.entity_name}' has no query named '{name}'. "
                f"Available: {sorted(self.queries)}"
            ) from None

    @property
    def decode_pairs(self) -> List[Tuple[str, DecodeFunction]]:
        return [step.as_pair() for step in self.decode_plan]

    def __repr__(self) -> str:
        return (
            f"<GeneratedUnit {self.entity_name} "
            f"({len(self.statements)} statements, {len(self.queries)} queries)>"
        )


# ---------------------------------------------------------------------------
# Declarations & configuration
# ---------------------------------------------------------------------------


class EntityDeclaration(BaseModel):
    """An entity as declared in an input document."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Entity name.")
    table: str = Field(default="", description="Table name override.")
    fields: List[RawFieldDecl] = Field(default_factory=list)
    queries: List[QuerySpec] = Field(default_factory=list)

    @field_validator("table", mode="before")
    @classmethod
    def _none_table_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class GenerationConfig(BaseModel):
    """Settings that control resolution and generation."""

    model_config = _SHARED_CONFIG

    reject_duplicate_primary_keys: bool = Field(
        default=True,
        description="Fail on more than one primary key instead of using the first.",
    )
    fail_on_opaque_decode: bool = Field(
        default=False,
        description="Fail instead of warning when a column has no typed decoder.",
    )
    continue_on_error: bool = Field(
        default=True,
        description=(
            "Keep generating other entities after one fails. "
            "Only honoured with a single worker."
        ),
    )
    parallel_workers: int = Field(
        default=1, ge=1, le=64, description="Worker threads for batch generation."
    )
    model_suffix: str = Field(
        default="DatabaseModel",
        pattern=r"^[A-Za-z_][A-Za-z0-9_]*$",
        description="Suffix of rendered accessor class names.",
    )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "BindParameter",
    "BindSource",
    "CrudOperation",
    "DecodeStep",
    "DefaultKind",
    "DefaultValue",
    "EntityDeclaration",
    "EntitySchema",
    "FieldDescriptor",
    "ForeignKeyRef",
    "GeneratedUnit",
    "GenerationConfig",
    "HostType",
    "QueryParam",
    "QuerySpec",
    "RawFieldDecl",
    "ReferentialAction",
    "StatementTemplate",
]

logger.debug("entitymap.models loaded: %d public symbols.", len(__all__))
