# File: entitymap/__init__.py
"""
EntityMap - Entity-to-Relational Mapping Generator
====================================================

Turns a declarative description of an entity (named fields, each with a
column type, size, key flags, default and optional foreign key) into the
artifacts needed to persist it:

    - a ``CREATE TABLE`` statement;
    - positional-parameter CRUD statements with their binding plans;
    - a decode plan that rebuilds an entity from a result row.

Architecture overview::

    ┌──────────────┐     ┌─────────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│ EntityGenerator │────▶│    templates     │
    │   (cli.py)   │     │ (generator.py)  │     │ (render module)  │
    └──────────────┘     └────────┬────────┘     └──────────────────┘
                                  │
              ┌──────────┬────────┼─────────┬────────────┐
              ▼          ▼        ▼         ▼            ▼
         ┌────────┐ ┌────────┐ ┌──────┐ ┌────────┐ ┌──────────┐
         │resolver│ │  ddl   │ │ crud │ │decoding│ │validators│
         └────────┘ └────────┘ └──────┘ └────────┘ └──────────┘

Usage::

    from entitymap import EntityGenerator, SQLAlchemyConnectionProvider, EntityDataAccess
    report = EntityGenerator().generate_all(declarations)
    access = EntityDataAccess(report.units["User"], SQLAlchemyConnectionProvider(url), User)

    # From the command line
    python -m entitymap --schema entities.yaml --output ./generated
"""

from __future__ import annotations

__version__: str = "0.1.0"
__license__: str = "MIT"

from entitymap.catalog import ColumnType, DecodeFunction, lookup_column_type
from entitymap.errors import (
    ConfigurationError,
    EntityMapError,
    InvalidElement,
    MissingColumnType,
    MultiplePrimaryKeys,
    NoPrimaryKey,
    OpaqueDecodeError,
    SizeExceeded,
)
from entitymap.models import (
    CrudOperation,
    DefaultValue,
    EntityDeclaration,
    EntitySchema,
    FieldDescriptor,
    ForeignKeyRef,
    GeneratedUnit,
    GenerationConfig,
    QuerySpec,
    RawFieldDecl,
    ReferentialAction,
    StatementTemplate,
)
from entitymap.resolver import resolve
from entitymap.ddl import synthesize_create_table
from entitymap.crud import synthesize_crud, synthesize_raw_query
from entitymap.decoding import decode_row, plan_decode
from entitymap.validators import ValidationResult, validate_full
from entitymap.generator import EntityGenerator, GenerationReport, generate_unit
from entitymap.runtime import EntityDataAccess, SQLAlchemyConnectionProvider
from entitymap.templates import render_module, render_sql_script

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    "__version__",
    "__license__",
    # Orchestration
    "EntityGenerator",
    "GenerationReport",
    "generate_unit",
    # Phases
    "resolve",
    "synthesize_create_table",
    "synthesize_crud",
    "synthesize_raw_query",
    "plan_decode",
    "decode_row",
    # Catalog
    "ColumnType",
    "DecodeFunction",
    "lookup_column_type",
    # Models
    "CrudOperation",
    "DefaultValue",
    "EntityDeclaration",
    "EntitySchema",
    "FieldDescriptor",
    "ForeignKeyRef",
    "GeneratedUnit",
    "GenerationConfig",
    "QuerySpec",
    "RawFieldDecl",
    "ReferentialAction",
    "StatementTemplate",
    # Errors
    "ConfigurationError",
    "EntityMapError",
    "InvalidElement",
    "MissingColumnType",
    "MultiplePrimaryKeys",
    "NoPrimaryKey",
    "OpaqueDecodeError",
    "SizeExceeded",
    # Validation
    "ValidationResult",
    "validate_full",
    # Runtime
    "EntityDataAccess",
    "SQLAlchemyConnectionProvider",
    # Rendering
    "render_module",
    "render_sql_script",
]
