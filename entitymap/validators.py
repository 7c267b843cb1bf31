# File: entitymap/validators.py
"""
EntityMap - Cross-Entity Validators
====================================
The resolver rejects anything that makes a single entity impossible to
map.  This module adds the checks that need the whole batch or that only
deserve a warning: identifier hygiene, duplicate table names, foreign keys
pointing at unknown tables or columns, and untyped decode fallbacks.

Usage::

    from entitymap.validators import validate_full
    result = validate_full(schemas)
    if not result:
        print(result.format_report())
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Set

from entitymap.decoding import choose_decode_function
from entitymap.models import EntitySchema

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitymap.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationIssue:
    """Lightweight issue descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning" | "info"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class ValidationResult:
    """Accumulates ``ValidationIssue`` instances produced by the checks."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationIssue] = []

    def add_error(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._items.append(ValidationIssue("error", code, message, context))

    def add_warning(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._items.append(ValidationIssue("warning", code, message, context))

    def add_info(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._items.append(ValidationIssue("info", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [e for e in self._items if e.is_warning]

    @property
    def all_items(self) -> List[ValidationIssue]:
        return list(self._items)

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def codes(self) -> List[str]:
        return [e.code for e in self._items]

    def summary(self) -> str:
        return (
            f"Validation: {len(self.errors)} error(s), "
            f"{len(self.warnings)} warning(s), "
            f"{len(self._items)} total item(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self, include_info: bool = False) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            if not include_info and item.level == "info":
                continue
            prefix: str = {"error": "✗", "warning": "⚠", "info": "ℹ"}.get(item.level, "•")
            lines.append(f"  {prefix} [{item.code}] {item.message}")
            for k, v in item.context.items():
                lines.append(f"       {k}: {v}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Patterns & word lists
# ---------------------------------------------------------------------------

_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Generated statements quote identifiers; hand-written queries must quote these too.
_SQL_RESERVED_WORDS: FrozenSet[str] = frozenset(
    {
        "select", "insert", "update", "delete", "drop", "create", "alter",
        "table", "column", "index", "from", "where", "join", "inner",
        "outer", "left", "right", "on", "and", "or", "not", "null",
        "true", "false", "in", "between", "like", "is", "as", "order",
        "by", "group", "having", "limit", "offset", "union", "all",
        "distinct", "case", "when", "then", "else", "end", "exists",
        "primary", "foreign", "key", "references", "constraint", "check",
        "default", "unique", "cascade", "set", "values", "into",
        "grant", "revoke", "user", "database", "trigger", "procedure",
        "function", "view", "with", "range", "read", "write", "condition",
    }
)


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def validate_table_names(schemas: Sequence[EntitySchema]) -> ValidationResult:
    """Identifier format, reserved words and duplicates across the batch."""
    result: ValidationResult = ValidationResult()
    owners: Dict[str, str] = {}

    for schema in schemas:
        name: str = schema.table_name
        ctx: Dict[str, Any] = {"entity": schema.entity_name, "table": name}

        if name in owners:
            result.add_error(
                "DUPLICATE_TABLE_NAME",
                f"Table '{name}' is mapped by both '{owners[name]}' and '{schema.entity_name}'.",
                ctx,
            )
        owners.setdefault(name, schema.entity_name)

        if not _IDENTIFIER_RE.match(name):
            result.add_error(
                "INVALID_TABLE_NAME",
                f"Table name '{name}' is not a valid identifier.",
                ctx,
            )
            continue

        if name.lower() in _SQL_RESERVED_WORDS:
            result.add_warning(
                "TABLE_NAME_SQL_RESERVED",
                f"Table name '{name}' is a SQL reserved word.",
                ctx,
            )

    logger.debug("validate_table_names: %d table(s), %d issue(s).", len(schemas), len(result))
    return result


def validate_field_names(schemas: Sequence[EntitySchema]) -> ValidationResult:
    result: ValidationResult = ValidationResult()

    for schema in schemas:
        for field in schema.fields:
            ctx: Dict[str, Any] = {"entity": schema.entity_name, "field": field.name}
            if not _IDENTIFIER_RE.match(field.name):
                result.add_error(
                    "INVALID_FIELD_NAME",
                    f"Field '{field.name}' of '{schema.entity_name}' is not a valid identifier.",
                    ctx,
                )
                continue
            if field.name.lower() in _SQL_RESERVED_WORDS:
                result.add_warning(
                    "FIELD_NAME_SQL_RESERVED",
                    f"Field '{field.name}' of '{schema.entity_name}' is a SQL reserved word.",
                    ctx,
                )

    logger.debug("validate_field_names: %d issue(s).", len(result))
    return result


def validate_foreign_keys(schemas: Sequence[EntitySchema]) -> ValidationResult:
    """
    Foreign keys are checked only against tables of the same batch.

    A target outside the batch is reported as info: it may already exist in
    the store.  A target inside the batch must have the referenced column.
    """
    result: ValidationResult = ValidationResult()
    columns_by_table: Dict[str, Set[str]] = {
        s.table_name: set(s.field_names) for s in schemas
    }

    for schema in schemas:
        for field in schema.foreign_key_fields:
            ref = field.foreign_key
            assert ref is not None
            ctx: Dict[str, Any] = {
                "entity": schema.entity_name,
                "field": field.name,
                "target": f"{ref.target_table}.{ref.target_column}",
            }
            target_columns: Optional[Set[str]] = columns_by_table.get(ref.target_table)
            if target_columns is None:
                result.add_info(
                    "FK_TARGET_EXTERNAL",
                    f"'{schema.entity_name}.{field.name}' references table "
                    f"'{ref.target_table}' which is not part of this batch.",
                    ctx,
                )
            elif ref.target_column not in target_columns:
                result.add_error(
                    "FK_TARGET_COLUMN_MISSING",
                    f"'{schema.entity_name}.{field.name}' references "
                    f"'{ref.target_table}.{ref.target_column}' which does not exist.",
                    ctx,
                )

    return result


def validate_decode_coverage(schemas: Sequence[EntitySchema]) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    for schema in schemas:
        for field in schema.fields:
            _, opaque = choose_decode_function(field)
            if opaque:
                result.add_warning(
                    "OPAQUE_DECODE",
                    f"Field '{field.name}' of '{schema.entity_name}' ({field.sql_type}) "
                    f"is decoded as an untyped value.",
                    {"entity": schema.entity_name, "field": field.name},
                )
    return result


def validate_full(schemas: Sequence[EntitySchema]) -> ValidationResult:
    """Run every check and merge the results."""
    result: ValidationResult = ValidationResult()
    for check in (
        validate_table_names,
        validate_field_names,
        validate_foreign_keys,
        validate_decode_coverage,
    ):
        result.merge(check(schemas))
    logger.info(result.summary())
    return result


__all__: List[str] = [
    "ValidationIssue",
    "ValidationResult",
    "validate_decode_coverage",
    "validate_field_names",
    "validate_foreign_keys",
    "validate_full",
    "validate_table_names",
]
