# File: entitymap/errors.py
"""
EntityMap - Error Taxonomy
===========================
Configuration errors are raised while resolving a single entity and halt
generation for that entity only.  Each error carries a stable ``code``
(used in reports and CLI output), the entity it belongs to and a small
structured ``context`` mapping.

Execution errors raised by the database driver are *not* wrapped here;
they propagate unchanged to the caller of the generated accessors.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class EntityMapError(Exception):
    """Base class for every error raised by the engine."""

    code: str = "ENTITYMAP_ERROR"

    def __init__(
        self,
        message: str,
        *,
        entity: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.entity: Optional[str] = entity
        self.context: Dict[str, Any] = context or {}
        self.message: str = message
        full_message: str = f"[{entity}] {message}" if entity else message
        super().__init__(full_message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "entity": self.entity,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationError(EntityMapError, ValueError):
    """A declaration that cannot be turned into SQL."""

    code = "CONFIGURATION_ERROR"


class MissingColumnType(ConfigurationError):
    """Raised when a field declares no column type."""

    code = "MISSING_COLUMN_TYPE"

    def __init__(self, field_name: str, *, entity: Optional[str] = None) -> None:
        self.field_name: str = field_name
        super().__init__(
            f"Field '{field_name}' must declare a column type.",
            entity=entity,
            context={"field": field_name},
        )


class SizeExceeded(ConfigurationError):
    """Raised when a sizeable column asks for more than its type allows."""

    code = "SIZE_EXCEEDED"

    def __init__(
        self,
        field_name: str,
        requested: int,
        maximum: int,
        *,
        entity: Optional[str] = None,
    ) -> None:
        self.field_name: str = field_name
        self.requested: int = requested
        self.maximum: int = maximum
        super().__init__(
            f"Field '{field_name}' size must be {maximum} or lower. "
            f"Current size ({requested}).",
            entity=entity,
            context={"field": field_name, "requested": requested, "max": maximum},
        )


class NoPrimaryKey(ConfigurationError):
    """Raised when no field is flagged as primary key."""

    code = "NO_PRIMARY_KEY"

    def __init__(self, entity_name: str) -> None:
        super().__init__(
            f"No field flagged as primary key found in {entity_name}.",
            entity=entity_name,
        )


class MultiplePrimaryKeys(ConfigurationError):
    """Raised when more than one field is flagged as primary key."""

    code = "MULTIPLE_PRIMARY_KEYS"

    def __init__(self, entity_name: str, field_names: List[str]) -> None:
        self.field_names: List[str] = list(field_names)
        super().__init__(
            f"Exactly one primary key is allowed, found {len(field_names)}: "
            f"{', '.join(field_names)}.",
            entity=entity_name,
            context={"fields": list(field_names)},
        )


class InvalidElement(ConfigurationError):
    """Raised when a declaration element is not of the kind required."""

    code = "INVALID_ELEMENT"


class OpaqueDecodeError(ConfigurationError):
    """Raised for untyped decode fallbacks when the config forbids them."""

    code = "OPAQUE_DECODE"

    def __init__(
        self,
        field_name: str,
        sql_type: str,
        *,
        entity: Optional[str] = None,
    ) -> None:
        self.field_name: str = field_name
        self.sql_type: str = sql_type
        super().__init__(
            f"Field '{field_name}' of SQL type {sql_type} has no typed decoder.",
            entity=entity,
            context={"field": field_name, "sql_type": sql_type},
        )


__all__: List[str] = [
    "ConfigurationError",
    "EntityMapError",
    "InvalidElement",
    "MissingColumnType",
    "MultiplePrimaryKeys",
    "NoPrimaryKey",
    "OpaqueDecodeError",
    "SizeExceeded",
]
