# File: entitymap/catalog.py
"""
EntityMap - Column Type Catalog
================================
The closed SQL type vocabulary understood by the mapping engine.

Every ``ColumnType`` member knows:

- its SQL type name (the enum value itself),
- whether it accepts a ``(size)`` suffix, the largest size allowed and the
  size used when a field declares none,
- the decode function used when a field's host type is not recognised
  (the *fallback* dispatch of the decode planner).

The catalog is built once at import time and never mutated, so it is safe
to share between worker threads processing different entities.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitymap.catalog")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DecodeFunction(str, Enum):
    """Identifiers of the typed extraction functions applied to result columns."""

    GET_INT = "get_int"
    GET_STRING = "get_string"
    GET_BOOLEAN = "get_boolean"
    GET_FLOAT = "get_float"
    GET_LONG = "get_long"
    GET_DOUBLE = "get_double"
    GET_SHORT = "get_short"
    GET_TIMESTAMP = "get_timestamp"
    GET_OBJECT = "get_object"


class ColumnType(str, Enum):
    """SQL column types of the fixed dialect."""

    # Numeric
    TINYINT = "TINYINT"
    SMALLINT = "SMALLINT"
    MEDIUMINT = "MEDIUMINT"
    INT = "INT"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    DECIMAL = "DECIMAL"
    BOOL = "BOOL"
    BOOLEAN = "BOOLEAN"
    BIT = "BIT"

    # String / Binary
    CHAR = "CHAR"
    VARCHAR = "VARCHAR"
    TINYTEXT = "TINYTEXT"
    TEXT = "TEXT"
    MEDIUMTEXT = "MEDIUMTEXT"
    LONGTEXT = "LONGTEXT"
    BINARY = "BINARY"
    VARBINARY = "VARBINARY"
    BLOB = "BLOB"

    # Date / Time
    DATE = "DATE"
    DATETIME = "DATETIME"
    TIME = "TIME"
    TIMESTAMP = "TIMESTAMP"
    YEAR = "YEAR"

    # Special
    JSON = "JSON"

    @property
    def info(self) -> "ColumnTypeInfo":
        return _CATALOG[self]

    @property
    def sql_name(self) -> str:
        return self.value

    @property
    def is_sizeable(self) -> bool:
        return _CATALOG[self].is_sizeable

    @property
    def max_size(self) -> int:
        return _CATALOG[self].max_size

    @property
    def default_size(self) -> int:
        return _CATALOG[self].default_size

    @property
    def decode_function(self) -> Optional[DecodeFunction]:
        return _CATALOG[self].decode_function


# ---------------------------------------------------------------------------
# Catalog entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ColumnTypeInfo:
    """Sizing rule and fallback decoder of one SQL type."""

    sql_name: str
    is_sizeable: bool = False
    max_size: int = 0
    default_size: int = 0
    decode_function: Optional[DecodeFunction] = None


def _fixed(name: str, decode: Optional[DecodeFunction] = None) -> ColumnTypeInfo:
    return ColumnTypeInfo(sql_name=name, decode_function=decode)


def _sized(
    name: str,
    max_size: int,
    default_size: int,
    decode: Optional[DecodeFunction] = None,
) -> ColumnTypeInfo:
    return ColumnTypeInfo(
        sql_name=name,
        is_sizeable=True,
        max_size=max_size,
        default_size=default_size,
        decode_function=decode,
    )


# Types absent from the decode column fall back to GET_OBJECT in the planner.
_CATALOG: Mapping[ColumnType, ColumnTypeInfo] = MappingProxyType({
    ColumnType.TINYINT: _fixed("TINYINT", DecodeFunction.GET_BOOLEAN),
    ColumnType.SMALLINT: _fixed("SMALLINT", DecodeFunction.GET_SHORT),
    ColumnType.MEDIUMINT: _fixed("MEDIUMINT", DecodeFunction.GET_INT),
    ColumnType.INT: _fixed("INT", DecodeFunction.GET_INT),
    ColumnType.INTEGER: _fixed("INTEGER", DecodeFunction.GET_INT),
    ColumnType.BIGINT: _fixed("BIGINT", DecodeFunction.GET_LONG),
    ColumnType.FLOAT: _fixed("FLOAT", DecodeFunction.GET_FLOAT),
    ColumnType.DOUBLE: _fixed("DOUBLE", DecodeFunction.GET_DOUBLE),
    ColumnType.DECIMAL: _sized("DECIMAL", 65, 10, DecodeFunction.GET_DOUBLE),
    ColumnType.BOOL: _fixed("BOOL", DecodeFunction.GET_BOOLEAN),
    ColumnType.BOOLEAN: _fixed("BOOLEAN", DecodeFunction.GET_BOOLEAN),
    ColumnType.BIT: _sized("BIT", 64, 1),
    ColumnType.CHAR: _sized("CHAR", 255, 1, DecodeFunction.GET_STRING),
    ColumnType.VARCHAR: _sized("VARCHAR", 65535, 255, DecodeFunction.GET_STRING),
    ColumnType.TINYTEXT: _fixed("TINYTEXT", DecodeFunction.GET_STRING),
    ColumnType.TEXT: _fixed("TEXT", DecodeFunction.GET_STRING),
    ColumnType.MEDIUMTEXT: _fixed("MEDIUMTEXT", DecodeFunction.GET_STRING),
    ColumnType.LONGTEXT: _fixed("LONGTEXT", DecodeFunction.GET_STRING),
    ColumnType.BINARY: _sized("BINARY", 255, 1),
    ColumnType.VARBINARY: _sized("VARBINARY", 65535, 255),
    ColumnType.BLOB: _fixed("BLOB"),
    ColumnType.DATE: _fixed("DATE"),
    ColumnType.DATETIME: _fixed("DATETIME", DecodeFunction.GET_TIMESTAMP),
    ColumnType.TIME: _fixed("TIME"),
    ColumnType.TIMESTAMP: _fixed("TIMESTAMP", DecodeFunction.GET_TIMESTAMP),
    ColumnType.YEAR: _fixed("YEAR", DecodeFunction.GET_INT),
    ColumnType.JSON: _fixed("JSON", DecodeFunction.GET_STRING),
})

_SIZE_SUFFIX_RE: re.Pattern[str] = re.compile(r"\s*\(.*\)\s*$")


# ---------------------------------------------------------------------------
# Lookup helpers
# ---------------------------------------------------------------------------


def strip_size_suffix(sql_type: str) -> str:
    """``"VARCHAR(50)"`` -> ``"VARCHAR"``."""
    return _SIZE_SUFFIX_RE.sub("", sql_type).strip()


def lookup_column_type(name: str) -> ColumnType:
    """
    Resolve a column type from its SQL name.

    Matching is case-insensitive and ignores a trailing size suffix.

    Raises:
        ValueError: If the name is not part of the catalog.
    """
    key: str = strip_size_suffix(name).upper()
    try:
        return ColumnType(key)
    except ValueError:
        raise ValueError(
            f"Unknown column type '{name}'. "
            f"Known types: {', '.join(t.value for t in ColumnType)}"
        ) from None


def sizeable_types() -> List[ColumnType]:
    return [t for t in ColumnType if t.is_sizeable]


def catalog_table() -> Dict[str, ColumnTypeInfo]:
    """Snapshot of the catalog keyed by SQL type name."""
    return {t.value: info for t, info in _CATALOG.items()}


__all__: List[str] = [
    "ColumnType",
    "ColumnTypeInfo",
    "DecodeFunction",
    "catalog_table",
    "lookup_column_type",
    "sizeable_types",
    "strip_size_suffix",
]

logger.debug("entitymap.catalog loaded: %d column types.", len(_CATALOG))
