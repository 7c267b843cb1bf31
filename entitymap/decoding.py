# File: entitymap/decoding.py
"""
EntityMap - Result Decode Planner
==================================
Chooses, per field, the typed extraction function applied to the matching
result column, and provides those functions.

Dispatch order:

1. the field's host type, when it is one of the recognised ``HostType``
   members;
2. the field's SQL type (size suffix stripped) through the catalog's
   fallback table;
3. ``GET_OBJECT``, which returns the driver value untouched.  Such steps
   are flagged ``opaque`` and logged as warnings, or rejected when the
   configuration asks for it.

The plan follows declaration order exactly: decoded values are bound
positionally into the entity constructor.

All decoders map SQL NULL (``None``) to ``None``.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from entitymap.catalog import ColumnType, DecodeFunction, lookup_column_type, strip_size_suffix
from entitymap.errors import OpaqueDecodeError
from entitymap.models import DecodeStep, FieldDescriptor, HostType

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitymap.decoding")

_HOST_DISPATCH: Dict[HostType, DecodeFunction] = {
    HostType.INT: DecodeFunction.GET_INT,
    HostType.STRING: DecodeFunction.GET_STRING,
    HostType.BOOLEAN: DecodeFunction.GET_BOOLEAN,
    HostType.FLOAT: DecodeFunction.GET_FLOAT,
    HostType.LONG: DecodeFunction.GET_LONG,
    HostType.DOUBLE: DecodeFunction.GET_DOUBLE,
    HostType.SHORT: DecodeFunction.GET_SHORT,
}

_SHORT_MIN: int = -(2 ** 15)
_SHORT_MAX: int = 2 ** 15 - 1
_FALSE_STRINGS = frozenset({"0", "false", "f", "no", "n", "off", ""})


# ---------------------------------------------------------------------------
# Decoders
# ---------------------------------------------------------------------------


def get_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(value)


def get_long(value: Any) -> Optional[int]:
    return get_int(value)


def get_short(value: Any) -> Optional[int]:
    result: Optional[int] = get_int(value)
    if result is not None and not _SHORT_MIN <= result <= _SHORT_MAX:
        raise ValueError(f"Value {result} does not fit a 16-bit integer.")
    return result


def get_string(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8")
    return str(value)


def get_boolean(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    if isinstance(value, (bytes, bytearray)):
        # BIT(1) columns come back as a single byte.
        return any(value)
    return bool(value)


def get_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def get_double(value: Any) -> Optional[float]:
    if isinstance(value, Decimal):
        return float(value)
    return get_float(value)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def get_timestamp(value: Any) -> Optional[datetime]:
    """
    Decode a timestamp column to a naive datetime.

    Naive values are returned as stored.  Aware values and epoch numbers are
    converted to UTC and lose their tzinfo, so every result compares with
    every other.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        return _naive_utc(datetime.fromtimestamp(value, tz=timezone.utc))
    return _naive_utc(datetime.fromisoformat(str(value)))


def get_object(value: Any) -> Any:
    return value


DECODERS: Mapping[DecodeFunction, Callable[[Any], Any]] = {
    DecodeFunction.GET_INT: get_int,
    DecodeFunction.GET_STRING: get_string,
    DecodeFunction.GET_BOOLEAN: get_boolean,
    DecodeFunction.GET_FLOAT: get_float,
    DecodeFunction.GET_LONG: get_long,
    DecodeFunction.GET_DOUBLE: get_double,
    DecodeFunction.GET_SHORT: get_short,
    DecodeFunction.GET_TIMESTAMP: get_timestamp,
    DecodeFunction.GET_OBJECT: get_object,
}


def decoder_for(function: DecodeFunction) -> Callable[[Any], Any]:
    return DECODERS[DecodeFunction(function)]


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def decode_function_for_sql_type(sql_type: str) -> Optional[DecodeFunction]:
    """Fallback lookup by SQL type; None when the type has no typed decoder."""
    try:
        column_type: ColumnType = lookup_column_type(strip_size_suffix(sql_type))
    except ValueError:
        return None
    return column_type.decode_function


def choose_decode_function(field: FieldDescriptor) -> Tuple[DecodeFunction, bool]:
    """Return ``(function, opaque)`` for one field."""
    host: Optional[HostType] = field.recognised_host_type
    if host is not None:
        return _HOST_DISPATCH[host], False
    by_sql: Optional[DecodeFunction] = decode_function_for_sql_type(field.sql_type)
    if by_sql is not None:
        return by_sql, False
    return DecodeFunction.GET_OBJECT, True


def plan_decode(
    fields: Sequence[FieldDescriptor],
    *,
    entity: str = "",
    fail_on_opaque: bool = False,
) -> List[DecodeStep]:
    """
    Build the decode plan for *fields*, in their declared order.

    Raises:
        OpaqueDecodeError: When *fail_on_opaque* is set and a field has no
            typed decoder.
    """
    steps: List[DecodeStep] = []
    for position, field in enumerate(fields):
        function, opaque = choose_decode_function(field)
        if opaque:
            if fail_on_opaque:
                raise OpaqueDecodeError(field.name, field.sql_type, entity=entity or None)
            logger.warning(
                "[%s] Field '%s' (%s, host type '%s') has no typed decoder; "
                "values are passed through as returned by the driver.",
                entity or "?",
                field.name,
                field.sql_type,
                field.host_type,
            )
        steps.append(
            DecodeStep(
                position=position,
                column=field.name,
                host_type=field.host_type,
                sql_type=field.sql_type,
                decode_function=function,
                opaque=opaque,
            )
        )
    return steps


# ---------------------------------------------------------------------------
# Row decoding
# ---------------------------------------------------------------------------


def _row_value(row: Any, step: DecodeStep) -> Any:
    mapping: Optional[Mapping[str, Any]] = getattr(row, "_mapping", None)
    if mapping is None and isinstance(row, Mapping):
        mapping = row
    if mapping is not None and step.column in mapping:
        return mapping[step.column]
    return row[step.position]


def decode_row(plan: Sequence[DecodeStep], row: Any) -> List[Any]:
    """
    Apply *plan* to one result row.

    Rows may be mappings or SQLAlchemy ``Row`` objects (looked up by column
    name) or plain sequences (looked up by position).
    """
    return [decoder_for(step.decode_function)(_row_value(row, step)) for step in plan]


def decode_row_dict(plan: Sequence[DecodeStep], row: Any) -> Dict[str, Any]:
    values: List[Any] = decode_row(plan, row)
    return {step.column: value for step, value in zip(plan, values)}


__all__: List[str] = [
    "DECODERS",
    "choose_decode_function",
    "decode_function_for_sql_type",
    "decode_row",
    "decode_row_dict",
    "decoder_for",
    "get_boolean",
    "get_double",
    "get_float",
    "get_int",
    "get_long",
    "get_object",
    "get_short",
    "get_string",
    "get_timestamp",
    "plan_decode",
]
