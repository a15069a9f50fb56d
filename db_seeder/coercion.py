"""
Type coercion at the SQL boundary.

Generated values are generic (str, int, float, bool, None). Before binding,
each value is converted according to the destination column's declared
PostgreSQL type, not according to what the generator happened to produce.
Text-like values bound for uuid/date/timestamp columns carry an explicit cast
so PostgreSQL performs the final parse.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from psycopg.types.json import Jsonb

from db_seeder.exceptions import CoercionError, NullValueError, UnsupportedColumnTypeError
from db_seeder.models import ColumnInfo, GeneratedEntity, TableInfo

INTEGER_TYPES = frozenset({"integer", "bigint", "smallint", "int2", "int4", "int8"})
BOOLEAN_TYPES = frozenset({"boolean", "bool"})
TEXT_TYPES = frozenset({"text", "character varying", "varchar", "character", "char", "bpchar"})
JSON_TYPES = frozenset({"json", "jsonb"})

# pg_type -> cast applied to the placeholder
CASTS = {
    "uuid": "uuid",
    "date": "date",
    "timestamp without time zone": "timestamp",
    "timestamp": "timestamp",
    "timestamp with time zone": "timestamptz",
    "timestamptz": "timestamptz",
}

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

PK_TEXT_TYPES = TEXT_TYPES | {"uuid"}
PK_INT_TYPES = frozenset({"integer", "smallint", "bigint", "int2", "int4", "int8"})


@dataclass(frozen=True)
class CoercionPolicy:
    """
    Fallbacks for values that cannot be interpreted as the column's type.

    Attributes:
        integer_fallback: Value bound when an integer column receives something unparsable
        boolean_fallback: Value bound when a boolean column receives something unparsable
        strict: Raise CoercionError instead of using the fallbacks
    """

    integer_fallback: int = 0
    boolean_fallback: bool = False
    strict: bool = False


DEFAULT_POLICY = CoercionPolicy()


@dataclass(frozen=True)
class BoundValue:
    """A column value ready for binding, with its optional placeholder cast."""

    column: str
    value: Any
    cast: str | None = None

    @property
    def placeholder(self) -> str:
        if self.cast:
            return f"%s::{self.cast}"
        return "%s"


def to_int(value: Any, column: ColumnInfo, policy: CoercionPolicy = DEFAULT_POLICY) -> int:
    """Coerce to a 64-bit integer."""
    result: int | None = None
    if isinstance(value, bool):
        result = 1 if value else 0
    elif isinstance(value, int):
        result = value
    elif isinstance(value, float) and value.is_integer():
        result = int(value)
    elif isinstance(value, str):
        try:
            result = int(value.strip())
        except ValueError:
            result = None

    if result is not None and INT64_MIN <= result <= INT64_MAX:
        return result
    if policy.strict:
        raise CoercionError(column.name, column.pg_type, value)
    return policy.integer_fallback


def to_bool(value: Any, column: ColumnInfo, policy: CoercionPolicy = DEFAULT_POLICY) -> bool:
    """Coerce to a boolean: bools, nonzero ints, and the strings 'true'/'1'."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "1"):
            return True
        if text in ("false", "0"):
            return False
    if policy.strict:
        raise CoercionError(column.name, column.pg_type, value)
    return policy.boolean_fallback


def to_text(value: Any) -> str:
    """Render a value as text for textual, uuid and temporal columns."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value)


def coerce_value(
    table: TableInfo,
    column_name: str,
    value: Any,
    policy: CoercionPolicy = DEFAULT_POLICY,
) -> BoundValue | None:
    """
    Convert one generated value for its destination column.

    Args:
        table: Destination table metadata
        column_name: Destination column
        value: Generated value
        policy: Fallbacks for unparsable integers/booleans

    Returns:
        BoundValue to bind, or None when the column should be left out of the
        INSERT so its database default applies

    Raises:
        NullValueError: If value is None for a NOT NULL column without default
        CoercionError: If the policy is strict and the value is unparsable
    """
    column = table.get_column(column_name)
    if column is None:
        # Unknown column: let the database report it
        return BoundValue(column_name, value)

    if value is None:
        if column.is_nullable:
            return BoundValue(column_name, None, CASTS.get(column.pg_type))
        if column.has_default:
            return None
        raise NullValueError(column_name, table.name)

    pg_type = column.pg_type
    if pg_type in INTEGER_TYPES:
        return BoundValue(column_name, to_int(value, column, policy))
    if pg_type in BOOLEAN_TYPES:
        return BoundValue(column_name, to_bool(value, column, policy))
    if pg_type in TEXT_TYPES:
        return BoundValue(column_name, to_text(value))
    if pg_type in CASTS:
        return BoundValue(column_name, to_text(value), CASTS[pg_type])
    if pg_type in JSON_TYPES:
        return BoundValue(column_name, Jsonb(value))
    return BoundValue(column_name, value)


def bind_row(
    table: TableInfo,
    row: GeneratedEntity,
    policy: CoercionPolicy = DEFAULT_POLICY,
) -> list[BoundValue]:
    """Coerce a whole generated row, in the row's column order."""
    bound = []
    for column_name, value in row.items():
        item = coerce_value(table, column_name, value, policy)
        if item is not None:
            bound.append(item)
    return bound


def primary_key_reader(table: TableInfo) -> Callable[[Any], Any] | None:
    """
    Get the converter for values returned by INSERT ... RETURNING <pk>.

    Returns:
        Converter callable, or None if the table has no single-column PK

    Raises:
        UnsupportedColumnTypeError: If the PK type has no read-back rule
    """
    if table.primary_key_column is None:
        return None

    column = table.pk_column
    if column is None:
        raise UnsupportedColumnTypeError(table.primary_key_column, "unknown", table.name)

    if column.pg_type in PK_TEXT_TYPES:
        return str
    if column.pg_type in PK_INT_TYPES:
        return int
    raise UnsupportedColumnTypeError(column.name, column.pg_type, table.name)

