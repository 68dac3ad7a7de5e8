"""Attribute value validation and conversion.

Attribute values arrive as text (or None) and are checked against the
declared SQL type of their target column before anything is written.
Validation and conversion are separate steps: validate_value() raises on
values the column cannot hold, convert_value() turns an accepted value
into the Python value bound to the SQLite statement.

Type names are matched case-insensitively after trimming whitespace:

- INTEGER, INT: 64-bit signed integer with an optional sign.
- REAL, FLOAT, DOUBLE: 64-bit float; decimal point, exponent and
  thousands separators are accepted.
- TEXT, VARCHAR, CHAR: any text.
- BLOB: rejected, binary data cannot be supplied as text.
- anything else: accepted with a warning and stored as text.

Numbers are parsed independently of the process locale.

Example:
    Validate and convert a population value:
        >>> column = ColumnInfo("population", "INTEGER")
        >>> validate_value(column, "975551", 1)
        >>> convert_value(column, "975551")
        975551
"""

from __future__ import annotations

import enum
import math
import re
from typing import TYPE_CHECKING

from gpkg_helper.core import exceptions
from gpkg_helper.core import notifications

if TYPE_CHECKING:
    from gpkg_helper.db import models as db_models

SqlValue = int | float | str | None

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_INTEGER_RE = re.compile(r"\s*[+-]?[0-9]+\s*", re.ASCII)
# Thousands separators are only valid in the integral part.
_REAL_RE = re.compile(
    r"\s*[+-]?(?:[0-9][0-9,]*(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?\s*",
    re.ASCII,
)
_REAL_SPECIALS = {
    "nan": math.nan,
    "infinity": math.inf,
    "+infinity": math.inf,
    "-infinity": -math.inf,
}


class ColumnTypeFamily(enum.StrEnum):
    INTEGER = "INTEGER"
    REAL = "REAL"
    TEXT = "TEXT"
    BLOB = "BLOB"
    UNKNOWN = "UNKNOWN"


_TYPE_FAMILIES = {
    "INTEGER": ColumnTypeFamily.INTEGER,
    "INT": ColumnTypeFamily.INTEGER,
    "REAL": ColumnTypeFamily.REAL,
    "FLOAT": ColumnTypeFamily.REAL,
    "DOUBLE": ColumnTypeFamily.REAL,
    "TEXT": ColumnTypeFamily.TEXT,
    "VARCHAR": ColumnTypeFamily.TEXT,
    "CHAR": ColumnTypeFamily.TEXT,
    "BLOB": ColumnTypeFamily.BLOB,
}


def type_family(declared_type: str) -> ColumnTypeFamily:
    """Map a declared SQL type name to its type family."""
    return _TYPE_FAMILIES.get(
        declared_type.strip().upper(), ColumnTypeFamily.UNKNOWN
    )


def parse_integer(value: str) -> int | None:
    """Parse a 64-bit signed integer, returning None when invalid."""
    if not _INTEGER_RE.fullmatch(value):
        return None
    number = int(value.strip())
    if not INT64_MIN <= number <= INT64_MAX:
        return None
    return number


def parse_real(value: str) -> float | None:
    """Parse a 64-bit float, returning None when invalid."""
    text = value.strip()
    special = _REAL_SPECIALS.get(text.lower())
    if special is not None:
        return special
    if not _REAL_RE.fullmatch(value):
        return None
    return float(text.replace(",", ""))


def validate_value(
    column: db_models.ColumnInfo,
    value: str | None,
    index: int,
    notifier: notifications.Notifier | None = None,
) -> None:
    """Check that a text value can be stored in a column.

    Empty and None values are always accepted, whatever the column type;
    NOT NULL constraints are left to SQLite.

    Args:
        column: Target column.
        value: Value to check.
        index: Zero-based position of the value, used in error messages.
        notifier: Receives the warning for unrecognized column types.

    Raises:
        TypeMismatchError: If the value does not parse as the column's
            numeric type.
        UnsupportedColumnTypeError: If the column is a BLOB column.
    """
    if value is None or value == "":
        return

    family = type_family(column.type)
    if family is ColumnTypeFamily.INTEGER:
        if parse_integer(value) is None:
            raise exceptions.TypeMismatchError(
                index, column.name, "INTEGER", value, "an integer"
            )
    elif family is ColumnTypeFamily.REAL:
        if parse_real(value) is None:
            raise exceptions.TypeMismatchError(
                index, column.name, "REAL/FLOAT", value, "a number"
            )
    elif family is ColumnTypeFamily.BLOB:
        raise exceptions.UnsupportedColumnTypeError(column.name, column.type)
    elif family is ColumnTypeFamily.UNKNOWN:
        (notifier or notifications.DEFAULT_NOTIFIER).warning(
            f"Unknown column type '{column.type.strip().upper()}' for column "
            f"'{column.name}'. Proceeding with string value."
        )


def convert_value(
    column: db_models.ColumnInfo,
    value: str | None,
    empty_string_as_null: bool = True,
) -> SqlValue:
    """Convert a validated text value to the value bound for SQLite.

    Args:
        column: Target column.
        value: Value that already passed validate_value().
        empty_string_as_null: When False, an empty string is kept as
            ``''`` for text and unrecognized column types.

    Returns:
        None for NULL, ``int`` for INTEGER columns, ``float`` for REAL
        columns and the original string otherwise.
    """
    family = type_family(column.type)
    if value is None:
        return None
    if value == "":
        if empty_string_as_null or family not in (
            ColumnTypeFamily.TEXT,
            ColumnTypeFamily.UNKNOWN,
        ):
            return None
        return value

    if family is ColumnTypeFamily.INTEGER:
        return parse_integer(value)
    if family is ColumnTypeFamily.REAL:
        return parse_real(value)
    return value


def prepare_value(
    column: db_models.ColumnInfo,
    value: str | None,
    index: int,
    notifier: notifications.Notifier | None = None,
    empty_string_as_null: bool = True,
) -> SqlValue:
    """Validate then convert a value in one step."""
    validate_value(column, value, index, notifier)
    return convert_value(column, value, empty_string_as_null)


def format_value(value: object) -> str | None:
    """Render a stored SQLite value as locale independent text.

    None stays None. Floats holding a whole number render without a
    fractional part, keeping the sign of negative zero as ``-0``. Other
    floats use the shortest round-trip form and BLOB values render as
    hexadecimal.
    """
    if value is None:
        return None
    if isinstance(value, float):
        if value == 0 and math.copysign(1.0, value) < 0:
            return "-0"
        if value.is_integer() and abs(value) < 1e15:
            return str(int(value))
        return repr(value)
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value).hex()
    return str(value)
