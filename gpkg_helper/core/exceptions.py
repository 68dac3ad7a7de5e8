"""Exception types raised by the GeoPackage helpers.

Every error raised by the library derives from GeoPackageError. Each
concrete error also derives from the closest builtin exception so callers
can catch either the library type or the builtin one (for example
``FileNotFoundError`` for a missing GeoPackage file).

Errors coming from SQLite itself (``sqlite3.IntegrityError`` and friends)
are never wrapped and propagate unchanged.

Example:
    Handle an attribute value that does not fit its column:
        >>> from gpkg_helper.core import exceptions
        >>> try:
        ...     add_data.add_point(path, "cities", point, ["Stockholm", "many"])
        ... except exceptions.TypeMismatchError as e:
        ...     print(e.column_name, e.value)
        population many
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gpkg_helper.db import models as db_models


class GeoPackageError(Exception):
    """Base class for all GeoPackage helper errors."""


class GeoPackageNotFoundError(GeoPackageError, FileNotFoundError):
    """Raised when an operation needs an existing GeoPackage file."""

    def __init__(self, path: object) -> None:
        self.path = str(path)
        super().__init__(f"GeoPackage file not found: {self.path}")


class LayerNotFoundError(GeoPackageError, LookupError):
    """Raised when a layer table does not exist in the GeoPackage."""

    def __init__(self, layer_name: str) -> None:
        self.layer_name = layer_name
        super().__init__(f"Layer not found: {layer_name}")


class ColumnCountMismatchError(GeoPackageError, ValueError):
    """Raised when positional attribute values do not match the layer.

    Attributes:
        layer_name: Target layer table.
        expected_columns: Attribute columns of the layer, in order.
        received: Number of values supplied by the caller.
    """

    def __init__(
        self,
        layer_name: str,
        expected_columns: Sequence[db_models.ColumnInfo],
        received: int,
    ) -> None:
        self.layer_name = layer_name
        self.expected_columns = list(expected_columns)
        self.received = received
        listing = ", ".join(f"{c.name}({c.type})" for c in self.expected_columns)
        super().__init__(
            f"Column count mismatch for table '{layer_name}'. "
            f"Expected {len(self.expected_columns)} attribute values for "
            f"columns: {listing}, but received {received} values."
        )


class TypeMismatchError(GeoPackageError, ValueError):
    """Raised when a value cannot be represented in its column type.

    Attributes:
        index: Zero-based position of the value.
        column_name: Name of the target column.
        expected: Expected type family, e.g. ``INTEGER`` or ``REAL/FLOAT``.
        value: The offending value.
    """

    def __init__(
        self,
        index: int,
        column_name: str,
        expected: str,
        value: str,
        description: str,
    ) -> None:
        self.index = index
        self.column_name = column_name
        self.expected = expected
        self.value = value
        super().__init__(
            f"Data type mismatch at index {index}: Column '{column_name}' "
            f"expects {expected}, but received '{value}' which cannot be "
            f"converted to {description}."
        )


class UnsupportedColumnTypeError(GeoPackageError, ValueError):
    """Raised when a BLOB column is targeted through text attributes."""

    def __init__(self, column_name: str, column_type: str) -> None:
        self.column_name = column_name
        self.column_type = column_type
        super().__init__(
            f"Column '{column_name}' is of type {column_type} and cannot be "
            "inserted via string attribute values. BLOB columns require "
            "special handling."
        )


class InvalidGeometryBlobError(GeoPackageError, ValueError):
    """Raised when a GeoPackage geometry blob header is malformed."""


class OperationCancelledError(GeoPackageError):
    """Raised when a cancel event is observed by a bulk or read operation."""
