"""Data models for features, columns, options and GeoPackage metadata.

This module defines the plain data structures passed between callers and
the GeoPackage services. A Feature carries an optional shapely geometry
and a name to text mapping of attribute values; everything else
describes how an operation should run or what a GeoPackage contains.

Example:
    Creating a feature for a bulk insert:
        >>> import shapely
        >>> from gpkg_helper.db.models import Feature
        >>> feature = Feature(
        ...     geometry=shapely.Point(674032, 6580383),
        ...     attributes={"name": "Stockholm", "population": "975551"},
        ... )

    Options for a bulk insert that replaces conflicting rows:
        >>> options = BulkInsertOptions(
        ...     batch_size=500,
        ...     srid=3006,
        ...     conflict_policy=ConflictPolicy.REPLACE,
        ... )
"""

from __future__ import annotations

import dataclasses
import enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    import shapely

BBox = tuple[float, float, float, float]


@dataclasses.dataclass(frozen=True)
class Feature:
    """One geographic record: optional geometry plus text attributes.

    Attributes:
        geometry: Shapely geometry, or None for a geometry-less row.
        attributes: Attribute values by column name. None means SQL NULL.
    """

    geometry: shapely.Geometry | None
    attributes: Mapping[str, str | None] = dataclasses.field(
        default_factory=dict
    )


@dataclasses.dataclass(frozen=True)
class ColumnInfo:
    """Describes one column of a layer table, from ``PRAGMA table_info``.

    Attributes:
        name: Column identifier as declared in the schema.
        type: Declared SQL type; empty when no type was declared.
        not_null: True when a NOT NULL constraint exists.
        is_primary_key: True when the column is part of the primary key.
    """

    name: str
    type: str
    not_null: bool = False
    is_primary_key: bool = False


class ConflictPolicy(enum.StrEnum):
    """How a bulk insert resolves constraint conflicts.

    The policy only has an effect when the layer table declares a UNIQUE
    or PRIMARY KEY constraint that an inserted row violates; layer tables
    created by this library declare none besides the identity column, so
    IGNORE and REPLACE behave exactly like ABORT for them.
    """

    ABORT = "abort"
    IGNORE = "ignore"
    REPLACE = "replace"

    @property
    def insert_verb(self) -> str:
        return {
            ConflictPolicy.ABORT: "INSERT",
            ConflictPolicy.IGNORE: "INSERT OR IGNORE",
            ConflictPolicy.REPLACE: "INSERT OR REPLACE",
        }[self]


@dataclasses.dataclass(frozen=True)
class BulkInsertOptions:
    """Options for bulk insert operations.

    None values are filled from settings when the insert runs.

    Attributes:
        batch_size: Rows committed per transaction.
        srid: SRID written into every geometry blob.
        create_spatial_index: Create the geometry column index after the
            final commit.
        conflict_policy: Insert verb used for every row.
    """

    batch_size: int | None = None
    srid: int | None = None
    create_spatial_index: bool = False
    conflict_policy: ConflictPolicy = ConflictPolicy.ABORT

    def __post_init__(self) -> None:
        if self.batch_size is not None and self.batch_size < 1:
            raise ValueError(
                f"batch_size must be at least 1, got {self.batch_size}"
            )


@dataclasses.dataclass(frozen=True)
class BulkProgress:
    """Progress information reported by bulk operations."""

    processed: int
    total: int

    @property
    def percent_complete(self) -> float:
        return self.processed / self.total * 100.0 if self.total > 0 else 0.0

    @property
    def is_complete(self) -> bool:
        return self.processed >= self.total

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.processed)


@dataclasses.dataclass(frozen=True)
class ReadOptions:
    """Options for reading features.

    ``where_clause`` and ``order_by`` are raw SQL fragments placed after
    ``WHERE`` and ``ORDER BY``. They are not escaped: never build them
    from untrusted input.

    Attributes:
        include_geometry: Decode the geometry column into shapely objects.
        where_clause: Raw SQL filter expression.
        order_by: Raw SQL ordering expression.
        limit: Maximum number of rows.
        offset: Number of rows to skip.
    """

    include_geometry: bool = True
    where_clause: str | None = None
    order_by: str | None = None
    limit: int | None = None
    offset: int | None = None


@dataclasses.dataclass(frozen=True)
class LayerCreateOptions:
    """Options for layer creation.

    Attributes:
        srid: Layer SRID; settings default when None.
        geometry_type: Geometry type name registered for the layer.
        geometry_column: Geometry column name; settings default when None.
        extent: Optional (min_x, min_y, max_x, max_y) for gpkg_contents.
    """

    srid: int | None = None
    geometry_type: str = "POINT"
    geometry_column: str | None = None
    extent: BBox | None = None


@dataclasses.dataclass(frozen=True)
class SrsInfo:
    """One row of ``gpkg_spatial_ref_sys``."""

    srs_id: int
    srs_name: str
    organization: str
    organization_coordsys_id: int
    definition: str
    description: str | None


@dataclasses.dataclass(frozen=True)
class LayerInfo:
    """Consolidated metadata for one GeoPackage layer.

    Combines ``gpkg_contents``, ``gpkg_geometry_columns`` and
    ``PRAGMA table_info``. ``attribute_columns`` excludes the identity
    and geometry columns and is the column list writers bind values to.
    """

    table_name: str
    data_type: str
    srid: int | None
    geometry_column: str | None
    geometry_type: str | None
    min_x: float | None
    min_y: float | None
    max_x: float | None
    max_y: float | None
    columns: list[ColumnInfo]
    attribute_columns: list[ColumnInfo]

    @property
    def extent(self) -> BBox | None:
        bbox = (self.min_x, self.min_y, self.max_x, self.max_y)
        if any(v is None for v in bbox):
            return None
        return bbox  # type: ignore[return-value]


@dataclasses.dataclass(frozen=True)
class GeopackageInfo:
    """High-level summary of a GeoPackage."""

    layers: list[LayerInfo]
    spatial_ref_systems: list[SrsInfo]

    def get_layer(self, table_name: str) -> LayerInfo | None:
        for layer in self.layers:
            if layer.table_name == table_name:
                return layer
        return None
