"""Feature reading and GeoPackage introspection.

read_features() streams the rows of a layer as Feature objects. The
query runs lazily: nothing is read until the returned generator is
iterated, and rows are decoded one at a time. A geometry blob that cannot
be decoded yields a feature with ``geometry=None`` instead of ending the
stream.

get_geopackage_info() summarises the metadata tables: spatial reference
systems and every registered layer with its columns.

Example:
    Read the five largest cities without geometry:
        >>> from gpkg_helper.db import models as db_models
        >>> options = db_models.ReadOptions(
        ...     include_geometry=False,
        ...     order_by="population DESC",
        ...     limit=5,
        ... )
        >>> for feature in read_data.read_features("cities.gpkg", "cities", options):
        ...     print(feature.attributes["name"])
"""

from __future__ import annotations

import logging
import pathlib
import sqlite3
from typing import TYPE_CHECKING

import shapely
import shapely.errors

from gpkg_helper.core import exceptions
from gpkg_helper.db import database
from gpkg_helper.db import models as db_models
from gpkg_helper.services import attributes
from gpkg_helper.utils import concurrency, gpb

if TYPE_CHECKING:
    import threading
    from collections.abc import AsyncIterator, Iterator

logger = logging.getLogger(__name__)


def build_select_sql(
    layer_name: str,
    options: db_models.ReadOptions | None = None,
) -> str:
    """Build the SELECT statement for a layer read.

    ``where_clause`` and ``order_by`` are inserted verbatim. SQLite needs
    a LIMIT before OFFSET, so an offset without a limit reads with
    ``LIMIT -1`` (no limit).
    """
    options = options or db_models.ReadOptions()
    sql = f"SELECT * FROM {database.quote_identifier(layer_name)}"
    if options.where_clause:
        sql += f" WHERE {options.where_clause}"
    if options.order_by:
        sql += f" ORDER BY {options.order_by}"
    if options.limit is not None:
        sql += f" LIMIT {int(options.limit)}"
    elif options.offset is not None:
        sql += " LIMIT -1"
    if options.offset is not None:
        sql += f" OFFSET {int(options.offset)}"
    return sql


def decode_geometry(blob: object) -> shapely.Geometry | None:
    """Decode a stored geometry value, returning None when it is unusable.

    SQLite does not enforce column types, so the geometry column may hold
    TEXT or numbers; those are treated like a corrupt blob.
    """
    if blob is None:
        return None
    try:
        return shapely.from_wkb(gpb.decode_geometry_blob(blob))
    except (exceptions.InvalidGeometryBlobError, shapely.errors.ShapelyError) as e:
        logger.debug("Skipping undecodable geometry: %s", e)
        return None


def iter_features(
    conn: sqlite3.Connection,
    layer_name: str,
    options: db_models.ReadOptions | None = None,
    cancel_event: threading.Event | None = None,
) -> Iterator[db_models.Feature]:
    """Yield the features of a layer from an open connection.

    Args:
        conn: Open connection.
        layer_name: Layer table to read.
        options: Geometry decoding, filter, ordering and paging.
        cancel_event: Checked before each feature is produced.

    Yields:
        One Feature per row, attributes rendered as text.

    Raises:
        LayerNotFoundError: If the layer table does not exist.
        OperationCancelledError: If ``cancel_event`` was set.
        sqlite3.Error: If the generated SQL is invalid, e.g. a bad
            ``where_clause``.
    """
    options = options or db_models.ReadOptions()
    geometry_column = database.get_geometry_column(conn, layer_name)
    columns = database.get_attribute_columns(conn, layer_name, geometry_column)

    cursor = conn.cursor()
    cursor.row_factory = sqlite3.Row
    try:
        cursor.execute(build_select_sql(layer_name, options))
        for row in cursor:
            concurrency.check_cancelled(cancel_event)
            geometry = None
            if options.include_geometry and geometry_column in row.keys():
                geometry = decode_geometry(row[geometry_column])
            yield db_models.Feature(
                geometry=geometry,
                attributes={
                    column.name: attributes.format_value(row[column.name])
                    for column in columns
                },
            )
    finally:
        cursor.close()


def read_features(
    path: str | pathlib.Path,
    layer_name: str,
    options: db_models.ReadOptions | None = None,
    *,
    cancel_event: threading.Event | None = None,
) -> Iterator[db_models.Feature]:
    """Stream the features of a layer in a GeoPackage file.

    The connection is opened on first iteration and closed when the
    generator finishes or is closed. Each call re-executes the query.

    Args:
        path: Existing GeoPackage file.
        layer_name: Layer table to read.
        options: Geometry decoding, filter, ordering and paging.
        cancel_event: Checked before each feature is produced.

    Yields:
        One Feature per row.

    Raises:
        GeoPackageNotFoundError: If the GeoPackage does not exist.
    """
    with database.open_connection(path) as conn:
        yield from iter_features(conn, layer_name, options, cancel_event)


async def read_features_async(
    path: str | pathlib.Path,
    layer_name: str,
    options: db_models.ReadOptions | None = None,
) -> AsyncIterator[db_models.Feature]:
    """Async variant of read_features(); one row per worker thread hop."""
    async for feature in concurrency.iterate_in_thread(
        lambda cancel_event: read_features(
            path, layer_name, options, cancel_event=cancel_event
        )
    ):
        yield feature


def get_content_table_names(path: str | pathlib.Path) -> list[str]:
    """List the tables registered in ``gpkg_contents``."""
    with database.open_connection(path) as conn:
        return [
            row[0]
            for row in conn.execute("SELECT table_name FROM gpkg_contents")
        ]


def _read_spatial_ref_systems(conn: sqlite3.Connection) -> list[db_models.SrsInfo]:
    cursor = conn.execute(
        "SELECT srs_id, srs_name, organization, organization_coordsys_id, "
        "definition, description FROM gpkg_spatial_ref_sys"
    )
    return [db_models.SrsInfo(*row) for row in cursor.fetchall()]


def read_geopackage_info(conn: sqlite3.Connection) -> db_models.GeopackageInfo:
    """Summarise the GeoPackage behind an open connection."""
    srs = _read_spatial_ref_systems(conn)

    geometry_columns = {
        row[0]: (row[1], row[2], row[3])
        for row in conn.execute(
            "SELECT table_name, column_name, geometry_type_name, srs_id "
            "FROM gpkg_geometry_columns"
        )
    }

    layers = []
    contents = conn.execute(
        "SELECT table_name, data_type, srs_id, min_x, min_y, max_x, max_y "
        "FROM gpkg_contents ORDER BY table_name"
    ).fetchall()
    for table_name, data_type, srid, min_x, min_y, max_x, max_y in contents:
        geometry_column, geometry_type, geometry_srid = geometry_columns.get(
            table_name, (None, None, None)
        )
        columns = database.get_columns(conn, table_name)
        attribute_columns = (
            database.get_attribute_columns(conn, table_name, geometry_column)
            if columns
            else []
        )
        layers.append(
            db_models.LayerInfo(
                table_name=table_name,
                data_type=data_type,
                srid=srid if srid is not None else geometry_srid,
                geometry_column=geometry_column,
                geometry_type=geometry_type,
                min_x=min_x,
                min_y=min_y,
                max_x=max_x,
                max_y=max_y,
                columns=columns,
                attribute_columns=attribute_columns,
            )
        )

    return db_models.GeopackageInfo(layers=layers, spatial_ref_systems=srs)


def get_geopackage_info(path: str | pathlib.Path) -> db_models.GeopackageInfo:
    """Summarise the layers and spatial reference systems of a GeoPackage.

    Args:
        path: Existing GeoPackage file.

    Returns:
        Layers ordered by table name, with their columns, plus every
        spatial reference system.

    Raises:
        GeoPackageNotFoundError: If the GeoPackage does not exist.
    """
    with database.open_connection(path) as conn:
        return read_geopackage_info(conn)
