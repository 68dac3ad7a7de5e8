"""Feature writers: single point inserts and batched bulk inserts.

add_point() inserts one row from positional text values. The bulk
writers take Feature objects whose attributes are matched to the layer's
columns by name, and commit every ``batch_size`` rows so that a failure
only loses the batch that was in flight.

Example:
    Insert one city and then a list of features:
        >>> import shapely
        >>> from gpkg_helper.db import models as db_models
        >>> add_data.add_point(
        ...     "cities.gpkg",
        ...     "cities",
        ...     shapely.Point(674032, 6580383),
        ...     ["Stockholm", "975551"],
        ... )
        >>> add_data.bulk_insert_features(
        ...     "cities.gpkg",
        ...     "cities",
        ...     features,
        ...     db_models.BulkInsertOptions(batch_size=500),
        ...     progress=lambda p: print(f"{p.percent_complete:.0f}%"),
        ... )
"""

from __future__ import annotations

import collections.abc
import logging
import pathlib
import sqlite3
import threading
from typing import TYPE_CHECKING

import shapely

from gpkg_helper.core import config, exceptions, notifications
from gpkg_helper.db import database, schema
from gpkg_helper.db import models as db_models
from gpkg_helper.services import attributes
from gpkg_helper.utils import concurrency, gpb

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)

ProgressSink = collections.abc.Callable[[db_models.BulkProgress], None]

# WKB byte order flag for shapely.to_wkb: 1 is little endian (NDR).
_WKB_LITTLE_ENDIAN = 1


def encode_geometry(
    geometry: shapely.Geometry | None,
    srid: int,
) -> bytes | None:
    """Encode a shapely geometry as a GeoPackage geometry blob.

    Returns:
        The blob, or None for a missing geometry.
    """
    if geometry is None:
        return None
    wkb = shapely.to_wkb(geometry, byte_order=_WKB_LITTLE_ENDIAN)
    return gpb.encode_geometry_blob(wkb, srid)


def build_insert_sql(
    layer_name: str,
    columns: Sequence[db_models.ColumnInfo],
    geometry_column: str,
    conflict_policy: db_models.ConflictPolicy = db_models.ConflictPolicy.ABORT,
) -> str:
    """Build the parameterized INSERT used for every row of a layer.

    Args:
        layer_name: Target table.
        columns: Attribute columns, in binding order.
        geometry_column: Geometry column, bound last.
        conflict_policy: Chooses the INSERT verb.

    Returns:
        SQL with one ``?`` placeholder per attribute plus the geometry.
    """
    names = [database.quote_identifier(c.name) for c in columns]
    names.append(database.quote_identifier(geometry_column))
    placeholders = ", ".join("?" * len(names))
    return (
        f"{conflict_policy.insert_verb} INTO "
        f"{database.quote_identifier(layer_name)} "
        f"({', '.join(names)}) VALUES ({placeholders})"
    )


def add_point(
    path: str | pathlib.Path,
    layer_name: str,
    point: shapely.Geometry,
    attribute_data: Sequence[str | None],
    *,
    srid: int | None = None,
    notifier: notifications.Notifier | None = None,
    empty_string_as_null: bool | None = None,
) -> None:
    """Insert one point with positional attribute values.

    The values are matched to the layer's attribute columns (identity and
    geometry columns excluded) in declaration order. Every value is
    validated before the row is written, so a bad value never leaves a
    partial row behind.

    Args:
        path: Existing GeoPackage file.
        layer_name: Target layer table.
        point: Geometry to store; normally a shapely Point.
        attribute_data: One text value per attribute column. None and
            ``''`` mean NULL.
        srid: SRID written into the geometry blob; settings default when
            None.
        notifier: Receives status, warning and error messages.
        empty_string_as_null: Overrides the setting of the same name.

    Raises:
        GeoPackageNotFoundError: If the GeoPackage does not exist.
        LayerNotFoundError: If the layer table does not exist.
        ColumnCountMismatchError: If the number of values is wrong.
        TypeMismatchError: If a value does not fit its column type.
        UnsupportedColumnTypeError: If a value targets a BLOB column.
        sqlite3.Error: Store errors such as constraint violations.
    """
    settings = config.get_settings()
    notifier = notifier or notifications.DEFAULT_NOTIFIER
    srid = settings.default_srid if srid is None else srid
    if empty_string_as_null is None:
        empty_string_as_null = settings.empty_string_as_null

    try:
        with database.open_connection(path) as conn:
            geometry_column = database.get_geometry_column(conn, layer_name)
            columns = database.get_attribute_columns(
                conn, layer_name, geometry_column
            )
            if len(columns) != len(attribute_data):
                raise exceptions.ColumnCountMismatchError(
                    layer_name, columns, len(attribute_data)
                )

            values = [
                attributes.prepare_value(
                    column, value, i, notifier, empty_string_as_null
                )
                for i, (column, value) in enumerate(
                    zip(columns, attribute_data, strict=True)
                )
            ]
            values.append(encode_geometry(point, srid))

            with database.transaction(conn):
                conn.execute(
                    build_insert_sql(layer_name, columns, geometry_column),
                    values,
                )
    except (exceptions.GeoPackageError, sqlite3.Error) as e:
        notifier.error(str(e))
        raise

    notifier.status(f"Successfully added point to layer '{layer_name}' in GeoPackage")


def _feature_parameters(
    feature: db_models.Feature,
    columns: Sequence[db_models.ColumnInfo],
    srid: int,
    notifier: notifications.Notifier,
    empty_string_as_null: bool,
) -> list[attributes.SqlValue | bytes]:
    params: list[attributes.SqlValue | bytes] = [
        attributes.prepare_value(
            column,
            feature.attributes.get(column.name),
            i,
            notifier,
            empty_string_as_null,
        )
        for i, column in enumerate(columns)
    ]
    params.append(encode_geometry(feature.geometry, srid))
    return params


def insert_features(
    conn: sqlite3.Connection,
    layer_name: str,
    features: Iterable[db_models.Feature],
    options: db_models.BulkInsertOptions | None = None,
    progress: ProgressSink | None = None,
    cancel_event: threading.Event | None = None,
    notifier: notifications.Notifier | None = None,
    empty_string_as_null: bool | None = None,
) -> int:
    """Bulk insert features on an open connection.

    Rows are inserted in input order. Every ``batch_size`` rows the open
    transaction is committed and progress is reported; the final partial
    batch is always committed and followed by a 100% progress report. On
    any error, including cancellation, the open batch is rolled back and
    the error propagates; earlier batches stay committed.

    ConflictPolicy.IGNORE and REPLACE only change the outcome when the
    layer declares a UNIQUE or PRIMARY KEY constraint that an inserted
    row violates. Layers made by create_layer() only have the identity
    column, which inserted rows never set.

    Args:
        conn: Open autocommit connection with no active transaction.
        layer_name: Target layer table.
        features: Features to insert; may be a lazy iterable.
        options: Batch size, SRID, conflict policy and spatial index.
        progress: Receives a BulkProgress after each committed batch.
        cancel_event: Checked before each feature.
        notifier: Receives unknown column type warnings.
        empty_string_as_null: Overrides the setting of the same name.

    Returns:
        Number of features processed.

    Raises:
        LayerNotFoundError: If the layer table does not exist.
        TypeMismatchError: If a value does not fit its column type.
        UnsupportedColumnTypeError: If a value targets a BLOB column.
        OperationCancelledError: If ``cancel_event`` was set.
        sqlite3.Error: Store errors such as constraint violations.
    """
    settings = config.get_settings()
    options = options or db_models.BulkInsertOptions()
    notifier = notifier or notifications.DEFAULT_NOTIFIER
    batch_size = options.batch_size or settings.batch_size
    srid = settings.default_srid if options.srid is None else options.srid
    if empty_string_as_null is None:
        empty_string_as_null = settings.empty_string_as_null

    geometry_column = database.get_geometry_column(conn, layer_name)
    columns = database.get_attribute_columns(conn, layer_name, geometry_column)
    sql = build_insert_sql(
        layer_name, columns, geometry_column, options.conflict_policy
    )

    total: int | None = None
    if isinstance(features, collections.abc.Sized):
        total = len(features)
    elif progress is not None:
        features = list(features)
        total = len(features)

    processed = 0
    conn.execute("BEGIN")
    try:
        for feature in features:
            concurrency.check_cancelled(cancel_event)
            conn.execute(
                sql,
                _feature_parameters(
                    feature, columns, srid, notifier, empty_string_as_null
                ),
            )
            processed += 1
            if processed % batch_size == 0:
                conn.execute("COMMIT")
                logger.debug("Committed %d rows into %s", processed, layer_name)
                if progress is not None and total is not None:
                    progress(db_models.BulkProgress(processed, total))
                conn.execute("BEGIN")
        conn.execute("COMMIT")
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise

    if progress is not None:
        progress(db_models.BulkProgress(processed, processed))

    if options.create_spatial_index:
        schema.create_spatial_index(conn, layer_name, geometry_column)

    logger.info("Inserted %d features into %s", processed, layer_name)
    return processed


def bulk_insert_features(
    path: str | pathlib.Path,
    layer_name: str,
    features: Iterable[db_models.Feature],
    options: db_models.BulkInsertOptions | None = None,
    progress: ProgressSink | None = None,
    *,
    cancel_event: threading.Event | None = None,
    notifier: notifications.Notifier | None = None,
    empty_string_as_null: bool | None = None,
) -> int:
    """Bulk insert features into a layer of an existing GeoPackage.

    Opens a connection for the duration of the call and delegates to
    insert_features(), which documents batching and failure behaviour.

    Returns:
        Number of features processed.

    Raises:
        GeoPackageNotFoundError: If the GeoPackage does not exist.
    """
    notifier = notifier or notifications.DEFAULT_NOTIFIER
    try:
        with database.open_connection(path) as conn:
            return insert_features(
                conn,
                layer_name,
                features,
                options,
                progress,
                cancel_event,
                notifier,
                empty_string_as_null,
            )
    except (exceptions.GeoPackageError, sqlite3.Error) as e:
        notifier.error(str(e))
        raise


async def bulk_insert_features_async(
    path: str | pathlib.Path,
    layer_name: str,
    features: Iterable[db_models.Feature],
    options: db_models.BulkInsertOptions | None = None,
    progress: ProgressSink | None = None,
    *,
    notifier: notifications.Notifier | None = None,
    empty_string_as_null: bool | None = None,
) -> int:
    """Async variant of bulk_insert_features().

    The insert runs on a worker thread. Cancelling the awaiting task
    rolls back the open batch before ``asyncio.CancelledError`` is
    re-raised.
    """
    return await concurrency.run_cancellable(
        bulk_insert_features,
        path,
        layer_name,
        features,
        options,
        progress,
        notifier=notifier,
        empty_string_as_null=empty_string_as_null,
    )
