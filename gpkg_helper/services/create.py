"""GeoPackage and layer creation.

create_geopackage() builds an empty GeoPackage: the application id, the
three metadata tables and the default spatial reference systems.
create_layer() adds a point (or other geometry type) feature table and
registers it in ``gpkg_contents`` and ``gpkg_geometry_columns``.

Example:
    Create a GeoPackage with a cities layer:
        >>> from gpkg_helper.services import create
        >>> create.create_geopackage("cities.gpkg", srid=3006)
        >>> create.create_layer(
        ...     "cities.gpkg",
        ...     "cities",
        ...     {"name": "TEXT", "population": "INTEGER"},
        ... )
"""

from __future__ import annotations

import pathlib
import sqlite3
from typing import TYPE_CHECKING

from gpkg_helper.core import config, exceptions, notifications
from gpkg_helper.db import database, schema
from gpkg_helper.db import models as db_models

if TYPE_CHECKING:
    from collections.abc import Mapping

WAL_ENABLED_MESSAGE = "Enabled WAL (Write-Ahead Logging) mode"


def enable_wal_mode(conn: sqlite3.Connection) -> str:
    """Switch the database to Write-Ahead Logging.

    Returns:
        The journal mode reported by SQLite after the switch.
    """
    row = conn.execute("PRAGMA journal_mode = WAL").fetchone()
    return str(row[0]) if row else ""


def initialize_geopackage(
    conn: sqlite3.Connection,
    srid: int,
    wal_mode: bool = False,
    notifier: notifications.Notifier | None = None,
) -> None:
    """Create the GeoPackage metadata in an empty database.

    Args:
        conn: Connection to an empty database.
        srid: SRID that must exist in ``gpkg_spatial_ref_sys``.
        wal_mode: Switch the journal mode to WAL first.
        notifier: Receives the WAL status message.
    """
    notifier = notifier or notifications.DEFAULT_NOTIFIER
    if wal_mode:
        enable_wal_mode(conn)
        notifier.status(WAL_ENABLED_MESSAGE)

    with database.transaction(conn):
        schema.create_metadata_tables(conn)
        schema.setup_spatial_reference_systems(conn, srid)


def create_geopackage(
    path: str | pathlib.Path,
    srid: int | None = None,
    *,
    wal_mode: bool | None = None,
    notifier: notifications.Notifier | None = None,
) -> None:
    """Create a new GeoPackage file, replacing any existing file.

    Args:
        path: Where the GeoPackage is written.
        srid: SRID registered in addition to the defaults; settings
            default when None.
        wal_mode: Enable Write-Ahead Logging; settings default when None.
        notifier: Receives status and error messages.

    Raises:
        sqlite3.Error: If the database cannot be created.
    """
    settings = config.get_settings()
    notifier = notifier or notifications.DEFAULT_NOTIFIER
    srid = settings.default_srid if srid is None else srid
    wal_mode = settings.wal_mode if wal_mode is None else wal_mode

    target = pathlib.Path(path)
    if target.exists():
        target.unlink()
        notifier.status(f"Deleted existing GeoPackage file: {path}")

    try:
        with database.open_connection(target, must_exist=False) as conn:
            initialize_geopackage(conn, srid, wal_mode, notifier)
    except sqlite3.Error as e:
        notifier.error(f"Error creating GeoPackage: {e}")
        raise

    notifier.status(f"Successfully created GeoPackage: {path}")


def create_layer_in_connection(
    conn: sqlite3.Connection,
    layer_name: str,
    columns: Mapping[str, str],
    options: db_models.LayerCreateOptions | None = None,
) -> None:
    """Create and register a feature table on an open connection."""
    settings = config.get_settings()
    options = options or db_models.LayerCreateOptions()
    srid = settings.default_srid if options.srid is None else options.srid
    geometry_column = options.geometry_column or settings.geometry_column

    with database.transaction(conn):
        schema.create_feature_table(
            conn,
            layer_name,
            columns,
            geometry_column=geometry_column,
            id_column=settings.id_column,
        )
        schema.register_table_in_contents(conn, layer_name, srid, options.extent)
        schema.register_geometry_column(
            conn, layer_name, geometry_column, options.geometry_type, srid
        )


def create_layer(
    path: str | pathlib.Path,
    layer_name: str,
    columns: Mapping[str, str],
    options: db_models.LayerCreateOptions | None = None,
    notifier: notifications.Notifier | None = None,
) -> None:
    """Create a spatial layer in an existing GeoPackage.

    The table gets an ``id INTEGER PRIMARY KEY AUTOINCREMENT`` column,
    the attribute columns in mapping order and a BLOB geometry column.

    Args:
        path: Existing GeoPackage file.
        layer_name: Name of the new table.
        columns: Attribute column names mapped to SQL types.
        options: SRID, geometry type, geometry column and extent.
        notifier: Receives status and error messages.

    Raises:
        GeoPackageNotFoundError: If the GeoPackage does not exist.
        sqlite3.Error: If the table cannot be created, e.g. because it
            already exists.
    """
    notifier = notifier or notifications.DEFAULT_NOTIFIER
    try:
        with database.open_connection(path) as conn:
            create_layer_in_connection(conn, layer_name, columns, options)
    except (exceptions.GeoPackageError, sqlite3.Error) as e:
        notifier.error(f"Error creating GeoPackage layer: {e}")
        raise

    notifier.status(f"Successfully created spatial layer '{layer_name}' in GeoPackage")
