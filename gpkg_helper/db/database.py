"""SQLite connection helpers and layer schema discovery.

Every service opens exactly one connection per call (or per fluent
session) through open_connection(). Connections run in autocommit mode;
writers that need atomicity open explicit transactions with
transaction(), which commits on success and rolls back on any exception.

Column discovery reads ``PRAGMA table_info`` freshly on every call, the
table itself being the only source of truth for its schema.
"""

from __future__ import annotations

import contextlib
import functools
import logging
import pathlib
import sqlite3
from typing import TYPE_CHECKING

from gpkg_helper.core import config, exceptions
from gpkg_helper.db import models as db_models

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

MIN_SQLITE_VERSION = (3, 7, 0)


@functools.cache
def initialize() -> str:
    """Validate the SQLite library once per process.

    Returns:
        The SQLite library version string.

    Raises:
        RuntimeError: If the SQLite library is too old for WAL journaling.
    """
    if sqlite3.sqlite_version_info < MIN_SQLITE_VERSION:
        raise RuntimeError(
            f"SQLite {sqlite3.sqlite_version} is too old, "
            f"{'.'.join(map(str, MIN_SQLITE_VERSION))} or newer is required"
        )
    logger.debug("Using SQLite %s", sqlite3.sqlite_version)
    return sqlite3.sqlite_version


def quote_identifier(name: str) -> str:
    """Quote a table or column name for use in generated SQL."""
    return '"' + name.replace('"', '""') + '"'


def connect(path: str | pathlib.Path) -> sqlite3.Connection:
    """Open an autocommit SQLite connection to a GeoPackage file.

    The connection may be handed between threads (the async helpers run
    store work on worker threads) but must only be used serially.

    Args:
        path: GeoPackage file path. The file is created if missing.

    Returns:
        sqlite3 connection with ``isolation_level=None``.
    """
    initialize()
    return sqlite3.connect(
        str(path),
        isolation_level=None,
        check_same_thread=False,
    )


@contextlib.contextmanager
def open_connection(
    path: str | pathlib.Path,
    must_exist: bool = True,
) -> Iterator[sqlite3.Connection]:
    """Open a connection that is closed on every exit path.

    Args:
        path: GeoPackage file path.
        must_exist: Raise instead of creating a new, empty file.

    Yields:
        Open sqlite3 connection.

    Raises:
        GeoPackageNotFoundError: If ``must_exist`` and the file is missing.
    """
    if must_exist and not pathlib.Path(path).is_file():
        raise exceptions.GeoPackageNotFoundError(path)

    conn = connect(path)
    try:
        yield conn
    finally:
        conn.close()


@contextlib.contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block inside ``BEGIN``/``COMMIT``, rolling back on error."""
    conn.execute("BEGIN")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def get_columns(
    conn: sqlite3.Connection,
    table_name: str,
) -> list[db_models.ColumnInfo]:
    """Read all declared columns of a table.

    Args:
        conn: Open connection.
        table_name: Table to inspect.

    Returns:
        Columns in declaration order; empty if the table does not exist.
    """
    cursor = conn.execute(f"PRAGMA table_info({quote_identifier(table_name)})")
    # cid, name, type, notnull, dflt_value, pk
    return [
        db_models.ColumnInfo(
            name=row[1],
            type=row[2] or "",
            not_null=bool(row[3]),
            is_primary_key=bool(row[5]),
        )
        for row in cursor.fetchall()
    ]


def get_geometry_column(
    conn: sqlite3.Connection,
    table_name: str,
    default: str | None = None,
) -> str:
    """Resolve the geometry column of a layer.

    Uses ``gpkg_geometry_columns`` when the layer is registered there and
    falls back to ``default`` (or the configured default) otherwise.
    """
    fallback = default or config.get_settings().geometry_column
    try:
        row = conn.execute(
            "SELECT column_name FROM gpkg_geometry_columns WHERE table_name = ?",
            (table_name,),
        ).fetchone()
    except sqlite3.OperationalError:
        # Not a GeoPackage; plain SQLite tables use the default name.
        return fallback
    return row[0] if row else fallback


def _is_identity(
    column: db_models.ColumnInfo,
    columns: list[db_models.ColumnInfo],
    id_column: str,
) -> bool:
    if column.name.lower() == id_column.lower():
        return True
    primary_keys = [c for c in columns if c.is_primary_key]
    return (
        column.is_primary_key
        and len(primary_keys) == 1
        and column.type.strip().upper() == "INTEGER"
    )


def get_attribute_columns(
    conn: sqlite3.Connection,
    table_name: str,
    geometry_column: str | None = None,
    id_column: str | None = None,
) -> list[db_models.ColumnInfo]:
    """Discover the attribute columns of a layer table.

    Attribute columns are all columns except the identity column (the
    configured id column or the table's INTEGER PRIMARY KEY) and the
    geometry column, in the order the schema declares them.

    Args:
        conn: Open connection.
        table_name: Layer table.
        geometry_column: Geometry column name; resolved from
            ``gpkg_geometry_columns`` when None.
        id_column: Identity column name; settings default when None.

    Returns:
        Attribute column descriptors.

    Raises:
        LayerNotFoundError: If the table does not exist.
    """
    columns = get_columns(conn, table_name)
    if not columns:
        raise exceptions.LayerNotFoundError(table_name)

    geometry_column = geometry_column or get_geometry_column(conn, table_name)
    id_column = id_column or config.get_settings().id_column
    return [
        column
        for column in columns
        if column.name.lower() != geometry_column.lower()
        and not _is_identity(column, columns, id_column)
    ]
