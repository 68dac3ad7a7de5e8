"""Session style access to one GeoPackage file.

A GeoPackage object owns a single SQLite connection from open() until
close(). Layers obtained from it run every read and write on that
connection, so a session issues its statements strictly one after
another. Every operation has an ``_async`` twin that runs the same code
on a worker thread.

Example:
    Create a layer, load features and read them back:
        >>> import shapely
        >>> from gpkg_helper.api.fluent import GeoPackage
        >>> from gpkg_helper.db.models import Feature
        >>> with GeoPackage.open("cities.gpkg") as gpkg:
        ...     layer = gpkg.ensure_layer(
        ...         "cities", {"name": "TEXT", "population": "INTEGER"}
        ...     )
        ...     layer.bulk_insert(
        ...         [Feature(shapely.Point(674032, 6580383), {"name": "Stockholm"})]
        ...     )
        ...     print(layer.count())
        1

    The same with asyncio:
        >>> async with await GeoPackage.open_async("cities.gpkg") as gpkg:
        ...     layer = await gpkg.ensure_layer_async("cities", columns)
        ...     async for feature in layer.read_features_async():
        ...         print(feature.attributes)
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import pathlib
from typing import TYPE_CHECKING, Self

from gpkg_helper.core import config, exceptions, notifications
from gpkg_helper.db import database, schema
from gpkg_helper.db import models as db_models
from gpkg_helper.services import add_data, create, read_data
from gpkg_helper.utils import concurrency

if TYPE_CHECKING:
    import sqlite3
    import threading
    from collections.abc import AsyncIterator, Callable, Iterable, Iterator, Mapping

logger = logging.getLogger(__name__)


class GeoPackage:
    """An open GeoPackage file.

    Use GeoPackage.open() (or open_async()) rather than the constructor.
    Instances are context managers, both sync and async, that close the
    connection on exit.
    """

    def __init__(
        self,
        path: pathlib.Path,
        connection: sqlite3.Connection,
        default_srid: int,
    ) -> None:
        self.path = path
        self.default_srid = default_srid
        self._conn: sqlite3.Connection | None = connection

    @classmethod
    def open(
        cls,
        path: str | pathlib.Path,
        default_srid: int | None = None,
        *,
        wal_mode: bool | None = None,
        on_status: Callable[[str], None] | None = None,
    ) -> GeoPackage:
        """Open a GeoPackage, creating and initialising it when missing.

        An existing file is opened as is. A new file gets the metadata
        tables and the default spatial reference systems.

        Args:
            path: GeoPackage file.
            default_srid: SRID for new layers and bulk inserts; settings
                default when None.
            wal_mode: Enable Write-Ahead Logging on a new file; settings
                default when None.
            on_status: Receives status messages.

        Returns:
            Open session.
        """
        settings = config.get_settings()
        srid = settings.default_srid if default_srid is None else default_srid
        wal_mode = settings.wal_mode if wal_mode is None else wal_mode
        notifier = notifications.Notifier(on_status=on_status)

        target = pathlib.Path(path)
        is_new = not target.exists()
        conn = database.connect(target)
        try:
            if is_new:
                create.initialize_geopackage(conn, srid, wal_mode, notifier)
                notifier.status(f"Successfully initialized GeoPackage: {path}")
        except BaseException:
            conn.close()
            raise
        return cls(target, conn, srid)

    @classmethod
    async def open_async(
        cls,
        path: str | pathlib.Path,
        default_srid: int | None = None,
        *,
        wal_mode: bool | None = None,
        on_status: Callable[[str], None] | None = None,
    ) -> GeoPackage:
        return await asyncio.to_thread(
            cls.open, path, default_srid, wal_mode=wal_mode, on_status=on_status
        )

    @property
    def connection(self) -> sqlite3.Connection:
        """The session connection.

        Raises:
            GeoPackageError: If the session was closed.
        """
        if self._conn is None:
            raise exceptions.GeoPackageError(f"GeoPackage is closed: {self.path}")
        return self._conn

    @property
    def closed(self) -> bool:
        return self._conn is None

    def layer_exists(self, layer_name: str) -> bool:
        return schema.layer_exists(self.connection, layer_name)

    def layer(self, layer_name: str) -> GeoPackageLayer:
        """Get a handle to an existing layer without checking for it."""
        return GeoPackageLayer(self, layer_name)

    def ensure_layer(
        self,
        layer_name: str,
        attribute_columns: Mapping[str, str],
        options: db_models.LayerCreateOptions | None = None,
    ) -> GeoPackageLayer:
        """Get a layer, creating it first if it is not registered.

        Args:
            layer_name: Layer table name.
            attribute_columns: Column names mapped to SQL types, used only
                when the layer is created.
            options: Creation options; the session SRID is used when
                ``options.srid`` is None.

        Returns:
            Handle to the layer.
        """
        if not self.layer_exists(layer_name):
            options = options or db_models.LayerCreateOptions()
            if options.srid is None:
                options = dataclasses.replace(options, srid=self.default_srid)
            create.create_layer_in_connection(
                self.connection, layer_name, attribute_columns, options
            )
            logger.info("Created layer %s in %s", layer_name, self.path)
        return GeoPackageLayer(self, layer_name)

    async def ensure_layer_async(
        self,
        layer_name: str,
        attribute_columns: Mapping[str, str],
        options: db_models.LayerCreateOptions | None = None,
    ) -> GeoPackageLayer:
        return await asyncio.to_thread(
            self.ensure_layer, layer_name, attribute_columns, options
        )

    def get_info(self) -> db_models.GeopackageInfo:
        return read_data.read_geopackage_info(self.connection)

    async def get_info_async(self) -> db_models.GeopackageInfo:
        return await asyncio.to_thread(self.get_info)

    def close(self) -> None:
        """Close the connection. Closing twice is a no-op."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    async def close_async(self) -> None:
        await asyncio.to_thread(self.close)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close_async()


class GeoPackageLayer:
    """One feature table of an open GeoPackage session."""

    def __init__(self, geopackage: GeoPackage, name: str) -> None:
        self.geopackage = geopackage
        self.name = name

    def __repr__(self) -> str:
        return f"GeoPackageLayer({self.name!r}, path={str(self.geopackage.path)!r})"

    def _where(self, where_clause: str | None) -> str:
        return f" WHERE {where_clause}" if where_clause else ""

    def bulk_insert(
        self,
        features: Iterable[db_models.Feature],
        options: db_models.BulkInsertOptions | None = None,
        progress: add_data.ProgressSink | None = None,
        cancel_event: threading.Event | None = None,
    ) -> int:
        """Insert features in committed batches.

        See add_data.insert_features() for batching, rollback and conflict
        policy behaviour. The session SRID is used when ``options.srid``
        is None.

        Returns:
            Number of features processed.
        """
        options = options or db_models.BulkInsertOptions()
        if options.srid is None:
            options = dataclasses.replace(options, srid=self.geopackage.default_srid)
        return add_data.insert_features(
            self.geopackage.connection,
            self.name,
            features,
            options,
            progress,
            cancel_event,
        )

    async def bulk_insert_async(
        self,
        features: Iterable[db_models.Feature],
        options: db_models.BulkInsertOptions | None = None,
        progress: add_data.ProgressSink | None = None,
    ) -> int:
        """Async bulk_insert(); task cancellation rolls back the open batch."""
        return await concurrency.run_cancellable(
            self.bulk_insert, features, options, progress
        )

    def read_features(
        self,
        options: db_models.ReadOptions | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Iterator[db_models.Feature]:
        return read_data.iter_features(
            self.geopackage.connection, self.name, options, cancel_event
        )

    async def read_features_async(
        self,
        options: db_models.ReadOptions | None = None,
    ) -> AsyncIterator[db_models.Feature]:
        async for feature in concurrency.iterate_in_thread(
            lambda cancel_event: self.read_features(options, cancel_event)
        ):
            yield feature

    def count(self, where_clause: str | None = None) -> int:
        """Count rows, optionally filtered by a raw SQL expression."""
        row = self.geopackage.connection.execute(
            f"SELECT COUNT(*) FROM {database.quote_identifier(self.name)}"
            f"{self._where(where_clause)}"
        ).fetchone()
        return int(row[0]) if row else 0

    async def count_async(self, where_clause: str | None = None) -> int:
        return await asyncio.to_thread(self.count, where_clause)

    def delete(self, where_clause: str | None = None) -> int:
        """Delete rows matching a raw SQL expression, or all rows.

        Returns:
            Number of rows deleted.
        """
        conn = self.geopackage.connection
        with database.transaction(conn):
            cursor = conn.execute(
                f"DELETE FROM {database.quote_identifier(self.name)}"
                f"{self._where(where_clause)}"
            )
        return cursor.rowcount

    async def delete_async(self, where_clause: str | None = None) -> int:
        return await asyncio.to_thread(self.delete, where_clause)

    def create_spatial_index(self) -> None:
        """Index the geometry column as ``idx_<layer>_<geometry column>``."""
        conn = self.geopackage.connection
        schema.create_spatial_index(
            conn, self.name, database.get_geometry_column(conn, self.name)
        )

    async def create_spatial_index_async(self) -> None:
        await asyncio.to_thread(self.create_spatial_index)
