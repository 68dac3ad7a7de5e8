"""Tests for GeoPackage and layer creation.

Verifies the metadata tables, spatial reference systems, journal mode,
layer table layout, registration rows and status/error notifications.
"""

from __future__ import annotations

import pathlib
import sqlite3

import pytest

from gpkg_helper.core import exceptions, notifications
from gpkg_helper.db import database, schema
from gpkg_helper.db import models as db_models
from gpkg_helper.services import create


def _query(path: pathlib.Path, sql: str, params: tuple = ()) -> list[tuple]:
    conn = sqlite3.connect(path)
    try:
        return conn.execute(sql, params).fetchall()
    finally:
        conn.close()


def test_create_geopackage_metadata(gpkg_path: pathlib.Path) -> None:
    """Test application id and metadata tables of a new GeoPackage."""
    assert _query(gpkg_path, "PRAGMA application_id") == [
        (schema.GEOPACKAGE_APPLICATION_ID,)
    ]
    tables = {
        row[0]
        for row in _query(gpkg_path, "SELECT name FROM sqlite_master WHERE type='table'")
    }
    assert {"gpkg_spatial_ref_sys", "gpkg_contents", "gpkg_geometry_columns"} <= tables


def test_create_geopackage_srs_rows(gpkg_path: pathlib.Path) -> None:
    """Test that the default spatial reference systems are present."""
    srids = {row[0] for row in _query(gpkg_path, "SELECT srs_id FROM gpkg_spatial_ref_sys")}
    assert srids == {3006, 4326, -1, 0}


def test_create_geopackage_unknown_srid(tmp_path: pathlib.Path) -> None:
    """Test that an extra SRID gets a placeholder row."""
    path = tmp_path / "other.gpkg"
    create.create_geopackage(path, srid=32633)
    rows = _query(
        path,
        "SELECT organization, definition FROM gpkg_spatial_ref_sys WHERE srs_id = ?",
        (32633,),
    )
    assert rows == [("EPSG", "undefined")]


def test_create_geopackage_replaces_file(tmp_path: pathlib.Path) -> None:
    """Test that an existing file is deleted and reported."""
    path = tmp_path / "replace.gpkg"
    path.write_bytes(b"not a geopackage")
    messages: list[str] = []
    create.create_geopackage(
        path, notifier=notifications.Notifier(on_status=messages.append)
    )
    assert messages[0] == f"Deleted existing GeoPackage file: {path}"
    assert messages[-1] == f"Successfully created GeoPackage: {path}"
    assert _query(path, "SELECT COUNT(*) FROM gpkg_contents") == [(0,)]


def test_create_geopackage_wal_mode(tmp_path: pathlib.Path) -> None:
    """Test that WAL mode is enabled and persisted when requested."""
    path = tmp_path / "wal.gpkg"
    messages: list[str] = []
    create.create_geopackage(
        path,
        wal_mode=True,
        notifier=notifications.Notifier(on_status=messages.append),
    )
    assert _query(path, "PRAGMA journal_mode") == [("wal",)]
    assert create.WAL_ENABLED_MESSAGE in messages


def test_create_geopackage_default_journal(gpkg_path: pathlib.Path) -> None:
    """Test that the rollback journal is kept by default."""
    assert _query(gpkg_path, "PRAGMA journal_mode") == [("delete",)]


def test_create_geopackage_wal_from_settings(
    tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test that GPKG_WAL_MODE supplies the default."""
    monkeypatch.setenv("GPKG_WAL_MODE", "true")
    path = tmp_path / "wal_env.gpkg"
    create.create_geopackage(path)
    assert _query(path, "PRAGMA journal_mode") == [("wal",)]


def test_create_layer_table(gpkg_path: pathlib.Path) -> None:
    """Test the identity, attribute and geometry columns of a layer."""
    create.create_layer(gpkg_path, "cities", {"name": "TEXT", "population": "INTEGER"})
    with database.open_connection(gpkg_path) as conn:
        columns = database.get_columns(conn, "cities")
    assert [(c.name, c.type, c.is_primary_key) for c in columns] == [
        ("id", "INTEGER", True),
        ("name", "TEXT", False),
        ("population", "INTEGER", False),
        ("geom", "BLOB", False),
    ]


def test_create_layer_registration(gpkg_path: pathlib.Path) -> None:
    """Test the gpkg_contents and gpkg_geometry_columns rows."""
    create.create_layer(
        gpkg_path,
        "roads",
        {"name": "TEXT"},
        db_models.LayerCreateOptions(
            srid=4326,
            geometry_type="LINESTRING",
            geometry_column="shape",
            extent=(10.0, 55.0, 24.0, 69.0),
        ),
    )
    assert _query(
        gpkg_path,
        "SELECT data_type, identifier, description, srs_id, min_x, min_y, max_x, max_y "
        "FROM gpkg_contents WHERE table_name = 'roads'",
    ) == [("features", "roads", "Spatial table roads", 4326, 10.0, 55.0, 24.0, 69.0)]
    assert _query(
        gpkg_path,
        "SELECT column_name, geometry_type_name, srs_id, z, m "
        "FROM gpkg_geometry_columns WHERE table_name = 'roads'",
    ) == [("shape", "LINESTRING", 4326, 0, 0)]


def test_create_layer_status(gpkg_path: pathlib.Path) -> None:
    """Test the success status message."""
    messages: list[str] = []
    create.create_layer(
        gpkg_path,
        "cities",
        {"name": "TEXT"},
        notifier=notifications.Notifier(on_status=messages.append),
    )
    assert messages == ["Successfully created spatial layer 'cities' in GeoPackage"]


def test_create_layer_missing_file(tmp_path: pathlib.Path) -> None:
    """Test that a missing GeoPackage raises and is not created."""
    path = tmp_path / "missing.gpkg"
    errors: list[str] = []
    with pytest.raises(exceptions.GeoPackageNotFoundError) as excinfo:
        create.create_layer(
            path,
            "cities",
            {"name": "TEXT"},
            notifier=notifications.Notifier(on_error=errors.append),
        )
    assert excinfo.value.path == str(path)
    assert not path.exists()
    assert errors == [f"Error creating GeoPackage layer: GeoPackage file not found: {path}"]


def test_create_layer_twice_rolls_back(gpkg_path: pathlib.Path) -> None:
    """Test that a duplicate layer fails without touching the metadata."""
    create.create_layer(gpkg_path, "cities", {"name": "TEXT"})
    errors: list[str] = []
    with pytest.raises(sqlite3.OperationalError):
        create.create_layer(
            gpkg_path,
            "cities",
            {"name": "TEXT"},
            notifier=notifications.Notifier(on_error=errors.append),
        )
    assert len(errors) == 1
    assert errors[0].startswith("Error creating GeoPackage layer:")
    assert _query(gpkg_path, "SELECT COUNT(*) FROM gpkg_contents") == [(1,)]


def test_layer_exists(gpkg_path: pathlib.Path) -> None:
    """Test layer lookup in gpkg_contents."""
    create.create_layer(gpkg_path, "cities", {"name": "TEXT"})
    with database.open_connection(gpkg_path) as conn:
        assert schema.layer_exists(conn, "cities")
        assert not schema.layer_exists(conn, "lakes")
