"""Tests for the single point writer."""

from __future__ import annotations

import pathlib
import sqlite3

import pytest
import shapely

from gpkg_helper.core import exceptions, notifications
from gpkg_helper.db import models as db_models
from gpkg_helper.services import add_data, create, read_data
from gpkg_helper.utils import gpb

STOCKHOLM = shapely.Point(674032, 6580383)


@pytest.fixture
def layer_gpkg(gpkg_path: pathlib.Path) -> pathlib.Path:
    create.create_layer(gpkg_path, "cities", {"name": "TEXT", "population": "INTEGER"})
    return gpkg_path


def _rows(path: pathlib.Path) -> list[tuple]:
    conn = sqlite3.connect(path)
    try:
        return conn.execute("SELECT name, population, geom FROM cities").fetchall()
    finally:
        conn.close()


def test_add_point_create_insert_read(layer_gpkg: pathlib.Path) -> None:
    """Test the create, insert and read scenario for Stockholm."""
    add_data.add_point(layer_gpkg, "cities", STOCKHOLM, ["Stockholm", "975551"])

    features = list(read_data.read_features(layer_gpkg, "cities"))
    assert len(features) == 1
    feature = features[0]
    assert feature.attributes["name"] == "Stockholm"
    assert feature.attributes["population"] == "975551"
    assert feature.geometry is not None
    assert feature.geometry.x == pytest.approx(674032, abs=1e-9)
    assert feature.geometry.y == pytest.approx(6580383, abs=1e-9)


def test_add_point_blob_header(layer_gpkg: pathlib.Path) -> None:
    """Test that the stored geometry carries the default SRID."""
    add_data.add_point(layer_gpkg, "cities", STOCKHOLM, ["Stockholm", "975551"])
    (_, population, blob), = _rows(layer_gpkg)
    assert population == 975551
    assert gpb.read_geometry_blob_header(blob).srid == 3006


def test_add_point_explicit_srid(layer_gpkg: pathlib.Path) -> None:
    """Test that an explicit SRID is written into the blob."""
    add_data.add_point(layer_gpkg, "cities", STOCKHOLM, ["Stockholm", None], srid=4326)
    (_, population, blob), = _rows(layer_gpkg)
    assert population is None
    assert gpb.read_geometry_blob_header(blob).srid == 4326


def test_add_point_status(layer_gpkg: pathlib.Path) -> None:
    """Test the success status message."""
    messages: list[str] = []
    add_data.add_point(
        layer_gpkg,
        "cities",
        STOCKHOLM,
        ["Stockholm", "975551"],
        notifier=notifications.Notifier(on_status=messages.append),
    )
    assert messages == ["Successfully added point to layer 'cities' in GeoPackage"]


def test_add_point_column_count_mismatch(layer_gpkg: pathlib.Path) -> None:
    """Test that the wrong number of values lists the expected columns."""
    errors: list[str] = []
    with pytest.raises(exceptions.ColumnCountMismatchError) as excinfo:
        add_data.add_point(
            layer_gpkg,
            "cities",
            STOCKHOLM,
            ["Stockholm"],
            notifier=notifications.Notifier(on_error=errors.append),
        )
    error = excinfo.value
    assert error.received == 1
    assert [c.name for c in error.expected_columns] == ["name", "population"]
    assert "name(TEXT), population(INTEGER)" in str(error)
    assert errors == [str(error)]
    assert _rows(layer_gpkg) == []


def test_add_point_type_mismatch_writes_nothing(layer_gpkg: pathlib.Path) -> None:
    """Test that validation fails before any row is written."""
    with pytest.raises(exceptions.TypeMismatchError) as excinfo:
        add_data.add_point(layer_gpkg, "cities", STOCKHOLM, ["Stockholm", "many"])
    assert excinfo.value.index == 1
    assert excinfo.value.column_name == "population"
    assert _rows(layer_gpkg) == []


def test_add_point_blob_column(gpkg_path: pathlib.Path) -> None:
    """Test that BLOB attribute columns are rejected."""
    create.create_layer(gpkg_path, "files", {"name": "TEXT", "payload": "BLOB"})
    with pytest.raises(exceptions.UnsupportedColumnTypeError):
        add_data.add_point(gpkg_path, "files", STOCKHOLM, ["a", "deadbeef"])
    add_data.add_point(gpkg_path, "files", STOCKHOLM, ["a", ""])


def test_add_point_missing_file(tmp_path: pathlib.Path) -> None:
    """Test that a missing GeoPackage raises NotFound naming the path."""
    path = tmp_path / "missing.gpkg"
    with pytest.raises(exceptions.GeoPackageNotFoundError) as excinfo:
        add_data.add_point(path, "cities", STOCKHOLM, [])
    assert str(path) in str(excinfo.value)
    assert not path.exists()


def test_add_point_missing_layer(gpkg_path: pathlib.Path) -> None:
    """Test that an unknown layer raises LayerNotFoundError."""
    with pytest.raises(exceptions.LayerNotFoundError):
        add_data.add_point(gpkg_path, "lakes", STOCKHOLM, [])


def test_add_point_not_null_violation(gpkg_path: pathlib.Path) -> None:
    """Test that store constraint errors propagate unwrapped."""
    create.create_layer(gpkg_path, "strict", {"name": "TEXT NOT NULL"})
    with pytest.raises(sqlite3.IntegrityError):
        add_data.add_point(gpkg_path, "strict", STOCKHOLM, [""])


def test_add_point_keeps_empty_text(layer_gpkg: pathlib.Path) -> None:
    """Test the distinguishing mode for empty strings."""
    add_data.add_point(
        layer_gpkg, "cities", STOCKHOLM, ["", ""], empty_string_as_null=False
    )
    (name, population, _), = _rows(layer_gpkg)
    assert name == ""
    assert population is None


def test_build_insert_sql() -> None:
    """Test the INSERT verb for each conflict policy."""
    columns = [db_models.ColumnInfo("name", "TEXT"), db_models.ColumnInfo("rank", "INTEGER")]
    assert add_data.build_insert_sql("cities", columns, "geom") == (
        'INSERT INTO "cities" ("name", "rank", "geom") VALUES (?, ?, ?)'
    )
    assert add_data.build_insert_sql(
        "cities", columns, "geom", db_models.ConflictPolicy.IGNORE
    ).startswith("INSERT OR IGNORE INTO")
    assert add_data.build_insert_sql(
        "cities", columns, "geom", db_models.ConflictPolicy.REPLACE
    ).startswith("INSERT OR REPLACE INTO")
