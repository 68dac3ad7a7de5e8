"""Tests for the gpkg-helper command line."""

from __future__ import annotations

import json
import pathlib
import sqlite3

import pytest
import shapely

from gpkg_helper import cli
from gpkg_helper.db import models as db_models
from gpkg_helper.services import create


def test_info_prints_layers(cities_gpkg: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test the layer report, suggested dataclass and sample rows."""
    assert cli.main(["info", str(cities_gpkg), "--samples", "2"]) == 0
    out = capsys.readouterr().out
    assert f"Inspecting GeoPackage: {cities_gpkg}" in out
    assert "Layer: cities" in out
    assert "  SRID: 3006" in out
    assert "  Geometry: geom (POINT)" in out
    assert "    - id : INTEGER PK" in out
    assert "  class CitiesAttributes:" in out
    assert "      population: int | None" in out
    assert "Sample rows (up to 2):" in out
    assert "    - POINT(601000,6501000) | name=City 1, population=1000, rank=1" in out
    assert "City 3" not in out


def test_info_null_values(gpkg_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test the placeholders for missing geometry and NULL attributes."""
    create.create_layer(gpkg_path, "empty_values", {"name": "TEXT"})
    conn = sqlite3.connect(gpkg_path)
    try:
        conn.execute("INSERT INTO empty_values (name, geom) VALUES (NULL, NULL)")
        conn.commit()
    finally:
        conn.close()
    assert cli.main(["info", str(gpkg_path)]) == 0
    out = capsys.readouterr().out
    assert "  class EmptyValuesAttributes:" in out
    assert "    - <no geom> | name=<null>" in out


def test_info_missing_file(tmp_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that a missing file is reported on stderr with exit code 1."""
    path = tmp_path / "missing.gpkg"
    assert cli.main(["info", str(path)]) == 1
    captured = capsys.readouterr()
    assert f"File not found: {path}" in captured.err
    assert captured.out == ""


def test_read_json_lines(cities_gpkg: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test the JSON line dump with filter and ordering."""
    assert cli.main(
        [
            "read",
            str(cities_gpkg),
            "cities",
            "--where",
            "rank > 18",
            "--order-by",
            "rank DESC",
            "--log-level",
            "debug",
        ]
    ) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    records = [json.loads(line) for line in lines]
    assert [r["attributes"]["rank"] for r in records] == ["20", "19"]
    assert shapely.from_wkt(records[0]["geometry"]).equals(shapely.Point(620000, 6520000))


def test_read_no_geometry(cities_gpkg: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that --no-geometry writes null geometries."""
    assert cli.main(["read", str(cities_gpkg), "cities", "--limit", "1", "--no-geometry"]) == 0
    record = json.loads(capsys.readouterr().out)
    assert record["geometry"] is None
    assert record["attributes"]["name"] == "City 1"


@pytest.mark.parametrize(
    ("column", "expected"),
    [
        (db_models.ColumnInfo("a", "INTEGER", not_null=True), "int"),
        (db_models.ColumnInfo("a", "real"), "float | None"),
        (db_models.ColumnInfo("a", "BLOB"), "bytes | None"),
        (db_models.ColumnInfo("a", "DATE"), "str | None"),
    ],
)
def test_python_type(column: db_models.ColumnInfo, expected: str) -> None:
    """Test the annotations suggested for each column type."""
    assert cli.python_type(column) == expected


def test_name_helpers() -> None:
    """Test class and attribute name generation."""
    assert cli.pascal_case("road_segments-2024") == "RoadSegments2024"
    assert cli.python_identifier("Max Speed") == "max_speed"
    assert cli.python_identifier("2nd") == "_2nd"
