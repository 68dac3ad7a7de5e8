"""Pytest configuration: import path and shared GeoPackage fixtures."""

from __future__ import annotations

import pathlib
import sys
from collections.abc import Iterator

import pytest
import shapely

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from gpkg_helper.core import config  # noqa: E402
from gpkg_helper.db import models as db_models  # noqa: E402
from gpkg_helper.services import add_data, create  # noqa: E402

CITY_COLUMNS = {"name": "TEXT", "population": "INTEGER", "rank": "INTEGER"}


@pytest.fixture(autouse=True)
def fresh_settings() -> Iterator[None]:
    """Reload settings for every test so env overrides do not leak."""
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


@pytest.fixture
def gpkg_path(tmp_path: pathlib.Path) -> pathlib.Path:
    """An empty GeoPackage using SRID 3006."""
    path = tmp_path / "test.gpkg"
    create.create_geopackage(path, srid=3006)
    return path


@pytest.fixture
def cities_gpkg(gpkg_path: pathlib.Path) -> pathlib.Path:
    """A GeoPackage with a ``cities`` layer holding 20 ranked points."""
    create.create_layer(gpkg_path, "cities", CITY_COLUMNS)
    features = [
        db_models.Feature(
            geometry=shapely.Point(600000 + i * 1000, 6500000 + i * 1000),
            attributes={
                "name": f"City {i}",
                "population": str(i * 1000),
                "rank": str(i),
            },
        )
        for i in range(1, 21)
    ]
    add_data.bulk_insert_features(gpkg_path, "cities", features)
    return gpkg_path
