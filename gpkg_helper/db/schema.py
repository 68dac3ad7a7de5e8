"""GeoPackage metadata tables and registration statements.

The statements here create the three mandatory GeoPackage metadata
tables (``gpkg_spatial_ref_sys``, ``gpkg_contents`` and
``gpkg_geometry_columns``), seed the spatial reference systems and
register feature tables. They are plain, fixed SQL executed on an
existing connection; callers own the transaction.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

from gpkg_helper.db import database

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Mapping

    from gpkg_helper.db import models as db_models

GEOPACKAGE_APPLICATION_ID = 1196444487  # 'GPKG' in ASCII
GEOPACKAGE_MIME_TYPE = "application/geopackage+sqlite3"
GEOPACKAGE_FILE_EXTENSION = ".gpkg"

CREATE_SPATIAL_REF_SYS_SQL = """
CREATE TABLE gpkg_spatial_ref_sys (
  srs_name TEXT NOT NULL,
  srs_id INTEGER NOT NULL PRIMARY KEY,
  organization TEXT NOT NULL,
  organization_coordsys_id INTEGER NOT NULL,
  definition TEXT NOT NULL,
  description TEXT
);
"""

CREATE_CONTENTS_SQL = """
CREATE TABLE gpkg_contents (
  table_name TEXT NOT NULL PRIMARY KEY,
  data_type TEXT NOT NULL,
  identifier TEXT UNIQUE,
  description TEXT DEFAULT '',
  last_change DATETIME NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now')),
  min_x DOUBLE,
  min_y DOUBLE,
  max_x DOUBLE,
  max_y DOUBLE,
  srs_id INTEGER,
  CONSTRAINT fk_gc_r_srs_id FOREIGN KEY (srs_id)
    REFERENCES gpkg_spatial_ref_sys(srs_id)
);
"""

CREATE_GEOMETRY_COLUMNS_SQL = """
CREATE TABLE gpkg_geometry_columns (
  table_name TEXT NOT NULL,
  column_name TEXT NOT NULL,
  geometry_type_name TEXT NOT NULL,
  srs_id INTEGER NOT NULL,
  z TINYINT NOT NULL,
  m TINYINT NOT NULL,
  CONSTRAINT pk_geom_cols PRIMARY KEY (table_name, column_name),
  CONSTRAINT uk_gc_table_name UNIQUE (table_name),
  CONSTRAINT fk_gc_tn FOREIGN KEY (table_name)
    REFERENCES gpkg_contents(table_name),
  CONSTRAINT fk_gc_srs FOREIGN KEY (srs_id)
    REFERENCES gpkg_spatial_ref_sys(srs_id)
);
"""

INSERT_SRS_SQL = """
INSERT OR REPLACE INTO gpkg_spatial_ref_sys (
  srs_name, srs_id, organization, organization_coordsys_id,
  definition, description
) VALUES (
  :srs_name, :srs_id, :organization, :organization_coordsys_id,
  :definition, :description
);
"""


@dataclasses.dataclass(frozen=True)
class SpatialRefSys:
    srs_name: str
    srs_id: int
    organization: str
    organization_coordsys_id: int
    definition: str
    description: str | None


SWEREF99_TM = SpatialRefSys(
    srs_name="SWEREF99 TM",
    srs_id=3006,
    organization="EPSG",
    organization_coordsys_id=3006,
    definition=(
        'PROJCS["SWEREF99 TM",GEOGCS["SWEREF99",DATUM["SWEREF99",'
        'SPHEROID["GRS 1980",6378137,298.257222101,AUTHORITY["EPSG","7019"]],'
        'TOWGS84[0,0,0,0,0,0,0],AUTHORITY["EPSG","6619"]],'
        'PRIMEM["Greenwich",0,AUTHORITY["EPSG","8901"]],'
        'UNIT["degree",0.01745329251994328,AUTHORITY["EPSG","9122"]],'
        'AUTHORITY["EPSG","4619"]],UNIT["metre",1,AUTHORITY["EPSG","9001"]],'
        'PROJECTION["Transverse_Mercator"],'
        'PARAMETER["latitude_of_origin",0],PARAMETER["central_meridian",15],'
        'PARAMETER["scale_factor",0.9996],PARAMETER["false_easting",500000],'
        'PARAMETER["false_northing",0],AUTHORITY["EPSG","3006"],'
        'AXIS["Y",NORTH],AXIS["X",EAST]]'
    ),
    description="Swedish national coordinate system",
)

WGS84 = SpatialRefSys(
    srs_name="WGS 84",
    srs_id=4326,
    organization="EPSG",
    organization_coordsys_id=4326,
    definition=(
        'GEOGCS["WGS 84",DATUM["WGS_1984",'
        'SPHEROID["WGS 84",6378137,298.257223563,AUTHORITY["EPSG","7030"]],'
        'AUTHORITY["EPSG","6326"]],'
        'PRIMEM["Greenwich",0,AUTHORITY["EPSG","8901"]],'
        'UNIT["degree",0.01745329251994328,AUTHORITY["EPSG","9122"]],'
        'AUTHORITY["EPSG","4326"]]'
    ),
    description="World Geodetic System 1984",
)

UNDEFINED_CARTESIAN = SpatialRefSys(
    srs_name="Undefined cartesian SRS",
    srs_id=-1,
    organization="NONE",
    organization_coordsys_id=-1,
    definition="undefined",
    description="undefined cartesian coordinate reference system",
)

UNDEFINED_GEOGRAPHIC = SpatialRefSys(
    srs_name="Undefined geographic SRS",
    srs_id=0,
    organization="NONE",
    organization_coordsys_id=0,
    definition="undefined",
    description="undefined geographic coordinate reference system",
)

DEFAULT_SPATIAL_REF_SYSTEMS = (
    SWEREF99_TM,
    WGS84,
    UNDEFINED_CARTESIAN,
    UNDEFINED_GEOGRAPHIC,
)


def create_metadata_tables(conn: sqlite3.Connection) -> None:
    """Mark the database as a GeoPackage and create the metadata tables."""
    conn.execute(f"PRAGMA application_id = {GEOPACKAGE_APPLICATION_ID}")
    conn.execute(CREATE_SPATIAL_REF_SYS_SQL)
    conn.execute(CREATE_CONTENTS_SQL)
    conn.execute(CREATE_GEOMETRY_COLUMNS_SQL)


def setup_spatial_reference_systems(
    conn: sqlite3.Connection,
    srid: int,
) -> None:
    """Insert the standard SRS rows plus a placeholder for ``srid``.

    SWEREF99 TM, WGS 84 and the two undefined systems required by the
    GeoPackage standard are always present. Any other ``srid`` gets an
    EPSG row with an ``undefined`` definition so that layers can
    reference it.
    """
    rows = list(DEFAULT_SPATIAL_REF_SYSTEMS)
    if srid not in {srs.srs_id for srs in rows}:
        rows.append(
            SpatialRefSys(
                srs_name=f"EPSG:{srid}",
                srs_id=srid,
                organization="EPSG",
                organization_coordsys_id=srid,
                definition="undefined",
                description=None,
            )
        )
    conn.executemany(INSERT_SRS_SQL, [dataclasses.asdict(srs) for srs in rows])


def create_feature_table(
    conn: sqlite3.Connection,
    table_name: str,
    columns: Mapping[str, str],
    geometry_column: str,
    id_column: str,
) -> None:
    """Create a feature table with identity, attribute and geometry columns."""
    definitions = [
        f"{database.quote_identifier(id_column)} INTEGER PRIMARY KEY AUTOINCREMENT"
    ]
    definitions.extend(
        f"{database.quote_identifier(name)} {sql_type}"
        for name, sql_type in columns.items()
    )
    definitions.append(f"{database.quote_identifier(geometry_column)} BLOB")
    conn.execute(
        f"CREATE TABLE {database.quote_identifier(table_name)} "
        f"({', '.join(definitions)})"
    )


def register_table_in_contents(
    conn: sqlite3.Connection,
    table_name: str,
    srid: int,
    extent: db_models.BBox | None = None,
) -> None:
    """Register a feature table in ``gpkg_contents``."""
    min_x, min_y, max_x, max_y = extent or (None, None, None, None)
    conn.execute(
        """
        INSERT INTO gpkg_contents (
            table_name, data_type, identifier, description, srs_id,
            min_x, min_y, max_x, max_y
        ) VALUES (
            :table_name, 'features', :table_name, :description, :srs_id,
            :min_x, :min_y, :max_x, :max_y
        )
        """,
        {
            "table_name": table_name,
            "description": f"Spatial table {table_name}",
            "srs_id": srid,
            "min_x": min_x,
            "min_y": min_y,
            "max_x": max_x,
            "max_y": max_y,
        },
    )


def register_geometry_column(
    conn: sqlite3.Connection,
    table_name: str,
    geometry_column: str,
    geometry_type: str,
    srid: int,
) -> None:
    """Register a geometry column in ``gpkg_geometry_columns``."""
    conn.execute(
        """
        INSERT INTO gpkg_geometry_columns (
            table_name, column_name, geometry_type_name, srs_id, z, m
        ) VALUES (?, ?, ?, ?, 0, 0)
        """,
        (table_name, geometry_column, geometry_type, srid),
    )


def layer_exists(conn: sqlite3.Connection, table_name: str) -> bool:
    """Check whether a table is registered in ``gpkg_contents``."""
    row = conn.execute(
        "SELECT COUNT(*) FROM gpkg_contents WHERE table_name = ?",
        (table_name,),
    ).fetchone()
    return bool(row and row[0] > 0)


def spatial_index_name(table_name: str, geometry_column: str) -> str:
    return f"idx_{table_name}_{geometry_column}"


def create_spatial_index(
    conn: sqlite3.Connection,
    table_name: str,
    geometry_column: str,
) -> None:
    """Create the geometry column index if it does not exist yet."""
    conn.execute(
        "CREATE INDEX IF NOT EXISTS "
        f"{database.quote_identifier(spatial_index_name(table_name, geometry_column))} "
        f"ON {database.quote_identifier(table_name)}"
        f"({database.quote_identifier(geometry_column)})"
    )
