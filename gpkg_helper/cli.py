"""Command line entry point: ``gpkg-helper``.

Two sub-commands are provided:

- ``info``: print every layer of a GeoPackage with its columns, a
  suggested Python dataclass for its attributes and a few sample rows.
- ``read``: dump the features of one layer as JSON lines.

Example:
    Inspect a GeoPackage and dump the largest cities:
        $ gpkg-helper info cities.gpkg --samples 5
        $ gpkg-helper read cities.gpkg cities --order-by "population DESC" --limit 3
"""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from typing import TYPE_CHECKING

import shapely

from gpkg_helper.core import config, exceptions
from gpkg_helper.db import models as db_models
from gpkg_helper.services import attributes, read_data

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

_PYTHON_TYPES = {
    attributes.ColumnTypeFamily.INTEGER: "int",
    attributes.ColumnTypeFamily.REAL: "float",
    attributes.ColumnTypeFamily.TEXT: "str",
    attributes.ColumnTypeFamily.BLOB: "bytes",
    attributes.ColumnTypeFamily.UNKNOWN: "str",
}


def pascal_case(name: str) -> str:
    parts = re.split(r"[_\s-]+", name)
    return "".join(p[0].upper() + p[1:] for p in parts if p)


def python_identifier(name: str) -> str:
    identifier = re.sub(r"\W", "_", name).lower()
    if not identifier or identifier[0].isdigit():
        identifier = f"_{identifier}"
    return identifier


def python_type(column: db_models.ColumnInfo) -> str:
    """Python annotation for values of a column; nullable unless NOT NULL."""
    core = _PYTHON_TYPES[attributes.type_family(column.type)]
    return core if column.not_null else f"{core} | None"


def summarize_geometry(geometry: shapely.Geometry | None) -> str:
    if geometry is None:
        return "<no geom>"
    if isinstance(geometry, shapely.Point) and not geometry.is_empty:
        x = attributes.format_value(geometry.x)
        y = attributes.format_value(geometry.y)
        return f"POINT({x},{y})"
    return geometry.geom_type


def format_layer(
    path: str,
    layer: db_models.LayerInfo,
    samples: int,
) -> list[str]:
    """Render one layer of the ``info`` report as lines of text."""

    def fmt(value: float | None) -> str:
        return attributes.format_value(value) or ""

    lines = [
        f"Layer: {layer.table_name}",
        f"  Type: {layer.data_type}",
        f"  SRID: {layer.srid if layer.srid is not None else '<null>'}",
        f"  Geometry: {layer.geometry_column or '<none>'} "
        f"({layer.geometry_type or '<unknown>'})",
        f"  Extent: [{fmt(layer.min_x)}, {fmt(layer.min_y)}] -> "
        f"[{fmt(layer.max_x)}, {fmt(layer.max_y)}]",
        "  Columns:",
    ]
    for column in layer.columns:
        pk = " PK" if column.is_primary_key else ""
        not_null = " NOT NULL" if column.not_null else ""
        lines.append(f"    - {column.name} : {column.type}{pk}{not_null}")

    lines.append("")
    lines.append("  Suggested attribute dataclass:")
    lines.append("  @dataclasses.dataclass")
    lines.append(f"  class {pascal_case(layer.table_name)}Attributes:")
    if not layer.attribute_columns:
        lines.append("      pass")
    for column in layer.attribute_columns:
        lines.append(
            f"      {python_identifier(column.name)}: {python_type(column)}"
        )
    lines.append("")

    lines.append(f"  Sample rows (up to {samples}):")
    options = db_models.ReadOptions(
        include_geometry=layer.geometry_column is not None,
        limit=samples,
    )
    for feature in read_data.read_features(path, layer.table_name, options):
        attrs = ", ".join(
            f"{name}={value if value is not None else '<null>'}"
            for name, value in feature.attributes.items()
        )
        lines.append(f"    - {summarize_geometry(feature.geometry)} | {attrs}")
    lines.append("-" * 80)
    return lines


def run_info(args: argparse.Namespace) -> int:
    info = read_data.get_geopackage_info(args.path)
    print(f"Inspecting GeoPackage: {args.path}")
    print()
    for layer in info.layers:
        for line in format_layer(args.path, layer, args.samples):
            print(line)
    return 0


def feature_to_json(feature: db_models.Feature) -> str:
    return json.dumps(
        {
            "geometry": (
                shapely.to_wkt(feature.geometry)
                if feature.geometry is not None
                else None
            ),
            "attributes": dict(feature.attributes),
        }
    )


def run_read(args: argparse.Namespace) -> int:
    options = db_models.ReadOptions(
        include_geometry=not args.no_geometry,
        where_clause=args.where,
        order_by=args.order_by,
        limit=args.limit,
        offset=args.offset,
    )
    for feature in read_data.read_features(args.path, args.layer, options):
        print(feature_to_json(feature))
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: GPKG_LOG_LEVEL or WARNING).",
    )

    parser = argparse.ArgumentParser(
        prog="gpkg-helper",
        description="Inspect and dump GeoPackage feature layers.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    info = subparsers.add_parser(
        "info", parents=[common], help="Describe layers and sample rows."
    )
    info.add_argument("path", help="GeoPackage file.")
    info.add_argument(
        "--samples",
        type=int,
        default=3,
        help="Sample rows printed per layer (default: 3).",
    )
    info.set_defaults(handler=run_info)

    read = subparsers.add_parser(
        "read", parents=[common], help="Print features as JSON lines."
    )
    read.add_argument("path", help="GeoPackage file.")
    read.add_argument("layer", help="Layer table name.")
    read.add_argument("--where", default=None, help="Raw SQL WHERE expression.")
    read.add_argument("--order-by", default=None, help="Raw SQL ORDER BY expression.")
    read.add_argument("--limit", type=int, default=None)
    read.add_argument("--offset", type=int, default=None)
    read.add_argument(
        "--no-geometry",
        action="store_true",
        help="Skip geometry decoding.",
    )
    read.set_defaults(handler=run_read)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = config.get_settings()
    if args.log_level:
        settings = settings.model_copy(update={"log_level": args.log_level.upper()})
    config.configure_logging(settings)

    try:
        return args.handler(args)
    except exceptions.GeoPackageNotFoundError as e:
        print(f"File not found: {e.path}", file=sys.stderr)
        return 1
    except exceptions.GeoPackageError as e:
        logger.debug("Command failed", exc_info=True)
        print(str(e), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
