"""GeoPackage helper library.

Creates GeoPackage files, validates and writes point features with text
attributes, bulk loads features in committed batches and streams them
back as shapely geometries with text attributes. Geometries are stored
in the GeoPackage binary format: a small header followed by WKB.

- services.create: new GeoPackages and layers
- services.add_data: single point and bulk feature writers
- services.read_data: feature reader and metadata summary
- api.fluent: connection-owning session API with async variants
- cli: ``gpkg-helper`` schema browser and feature dump

Settings are read from ``GPKG_`` environment variables, see
``gpkg_helper.core.config``.
"""

__version__ = "0.1.0"
