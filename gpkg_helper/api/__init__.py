"""Public session API for GeoPackage files.

Submodules:
    - fluent: GeoPackage and GeoPackageLayer, a connection-owning session
      with sync and async operations for layer creation, bulk loading,
      reading, counting, deleting and indexing.

The function style services in ``gpkg_helper.services`` open one
connection per call; the session API keeps one open for many calls.
"""
