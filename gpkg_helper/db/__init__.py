"""Database access and data models.

This package holds the SQLite connection helpers, the GeoPackage
metadata schema and the data structures shared by the services. It is
the only place that knows how a layer table is laid out.

Example:
    Discover the attribute columns of a layer:
        >>> from gpkg_helper.db import database
        >>> with database.open_connection("cities.gpkg") as conn:
        ...     columns = database.get_attribute_columns(conn, "cities")
"""
