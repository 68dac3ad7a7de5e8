"""Library settings and configuration management.

This module provides Pydantic-based settings management that loads
defaults from environment variables (prefixed with ``GPKG_``) or a .env
file. Settings only supply defaults: every public operation also accepts
explicit arguments, and an explicit argument always wins over a setting.

Example:
    Settings can be accessed via the cached get_settings() function:
        >>> from gpkg_helper.core.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.default_srid)
        3006

    Environment variables can override defaults:
        >>> GPKG_DEFAULT_SRID=4326
        >>> GPKG_BATCH_SIZE=5000
        >>> GPKG_WAL_MODE=true
"""

import functools
import logging

import pydantic
import pydantic_settings


class Settings(pydantic_settings.BaseSettings):
    """Runtime defaults pulled from environment variables or defaults.

    Attributes:
        default_srid: SRID used when an operation is not given one
            (3006, SWEREF99 TM).
        geometry_column: Default geometry column name for new layers.
        id_column: Name of the identity column of layer tables.
        batch_size: Default number of rows per bulk insert transaction.
        wal_mode: Whether new GeoPackages use Write-Ahead Logging.
        empty_string_as_null: When True an empty attribute string is
            stored as NULL; when False it is kept as ``''`` for text-like
            columns.
        log_level: Level applied by configure_logging().
        log_format: Format string applied by configure_logging().

    Example:
        Create settings with custom values:
            >>> settings = Settings(default_srid=4326, batch_size=500)
    """

    default_srid: int = 3006
    geometry_column: str = "geom"
    id_column: str = "id"
    batch_size: int = pydantic.Field(default=1000, ge=1)
    wal_mode: bool = False
    empty_string_as_null: bool = True
    log_level: str = "WARNING"
    log_format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix="GPKG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @pydantic.field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return level


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded from environment variables or .env file and cached
    for the lifetime of the process. Subsequent calls return the same
    cached instance.

    Returns:
        Settings instance with all configuration values populated.
    """
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging from settings.

    The library itself only creates module loggers; this is meant for
    applications and the command line entry point.

    Args:
        settings: Settings to read the level and format from. Defaults to
            the cached settings.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level, format=settings.log_format)
