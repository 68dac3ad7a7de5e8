"""Optional status, warning and error sinks.

Operations accept a Notifier so applications can surface progress
messages in their own UI. Every notification is logged through the
standard ``logging`` module first and then forwarded to the matching
callable when one was supplied; the callables are never required for
correct behaviour.

Example:
    Collect status messages while creating a GeoPackage:
        >>> messages = []
        >>> notifier = Notifier(on_status=messages.append)
        >>> create.create_geopackage("cities.gpkg", notifier=notifier)
        >>> messages[-1]
        'Successfully created GeoPackage: cities.gpkg'
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger("gpkg_helper")


@dataclasses.dataclass(frozen=True)
class Notifier:
    """Bundle of optional message callbacks.

    Attributes:
        on_status: Receives informational messages.
        on_warning: Receives non-fatal anomalies, such as unrecognized
            column types.
        on_error: Receives the message of an error that is about to be
            raised. The error is raised regardless.
    """

    on_status: Callable[[str], None] | None = None
    on_warning: Callable[[str], None] | None = None
    on_error: Callable[[str], None] | None = None

    def status(self, message: str) -> None:
        logger.info(message)
        if self.on_status is not None:
            self.on_status(message)

    def warning(self, message: str) -> None:
        logger.warning(message)
        if self.on_warning is not None:
            self.on_warning(message)

    def error(self, message: str) -> None:
        logger.error(message)
        if self.on_error is not None:
            self.on_error(message)


DEFAULT_NOTIFIER = Notifier()
