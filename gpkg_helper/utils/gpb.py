"""GeoPackage Binary (GPB) geometry blob encoding and decoding.

A geometry stored in a GeoPackage feature table is a standard WKB payload
prefixed by a small header:

- 2 bytes: Magic 'GP' (0x47, 0x50)
- 1 byte: Version (0x00)
- 1 byte: Flags (byte order in bit 0, envelope indicator in bits 1-3)
- 4 bytes: SRS ID, signed 32-bit little endian
- Variable: Envelope (0/32/48/64 bytes for indicator 0/1/2/3)
- Rest: WKB payload

The WKB payload itself is opaque here; parsing it into a geometry is left
to shapely.

Example:
    Wrap and unwrap the WKB of a point:
        >>> import shapely
        >>> wkb = shapely.to_wkb(shapely.Point(674032, 6580383))
        >>> blob = encode_geometry_blob(wkb, 3006)
        >>> blob[:2]
        b'GP'
        >>> decode_geometry_blob(blob) == wkb
        True
"""

from __future__ import annotations

import struct
from typing import NamedTuple

from gpkg_helper.core import exceptions

MAGIC = b"GP"
VERSION = 0x00
# Little-endian header, no envelope, standard binary type.
FLAGS_NO_ENVELOPE = 0x01
MIN_HEADER_SIZE = 8

ENVELOPE_SIZES = {0: 0, 1: 32, 2: 48, 3: 64}

_HEADER = struct.Struct("<2sBBi")


class GeometryBlobHeader(NamedTuple):
    version: int
    flags: int
    srid: int
    envelope_indicator: int
    envelope_size: int

    @property
    def size(self) -> int:
        return MIN_HEADER_SIZE + self.envelope_size

    @property
    def little_endian(self) -> bool:
        return bool(self.flags & 0x01)


def encode_geometry_blob(wkb: bytes, srid: int) -> bytes:
    """Wrap WKB bytes in a GeoPackage geometry header.

    The header never carries an envelope. The WKB is appended verbatim
    without validation.

    Args:
        wkb: Well-Known Binary geometry bytes.
        srid: Spatial reference system identifier written to the header.

    Returns:
        GeoPackage binary blob ready to be stored in a geometry column.
    """
    return _HEADER.pack(MAGIC, VERSION, FLAGS_NO_ENVELOPE, srid) + bytes(wkb)


def read_geometry_blob_header(blob: bytes) -> GeometryBlobHeader:
    """Parse the fixed part of a GeoPackage geometry header.

    Args:
        blob: GeoPackage geometry blob.

    Returns:
        The parsed header.

    Raises:
        InvalidGeometryBlobError: If the value is not binary, is shorter than
            the header or has an envelope indicator outside 0-3.
    """
    if not isinstance(blob, bytes | bytearray | memoryview):
        raise exceptions.InvalidGeometryBlobError(
            f"Invalid GPKG geometry: expected a BLOB, got {type(blob).__name__}"
        )
    if len(blob) < MIN_HEADER_SIZE:
        raise exceptions.InvalidGeometryBlobError(
            f"Invalid GPKG geometry header: blob is {len(blob)} bytes"
        )

    flags = blob[3]
    envelope_indicator = (flags >> 1) & 0x07
    envelope_size = ENVELOPE_SIZES.get(envelope_indicator)
    if envelope_size is None:
        raise exceptions.InvalidGeometryBlobError(
            f"Invalid envelope indicator in GPKG header: {envelope_indicator}"
        )

    byte_order = "<" if flags & 0x01 else ">"
    (srid,) = struct.unpack(f"{byte_order}i", blob[4:8])
    header = GeometryBlobHeader(
        version=blob[2],
        flags=flags,
        srid=srid,
        envelope_indicator=envelope_indicator,
        envelope_size=envelope_size,
    )
    if len(blob) < header.size:
        raise exceptions.InvalidGeometryBlobError(
            "Incomplete GPKG geometry header: expected at least "
            f"{header.size} bytes, got {len(blob)}"
        )
    return header


def decode_geometry_blob(blob: bytes) -> bytes:
    """Strip the GeoPackage header and return the WKB payload.

    Args:
        blob: GeoPackage geometry blob as stored in the database.

    Returns:
        The WKB payload, unchanged.

    Raises:
        InvalidGeometryBlobError: If the header is malformed.
    """
    header = read_geometry_blob_header(blob)
    return bytes(blob[header.size:])
