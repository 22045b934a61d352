"""Pack and unpack the 84-byte ElaraSign v3 signature record.

Layout (big-endian for multi-byte integers)::

    offset  size  field
         0     6  marker        "ELARA3"
         6     1  version       0x03
         7     1  location_id   0-4
         8    32  meta_hash     SHA-256 of metadata JSON
        40    32  content_hash  SHA-256 of content bytes
        72     8  timestamp     epoch milliseconds
        80     4  checksum      CRC-32 over bytes [0, 80)

Hashes are never truncated.  ``unpack_signature`` returns ``None`` for
anything that is not one of ours (too short, wrong marker) and a record
with ``is_valid=False`` for a marker whose checksum does not match.
"""

from __future__ import annotations

import struct
import time
from dataclasses import dataclass

from constants import (
    CHECKSUM_OFFSET,
    ELARA_MARKER,
    ELARA_VERSION,
    SIGNATURE_LAYOUT,
    SIGNATURE_SIZE,
)
from hashing import crc32, sha256_bytes

_MARKER_BYTES = ELARA_MARKER.encode("ascii")

# marker, version, location, meta hash, content hash, timestamp
_BODY_FORMAT = ">6sBB32s32sQ"
_CHECKSUM_FORMAT = ">I"

LOCATION_IDS = range(5)


@dataclass(frozen=True)
class PackedSignature:
    """Signature bytes ready for embedding plus the values that went in."""

    data: bytes
    location_id: int
    meta_hash: str
    content_hash: str
    timestamp: int


@dataclass(frozen=True)
class UnpackedSignature:
    marker: str
    version: int
    location_id: int
    meta_hash: bytes
    content_hash: bytes
    timestamp: int
    checksum: int
    computed_checksum: int
    is_valid: bool


def pack_signature(
    metadata_json: str,
    content_bytes: bytes,
    location_id: int,
    timestamp_ms: int | None = None,
) -> PackedSignature:
    """
    Pack a signature record for one embedding location.

    Args:
        metadata_json: Serialized metadata; its full SHA-256 is embedded.
        content_bytes: Raw content; its full SHA-256 is embedded.
        location_id: Location identifier, 0-4.
        timestamp_ms: Epoch milliseconds to embed. Defaults to now.

    Returns:
        The packed 84-byte record and its decoded inputs.

    Raises:
        ValueError: If *location_id* is outside 0-4.
    """
    if location_id not in LOCATION_IDS:
        raise ValueError(f"Location id must be between 0 and 4, got {location_id}")

    meta_hash = sha256_bytes(metadata_json, 32)
    content_hash = sha256_bytes(content_bytes, 32)
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000

    body = struct.pack(
        _BODY_FORMAT,
        _MARKER_BYTES,
        ELARA_VERSION,
        location_id,
        meta_hash,
        content_hash,
        timestamp_ms,
    )
    data = body + struct.pack(_CHECKSUM_FORMAT, crc32(body))

    return PackedSignature(
        data=data,
        location_id=location_id,
        meta_hash=meta_hash.hex(),
        content_hash=content_hash.hex(),
        timestamp=timestamp_ms,
    )


def unpack_signature(data: bytes | bytearray | memoryview) -> UnpackedSignature | None:
    """
    Decode a signature record and recompute its checksum.

    Only the first 84 bytes are read; trailing block padding is ignored.

    Args:
        data: Raw bytes, typically a 96-byte extracted block.

    Returns:
        The decoded record, or ``None`` if *data* is too short or does
        not start with the marker.
    """
    data = bytes(data)
    if len(data) < SIGNATURE_SIZE:
        return None
    if data[: SIGNATURE_LAYOUT["marker"]] != _MARKER_BYTES:
        return None

    body = data[:CHECKSUM_OFFSET]
    marker, version, location_id, meta_hash, content_hash, timestamp = struct.unpack(
        _BODY_FORMAT, body
    )
    (checksum,) = struct.unpack(_CHECKSUM_FORMAT, data[CHECKSUM_OFFSET:SIGNATURE_SIZE])
    computed_checksum = crc32(body)

    return UnpackedSignature(
        marker=marker.decode("ascii"),
        version=version,
        location_id=location_id,
        meta_hash=meta_hash,
        content_hash=content_hash,
        timestamp=timestamp,
        checksum=checksum,
        computed_checksum=computed_checksum,
        is_valid=checksum == computed_checksum,
    )
