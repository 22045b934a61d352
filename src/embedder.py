"""Redundant LSB embedding of signature records into five pixel regions.

Each payload byte occupies two pixels: the high nibble goes into the
low four bits of the first pixel's blue channel, the low nibble into
the second.  The other channels and the blue high nibble are never
touched, so no channel value moves by more than 15.

Layout (not to scale)::

    +------+-----------------------------+----+
    | LOC0 |                             |LOC1|
    | 48x4 |                             |4x48|
    +------+                             |    |
    |             +------+               +----+
    |             | LOC4 | center 48x4        |
    |             +------+               +----+
    |                                    |LOC3|
    +------+                             |4x48|
    | LOC2 |                             |    |
    | 48x4 |                             |    |
    +------+-----------------------------+----+

Pixel buffers are numpy ``uint8`` arrays shaped ``(height, width,
channels)``.  Embedding mutates the caller's array in place and hands
the same object back; nothing is copied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

import numpy as np

from constants import (
    BLOCK_CAPACITY,
    BLOCK_LONG_SIDE,
    BLOCK_SHORT_SIDE,
    BLUE_CHANNEL,
    MIN_IMAGE_SIZE,
    NIBBLE_MASK,
)
from signature_codec import UnpackedSignature, pack_signature, unpack_signature

logger = logging.getLogger(__name__)


class ImageTooSmallError(ValueError):
    """Raised when an image cannot carry any signature location."""


@dataclass(frozen=True)
class SignatureLocation:
    """A fixed signature block whose origin depends on the image size."""

    name: str
    location_id: int
    width: int
    height: int
    position: Callable[[int, int], tuple[int, int]]

    def origin(self, img_width: int, img_height: int) -> tuple[int, int]:
        return self.position(img_width, img_height)

    def fits(self, img_width: int, img_height: int) -> bool:
        x, y = self.origin(img_width, img_height)
        return x >= 0 and y >= 0 and x + self.width <= img_width and y + self.height <= img_height


SIGNATURE_LOCATIONS: tuple[SignatureLocation, ...] = (
    SignatureLocation(
        "top-left", 0, BLOCK_LONG_SIDE, BLOCK_SHORT_SIDE,
        lambda w, h: (0, 0),
    ),
    SignatureLocation(
        "top-right", 1, BLOCK_SHORT_SIDE, BLOCK_LONG_SIDE,
        lambda w, h: (w - BLOCK_SHORT_SIDE, 0),
    ),
    SignatureLocation(
        "bottom-left", 2, BLOCK_LONG_SIDE, BLOCK_SHORT_SIDE,
        lambda w, h: (0, h - BLOCK_SHORT_SIDE),
    ),
    SignatureLocation(
        "bottom-right", 3, BLOCK_SHORT_SIDE, BLOCK_LONG_SIDE,
        lambda w, h: (w - BLOCK_SHORT_SIDE, h - BLOCK_LONG_SIDE),
    ),
    SignatureLocation(
        "center", 4, BLOCK_LONG_SIDE, BLOCK_SHORT_SIDE,
        lambda w, h: ((w - BLOCK_LONG_SIDE) // 2, (h - BLOCK_SHORT_SIDE) // 2),
    ),
)

LOCATIONS_BY_NAME = {loc.name: loc for loc in SIGNATURE_LOCATIONS}


@dataclass
class EmbedResult:
    """Outcome of a multi-location embed.

    ``signed_pixels`` is the very array that was passed in.
    """

    signed_pixels: np.ndarray
    meta_hash: str
    content_hash: str
    locations_embedded: list[str] = field(default_factory=list)


@dataclass
class ExtractionResult:
    signatures: list[UnpackedSignature]
    valid_locations: list[str]
    invalid_locations: list[str]
    best_signature: UnpackedSignature | None


def as_pixel_array(
    buffer: bytearray | memoryview | np.ndarray,
    width: int,
    height: int,
    channels: int = 4,
) -> np.ndarray:
    """
    View a raw interleaved pixel buffer as a ``(height, width, channels)`` array.

    The returned array shares memory with *buffer*, so writes through it
    land in the caller's bytes.

    Args:
        buffer: Mutable RGBA (or RGB) bytes in row-major order.
        width: Image width in pixels.
        height: Image height in pixels.
        channels: Bytes per pixel.

    Returns:
        A writable ``uint8`` view.

    Raises:
        ValueError: If the buffer size does not match the geometry.
    """
    flat = np.frombuffer(buffer, dtype=np.uint8) if not isinstance(buffer, np.ndarray) else buffer
    expected = width * height * channels
    if flat.size != expected:
        raise ValueError(
            f"Pixel buffer holds {flat.size} bytes, expected {expected} "
            f"for {width}x{height}x{channels}"
        )
    return flat.reshape(height, width, channels)


def image_size(pixels: np.ndarray) -> tuple[int, int]:
    """Return ``(width, height)`` of a pixel array, validating its shape."""
    if pixels.ndim != 3 or pixels.shape[2] <= BLUE_CHANNEL:
        raise ValueError(
            f"Pixel array must be shaped (height, width, channels>=3), got {pixels.shape}"
        )
    if pixels.dtype != np.uint8:
        raise ValueError(f"Pixel array must be uint8, got {pixels.dtype}")
    return pixels.shape[1], pixels.shape[0]


def _blue_region(pixels: np.ndarray, location: SignatureLocation) -> np.ndarray | None:
    width, height = image_size(pixels)
    if not location.fits(width, height):
        return None
    x, y = location.origin(width, height)
    # Basic slicing keeps this a view into the caller's array.
    return pixels[y : y + location.height, x : x + location.width, BLUE_CHANNEL]


def embed_at_location(pixels: np.ndarray, data: bytes, location: SignatureLocation) -> bool:
    """
    Write *data* into one location's blue-channel low nibbles.

    *data* is zero-padded to the block capacity before writing.

    Returns:
        True if written, False if the location falls outside the image.
    """
    if len(data) > BLOCK_CAPACITY:
        raise ValueError(f"Payload of {len(data)} bytes exceeds block capacity {BLOCK_CAPACITY}")

    region = _blue_region(pixels, location)
    if region is None:
        return False

    padded = np.frombuffer(data.ljust(BLOCK_CAPACITY, b"\x00"), dtype=np.uint8)
    nibbles = np.empty(BLOCK_CAPACITY * 2, dtype=np.uint8)
    nibbles[0::2] = padded >> 4
    nibbles[1::2] = padded & NIBBLE_MASK

    region[...] = (region & 0xF0) | nibbles.reshape(region.shape)
    return True


def extract_from_location(pixels: np.ndarray, location: SignatureLocation) -> bytes | None:
    """
    Read the full 96-byte block stored at *location*.

    Returns:
        The block bytes, or None if the location falls outside the image.
    """
    region = _blue_region(pixels, location)
    if region is None:
        return None

    nibbles = region.reshape(-1) & NIBBLE_MASK
    block = (nibbles[0::2] << 4) | nibbles[1::2]
    return block.astype(np.uint8).tobytes()


def embed_multi_location_signature(
    pixels: np.ndarray,
    metadata_json: str,
    content_bytes: bytes,
) -> EmbedResult:
    """
    Embed a freshly packed signature at every location that fits.

    Each location gets its own record (own location id and timestamp).
    The pixel array is modified in place and returned inside the result.

    Args:
        pixels: ``(height, width, channels)`` uint8 array, owned by the
            caller for the duration of the call.
        metadata_json: Serialized metadata to hash.
        content_bytes: Content bytes to hash.

    Returns:
        ``EmbedResult`` naming the embedded locations.

    Raises:
        ImageTooSmallError: If the image is below the minimum size or no
            location fits.
    """
    width, height = image_size(pixels)
    min_width, min_height = MIN_IMAGE_SIZE
    if width < min_width or height < min_height:
        raise ImageTooSmallError(
            f"Image too small for multi-location signing "
            f"({width}x{height}). Minimum: {min_width}x{min_height}px"
        )

    result = EmbedResult(signed_pixels=pixels, meta_hash="", content_hash="")

    for location in SIGNATURE_LOCATIONS:
        packed = pack_signature(metadata_json, content_bytes, location.location_id)
        if not embed_at_location(pixels, packed.data, location):
            logger.warning("Location %s does not fit a %dx%d image, skipped", location.name, width, height)
            continue
        result.locations_embedded.append(location.name)
        result.meta_hash = packed.meta_hash
        result.content_hash = packed.content_hash
        logger.debug("Embedded signature at %s", location.name)

    if not result.locations_embedded:
        raise ImageTooSmallError("Image too small to carry any signature")

    return result


def extract_multi_location_signature(pixels: np.ndarray) -> ExtractionResult:
    """
    Read and validate the signature at every location.

    A location counts as valid only when its block decodes with the
    right marker and a matching checksum.  The best signature is the
    valid one with the greatest timestamp.
    """
    signatures: list[UnpackedSignature] = []
    valid_locations: list[str] = []
    invalid_locations: list[str] = []

    for location in SIGNATURE_LOCATIONS:
        raw = extract_from_location(pixels, location)
        unpacked = unpack_signature(raw) if raw is not None else None
        if unpacked is not None and unpacked.is_valid:
            signatures.append(unpacked)
            valid_locations.append(location.name)
        else:
            invalid_locations.append(location.name)

    best = max(signatures, key=lambda sig: sig.timestamp) if signatures else None

    return ExtractionResult(
        signatures=signatures,
        valid_locations=valid_locations,
        invalid_locations=invalid_locations,
        best_signature=best,
    )
