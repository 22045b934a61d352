"""Signing and verification of pixel buffers.

Verification runs against arbitrary, possibly unsigned input, so every
finding (nothing there, corrupted, tampered) comes back as data on the
result objects rather than as an exception.  The only raised error is
``ImageTooSmallError`` from signing.

Legacy v1 images carry a single 128-byte block in the bottom-left
64x4 pixels.  ``detect_signature`` tries the v3 multi-location parse
first and falls back to v1, tagging which version matched.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

import numpy as np

from constants import ELARA_V1_MARKER, V1_BLOCK_HEIGHT, V1_BLOCK_WIDTH
from embedder import (
    EmbedResult,
    ExtractionResult,
    SignatureLocation,
    embed_multi_location_signature,
    extract_from_location,
    extract_multi_location_signature,
)
from hashing import sha256_bytes
from metadata import ContentMetadata

logger = logging.getLogger(__name__)

NO_SIGNATURE_ERROR = "No valid Elara signature found in image"
TAMPER_ERROR = "Metadata hash mismatch - metadata may have been modified"

V1_LOCATION = SignatureLocation(
    "legacy-bottom-left", -1, V1_BLOCK_WIDTH, V1_BLOCK_HEIGHT,
    lambda w, h: (0, h - V1_BLOCK_HEIGHT),
)


@dataclass
class VerificationResult:
    """Outcome of ``verify_image_content``.

    ``is_valid`` without comparison metadata means only that a
    structurally valid signature exists.
    """

    is_valid: bool
    tamper_detected: bool
    valid_locations: list[str] = field(default_factory=list)
    invalid_locations: list[str] = field(default_factory=list)
    error: str | None = None
    marker: str | None = None
    version: int | None = None
    meta_hash_hex: str | None = None
    content_hash_hex: str | None = None
    timestamp: datetime | None = None


@dataclass
class SignatureInfo:
    is_elara: bool
    valid_locations: list[str] = field(default_factory=list)
    version: int | None = None
    timestamp: datetime | None = None
    meta_hash: str | None = None
    content_hash: str | None = None


@dataclass
class SignatureDetection:
    """Which signature format, if any, an image carries.

    ``version`` is ``"3.0"``, ``"1.0"`` or ``None``; exactly one of
    ``extraction`` / ``v1_block`` is set when a signature was found.
    """

    version: str | None
    extraction: ExtractionResult | None = None
    v1_block: bytes | None = None

    @property
    def has_signature(self) -> bool:
        return self.version is not None


def timestamp_to_datetime(timestamp_ms: int) -> datetime | None:
    """Convert embedded epoch milliseconds to an aware UTC datetime."""
    try:
        return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        logger.debug("Embedded timestamp %d is out of range", timestamp_ms)
        return None


def _metadata_json(metadata: ContentMetadata | str) -> str:
    if isinstance(metadata, ContentMetadata):
        return metadata.to_json()
    return metadata


def sign_image_content(pixels: np.ndarray, metadata: ContentMetadata | str) -> EmbedResult:
    """
    Sign a pixel array in place at all five locations.

    The content hash covers the pixel bytes as they were before signing.

    Args:
        pixels: ``(height, width, channels)`` uint8 array; mutated in place.
        metadata: Metadata record or its serialized JSON.

    Returns:
        ``EmbedResult`` whose ``signed_pixels`` is *pixels* itself.

    Raises:
        ImageTooSmallError: If no signature location fits.
    """
    content_bytes = pixels.tobytes()
    return embed_multi_location_signature(pixels, _metadata_json(metadata), content_bytes)


def verify_image_content(
    pixels: np.ndarray,
    metadata: ContentMetadata | str | None = None,
) -> VerificationResult:
    """
    Verify the signature at every location and resolve the authoritative one.

    When *metadata* is given, its full SHA-256 is compared with the
    authoritative record's stored meta hash; a mismatch is reported as
    tampering, distinct from a missing signature.

    Args:
        pixels: ``(height, width, channels)`` uint8 array.
        metadata: Optional expected metadata.

    Returns:
        ``VerificationResult``.
    """
    extracted = extract_multi_location_signature(pixels)
    best = extracted.best_signature

    if best is None:
        return VerificationResult(
            is_valid=False,
            tamper_detected=False,
            invalid_locations=extracted.invalid_locations,
            error=NO_SIGNATURE_ERROR,
        )

    if metadata is not None:
        expected = sha256_bytes(_metadata_json(metadata), 32)
        if not hmac.compare_digest(best.meta_hash, expected):
            logger.info("Metadata hash mismatch on otherwise valid signature")
            return VerificationResult(
                is_valid=False,
                tamper_detected=True,
                valid_locations=extracted.valid_locations,
                invalid_locations=extracted.invalid_locations,
                error=TAMPER_ERROR,
                marker=best.marker,
                version=best.version,
                meta_hash_hex=best.meta_hash.hex(),
            )

    return VerificationResult(
        is_valid=True,
        tamper_detected=False,
        valid_locations=extracted.valid_locations,
        invalid_locations=extracted.invalid_locations,
        marker=best.marker,
        version=best.version,
        meta_hash_hex=best.meta_hash.hex(),
        content_hash_hex=best.content_hash.hex(),
        timestamp=timestamp_to_datetime(best.timestamp),
    )


def has_elara_signature(pixels: np.ndarray) -> bool:
    """Quick check: does any location hold a structurally valid signature?"""
    return bool(extract_multi_location_signature(pixels).valid_locations)


def read_signature(pixels: np.ndarray) -> SignatureInfo:
    """Read the authoritative signature without comparing metadata."""
    extracted = extract_multi_location_signature(pixels)
    best = extracted.best_signature
    if best is None:
        return SignatureInfo(is_elara=False)

    return SignatureInfo(
        is_elara=True,
        valid_locations=extracted.valid_locations,
        version=best.version,
        timestamp=timestamp_to_datetime(best.timestamp),
        meta_hash=best.meta_hash.hex(),
        content_hash=best.content_hash.hex(),
    )


def extract_v1_signature(pixels: np.ndarray) -> bytes | None:
    """Return the legacy v1 block if the bottom-left 64x4 pixels carry one."""
    block = extract_from_location(pixels, V1_LOCATION)
    if block is None:
        return None
    if block[: len(ELARA_V1_MARKER)] != ELARA_V1_MARKER.encode("ascii"):
        return None
    return block


def detect_signature(pixels: np.ndarray) -> SignatureDetection:
    """Detect a v3 signature, falling back to the legacy v1 block."""
    extracted = extract_multi_location_signature(pixels)
    if extracted.valid_locations:
        return SignatureDetection(version="3.0", extraction=extracted)

    v1_block = extract_v1_signature(pixels)
    if v1_block is not None:
        logger.info("Found legacy v1 signature")
        return SignatureDetection(version="1.0", v1_block=v1_block)

    return SignatureDetection(version=None)
