"""Image container adapter: pixels in, signed files out.

Handles format-specific differences:
- PNG: lossless pixels plus public ``elaraSign:*`` text chunks via
  ``PngInfo``; the forensic payload travels in ``elaraSign:forensic``.
- JPEG: text metadata packed into the EXIF UserComment field via
  ``piexif``.  JPEG is lossy, so the pixel signature will not survive.

The codec itself is container-agnostic; this module only converts
between files and ``(height, width, 4)`` RGBA arrays.
"""

from __future__ import annotations

import logging
import struct
from pathlib import Path
from typing import Any

import numpy as np
import piexif
from PIL import Image
from PIL.PngImagePlugin import PngInfo

from constants import (
    ELARA_TEXT_KEYWORDS,
    KEYWORD_CONTENT_TYPE,
    KEYWORD_FORENSIC,
    KEYWORD_GENERATOR,
    KEYWORD_META_HASH,
    KEYWORD_SIGNED_AT,
    KEYWORD_VERSION,
    PNG_SIGNATURE,
    SIGNATURE_VERSION,
    SUPPORTED_FORMATS,
    TEXT_CHUNK_TYPE,
)
from metadata import ContentMetadata

logger = logging.getLogger(__name__)

_USER_COMMENT_PREFIX = b"ASCII\x00\x00\x00"


def is_supported_format(file_path: Path) -> bool:
    """Return True if the suffix is a format this adapter can write."""
    return Path(file_path).suffix.lower() in SUPPORTED_FORMATS


def get_image_format(file_path: Path) -> str:
    """Map a file suffix to a Pillow format name; anything unknown is PNG."""
    if Path(file_path).suffix.lower() in {".jpg", ".jpeg"}:
        return "JPEG"
    return "PNG"


def load_pixels(image_path: Path) -> tuple[np.ndarray, dict[str, Any]]:
    """
    Decode an image into a writable RGBA pixel array.

    Args:
        image_path: Path to the image file.

    Returns:
        ``(pixels, info)`` where *pixels* is ``(height, width, 4)`` uint8
        and *info* is Pillow's info dictionary.
    """
    with Image.open(image_path) as img:
        info = dict(img.info)
        rgba = img.convert("RGBA")
        pixels = np.array(rgba, dtype=np.uint8)
    return pixels, info


def build_text_chunks(
    meta_hash: str,
    metadata: ContentMetadata,
    signed_at: str,
    forensic_payload: str | None = None,
) -> dict[str, str]:
    """Build the public text fields written next to a signed image."""
    chunks = {
        KEYWORD_VERSION: SIGNATURE_VERSION,
        KEYWORD_META_HASH: meta_hash,
        KEYWORD_GENERATOR: metadata.generator,
        KEYWORD_CONTENT_TYPE: metadata.content_type,
        KEYWORD_SIGNED_AT: signed_at,
    }
    if forensic_payload:
        chunks[KEYWORD_FORENSIC] = forensic_payload
    return chunks


def save_signed_image(pixels: np.ndarray, output_path: Path, text_chunks: dict[str, str]) -> Path:
    """
    Encode signed pixels and their text fields to *output_path*.

    Args:
        pixels: ``(height, width, 4)`` RGBA uint8 array.
        output_path: Destination; the suffix selects PNG or JPEG.
        text_chunks: Keyword/value pairs to store alongside the pixels.

    Returns:
        *output_path*.
    """
    output_format = get_image_format(output_path)
    img = Image.fromarray(np.ascontiguousarray(pixels))
    save_kwargs: dict[str, Any] = {"format": output_format}

    if output_format == "PNG":
        save_kwargs = _prepare_png_save_kwargs(save_kwargs, text_chunks)
    elif output_format == "JPEG":
        logger.warning(
            "JPEG output is lossy; the pixel signature in %s will not survive encoding",
            output_path.name,
        )
        save_kwargs = _prepare_jpeg_save_kwargs(save_kwargs, text_chunks)
        save_kwargs["quality"] = 100
        img = img.convert("RGB")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    img.save(output_path, **save_kwargs)
    return output_path


def _prepare_png_save_kwargs(
    save_kwargs: dict[str, Any], text_chunks: dict[str, str]
) -> dict[str, Any]:
    """Prepare save kwargs for PNG format."""
    if text_chunks:
        pnginfo = PngInfo()
        for key, value in text_chunks.items():
            pnginfo.add_text(key, value)
        save_kwargs["pnginfo"] = pnginfo
    return save_kwargs


def _prepare_jpeg_save_kwargs(
    save_kwargs: dict[str, Any], text_chunks: dict[str, str]
) -> dict[str, Any]:
    """Prepare save kwargs for JPEG format."""
    exif_dict: dict[str, Any] = {"0th": {}, "Exif": {}, "1st": {}, "GPS": {}, "Interop": {}}

    if text_chunks:
        lines = "\n".join(f"{key}={value}" for key, value in text_chunks.items())
        exif_dict["Exif"][piexif.ExifIFD.UserComment] = _USER_COMMENT_PREFIX + lines.encode("utf-8")
        exif_dict["0th"][piexif.ImageIFD.Software] = text_chunks.get(KEYWORD_GENERATOR, "").encode("ascii", "replace")

    save_kwargs["exif"] = piexif.dump(exif_dict)
    return save_kwargs


def read_text_chunks(image_path: Path) -> dict[str, str]:
    """
    Read ``elaraSign:*`` text fields from a PNG or JPEG file.

    PNG ``tEXt`` chunks are scanned byte-wise; JPEG fields come from
    the EXIF UserComment.  Unreadable files give an empty dict.
    """
    image_path = Path(image_path)
    if get_image_format(image_path) == "JPEG":
        return _read_jpeg_user_comment(image_path)
    return _read_png_text_chunks(image_path)


def _read_png_text_chunks(image_path: Path) -> dict[str, str]:
    chunks: dict[str, str] = {}
    try:
        with open(image_path, "rb") as f:
            if f.read(8) != PNG_SIGNATURE:
                return chunks

            while True:
                chunk_header = f.read(8)
                if len(chunk_header) < 8:
                    break

                length = struct.unpack(">I", chunk_header[:4])[0]
                chunk_type = chunk_header[4:8]

                if chunk_type == TEXT_CHUNK_TYPE:
                    chunk_data = f.read(length)
                    f.read(4)
                    keyword, sep, text = chunk_data.partition(b"\x00")
                    if sep:
                        name = keyword.decode("latin-1")
                        if name in ELARA_TEXT_KEYWORDS:
                            chunks[name] = text.decode("latin-1")
                else:
                    f.seek(length + 4, 1)

                if chunk_type == b"IEND":
                    break
    except OSError:
        logger.debug("Could not read PNG chunks from %s", image_path, exc_info=True)

    return chunks


def _read_jpeg_user_comment(image_path: Path) -> dict[str, str]:
    chunks: dict[str, str] = {}
    try:
        exif_dict = piexif.load(str(image_path))
    except (OSError, ValueError):
        logger.debug("Could not read EXIF from %s", image_path, exc_info=True)
        return chunks

    comment = exif_dict.get("Exif", {}).get(piexif.ExifIFD.UserComment, b"")
    if comment.startswith(_USER_COMMENT_PREFIX):
        comment = comment[len(_USER_COMMENT_PREFIX):]

    for line in comment.decode("utf-8", errors="replace").splitlines():
        key, sep, value = line.partition("=")
        if sep and key in ELARA_TEXT_KEYWORDS:
            chunks[key] = value
    return chunks


def extract_forensic_payload(image_path: Path) -> str | None:
    """Return the base64 forensic payload stored with an image, if any."""
    return read_text_chunks(image_path).get(KEYWORD_FORENSIC)
