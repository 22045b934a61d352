"""Tests for container module."""

from pathlib import Path

import numpy as np
from PIL import Image

from container import (
    build_text_chunks,
    extract_forensic_payload,
    get_image_format,
    is_supported_format,
    load_pixels,
    read_text_chunks,
    save_signed_image,
)
from metadata import ContentMetadata


class TestFormats:
    """Tests for is_supported_format and get_image_format."""

    def test_supported(self) -> None:
        assert is_supported_format(Path("a.png"))
        assert is_supported_format(Path("a.JPG"))
        assert not is_supported_format(Path("a.gif"))

    def test_image_format(self) -> None:
        assert get_image_format(Path("a.jpeg")) == "JPEG"
        assert get_image_format(Path("a.png")) == "PNG"
        assert get_image_format(Path("a.webp")) == "PNG"


class TestLoadPixels:
    """Tests for load_pixels function."""

    def test_rgb_becomes_rgba(self, sample_png: Path) -> None:
        pixels, _ = load_pixels(sample_png)
        assert pixels.shape == (128, 160, 4)
        assert pixels.dtype == np.uint8
        assert (pixels[..., 3] == 255).all()

    def test_array_is_writable(self, sample_png: Path) -> None:
        pixels, _ = load_pixels(sample_png)
        pixels[0, 0, 2] = 7
        assert pixels[0, 0, 2] == 7


class TestBuildTextChunks:
    """Tests for build_text_chunks function."""

    def test_public_fields(self, metadata: ContentMetadata) -> None:
        chunks = build_text_chunks("ab" * 32, metadata, "2024-01-01T00:00:00.000Z")

        assert chunks["elaraSign:version"] == "3.0"
        assert chunks["elaraSign:metaHash"] == "ab" * 32
        assert chunks["elaraSign:generator"] == "elara.cloud"
        assert chunks["elaraSign:contentType"] == "image"
        assert chunks["elaraSign:signedAt"] == "2024-01-01T00:00:00.000Z"
        assert "elaraSign:forensic" not in chunks

    def test_forensic_field(self, metadata: ContentMetadata) -> None:
        chunks = build_text_chunks("ab" * 32, metadata, "now", forensic_payload="QUJD")
        assert chunks["elaraSign:forensic"] == "QUJD"


class TestSaveAndRead:
    """Tests for save_signed_image and read_text_chunks."""

    def test_png_is_lossless(self, pixels: np.ndarray, temp_dir: Path) -> None:
        output = temp_dir / "out.png"
        save_signed_image(pixels, output, {"elaraSign:version": "3.0"})

        reloaded, _ = load_pixels(output)
        assert np.array_equal(reloaded, pixels)

    def test_png_text_chunks(self, pixels: np.ndarray, temp_dir: Path) -> None:
        output = temp_dir / "out.png"
        chunks = {"elaraSign:version": "3.0", "elaraSign:forensic": "QUJD"}
        save_signed_image(pixels, output, chunks)

        assert read_text_chunks(output) == chunks
        assert extract_forensic_payload(output) == "QUJD"

    def test_foreign_png_text_is_ignored(self, temp_dir: Path) -> None:
        from PIL.PngImagePlugin import PngInfo

        path = temp_dir / "foreign.png"
        info = PngInfo()
        info.add_text("Author", "Someone")
        Image.new("RGB", (10, 10)).save(path, "PNG", pnginfo=info)

        assert read_text_chunks(path) == {}
        assert extract_forensic_payload(path) is None

    def test_creates_parent_directories(self, pixels: np.ndarray, temp_dir: Path) -> None:
        output = temp_dir / "nested" / "deeper" / "out.png"
        save_signed_image(pixels, output, {})
        assert output.exists()

    def test_jpeg_user_comment(self, pixels: np.ndarray, temp_dir: Path) -> None:
        output = temp_dir / "out.jpg"
        chunks = {"elaraSign:version": "3.0", "elaraSign:generator": "elara.cloud"}
        save_signed_image(pixels, output, chunks)

        with Image.open(output) as img:
            assert img.format == "JPEG"
        assert read_text_chunks(output) == chunks

    def test_jpeg_without_exif(self, sample_jpg: Path) -> None:
        assert read_text_chunks(sample_jpg) == {}

    def test_non_png_bytes(self, temp_dir: Path) -> None:
        path = temp_dir / "fake.png"
        path.write_bytes(b"not an image")
        assert read_text_chunks(path) == {}
