"""Test configuration and fixtures."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import numpy as np
import pytest
from PIL import Image

from metadata import ContentMetadata, create_metadata

TEST_MASTER_KEY = "00112233445566778899aabbccddeeff" * 2


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def master_key() -> str:
    """A fixed, well-formed 64-hex-character master key."""
    return TEST_MASTER_KEY


@pytest.fixture
def pixels() -> np.ndarray:
    """A 128x128 RGBA pixel array with varied content."""
    rng = np.random.default_rng(1234)
    return rng.integers(0, 256, size=(128, 128, 4), dtype=np.uint8)


@pytest.fixture
def metadata() -> ContentMetadata:
    """A fully populated metadata record."""
    return create_metadata(
        generator="elara.cloud",
        user_fingerprint="a" * 64,
        key_fingerprint="cloud-public",
        content_type="image",
        content_hash="b" * 64,
        character_id="elara-sign-service",
        model_used="sdxl",
        prompt_hash="c" * 64,
        width=128,
        height=128,
    )


@pytest.fixture
def sample_png(temp_dir: Path) -> Path:
    """Create a sample PNG image for testing."""
    img_path = temp_dir / "sample.png"
    rng = np.random.default_rng(42)
    data = rng.integers(0, 256, size=(128, 160, 3), dtype=np.uint8)
    Image.fromarray(data).save(img_path, "PNG")
    return img_path


@pytest.fixture
def sample_jpg(temp_dir: Path) -> Path:
    """Create a sample JPG image for testing."""
    img_path = temp_dir / "sample.jpg"
    img = Image.new("RGB", (128, 128), color="blue")
    img.save(img_path, "JPEG")
    return img_path


@pytest.fixture
def small_png(temp_dir: Path) -> Path:
    """Create a PNG below the minimum signable size."""
    img_path = temp_dir / "small.png"
    img = Image.new("RGB", (64, 64), color="red")
    img.save(img_path, "PNG")
    return img_path


@pytest.fixture
def large_pixels() -> np.ndarray:
    """A 200x200 RGBA pixel array with varied content."""
    rng = np.random.default_rng(5678)
    return rng.integers(0, 256, size=(200, 200, 4), dtype=np.uint8)
