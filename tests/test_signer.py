"""Tests for signer module."""

import json
from pathlib import Path

import numpy as np
import pytest

from container import load_pixels, read_text_chunks
from embedder import ImageTooSmallError
from forensic import InvalidMasterKeyError
from hashing import create_prompt_hash, create_user_fingerprint, sha256_hex
from metadata import ContentMetadata
from signer import build_metadata, forensic_decrypt_file, sign_image_file, verify_image_file


class TestBuildMetadata:
    """Tests for build_metadata function."""

    def test_hashes_private_inputs(self) -> None:
        record = build_metadata(b"bytes", user_id="alice", prompt="a cat")

        assert record.user_fingerprint == create_user_fingerprint("alice")
        assert record.prompt_hash == create_prompt_hash("a cat")
        assert record.content_hash == sha256_hex(b"bytes")
        assert "alice" not in record.to_json()
        assert "a cat" not in record.to_json()

    def test_defaults(self) -> None:
        record = build_metadata(b"bytes")

        assert record.generator == "elara.sign.cloud"
        assert record.model_used == "unknown"
        assert record.prompt_hash == sha256_hex("elara:no-prompt")
        assert record.creator_info is None

    def test_creator_info(self) -> None:
        assert build_metadata(b"x", creator_name="Ada").creator_info == "Ada"
        assert build_metadata(b"x", creator_email="a@b.c").creator_info == "a@b.c"
        assert build_metadata(b"x", creator_name="Ada", creator_email="a@b.c").creator_info == "Ada <a@b.c>"


class TestSignImageFile:
    """Tests for sign_image_file function."""

    def test_default_output_path(self, sample_png: Path) -> None:
        result = sign_image_file(sample_png)
        assert result.output_path == sample_png.with_name("sample_signed.png")
        assert result.output_path.exists()

    def test_signed_png_verifies(self, sample_png: Path, temp_dir: Path) -> None:
        output = temp_dir / "signed.png"
        result = sign_image_file(sample_png, output, model="sdxl", prompt="a cat")

        outcome = verify_image_file(output, result.metadata)

        assert outcome.signed
        assert outcome.signature_version == "3.0"
        assert outcome.message == "Signature valid - image has not been tampered with"
        assert outcome.verification is not None
        assert outcome.verification.is_valid
        assert len(outcome.verification.valid_locations) == 5

    def test_pixel_change_is_small(self, sample_png: Path, temp_dir: Path) -> None:
        output = temp_dir / "signed.png"
        sign_image_file(sample_png, output)

        before, _ = load_pixels(sample_png)
        after, _ = load_pixels(output)
        diff = np.abs(after.astype(np.int16) - before.astype(np.int16))
        assert diff.max() <= 15

    def test_writes_public_text_fields(self, sample_png: Path, temp_dir: Path) -> None:
        output = temp_dir / "signed.png"
        result = sign_image_file(sample_png, output, generator="elara.desktop")

        chunks = read_text_chunks(output)
        assert chunks["elaraSign:version"] == "3.0"
        assert chunks["elaraSign:metaHash"] == result.meta_hash
        assert chunks["elaraSign:generator"] == "elara.desktop"
        assert "elaraSign:forensic" not in chunks
        assert result.forensic_payload is None

    def test_metadata_records_dimensions(self, sample_png: Path, temp_dir: Path) -> None:
        result = sign_image_file(sample_png, temp_dir / "signed.png")
        assert (result.metadata.width, result.metadata.height) == (160, 128)
        assert result.metadata.content_hash == sha256_hex(sample_png.read_bytes())

    def test_too_small_raises(self, small_png: Path, temp_dir: Path) -> None:
        with pytest.raises(ImageTooSmallError):
            sign_image_file(small_png, temp_dir / "out.png")

    def test_bad_key_fails_before_writing(self, sample_png: Path, temp_dir: Path) -> None:
        output = temp_dir / "out.png"
        with pytest.raises(InvalidMasterKeyError):
            sign_image_file(sample_png, output, master_key="nope")
        assert not output.exists()
        assert not (temp_dir / "out.png.json").exists()

    def test_writes_metadata_sidecar(self, sample_png: Path, temp_dir: Path) -> None:
        output = temp_dir / "signed.png"
        result = sign_image_file(sample_png, output, model="sdxl")

        assert result.metadata_path == temp_dir / "signed.png.json"
        text = result.metadata_path.read_text(encoding="utf-8")
        assert text == result.metadata.to_json()
        assert sha256_hex(text) == result.meta_hash

    def test_sidecar_alone_verifies(self, sample_png: Path, temp_dir: Path) -> None:
        output = temp_dir / "signed.png"
        result = sign_image_file(sample_png, output)

        expected = ContentMetadata.from_json(result.metadata_path.read_text(encoding="utf-8"))
        outcome = verify_image_file(output, expected)

        assert outcome.verification is not None
        assert outcome.verification.is_valid

    def test_custom_sidecar_path(self, sample_png: Path, temp_dir: Path) -> None:
        sidecar = temp_dir / "records" / "meta.json"
        result = sign_image_file(sample_png, temp_dir / "signed.png", metadata_path=sidecar)

        assert result.metadata_path == sidecar
        assert sidecar.exists()


class TestVerifyImageFile:
    """Tests for verify_image_file function."""

    def test_unsigned_png(self, sample_png: Path) -> None:
        outcome = verify_image_file(sample_png)
        assert not outcome.signed
        assert outcome.signature_version is None
        assert outcome.message == "No elaraSign signature detected"

    def test_unsigned_jpeg_mentions_compression(self, sample_jpg: Path) -> None:
        outcome = verify_image_file(sample_jpg)
        assert not outcome.signed
        assert "JPEG compression" in outcome.message

    def test_tampered_metadata(self, sample_png: Path, temp_dir: Path) -> None:
        output = temp_dir / "signed.png"
        result = sign_image_file(sample_png, output, model="sdxl")
        data = json.loads(result.metadata.to_json())
        data["modelUsed"] = "something-else"

        outcome = verify_image_file(output, ContentMetadata.from_dict(data))

        assert outcome.signed
        assert outcome.message == "WARNING: Image may have been tampered with"
        assert outcome.verification is not None
        assert outcome.verification.tamper_detected

    def test_jpeg_output_loses_pixel_signature(self, sample_png: Path, temp_dir: Path) -> None:
        output = temp_dir / "signed.jpg"
        sign_image_file(sample_png, output)

        outcome = verify_image_file(output)

        assert read_text_chunks(output)["elaraSign:version"] == "3.0"
        assert not outcome.signed


class TestForensicDecryptFile:
    """Tests for forensic_decrypt_file function."""

    def test_round_trip(self, sample_png: Path, temp_dir: Path, master_key: str) -> None:
        output = temp_dir / "signed.png"
        result = sign_image_file(
            sample_png,
            output,
            generator="elara.sign.web",
            user_id="user-42",
            master_key=master_key,
            client_ip="198.51.100.23",
        )
        assert result.forensic_payload is not None
        assert read_text_chunks(output)["elaraSign:forensic"] == result.forensic_payload

        record = forensic_decrypt_file(output, master_key)

        assert record.valid
        assert record.ip_address == "198.51.100.23"
        assert record.platform == "elara.sign.web"
        assert record.user_fingerprint == create_user_fingerprint("user-42")[:16]

    def test_wrong_key(self, sample_png: Path, temp_dir: Path, master_key: str) -> None:
        output = temp_dir / "signed.png"
        sign_image_file(sample_png, output, master_key=master_key)

        assert not forensic_decrypt_file(output, "ee" * 32).valid

    def test_missing_payload(self, sample_png: Path, master_key: str) -> None:
        record = forensic_decrypt_file(sample_png, master_key)
        assert not record.valid
        assert record.ip_address == "unavailable"

