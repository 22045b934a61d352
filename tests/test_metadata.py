"""Tests for metadata module."""

import json
import re

import pytest

from metadata import ContentMetadata, create_metadata, utc_now_iso


class TestContentMetadata:
    """Tests for the ContentMetadata record."""

    def test_rejects_unknown_content_type(self) -> None:
        with pytest.raises(ValueError, match="Unknown content type"):
            create_metadata(
                generator="elara.cloud",
                user_fingerprint="u",
                key_fingerprint="k",
                content_type="hologram",
                content_hash="h",
                character_id="c",
                model_used="m",
                prompt_hash="p",
            )

    def test_json_uses_camel_case_keys(self, metadata: ContentMetadata) -> None:
        data = json.loads(metadata.to_json())
        assert data["signatureVersion"] == "3.0"
        assert data["userFingerprint"] == "a" * 64
        assert "user_fingerprint" not in data

    def test_json_omits_unset_optional_fields(self, metadata: ContentMetadata) -> None:
        data = json.loads(metadata.to_json())
        assert "seed" not in data
        assert "negativePrompt" not in data
        assert data["width"] == 128

    def test_json_is_compact(self, metadata: ContentMetadata) -> None:
        text = metadata.to_json()
        assert ", " not in text
        assert '": ' not in text

    def test_json_key_order_is_stable(self, metadata: ContentMetadata) -> None:
        keys = list(json.loads(metadata.to_json()))
        assert keys[:3] == ["signatureVersion", "generator", "generatedAt"]
        assert metadata.to_json() == metadata.to_json()

    def test_round_trip_through_json(self, metadata: ContentMetadata) -> None:
        restored = ContentMetadata.from_json(metadata.to_json())
        assert restored == metadata
        assert restored.to_json() == metadata.to_json()

    def test_from_dict_ignores_unknown_keys(self, metadata: ContentMetadata) -> None:
        data = metadata.to_dict()
        data["somethingElse"] = 1
        assert ContentMetadata.from_dict(data) == metadata

    def test_from_dict_rejects_missing_required_fields(self) -> None:
        with pytest.raises(ValueError, match="missing required fields: signatureVersion"):
            ContentMetadata.from_dict({"generator": "elara.cloud", "contentType": "image"})

    def test_from_dict_names_every_missing_field(self, metadata: ContentMetadata) -> None:
        data = metadata.to_dict()
        del data["promptHash"]
        del data["modelUsed"]
        with pytest.raises(ValueError, match="modelUsed, promptHash"):
            ContentMetadata.from_dict(data)

    @pytest.mark.parametrize("text", ["[]", "\"text\"", "42", "null"])
    def test_from_json_rejects_non_objects(self, text: str) -> None:
        with pytest.raises(ValueError, match="must be a JSON object"):
            ContentMetadata.from_json(text)

    def test_from_json_rejects_invalid_json(self) -> None:
        with pytest.raises(ValueError):
            ContentMetadata.from_json("{not json")


class TestCreateMetadata:
    """Tests for create_metadata function."""

    def test_stamps_version(self, metadata: ContentMetadata) -> None:
        assert metadata.signature_version == "3.0"

    def test_generated_at_format(self, metadata: ContentMetadata) -> None:
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", metadata.generated_at)

    def test_accepts_optional_fields(self) -> None:
        record = create_metadata(
            generator="elara.desktop",
            user_fingerprint="u",
            key_fingerprint="k",
            content_type="audio",
            content_hash="h",
            character_id="c",
            model_used="m",
            prompt_hash="p",
            seed=7,
            generation_type="agentic",
        )
        assert record.seed == 7
        assert json.loads(record.to_json())["generationType"] == "agentic"


class TestUtcNowIso:
    """Tests for utc_now_iso function."""

    def test_ends_with_z(self) -> None:
        assert utc_now_iso().endswith("Z")

    def test_millisecond_precision(self) -> None:
        assert re.fullmatch(r".*\.\d{3}Z", utc_now_iso())
