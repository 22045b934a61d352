"""Tests for elara_sign module (re-exports)."""

import elara_sign


class TestElaraSignReExports:
    """Tests to verify all public APIs are properly re-exported."""

    def test_all_names_resolve(self) -> None:
        for name in elara_sign.__all__:
            assert hasattr(elara_sign, name), name

    def test_codec_is_exported(self) -> None:
        assert hasattr(elara_sign, "pack_signature")
        assert hasattr(elara_sign, "unpack_signature")

    def test_verifier_is_exported(self) -> None:
        assert hasattr(elara_sign, "verify_image_content")
        assert hasattr(elara_sign, "detect_signature")

    def test_forensic_is_exported(self) -> None:
        assert hasattr(elara_sign, "ForensicCipher")
        assert hasattr(elara_sign, "decrypt_accountability")

    def test_file_pipeline_is_exported(self) -> None:
        assert hasattr(elara_sign, "sign_image_file")
        assert hasattr(elara_sign, "forensic_decrypt_file")
