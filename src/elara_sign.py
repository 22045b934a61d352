"""Public façade for the signing pipeline - re-exports every symbol.

Consumers should ``import elara_sign`` rather than reaching into the
internal modules directly.  This file gathers all public names so that
the API surface stays stable even as the implementation is reorganised.

Internal modules:

- ``constants``        - wire-format sizes, keywords and platform codes
- ``hashing``          - CRC-32 and SHA-256 helpers
- ``metadata``         - the canonical metadata record
- ``signature_codec``  - pack/unpack the 84-byte signature
- ``embedder``         - blue-channel LSB embedding at five locations
- ``verifier``         - sign/verify pixel buffers, legacy detection
- ``forensic``         - AES-256-CBC accountability cipher
- ``container``        - PNG/JPEG load and save with text fields
- ``signer``           - high-level file pipeline
"""

from constants import (
    ELARA_MARKER,
    ELARA_VERSION,
    MASTER_KEY_ENV_VAR,
    PLATFORM_CODES,
    SIGNATURE_SIZE,
    SIGNATURE_VERSION,
    SUPPORTED_FORMATS,
)
from container import (
    build_text_chunks,
    extract_forensic_payload,
    is_supported_format,
    load_pixels,
    read_text_chunks,
    save_signed_image,
)
from embedder import (
    SIGNATURE_LOCATIONS,
    EmbedResult,
    ExtractionResult,
    ImageTooSmallError,
    SignatureLocation,
    as_pixel_array,
    embed_at_location,
    embed_multi_location_signature,
    extract_from_location,
    extract_multi_location_signature,
)
from forensic import (
    AccountabilityRecord,
    DecryptedAccountability,
    ForensicCipher,
    InvalidMasterKeyError,
    bytes_to_ip,
    create_short_fingerprint,
    decrypt_accountability,
    encrypt_accountability,
    generate_master_key,
    get_platform_code,
    get_platform_name,
    ip_to_bytes,
    is_valid_master_key,
    load_master_key,
)
from hashing import (
    crc32,
    create_key_fingerprint,
    create_prompt_hash,
    create_user_fingerprint,
    sha256_bytes,
    sha256_hex,
)
from metadata import ContentMetadata, create_metadata
from signature_codec import PackedSignature, UnpackedSignature, pack_signature, unpack_signature
from signer import (
    FileVerification,
    SignResult,
    forensic_decrypt_file,
    sign_image_file,
    verify_image_file,
    write_metadata_sidecar,
)
from verifier import (
    SignatureDetection,
    SignatureInfo,
    VerificationResult,
    detect_signature,
    has_elara_signature,
    read_signature,
    sign_image_content,
    verify_image_content,
)

__all__ = [
    # Constants
    "ELARA_MARKER",
    "ELARA_VERSION",
    "MASTER_KEY_ENV_VAR",
    "PLATFORM_CODES",
    "SIGNATURE_SIZE",
    "SIGNATURE_VERSION",
    "SUPPORTED_FORMATS",
    # Hashing
    "crc32",
    "sha256_hex",
    "sha256_bytes",
    "create_user_fingerprint",
    "create_prompt_hash",
    "create_key_fingerprint",
    # Metadata
    "ContentMetadata",
    "create_metadata",
    # Codec
    "PackedSignature",
    "UnpackedSignature",
    "pack_signature",
    "unpack_signature",
    # Embedder
    "SIGNATURE_LOCATIONS",
    "SignatureLocation",
    "EmbedResult",
    "ExtractionResult",
    "ImageTooSmallError",
    "as_pixel_array",
    "embed_at_location",
    "extract_from_location",
    "embed_multi_location_signature",
    "extract_multi_location_signature",
    # Verifier
    "VerificationResult",
    "SignatureInfo",
    "SignatureDetection",
    "sign_image_content",
    "verify_image_content",
    "has_elara_signature",
    "read_signature",
    "detect_signature",
    # Forensic
    "AccountabilityRecord",
    "DecryptedAccountability",
    "ForensicCipher",
    "InvalidMasterKeyError",
    "generate_master_key",
    "is_valid_master_key",
    "load_master_key",
    "encrypt_accountability",
    "decrypt_accountability",
    "ip_to_bytes",
    "bytes_to_ip",
    "create_short_fingerprint",
    "get_platform_code",
    "get_platform_name",
    # Container
    "is_supported_format",
    "load_pixels",
    "build_text_chunks",
    "save_signed_image",
    "read_text_chunks",
    "extract_forensic_payload",
    # Files
    "SignResult",
    "FileVerification",
    "sign_image_file",
    "verify_image_file",
    "forensic_decrypt_file",
    "write_metadata_sidecar",
]
