"""elarasign - tamper-evident provenance signatures for images.

This package exposes two subsystems:

1. **Pixel signature** (public): a checksummed 84-byte record embedded
   redundantly at five locations in the blue channel's low nibbles.
2. **Forensic accountability** (key holder only): an AES-256-CBC
   record stored next to the image, enabled when a master key is set.
"""

__version__ = "0.1.0"

from elara_sign import (
    ContentMetadata,
    ForensicCipher,
    detect_signature,
    forensic_decrypt_file,
    generate_master_key,
    has_elara_signature,
    read_signature,
    sign_image_content,
    sign_image_file,
    verify_image_content,
    verify_image_file,
)

__all__ = [
    "ContentMetadata",
    "ForensicCipher",
    "generate_master_key",
    "sign_image_content",
    "verify_image_content",
    "has_elara_signature",
    "read_signature",
    "detect_signature",
    "sign_image_file",
    "verify_image_file",
    "forensic_decrypt_file",
]
