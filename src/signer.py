"""High-level signing, verification, and forensic recovery for image files.

Orchestrates the load -> sign -> encrypt -> save pipeline by combining
the ``container``, ``verifier`` and ``forensic`` modules into
convenient one-call functions.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from constants import DEFAULT_GENERATOR, KEYWORD_META_HASH
from container import (
    build_text_chunks,
    extract_forensic_payload,
    load_pixels,
    read_text_chunks,
    save_signed_image,
)
from forensic import (
    AccountabilityRecord,
    DecryptedAccountability,
    ForensicCipher,
    decode_forensic_payload,
    encode_forensic_payload,
    get_platform_code,
    ip_to_bytes,
)
from hashing import create_prompt_hash, create_user_fingerprint, sha256_hex
from metadata import ContentMetadata, create_metadata, utc_now_iso
from verifier import (
    VerificationResult,
    detect_signature,
    read_signature,
    sign_image_content,
    verify_image_content,
)

logger = logging.getLogger(__name__)

SERVICE_KEY_FINGERPRINT = "cloud-public"
SERVICE_CHARACTER_ID = "elara-sign-service"


@dataclass
class SignResult:
    output_path: Path
    metadata: ContentMetadata
    meta_hash: str
    content_hash: str
    locations_embedded: list[str] = field(default_factory=list)
    forensic_payload: str | None = None
    metadata_path: Path | None = None


@dataclass
class FileVerification:
    """Verification outcome for a file, with a human-readable message."""

    path: Path
    signed: bool
    signature_version: str | None
    message: str
    verification: VerificationResult | None = None
    text_chunks: dict[str, str] = field(default_factory=dict)


def build_metadata(
    content_bytes: bytes,
    generator: str = DEFAULT_GENERATOR,
    model: str | None = None,
    prompt: str | None = None,
    user_id: str | None = None,
    seed: int | None = None,
    creator_name: str | None = None,
    creator_email: str | None = None,
    width: int | None = None,
    height: int | None = None,
) -> ContentMetadata:
    """
    Build the metadata record for a piece of content.

    User IDs and prompts are only ever stored as hashes.  Anonymous
    content gets a time-derived fingerprint.
    """
    if user_id:
        user_fingerprint = create_user_fingerprint(user_id)
    else:
        user_fingerprint = sha256_hex(f"elara:anonymous:{time.time_ns() // 1_000_000}")
    prompt_hash = create_prompt_hash(prompt) if prompt else sha256_hex("elara:no-prompt")

    creator_info = creator_name or ""
    if creator_email:
        creator_info = f"{creator_info} <{creator_email}>" if creator_info else creator_email

    return create_metadata(
        generator=generator,
        user_fingerprint=user_fingerprint,
        key_fingerprint=SERVICE_KEY_FINGERPRINT,
        content_type="image",
        content_hash=sha256_hex(content_bytes),
        character_id=SERVICE_CHARACTER_ID,
        model_used=model or "unknown",
        prompt_hash=prompt_hash,
        width=width,
        height=height,
        seed=seed,
        creator_info=creator_info or None,
    )


def sign_image_file(
    source_path: Path,
    output_path: Path | None = None,
    generator: str = DEFAULT_GENERATOR,
    model: str | None = None,
    prompt: str | None = None,
    user_id: str | None = None,
    seed: int | None = None,
    creator_name: str | None = None,
    creator_email: str | None = None,
    master_key: str | None = None,
    client_ip: str | None = None,
    metadata_path: Path | None = None,
) -> SignResult:
    """
    Sign an image file and write the result.

    Args:
        source_path: Image to sign.
        output_path: Destination. Defaults to ``<stem>_signed.png``
            next to the source.
        generator: Generator identifier recorded in the metadata.
        model: Generating model identifier.
        prompt: Prompt text; only its hash is stored.
        user_id: Acting user's ID; only its hash is stored.
        seed: Generation seed.
        creator_name: Optional creator name.
        creator_email: Optional creator contact.
        master_key: Forensic master key. When None, no forensic payload
            is produced.
        client_ip: IPv4 address recorded in the forensic payload.
        metadata_path: Where to write the metadata JSON that the meta
            hash covers. Defaults to ``<output>.json``.

    Returns:
        ``SignResult`` describing what was written.

    Raises:
        ImageTooSmallError: If the image cannot carry a signature.
        InvalidMasterKeyError: If *master_key* is malformed.
    """
    source_path = Path(source_path)
    if output_path is None:
        output_path = source_path.with_name(f"{source_path.stem}_signed.png")

    # Build the cipher first so a bad key fails before any work is done.
    cipher = ForensicCipher(master_key) if master_key else None

    content_bytes = source_path.read_bytes()
    pixels, _ = load_pixels(source_path)
    height, width = pixels.shape[:2]

    metadata = build_metadata(
        content_bytes,
        generator=generator,
        model=model,
        prompt=prompt,
        user_id=user_id,
        seed=seed,
        creator_name=creator_name,
        creator_email=creator_email,
        width=width,
        height=height,
    )

    embedded = sign_image_content(pixels, metadata)
    logger.info("Embedded signature at %d locations", len(embedded.locations_embedded))

    forensic_payload = None
    if cipher is not None:
        record = AccountabilityRecord(
            timestamp=int(time.time()),
            user_fingerprint=bytes.fromhex(metadata.user_fingerprint[:16]),
            ip_address=ip_to_bytes(client_ip or ""),
            platform_code=get_platform_code(generator),
        )
        forensic_payload = encode_forensic_payload(cipher.encrypt(record, salt=embedded.meta_hash))
        logger.info("Forensic accountability payload attached")
    else:
        logger.debug("No master key configured, forensic accountability disabled")

    text_chunks = build_text_chunks(
        embedded.meta_hash, metadata, utc_now_iso(), forensic_payload
    )
    save_signed_image(embedded.signed_pixels, Path(output_path), text_chunks)
    metadata_path = write_metadata_sidecar(metadata, Path(output_path), metadata_path)

    return SignResult(
        output_path=Path(output_path),
        metadata=metadata,
        meta_hash=embedded.meta_hash,
        content_hash=embedded.content_hash,
        locations_embedded=embedded.locations_embedded,
        forensic_payload=forensic_payload,
        metadata_path=metadata_path,
    )


def write_metadata_sidecar(
    metadata: ContentMetadata,
    output_path: Path,
    metadata_path: Path | None = None,
) -> Path:
    """
    Write the exact metadata JSON covered by the meta hash next to an image.

    Verifiers pass this file back to ``verify_image_file`` to detect
    tampering.  Defaults to ``<output>.json``.
    """
    if metadata_path is None:
        metadata_path = output_path.with_name(f"{output_path.name}.json")
    metadata_path = Path(metadata_path)
    metadata_path.parent.mkdir(parents=True, exist_ok=True)
    metadata_path.write_text(metadata.to_json(), encoding="utf-8")
    logger.info("Wrote metadata sidecar %s", metadata_path)
    return metadata_path


def verify_image_file(
    image_path: Path,
    metadata: ContentMetadata | str | None = None,
) -> FileVerification:
    """
    Verify the pixel signature of an image file.

    Args:
        image_path: Image to check.
        metadata: Optional expected metadata for tamper detection.

    Returns:
        ``FileVerification``; never raises for unsigned or damaged input.
    """
    image_path = Path(image_path)
    pixels, _ = load_pixels(image_path)
    text_chunks = read_text_chunks(image_path)

    detection = detect_signature(pixels)
    if detection.version is None:
        message = "No elaraSign signature detected"
        if image_path.suffix.lower() in {".jpg", ".jpeg"}:
            message += " (JPEG compression may have degraded a signature if one was present)"
        return FileVerification(
            path=image_path,
            signed=False,
            signature_version=None,
            message=message,
            text_chunks=text_chunks,
        )

    if detection.version == "1.0":
        return FileVerification(
            path=image_path,
            signed=True,
            signature_version="1.0",
            message="Legacy v1 signature found; integrity cannot be verified",
            text_chunks=text_chunks,
        )

    verification = verify_image_content(pixels, metadata)
    if verification.is_valid:
        message = "Signature valid - image has not been tampered with"
    elif verification.tamper_detected:
        message = "WARNING: Image may have been tampered with"
    else:
        message = "Signature found but could not verify integrity"

    return FileVerification(
        path=image_path,
        signed=True,
        signature_version="3.0",
        message=message,
        verification=verification,
        text_chunks=text_chunks,
    )


def forensic_decrypt_file(image_path: Path, master_key: str) -> DecryptedAccountability:
    """
    Recover the accountability record attached to a signed image.

    The salt is the signature's meta hash (read from the pixels, or from
    the public text chunk when the pixels were damaged) and the pixel
    signature's timestamp seeds the search.

    Raises:
        InvalidMasterKeyError: If *master_key* is malformed.
    """
    cipher = ForensicCipher(master_key)
    image_path = Path(image_path)

    encoded = extract_forensic_payload(image_path)
    payload = decode_forensic_payload(encoded) if encoded else None
    if payload is None:
        logger.info("No forensic payload found in %s", image_path)
        return DecryptedAccountability.invalid()

    pixels, _ = load_pixels(image_path)
    info = read_signature(pixels)

    salt = info.meta_hash or read_text_chunks(image_path).get(KEYWORD_META_HASH, "")
    hint = int(info.timestamp.timestamp()) if info.timestamp else None

    return cipher.decrypt(payload, salt=salt, timestamp_hint=hint)
