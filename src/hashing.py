"""Checksum and hashing primitives shared by the codec and the forensic cipher.

Kept deliberately small so every higher-level module can import it
without circular dependencies.
"""

from __future__ import annotations

import hashlib
import zlib


def _to_bytes(data: str | bytes | bytearray | memoryview) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def crc32(data: bytes | bytearray | memoryview) -> int:
    """
    Calculate the IEEE 802.3 CRC-32 of *data*.

    Initial value and final XOR are both 0xFFFFFFFF; the result is
    always an unsigned 32-bit integer.

    Args:
        data: Bytes to checksum.

    Returns:
        Checksum in the range 0..0xFFFFFFFF.
    """
    return zlib.crc32(bytes(data)) & 0xFFFFFFFF


def sha256_hex(data: str | bytes | bytearray | memoryview) -> str:
    """Return the full SHA-256 digest of *data* as lowercase hex."""
    return hashlib.sha256(_to_bytes(data)).hexdigest()


def sha256_bytes(data: str | bytes | bytearray | memoryview, length: int = 32) -> bytes:
    """
    Return the SHA-256 digest of *data*, truncated to *length* bytes.

    Strings are hashed as UTF-8. Truncation happens only when the caller
    asks for fewer than 32 bytes.

    Args:
        data: String or bytes to hash.
        length: Number of leading digest bytes to return (1-32).

    Returns:
        The digest prefix.
    """
    if not 0 < length <= 32:
        raise ValueError(f"Digest length must be between 1 and 32, got {length}")
    return hashlib.sha256(_to_bytes(data)).digest()[:length]


def create_user_fingerprint(user_id: str) -> str:
    """Hash a user ID into a privacy-preserving fingerprint."""
    return sha256_hex(f"elara:user:{user_id}")


def create_prompt_hash(prompt: str) -> str:
    """Hash a prompt so only its digest is stored."""
    return sha256_hex(f"elara:prompt:{prompt}")


def create_key_fingerprint(public_key_bytes: bytes) -> str:
    """Return the first 16 hex characters of the public key's SHA-256."""
    return sha256_hex(public_key_bytes)[:16]
