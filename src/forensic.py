"""Forensic accountability cipher.

Encrypts a 32-byte accountability record (who signed, when, from
where, on which platform) with AES-256-CBC under a long-lived master
key.  Only the key holder can recover it.

Plaintext layout (big-endian)::

    offset  size  field
         0     4  timestamp         Unix seconds
         4     8  user_fingerprint  first 8 bytes of SHA-256(user id)
        12     4  ip_address        IPv4 octets, zeros if unavailable
        16     2  platform_code     see ``PLATFORM_CODES``
        18    10  reserved          zeros
        28     4  checksum          CRC-32 over bytes [0, 28)

The IV is derived from the timestamp, platform code and salt and is
never stored.  Decryption therefore searches: it XORs the first four
ciphertext bytes with the first four key bytes to get a timestamp hint,
walks +/-10 seconds around it for every platform code, and accepts the
first candidate whose decrypted checksum matches.  The CRC-32 is the
only authentication signal, so roughly one in 2**32 wrong candidates
will pass.  Callers that already know the approximate signing time
(for example from the pixel signature) can pass it as
``timestamp_hint`` to widen the search to that window as well.

Exhausting the search is an expected outcome for a wrong key or salt
and returns an invalid result instead of raising.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import os
import re
import secrets
import struct
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from constants import (
    ACCOUNTABILITY_CHECKSUM_OFFSET,
    ENCRYPTED_PAYLOAD_SIZE,
    FORENSIC_IV_DOMAIN,
    FORENSIC_SEARCH_WINDOW,
    MASTER_KEY_ENV_VAR,
    MASTER_KEY_LENGTH,
    PLATFORM_CODES,
)
from hashing import crc32

logger = logging.getLogger(__name__)

_MASTER_KEY_RE = re.compile(r"^[a-f0-9]{64}$", re.IGNORECASE)
_IPV4_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)\.(\d+)$")

# timestamp, fingerprint, ip, platform, reserved
_BODY_FORMAT = ">I8s4sH10s"

_PLATFORM_NAMES = {code: name for name, code in PLATFORM_CODES.items()}


class InvalidMasterKeyError(ValueError):
    """Raised when a master key is not 64 hexadecimal characters."""


@dataclass(frozen=True)
class AccountabilityRecord:
    """Plaintext accountability data captured at signing time."""

    timestamp: int
    user_fingerprint: bytes
    ip_address: bytes
    platform_code: int


@dataclass(frozen=True)
class DecryptedAccountability:
    """Result of a decryption attempt; check ``valid`` before trusting it."""

    timestamp: datetime
    user_fingerprint: str
    ip_address: str
    platform: str
    valid: bool

    @classmethod
    def invalid(cls) -> DecryptedAccountability:
        return cls(
            timestamp=datetime.fromtimestamp(0, tz=timezone.utc),
            user_fingerprint="",
            ip_address="unavailable",
            platform="unknown",
            valid=False,
        )


# ── Key handling ────────────────────────────────────────────────────

def generate_master_key() -> str:
    """Generate a new 256-bit master key as 64 hex characters.

    Call this once per deployment and store the key offline.  Losing it
    orphans every payload encrypted under it.
    """
    return secrets.token_hex(MASTER_KEY_LENGTH)


def is_valid_master_key(key: str) -> bool:
    return bool(_MASTER_KEY_RE.match(key or ""))


def load_master_key(env: Mapping[str, str] | None = None) -> str | None:
    """
    Read the master key from ``ELARASIGN_MASTER_KEY``.

    Returns:
        The key, or None when unset (forensic accountability disabled).

    Raises:
        InvalidMasterKeyError: If the variable is set but malformed.
    """
    env = os.environ if env is None else env
    key = env.get(MASTER_KEY_ENV_VAR, "").strip()
    if not key:
        return None
    if not is_valid_master_key(key):
        raise InvalidMasterKeyError(f"{MASTER_KEY_ENV_VAR} must be 64 hexadecimal characters")
    return key


# ── Pure helpers ────────────────────────────────────────────────────

def derive_iv(timestamp: int, platform_code: int, salt: str) -> bytes:
    """Derive the 16-byte IV from non-secret inputs."""
    seed = f"{timestamp}:{platform_code}:{salt}:{FORENSIC_IV_DOMAIN}"
    return hashlib.sha256(seed.encode("utf-8")).digest()[:16]


def ip_to_bytes(ip: str) -> bytes:
    """Convert a dotted IPv4 string to 4 bytes; anything else gives zeros."""
    match = _IPV4_RE.match(ip or "")
    if not match:
        return bytes(4)
    octets = [int(group) for group in match.groups()]
    if any(octet > 255 for octet in octets):
        return bytes(4)
    return bytes(octets)


def bytes_to_ip(ip_bytes: bytes) -> str:
    if not any(ip_bytes):
        return "unavailable"
    return ".".join(str(b) for b in ip_bytes)


def create_short_fingerprint(user_id: str) -> bytes:
    """First 8 bytes of SHA-256(user id)."""
    return hashlib.sha256(user_id.encode("utf-8")).digest()[:8]


def get_platform_code(generator: str) -> int:
    """Map a generator identifier onto a platform code."""
    if "desktop" in generator:
        return PLATFORM_CODES["elara.desktop"]
    if "cloud" in generator:
        return PLATFORM_CODES["elara.cloud"]
    if "sign.web" in generator or generator == "elaraSign.web":
        return PLATFORM_CODES["elara.sign.web"]
    if "sign.api" in generator or "sign.cloud" in generator:
        return PLATFORM_CODES["elara.sign.api"]
    return PLATFORM_CODES["unknown"]


def get_platform_name(platform_code: int) -> str:
    return _PLATFORM_NAMES.get(platform_code, "unknown")


def encode_forensic_payload(payload: bytes) -> str:
    """Base64-encode a ciphertext for text carriers such as PNG chunks."""
    return base64.b64encode(payload).decode("ascii")


def decode_forensic_payload(text: str) -> bytes | None:
    """Decode a base64 carrier string; None if it is not valid base64."""
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return None


def serialize_record(record: AccountabilityRecord) -> bytes:
    """Build the 32-byte plaintext including its trailing checksum."""
    body = struct.pack(
        _BODY_FORMAT,
        record.timestamp,
        record.user_fingerprint[:8].ljust(8, b"\x00"),
        record.ip_address[:4].ljust(4, b"\x00"),
        record.platform_code,
        bytes(10),
    )
    return body + struct.pack(">I", crc32(body))


def _checksum_matches(plaintext: bytes) -> bool:
    body = plaintext[:ACCOUNTABILITY_CHECKSUM_OFFSET]
    (stored,) = struct.unpack(">I", plaintext[ACCOUNTABILITY_CHECKSUM_OFFSET:])
    return stored == crc32(body)


def _parse_plaintext(plaintext: bytes) -> DecryptedAccountability:
    timestamp, fingerprint, ip_bytes, platform_code, _ = struct.unpack(
        _BODY_FORMAT, plaintext[:ACCOUNTABILITY_CHECKSUM_OFFSET]
    )
    return DecryptedAccountability(
        timestamp=datetime.fromtimestamp(timestamp, tz=timezone.utc),
        user_fingerprint=fingerprint.hex(),
        ip_address=bytes_to_ip(ip_bytes),
        platform=get_platform_name(platform_code),
        valid=True,
    )


# ── Cipher ──────────────────────────────────────────────────────────

class ForensicCipher:
    """AES-256-CBC accountability cipher bound to one master key.

    The key is validated once here and never changes for the lifetime
    of the instance.

    Attributes:
        search_window: Seconds searched on either side of each hint.
    """

    def __init__(self, master_key: str, search_window: int = FORENSIC_SEARCH_WINDOW):
        if not is_valid_master_key(master_key):
            raise InvalidMasterKeyError("Invalid master key format")
        self._key = bytes.fromhex(master_key)
        self.search_window = search_window

    def _cipher(self, iv: bytes) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CBC(iv))

    def encrypt(self, record: AccountabilityRecord, salt: str = "") -> bytes:
        """
        Encrypt an accountability record.

        Args:
            record: Plaintext record; timestamp must fit in 32 bits.
            salt: Extra IV input, e.g. the signature's meta hash.

        Returns:
            Exactly 32 bytes of ciphertext.
        """
        if not 0 <= record.timestamp <= 0xFFFFFFFF:
            raise ValueError(f"Timestamp {record.timestamp} does not fit in 32 bits")
        if not 0 <= record.platform_code <= 0xFFFF:
            raise ValueError(f"Platform code {record.platform_code} does not fit in 16 bits")

        plaintext = serialize_record(record)
        iv = derive_iv(record.timestamp, record.platform_code, salt)
        encryptor = self._cipher(iv).encryptor()
        return encryptor.update(plaintext) + encryptor.finalize()

    def timestamp_hint(self, payload: bytes) -> int:
        """XOR the first four payload bytes with the first four key bytes.

        The result is read as an unsigned big-endian integer.  Decoders that
        build it with 32-bit signed shifts get a negative value whenever the
        top byte is 0x80 or above, so their candidate window differs here.
        """
        return int.from_bytes(bytes(p ^ k for p, k in zip(payload[:4], self._key[:4])), "big")

    def _candidate_timestamps(self, payload: bytes, timestamp_hint: int | None) -> list[int]:
        hints = [self.timestamp_hint(payload)]
        if timestamp_hint is not None:
            hints.append(timestamp_hint)

        seen: set[int] = set()
        candidates = []
        for hint in hints:
            for offset in range(-self.search_window, self.search_window + 1):
                candidate = hint + offset
                if candidate not in seen:
                    seen.add(candidate)
                    candidates.append(candidate)
        return candidates

    def decrypt(
        self,
        payload: bytes,
        salt: str = "",
        timestamp_hint: int | None = None,
    ) -> DecryptedAccountability:
        """
        Recover an accountability record by bounded search.

        Args:
            payload: 32-byte ciphertext.
            salt: The salt used at encryption time.
            timestamp_hint: Optional approximate signing time in Unix
                seconds, searched after the key-derived hint.

        Returns:
            The decrypted record, or ``DecryptedAccountability.invalid()``
            if no candidate passes the checksum.
        """
        payload = bytes(payload)
        if len(payload) != ENCRYPTED_PAYLOAD_SIZE:
            logger.debug("Forensic payload has %d bytes, expected %d", len(payload), ENCRYPTED_PAYLOAD_SIZE)
            return DecryptedAccountability.invalid()

        attempts = 0
        for candidate in self._candidate_timestamps(payload, timestamp_hint):
            for platform_code in PLATFORM_CODES.values():
                attempts += 1
                iv = derive_iv(candidate, platform_code, salt)
                decryptor = self._cipher(iv).decryptor()
                plaintext = decryptor.update(payload) + decryptor.finalize()
                if _checksum_matches(plaintext):
                    logger.debug("Forensic payload recovered after %d attempts", attempts)
                    return _parse_plaintext(plaintext)

        logger.debug("Forensic search exhausted after %d attempts", attempts)
        return DecryptedAccountability.invalid()


def encrypt_accountability(record: AccountabilityRecord, master_key: str, salt: str = "") -> bytes:
    """
    Encrypt *record* under *master_key*.

    Raises:
        InvalidMasterKeyError: If the key is malformed.
    """
    return ForensicCipher(master_key).encrypt(record, salt)


def decrypt_accountability(
    payload: bytes,
    master_key: str,
    salt: str = "",
    timestamp_hint: int | None = None,
) -> DecryptedAccountability:
    """Decrypt *payload*; a malformed key yields the invalid result."""
    if not is_valid_master_key(master_key):
        logger.warning("Refusing forensic decryption with a malformed master key")
        return DecryptedAccountability.invalid()
    return ForensicCipher(master_key).decrypt(payload, salt, timestamp_hint)
