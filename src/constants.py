"""Shared constants for the ElaraSign wire format, forensic cipher, and containers.

All modules reference these constants rather than hard-coding values,
so a layout or keyword change requires updating only this file.
"""

# Supported image formats
SUPPORTED_FORMATS = {".png", ".jpg", ".jpeg"}

# ── Signature record (v3) ───────────────────────────────────────────

ELARA_MARKER = "ELARA3"
ELARA_VERSION = 0x03
SIGNATURE_VERSION = "3.0"

# Field sizes of the 84-byte packed record, in wire order
SIGNATURE_LAYOUT = {
    "marker": 6,
    "version": 1,
    "location_id": 1,
    "meta_hash": 32,
    "content_hash": 32,
    "timestamp": 8,
    "checksum": 4,
}
SIGNATURE_SIZE = sum(SIGNATURE_LAYOUT.values())  # 84
CHECKSUM_OFFSET = SIGNATURE_SIZE - SIGNATURE_LAYOUT["checksum"]  # 80

# 48x4 pixels at 4 bits per pixel = 96 bytes (12 bytes margin)
BLOCK_CAPACITY = 96
BLOCK_LONG_SIDE = 48
BLOCK_SHORT_SIDE = 4

# Smallest image that carries all five locations
MIN_IMAGE_SIZE = (96, 96)

BLUE_CHANNEL = 2
NIBBLE_MASK = 0x0F

# ── Legacy v1 signature ─────────────────────────────────────────────

ELARA_V1_MARKER = "ELARA_V1"
V1_BLOCK_WIDTH = 64
V1_BLOCK_HEIGHT = 4
V1_BLOCK_CAPACITY = 128

# ── Forensic accountability ─────────────────────────────────────────

MASTER_KEY_LENGTH = 32
ENCRYPTED_PAYLOAD_SIZE = 32
ACCOUNTABILITY_CHECKSUM_OFFSET = 28
MASTER_KEY_ENV_VAR = "ELARASIGN_MASTER_KEY"
FORENSIC_IV_DOMAIN = "elarasign-forensic-iv"
FORENSIC_SEARCH_WINDOW = 10

PLATFORM_CODES = {
    "elara.desktop": 0x0001,
    "elara.cloud": 0x0002,
    "elara.sign.web": 0x0003,
    "elara.sign.api": 0x0004,
    "unknown": 0xFFFF,
}

# ── Content metadata ────────────────────────────────────────────────

CONTENT_TYPES = ("image", "video", "audio", "document")
GENERATION_TYPES = ("selfie", "custom", "agentic")
DEFAULT_GENERATOR = "elara.sign.cloud"

# ── PNG text chunk keywords ─────────────────────────────────────────

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
TEXT_CHUNK_TYPE = b"tEXt"

KEYWORD_VERSION = "elaraSign:version"
KEYWORD_META_HASH = "elaraSign:metaHash"
KEYWORD_GENERATOR = "elaraSign:generator"
KEYWORD_CONTENT_TYPE = "elaraSign:contentType"
KEYWORD_SIGNED_AT = "elaraSign:signedAt"
KEYWORD_FORENSIC = "elaraSign:forensic"

ELARA_TEXT_KEYWORDS = [
    KEYWORD_VERSION,
    KEYWORD_META_HASH,
    KEYWORD_GENERATOR,
    KEYWORD_CONTENT_TYPE,
    KEYWORD_SIGNED_AT,
    KEYWORD_FORENSIC,
]
