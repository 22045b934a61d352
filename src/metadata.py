"""Canonical content metadata hashed into every signature.

The serialized JSON is what ``metaHash`` is computed over, so
``ContentMetadata.to_json`` must be byte-stable for a given value:
fields are emitted in declaration order with camelCase keys, and
unset optional fields are omitted entirely.
"""

from __future__ import annotations

import json
from dataclasses import MISSING, dataclass, fields
from datetime import datetime, timezone
from typing import Any

from constants import CONTENT_TYPES, SIGNATURE_VERSION

# Python attribute name -> JSON key
_JSON_KEYS = {
    "signature_version": "signatureVersion",
    "generator": "generator",
    "generated_at": "generatedAt",
    "user_fingerprint": "userFingerprint",
    "key_fingerprint": "keyFingerprint",
    "content_type": "contentType",
    "content_hash": "contentHash",
    "character_id": "characterId",
    "model_used": "modelUsed",
    "prompt_hash": "promptHash",
    "width": "width",
    "height": "height",
    "seed": "seed",
    "steps": "steps",
    "guidance_scale": "guidanceScale",
    "generation_type": "generationType",
    "user_request": "userRequest",
    "ai_decision": "aiDecision",
    "full_prompt": "fullPrompt",
    "negative_prompt": "negativePrompt",
    "creator_info": "creatorInfo",
    "service_deployed_at": "serviceDeployedAt",
}
_ATTR_NAMES = {v: k for k, v in _JSON_KEYS.items()}


@dataclass
class ContentMetadata:
    """Elara content metadata schema v3.0.

    The first ten fields are required; the rest enhance the record but
    only matter to verification through their presence in the JSON.
    """

    signature_version: str
    generator: str
    generated_at: str
    user_fingerprint: str
    key_fingerprint: str
    content_type: str
    content_hash: str
    character_id: str
    model_used: str
    prompt_hash: str

    width: int | None = None
    height: int | None = None
    seed: int | None = None
    steps: int | None = None
    guidance_scale: float | None = None
    generation_type: str | None = None
    user_request: str | None = None
    ai_decision: str | None = None
    full_prompt: str | None = None
    negative_prompt: str | None = None
    creator_info: str | None = None
    service_deployed_at: str | None = None

    def __post_init__(self) -> None:
        if self.content_type not in CONTENT_TYPES:
            raise ValueError(
                f"Unknown content type '{self.content_type}'. "
                f"Use one of: {', '.join(CONTENT_TYPES)}."
            )

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase mapping, skipping unset optional fields."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            result[_JSON_KEYS[f.name]] = value
        return result

    def to_json(self) -> str:
        """Serialize to the compact JSON string that ``metaHash`` covers."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentMetadata:
        """
        Build metadata from its camelCase mapping; unknown keys are ignored.

        Raises:
            ValueError: If *data* is not a mapping or lacks a required field.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Metadata must be a JSON object, got {type(data).__name__}")

        missing = [
            _JSON_KEYS[f.name]
            for f in fields(cls)
            if f.default is MISSING and _JSON_KEYS[f.name] not in data
        ]
        if missing:
            raise ValueError(f"Metadata is missing required fields: {', '.join(missing)}")

        kwargs = {_ATTR_NAMES[key]: value for key, value in data.items() if key in _ATTR_NAMES}
        return cls(**kwargs)

    @classmethod
    def from_json(cls, text: str) -> ContentMetadata:
        return cls.from_dict(json.loads(text))


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def create_metadata(
    generator: str,
    user_fingerprint: str,
    key_fingerprint: str,
    content_type: str,
    content_hash: str,
    character_id: str,
    model_used: str,
    prompt_hash: str,
    **optional: Any,
) -> ContentMetadata:
    """
    Create a metadata record stamped with the current version and time.

    Args:
        generator: Generator identifier (e.g. ``elara.cloud``).
        user_fingerprint: Hash of the acting user's ID.
        key_fingerprint: Public key fingerprint.
        content_type: One of image, video, audio, document.
        content_hash: SHA-256 hex of the raw content bytes.
        character_id: Identifier of the generating character or service.
        model_used: Generating model identifier.
        prompt_hash: Hash of the prompt or text input.
        **optional: Any of the optional ``ContentMetadata`` fields.

    Returns:
        A new ``ContentMetadata``.
    """
    return ContentMetadata(
        signature_version=SIGNATURE_VERSION,
        generator=generator,
        generated_at=utc_now_iso(),
        user_fingerprint=user_fingerprint,
        key_fingerprint=key_fingerprint,
        content_type=content_type,
        content_hash=content_hash,
        character_id=character_id,
        model_used=model_used,
        prompt_hash=prompt_hash,
        **optional,
    )
