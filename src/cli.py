"""Command-line interface for elarasign.

Provides the ``elarasign`` entry point with five subcommands:

- ``sign``             - embed a provenance signature into an image
- ``verify``           - check an image's signature (and metadata)
- ``inspect``          - print the raw signature and text fields
- ``forensic-decrypt`` - recover accountability data with the master key
- ``generate-key``     - create a new master key (run once per deployment)
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from constants import DEFAULT_GENERATOR, MASTER_KEY_ENV_VAR, SUPPORTED_FORMATS
from container import is_supported_format, load_pixels, read_text_chunks
from embedder import ImageTooSmallError
from forensic import InvalidMasterKeyError, generate_master_key, is_valid_master_key, load_master_key
from metadata import ContentMetadata
from signer import forensic_decrypt_file, sign_image_file, verify_image_file
from verifier import detect_signature, read_signature


# ── Branding ────────────────────────────────────────────────────────

_ASCII_LOGO = """
  ┌─┐┬  ┌─┐┬─┐┌─┐  ┌─┐┬┌─┐┌┐┌
  ├┤ │  ├─┤├┬┘├─┤  └─┐││ ┬│││
  └─┘┴─┘┴ ┴┴└─┴ ┴  └─┘┴└─┘┘└┘
    ─── content provenance ───
"""


def _print_ascii_logo() -> None:
    """Print the startup banner, colored unless ``NO_COLOR`` is set."""
    if os.environ.get("NO_COLOR"):
        print(_ASCII_LOGO, file=sys.stdout)
        return
    cyan = "\033[96m"
    bold = "\033[1m"
    reset = "\033[0m"
    print(f"{bold}{cyan}{_ASCII_LOGO}{reset}", file=sys.stdout)


# ── Argument parser construction ────────────────────────────────────

def _build_parser() -> argparse.ArgumentParser:
    """Construct and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="elarasign",
        description="Embed and verify tamper-evident provenance signatures in images.",
        epilog="Example: elarasign sign input.png -o signed.png --model SDXL",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable informational logging",
    )
    subparsers = parser.add_subparsers(dest="command")

    sign = subparsers.add_parser("sign", help="Sign an image")
    sign.add_argument(
        "source", type=Path,
        help=f"Image to sign (formats: {', '.join(sorted(SUPPORTED_FORMATS))})",
    )
    sign.add_argument(
        "-o", "--output", type=Path,
        help="Output file path (default: <source>_signed.png)",
    )
    sign.add_argument("--generator", default=DEFAULT_GENERATOR, help="Generator identifier")
    sign.add_argument("--model", help="Model used to generate the content")
    sign.add_argument("--prompt", help="Prompt text (only its hash is stored)")
    sign.add_argument("--user-id", help="Acting user ID (only its hash is stored)")
    sign.add_argument("--seed", type=int, help="Generation seed")
    sign.add_argument("--creator-name", help="Creator name")
    sign.add_argument("--creator-email", help="Creator contact email")
    sign.add_argument("--client-ip", help="Client IPv4 address for the forensic record")
    sign.add_argument(
        "--metadata-out", type=Path,
        help="Where to write the metadata JSON used by verify --metadata (default: <output>.json)",
    )
    sign.add_argument(
        "--key",
        help=f"Forensic master key. Falls back to the {MASTER_KEY_ENV_VAR} env var.",
    )

    verify = subparsers.add_parser("verify", help="Verify an image's signature")
    verify.add_argument("source", type=Path, help="Image to verify")
    verify.add_argument(
        "--metadata", type=Path,
        help="JSON file with the expected metadata; enables tamper detection",
    )

    inspect = subparsers.add_parser("inspect", help="Show raw signature details")
    inspect.add_argument("source", type=Path, help="Image to inspect")

    decrypt = subparsers.add_parser("forensic-decrypt", help="Recover accountability data")
    decrypt.add_argument("source", type=Path, help="Signed image")
    decrypt.add_argument(
        "--key",
        help=f"Forensic master key. Falls back to the {MASTER_KEY_ENV_VAR} env var.",
    )

    subparsers.add_parser("generate-key", help="Generate a new master key")

    return parser


# ── Command handlers ────────────────────────────────────────────────

def _resolve_master_key(explicit: str | None) -> str | None:
    if explicit:
        if not is_valid_master_key(explicit):
            raise InvalidMasterKeyError("The key must be a 64-character hexadecimal string")
        return explicit
    return load_master_key()


def _handle_sign(args: argparse.Namespace) -> int:
    """Sign the source image."""
    try:
        master_key = _resolve_master_key(args.key)
        result = sign_image_file(
            source_path=args.source,
            output_path=args.output,
            generator=args.generator,
            model=args.model,
            prompt=args.prompt,
            user_id=args.user_id,
            seed=args.seed,
            creator_name=args.creator_name,
            creator_email=args.creator_email,
            master_key=master_key,
            client_ip=args.client_ip,
            metadata_path=args.metadata_out,
        )
    except (ImageTooSmallError, InvalidMasterKeyError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        print(f"Meta hash:    {result.meta_hash}")
        print(f"Content hash: {result.content_hash}")
        print(f"Locations:    {', '.join(result.locations_embedded)}")
        print(f"Forensic:     {'attached' if result.forensic_payload else 'disabled'}")
        print()

    print(f"Successfully signed image: {result.output_path}")
    print(f"Metadata written to: {result.metadata_path}")
    return 0


def _handle_verify(args: argparse.Namespace) -> int:
    """Verify the source image's signature."""
    expected = None
    try:
        if args.metadata:
            expected = ContentMetadata.from_json(args.metadata.read_text(encoding="utf-8"))
        outcome = verify_image_file(args.source, expected)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(outcome.message)
    result = outcome.verification
    if result is not None:
        print(f"  Valid locations:   {', '.join(result.valid_locations) or '-'}")
        print(f"  Invalid locations: {', '.join(result.invalid_locations) or '-'}")
        if result.meta_hash_hex:
            print(f"  Meta hash:         {result.meta_hash_hex}")
        if result.timestamp:
            print(f"  Signed at:         {result.timestamp.isoformat()}")
        if result.error:
            print(f"  Error:             {result.error}")
        return 0 if result.is_valid else 1
    return 0 if outcome.signed else 1


def _handle_inspect(args: argparse.Namespace) -> int:
    """Print signature and text-chunk details without verifying metadata."""
    try:
        pixels, _ = load_pixels(args.source)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    detection = detect_signature(pixels)
    print(f"Signature version: {detection.version or 'none'}")
    if detection.version == "3.0":
        info = read_signature(pixels)
        print(f"  Version byte:  {info.version}")
        print(f"  Timestamp:     {info.timestamp.isoformat() if info.timestamp else '-'}")
        print(f"  Meta hash:     {info.meta_hash}")
        print(f"  Content hash:  {info.content_hash}")
        print(f"  Locations:     {', '.join(info.valid_locations)}")

    chunks = read_text_chunks(args.source)
    if chunks:
        print("Text fields:")
        for key, value in chunks.items():
            if len(value) > 100:
                value = value[:100] + "..."
            print(f"  {key}: {value}")
    return 0 if detection.has_signature else 1


def _handle_forensic_decrypt(args: argparse.Namespace) -> int:
    """Recover the accountability record from a signed image."""
    try:
        master_key = _resolve_master_key(args.key)
        if master_key is None:
            print(
                f"Error: No master key given. Use --key or set {MASTER_KEY_ENV_VAR}.",
                file=sys.stderr,
            )
            return 1
        record = forensic_decrypt_file(args.source, master_key)
    except (InvalidMasterKeyError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not record.valid:
        print("Could not recover accountability data (wrong key, salt, or no payload).")
        return 1

    print("DECRYPTION RESULT:")
    print(f"  Timestamp:        {record.timestamp.isoformat()}")
    print(f"  User fingerprint: {record.user_fingerprint}")
    print(f"  IP address:       {record.ip_address}")
    print(f"  Platform:         {record.platform}")
    return 0


def _handle_generate_key(args: argparse.Namespace) -> int:
    """Generate and print a new master key."""
    print("THIS KEY IS SHOWN ONCE. STORE IT OFFLINE. DO NOT LOSE IT.")
    print()
    print(f"  {generate_master_key()}")
    print()
    print("Losing this key permanently orphans every forensic payload encrypted with it.")
    return 0


_HANDLERS = {
    "sign": _handle_sign,
    "verify": _handle_verify,
    "inspect": _handle_inspect,
    "forensic-decrypt": _handle_forensic_decrypt,
    "generate-key": _handle_generate_key,
}


# ── Entry point ─────────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    """Parse arguments and dispatch to the appropriate command handler."""
    _print_ascii_logo()

    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.verbose:
        logging.basicConfig(level=logging.INFO)

    source = getattr(args, "source", None)
    if source is not None:
        if not source.exists():
            print(f"Error: Source file '{source}' does not exist.", file=sys.stderr)
            return 1
        if not is_supported_format(source):
            print(
                f"Warning: Source file '{source}' may not be a supported format "
                f"({', '.join(sorted(SUPPORTED_FORMATS))}).",
                file=sys.stderr,
            )

    return _HANDLERS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
