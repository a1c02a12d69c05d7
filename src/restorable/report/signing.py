"""Ed25519 signing and verification of verification reports.

The signature covers the canonical encoding of every report field except
``signature`` itself:

- JSON with keys sorted at every level and ``(",", ":")`` separators
- UTF-8, non-ASCII characters written as-is
- timestamps in the fixed ``YYYY-MM-DDTHH:MM:SS.ffffffZ`` form
- durations and sizes as integers (no floats anywhere)

The encoding depends only on field names and values, never on model field
order, so a report loaded from disk re-encodes to the bytes that were
signed.

Key files may hold a raw 32-byte seed, a raw 64-byte seed+public key, or
PEM; public keys may be raw 32 bytes or PEM.
"""

import base64
import binascii
import json
import logging
import os
from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_pem_private_key,
    load_pem_public_key,
)

from restorable.errors import SignatureError, SigningKeyError
from restorable.report.models import Report

logger = logging.getLogger(__name__)

_SEED_SIZE = 32
_EXPANDED_SIZE = 64


def canonical_bytes(report: Report) -> bytes:
    """Return the canonical byte form of a report with its signature removed."""
    payload = report.model_dump(mode="json", by_alias=True, exclude={"signature"})
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return canonical.encode("utf-8")


def sign_report(report: Report, private_key: Ed25519PrivateKey) -> Report:
    """Sign a report.

    Any existing signature is ignored. The original report is left unchanged.

    Returns:
        A copy of the report carrying the base64-encoded signature.
    """
    signature = private_key.sign(canonical_bytes(report))
    return report.model_copy(
        update={"signature": base64.b64encode(signature).decode("ascii")}
    )


def verify_report(report: Report, public_key: Ed25519PublicKey) -> bool:
    """Verify a report's signature against a public key.

    Returns:
        True if the signature matches the report content.

    Raises:
        SignatureError: If the report has no signature or it is not valid base64.
    """
    if not report.signature:
        raise SignatureError("report has no signature")

    try:
        signature = base64.b64decode(report.signature, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SignatureError(f"failed to decode signature: {e}") from e

    try:
        public_key.verify(signature, canonical_bytes(report))
    except InvalidSignature:
        return False
    return True


# ============================================================================
# Key Material
# ============================================================================


def public_key_path_for(private_key_path: Path) -> Path:
    """Derive the public key path: ``signing.key`` -> ``signing.pub``."""
    private_key_path = Path(private_key_path)
    if private_key_path.suffix == ".key":
        return private_key_path.with_suffix(".pub")
    return private_key_path.with_name(private_key_path.name + ".pub")


def load_private_key(path: Path) -> Ed25519PrivateKey:
    """Load an Ed25519 private key.

    Raises:
        SigningKeyError: If the file is missing or holds no usable key.
    """
    data = _read_key_file(path, "private")

    if data.lstrip().startswith(b"-----BEGIN"):
        try:
            key = load_pem_private_key(data, password=None)
        except (ValueError, TypeError) as e:
            raise SigningKeyError(f"Failed to parse private key {path}: {e}") from e
        if not isinstance(key, Ed25519PrivateKey):
            raise SigningKeyError(f"Private key {path} is not an Ed25519 key")
        return key

    if len(data) not in (_SEED_SIZE, _EXPANDED_SIZE):
        raise SigningKeyError(
            f"Invalid private key size in {path}: expected {_SEED_SIZE} or "
            f"{_EXPANDED_SIZE} bytes, got {len(data)}"
        )
    # A 64-byte key is seed followed by the public key.
    return Ed25519PrivateKey.from_private_bytes(data[:_SEED_SIZE])


def load_public_key(path: Path) -> Ed25519PublicKey:
    """Load an Ed25519 public key.

    Raises:
        SigningKeyError: If the file is missing or holds no usable key.
    """
    data = _read_key_file(path, "public")

    if data.lstrip().startswith(b"-----BEGIN"):
        try:
            key = load_pem_public_key(data)
        except ValueError as e:
            raise SigningKeyError(f"Failed to parse public key {path}: {e}") from e
        if not isinstance(key, Ed25519PublicKey):
            raise SigningKeyError(f"Public key {path} is not an Ed25519 key")
        return key

    if len(data) != _SEED_SIZE:
        raise SigningKeyError(
            f"Invalid public key size in {path}: expected {_SEED_SIZE} bytes, got {len(data)}"
        )
    return Ed25519PublicKey.from_public_bytes(data)


def generate_keypair(private_key_path: Path, overwrite: bool = False) -> tuple[Path, Path]:
    """Generate an Ed25519 keypair and write it as raw bytes.

    The private key is written with mode 0600 next to its ``.pub`` sibling.

    Returns:
        (private_key_path, public_key_path)

    Raises:
        SigningKeyError: If a key file already exists and ``overwrite`` is False.
    """
    private_key_path = Path(private_key_path).expanduser()
    public_path = public_key_path_for(private_key_path)
    if not overwrite:
        for existing in (private_key_path, public_path):
            if existing.exists():
                raise SigningKeyError(f"Key file already exists: {existing}")

    private_key = Ed25519PrivateKey.generate()
    private_bytes = private_key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
    public_bytes = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)

    private_key_path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(private_key_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(private_bytes)
    public_path.write_bytes(public_bytes)

    logger.info("Wrote signing keypair %s / %s", private_key_path, public_path)
    return private_key_path, public_path


def _read_key_file(path: Path, kind: str) -> bytes:
    path = Path(path).expanduser()
    try:
        return path.read_bytes()
    except OSError as e:
        raise SigningKeyError(f"Failed to read {kind} key file {path}: {e}") from e
