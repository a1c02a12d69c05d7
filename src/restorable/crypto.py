"""Decryption of age-encrypted backup artifacts.

Identities are X25519 age secret keys (``AGE-SECRET-KEY-1...``), one per
line; blank lines and ``#`` comments are ignored, matching the key files
written by ``age-keygen``.

Usage:
    from restorable.crypto import get_decryptor

    decryptor = get_decryptor(config.encryption)
    if decryptor is not None:
        stream = decryptor.decrypt(stream)
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO

import pyrage
from pyrage import x25519

from restorable.config.models import EncryptionConfig
from restorable.errors import ConfigurationError, RestorableError

logger = logging.getLogger(__name__)


def parse_identities(key_data: str, origin: str) -> list[x25519.Identity]:
    """Parse age identities from key file text.

    Raises:
        ConfigurationError: If a line is not a valid identity or none are found.
    """
    identities: list[x25519.Identity] = []
    for line in key_data.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            identities.append(x25519.Identity.from_str(line))
        except pyrage.IdentityError as e:
            raise ConfigurationError(f"Failed to parse age identity from {origin}: {e}") from e

    if not identities:
        raise ConfigurationError(f"No age identities found in {origin}")
    return identities


class AgeDecryptor:
    """Decrypts age-encrypted artifacts with a set of X25519 identities."""

    def __init__(self, identities: list[x25519.Identity], temp_dir: Path | None = None):
        self._identities = identities
        self._temp_dir = temp_dir

    @classmethod
    def from_file(cls, path: str | Path, temp_dir: Path | None = None) -> "AgeDecryptor":
        path = Path(path).expanduser()
        try:
            key_data = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Failed to read age private key from {path}: {e}") from e
        return cls(parse_identities(key_data, str(path)), temp_dir)

    @classmethod
    def from_env(cls, env_var: str, temp_dir: Path | None = None) -> "AgeDecryptor":
        key_data = os.environ.get(env_var)
        if not key_data:
            raise ConfigurationError(f"age private key environment variable {env_var} is not set")
        return cls(parse_identities(key_data, f"environment variable {env_var}"), temp_dir)

    def decrypt(self, stream: BinaryIO) -> BinaryIO:
        """Decrypt a stream into a new temporary file.

        Ciphertext is streamed from ``stream`` to the output file, so
        neither side is held in memory. The input stream is closed once
        consumed.

        Raises:
            RestorableError: If the artifact cannot be decrypted with the identities.
        """
        if self._temp_dir is not None:
            self._temp_dir.mkdir(parents=True, exist_ok=True)

        output = tempfile.TemporaryFile(dir=self._temp_dir)
        try:
            with stream:
                pyrage.decrypt_io(stream, output, self._identities)
            output.seek(0)
        except pyrage.DecryptError as e:
            output.close()
            raise RestorableError(f"age decryption failed: {e}") from e
        except BaseException:
            output.close()
            raise

        logger.debug("Decrypted backup artifact (%d bytes)", os.fstat(output.fileno()).st_size)
        return output


def get_decryptor(
    config: EncryptionConfig | None, temp_dir: Path | None = None
) -> AgeDecryptor | None:
    """Create the decryptor for the configured method.

    Returns:
        None when no encryption is configured.

    Raises:
        ConfigurationError: If the method is unknown or no key source is set.
    """
    if config is None:
        return None

    if config.method != "age":
        raise ConfigurationError(f"Unsupported encryption method: {config.method}")

    if config.private_key_path:
        return AgeDecryptor.from_file(config.private_key_path, temp_dir)
    if config.private_key_env:
        return AgeDecryptor.from_env(config.private_key_env, temp_dir)
    raise ConfigurationError(
        "encryption is configured but neither private_key_path nor private_key_env is set"
    )
