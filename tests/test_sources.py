"""Tests for backup sources and artifact decryption."""

import asyncio
import hashlib
import io
import os
import tracemalloc
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pyrage
import pytest
from pyrage import x25519

from restorable.config.models import BackupConfig, EncryptionConfig, S3SourceConfig
from restorable.crypto import AgeDecryptor, get_decryptor, parse_identities
from restorable.errors import ConfigurationError, EnvironmentFailureError, RestorableError
from restorable.sources import CommandSource, LocalSource, S3Source, get_source


# ============================================================
# Test: LocalSource
# ============================================================


class TestLocalSource:
    """Verify local file acquisition."""

    def test_acquire(self, tmp_path) -> None:
        path = tmp_path / "billing.dump"
        path.write_bytes(b"PGDMP")
        source = LocalSource(path)

        with asyncio.run(source.acquire()) as stream:
            assert stream.read() == b"PGDMP"
        assert source.identifier() == f"local:{path}"

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(EnvironmentFailureError, match="Failed to open local backup"):
            asyncio.run(LocalSource(tmp_path / "absent.dump").acquire())


# ============================================================
# Test: CommandSource
# ============================================================


class TestCommandSource:
    """Verify shell command acquisition."""

    def test_captures_stdout(self, tmp_path) -> None:
        source = CommandSource("printf 'dump-bytes'", temp_dir=tmp_path)
        with asyncio.run(source.acquire()) as stream:
            assert stream.read() == b"dump-bytes"
        assert source.identifier() == "command:printf 'dump-bytes'"

    def test_failure_includes_stderr(self) -> None:
        source = CommandSource("echo 'bucket gone' >&2; exit 3")
        with pytest.raises(EnvironmentFailureError, match="exit 3") as exc_info:
            asyncio.run(source.acquire())
        assert "bucket gone" in str(exc_info.value)

    def test_timeout(self) -> None:
        source = CommandSource("exec sleep 5", timeout_seconds=1)
        with pytest.raises(EnvironmentFailureError, match="timed out after 1 seconds"):
            asyncio.run(source.acquire())


# ============================================================
# Test: S3Source
# ============================================================


def _s3_client(keys: dict[str, datetime], body: bytes = b"s3-dump") -> MagicMock:
    client = MagicMock()
    paginator = MagicMock()
    paginator.paginate.return_value = [
        {"Contents": [{"Key": key, "LastModified": ts} for key, ts in keys.items()]}
    ]
    client.get_paginator.return_value = paginator
    client.get_object.return_value = {"Body": io.BytesIO(body)}
    return client


class TestS3Source:
    """Verify object storage acquisition with a mocked client."""

    def test_prefix_selects_newest(self, tmp_path) -> None:
        client = _s3_client(
            {
                "billing/2024-01-01.dump": datetime(2024, 1, 1, tzinfo=timezone.utc),
                "billing/2024-01-03.dump": datetime(2024, 1, 3, tzinfo=timezone.utc),
                "billing/2024-01-02.dump": datetime(2024, 1, 2, tzinfo=timezone.utc),
            }
        )
        source = S3Source(
            S3SourceConfig(bucket="backups", prefix="billing/"), client=client, temp_dir=tmp_path
        )

        with asyncio.run(source.acquire()) as stream:
            assert stream.read() == b"s3-dump"
        client.get_object.assert_called_once_with(Bucket="backups", Key="billing/2024-01-03.dump")
        assert source.identifier() == "s3://backups/billing/2024-01-03.dump"

    def test_exact_key(self) -> None:
        client = _s3_client({})
        source = S3Source(S3SourceConfig(bucket="backups", prefix="billing/latest.dump"), client=client)

        asyncio.run(source.acquire()).close()

        client.get_paginator.assert_not_called()
        client.get_object.assert_called_once_with(Bucket="backups", Key="billing/latest.dump")

    def test_empty_prefix(self) -> None:
        source = S3Source(S3SourceConfig(bucket="backups", prefix="billing/"), client=_s3_client({}))
        with pytest.raises(EnvironmentFailureError, match="No objects found"):
            asyncio.run(source.acquire())

    def test_identifier_with_endpoint(self) -> None:
        config = S3SourceConfig(bucket="b", prefix="k.dump", endpoint="http://minio:9000")
        source = S3Source(config, client=MagicMock())
        assert source.identifier() == "s3://b/k.dump (endpoint: http://minio:9000)"

    def test_missing_credentials(self, monkeypatch) -> None:
        monkeypatch.delenv("RESTORABLE_S3_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="RESTORABLE_S3_KEY"):
            S3Source(S3SourceConfig(bucket="b"))


# ============================================================
# Test: get_source
# ============================================================


class TestGetSource:
    """Verify source selection by kind."""

    def test_local(self) -> None:
        source = get_source(BackupConfig(source="local", local={"path": "/backups/x.dump"}))
        assert isinstance(source, LocalSource)

    def test_command(self) -> None:
        source = get_source(
            BackupConfig(source="command", command={"exec": "cat x", "timeout_seconds": 5})
        )
        assert isinstance(source, CommandSource)

    def test_s3(self, monkeypatch) -> None:
        monkeypatch.setenv("RESTORABLE_S3_KEY", "key")
        monkeypatch.setenv("RESTORABLE_S3_SECRET", "secret")
        source = get_source(BackupConfig(source="s3", s3={"bucket": "b", "prefix": "p/"}))
        assert isinstance(source, S3Source)

    @pytest.mark.parametrize("kind", ["local", "s3", "command"])
    def test_incomplete_settings(self, kind) -> None:
        with pytest.raises(ConfigurationError, match="not configured"):
            get_source(BackupConfig(source=kind))

    def test_unknown_kind(self) -> None:
        with pytest.raises(ConfigurationError, match="Unsupported backup source type: ftp"):
            get_source(BackupConfig(source="ftp"))


# ============================================================
# Test: Decryption
# ============================================================


class TestDecryption:
    """Verify age decryption."""

    def test_no_encryption(self) -> None:
        assert get_decryptor(None) is None

    def test_unknown_method(self) -> None:
        with pytest.raises(ConfigurationError, match="Unsupported encryption method"):
            get_decryptor(EncryptionConfig(method="gpg", private_key_env="X"))

    def test_no_key_source(self) -> None:
        with pytest.raises(ConfigurationError, match="neither"):
            get_decryptor(EncryptionConfig())

    def test_env_not_set(self, monkeypatch) -> None:
        monkeypatch.delenv("AGE_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="AGE_KEY"):
            get_decryptor(EncryptionConfig(private_key_env="AGE_KEY"))

    def test_invalid_identity(self) -> None:
        with pytest.raises(ConfigurationError, match="Failed to parse age identity"):
            parse_identities("# comment\nnot-a-key\n", "test")

    def test_decrypt_with_key_file(self, tmp_path) -> None:
        identity = x25519.Identity.generate()
        key_file = tmp_path / "backup.key"
        key_file.write_text(f"# created: today\n# public key: {identity.to_public()}\n{identity}\n")
        ciphertext = pyrage.encrypt(b"PGDMP plaintext", [identity.to_public()])

        decryptor = get_decryptor(
            EncryptionConfig(private_key_path=str(key_file)), temp_dir=tmp_path / "tmp"
        )
        with decryptor.decrypt(io.BytesIO(ciphertext)) as stream:
            assert stream.read() == b"PGDMP plaintext"

    def test_decrypt_with_env_key(self, monkeypatch) -> None:
        identity = x25519.Identity.generate()
        monkeypatch.setenv("AGE_KEY", str(identity))
        ciphertext = pyrage.encrypt(b"secret", [identity.to_public()])

        decryptor = get_decryptor(EncryptionConfig(private_key_env="AGE_KEY"))
        assert decryptor.decrypt(io.BytesIO(ciphertext)).read() == b"secret"

    def test_wrong_identity(self) -> None:
        ciphertext = pyrage.encrypt(b"secret", [x25519.Identity.generate().to_public()])
        decryptor = AgeDecryptor([x25519.Identity.generate()])
        with pytest.raises(RestorableError, match="age decryption failed"):
            decryptor.decrypt(io.BytesIO(ciphertext))

    def test_large_artifact_is_streamed(self, tmp_path) -> None:
        """A multi-megabyte artifact decrypts without being buffered in memory."""
        identity = x25519.Identity.generate()
        size = 16 * 1024 * 1024
        plaintext = os.urandom(size)
        expected = hashlib.sha256(plaintext).hexdigest()
        encrypted = tmp_path / "backup.dump.age"
        encrypted.write_bytes(pyrage.encrypt(plaintext, [identity.to_public()]))
        del plaintext

        decryptor = AgeDecryptor([identity], temp_dir=tmp_path / "tmp")
        tracemalloc.start()
        try:
            output = decryptor.decrypt(open(encrypted, "rb"))
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()

        digest = hashlib.sha256()
        with output:
            for chunk in iter(lambda: output.read(1024 * 1024), b""):
                digest.update(chunk)
        assert digest.hexdigest() == expected
        assert peak < 4 * 1024 * 1024

    def test_failure_closes_input(self, tmp_path) -> None:
        ciphertext = pyrage.encrypt(b"secret", [x25519.Identity.generate().to_public()])
        stream = io.BytesIO(ciphertext)
        decryptor = AgeDecryptor([x25519.Identity.generate()], temp_dir=tmp_path)

        with pytest.raises(RestorableError):
            decryptor.decrypt(stream)
        assert stream.closed
        assert list(tmp_path.iterdir()) == []
