"""Backup source for S3 and S3-compatible object storage.

A ``prefix`` ending in ``/`` selects the most recently modified object
under it; any other value is used as the object key.

Usage:
    source = S3Source(S3SourceConfig(bucket="backups", prefix="billing/"))
    stream = await source.acquire()
    print(source.identifier())  # s3://backups/billing/2024-01-01.dump
"""

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, BinaryIO

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from restorable.config.models import S3SourceConfig
from restorable.errors import ConfigurationError, EnvironmentFailureError

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024


def _s3_client(config: S3SourceConfig) -> Any:
    access_key = os.environ.get(config.access_key_env)
    if not access_key:
        raise ConfigurationError(
            f"S3 access key environment variable {config.access_key_env} is not set"
        )
    secret_key = os.environ.get(config.secret_key_env)
    if not secret_key:
        raise ConfigurationError(
            f"S3 secret key environment variable {config.secret_key_env} is not set"
        )

    # S3-compatible services (MinIO, etc.) generally need path-style addressing
    client_config = Config(s3={"addressing_style": "path"}) if config.endpoint else None
    return boto3.client(
        "s3",
        endpoint_url=config.endpoint,
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        region_name=config.region,
        config=client_config,
    )


class S3Source:
    """Downloads a backup object to a temporary file.

    Args:
        config: S3 source settings.
        client: Optional pre-built boto3 S3 client.
        temp_dir: Directory for the downloaded copy (system default if None).
    """

    def __init__(
        self,
        config: S3SourceConfig,
        client: Any | None = None,
        temp_dir: Path | None = None,
    ):
        self._config = config
        self._client = client if client is not None else _s3_client(config)
        self._temp_dir = temp_dir
        self._resolved_key: str | None = None

    async def acquire(self) -> BinaryIO:
        try:
            return await asyncio.to_thread(self._download)
        except (BotoCoreError, ClientError) as e:
            location = f"s3://{self._config.bucket}/{self._resolved_key or self._config.prefix}"
            raise EnvironmentFailureError(f"Failed to fetch {location}: {e}") from e

    def _download(self) -> BinaryIO:
        key = self._config.prefix
        if key.endswith("/"):
            key = self._find_latest_key()
        self._resolved_key = key

        logger.info("Downloading s3://%s/%s", self._config.bucket, key)
        obj = self._client.get_object(Bucket=self._config.bucket, Key=key)

        if self._temp_dir is not None:
            self._temp_dir.mkdir(parents=True, exist_ok=True)
        stream = tempfile.TemporaryFile(dir=self._temp_dir)
        try:
            shutil.copyfileobj(obj["Body"], stream, COPY_CHUNK_SIZE)
            stream.seek(0)
        except BaseException:
            stream.close()
            raise
        return stream

    def _find_latest_key(self) -> str:
        """Return the key of the most recently modified object under the prefix."""
        paginator = self._client.get_paginator("list_objects_v2")
        latest: tuple[Any, str] | None = None
        for page in paginator.paginate(Bucket=self._config.bucket, Prefix=self._config.prefix):
            for obj in page.get("Contents", []):
                if latest is None or obj["LastModified"] > latest[0]:
                    latest = (obj["LastModified"], obj["Key"])

        if latest is None:
            raise EnvironmentFailureError(
                f"No objects found in s3://{self._config.bucket}/{self._config.prefix}"
            )
        return latest[1]

    def identifier(self) -> str:
        key = self._resolved_key or self._config.prefix
        uri = f"s3://{self._config.bucket}/{key}"
        if self._config.endpoint:
            return f"{uri} (endpoint: {self._config.endpoint})"
        return uri
