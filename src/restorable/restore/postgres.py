"""PostgreSQL restorer running in an ephemeral Docker container.

Provides ``PostgresRestorer``, an implementation of the ``Restorer``
protocol using the Docker SDK for the container and psycopg for the
extraction queries.

Restore flow:
1. Start a disposable postgres container and wait for its readiness log
   line to appear twice (bootstrap server, then the real server).
2. Stream the artifact to a staging file and copy it into the container.
3. Restore with ``pg_restore``; on failure fall back to ``psql``.
4. Connect to the restored database for schema and metrics extraction.

Usage:
    from restorable.restore.postgres import PostgresRestorer

    async with PostgresRestorer(config) as restorer:
        await restorer.restore(artifact)
        schema = await restorer.extract_schema()
        metrics = await restorer.extract_metrics()
"""

import asyncio
import logging
import os
import shutil
import tarfile
import tempfile
import time
from pathlib import Path
from typing import Any, BinaryIO

import docker
import psycopg
from docker.errors import DockerException, ImageNotFound, NotFound
from psycopg.conninfo import make_conninfo

from restorable.config.models import RestorableConfig
from restorable.errors import (
    ConfigurationError,
    EnvironmentFailureError,
    RestoreFailure,
    RestoreStateError,
)
from restorable.schema.introspector import SchemaIntrospector
from restorable.schema.models import MetricsSnapshot, SchemaSnapshot

logger = logging.getLogger(__name__)

READY_LOG_LINE = b"database system is ready to accept connections"
READY_OCCURRENCES = 2
CONTAINER_PORT = "5432/tcp"
CONTAINER_BACKUP_DIR = "/tmp"
CONTAINER_BACKUP_NAME = "backup.dump"
COPY_CHUNK_SIZE = 1024 * 1024


class PostgresRestorer:
    """Restores a PostgreSQL backup into a throwaway container.

    Args:
        config: Full restorable configuration.
        docker_client: Optional pre-built Docker client (created from the
            environment when omitted).
        password: Database password for the ephemeral instance. Read from
            the environment variable named by
            ``database.restore.password_env`` when omitted.

    Example:
        restorer = PostgresRestorer(config)
        try:
            await restorer.restore(artifact)
            schema = await restorer.extract_schema()
        finally:
            await restorer.cleanup()
    """

    # Seconds between readiness polls
    poll_interval: float = 0.5

    def __init__(
        self,
        config: RestorableConfig,
        docker_client: Any | None = None,
        password: str | None = None,
    ) -> None:
        self._config = config
        self._restore_cfg = config.database.restore
        self._docker_cfg = config.docker
        self._client = docker_client
        self._password = password

        self._container: Any | None = None
        self._introspector: SchemaIntrospector | None = None
        self._staging_files: list[Path] = []
        self._restore_duration_ns: int = 0
        self.restore_method: str | None = None

    async def __aenter__(self) -> "PostgresRestorer":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            await self.cleanup()
        except EnvironmentFailureError as e:
            if exc_type is None:
                raise
            # Keep the original error; the cleanup failure is secondary.
            logger.error("Cleanup failed after error: %s", e)

    @property
    def restore_duration_ns(self) -> int:
        return self._restore_duration_ns

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    async def restore(self, artifact: BinaryIO) -> None:
        """Provision the container, load the artifact, and connect."""
        password = self._resolve_password()

        await asyncio.to_thread(self._start_container, password)
        await self._wait_until_ready()
        host_port = await asyncio.to_thread(self._published_port)
        await asyncio.to_thread(self._stage_artifact, artifact)
        await self._run_restore(password)
        await self._connect(password, host_port)

    def _resolve_password(self) -> str:
        if self._password:
            return self._password
        env_var = self._restore_cfg.password_env
        password = os.environ.get(env_var)
        if not password:
            raise ConfigurationError(
                f"Database password environment variable {env_var} not set"
            )
        return password

    def _docker(self) -> Any:
        if self._client is None:
            try:
                self._client = docker.from_env()
            except DockerException as e:
                raise EnvironmentFailureError(f"Cannot connect to Docker daemon: {e}") from e
        return self._client

    def _ensure_image(self, client: Any) -> None:
        """Make the restore image available according to the pull policy."""
        image = self._restore_cfg.docker_image
        policy = self._docker_cfg.pull_policy

        if policy == "always":
            logger.info("Pulling image %s", image)
            client.images.pull(image)
            return

        try:
            client.images.get(image)
        except ImageNotFound:
            if policy == "never":
                raise EnvironmentFailureError(
                    f"Image {image} not present locally and pull_policy is 'never'"
                ) from None
            logger.info("Pulling image %s", image)
            client.images.pull(image)

    def _start_container(self, password: str) -> None:
        client = self._docker()
        try:
            self._ensure_image(client)
            self._container = client.containers.run(
                self._restore_cfg.docker_image,
                detach=True,
                environment={
                    "POSTGRES_USER": self._restore_cfg.user,
                    "POSTGRES_PASSWORD": password,
                    "POSTGRES_DB": self._restore_cfg.db_name,
                },
                ports={CONTAINER_PORT: None},
                network=self._docker_cfg.network,
                labels={
                    "io.restorable.project": self._config.project.id,
                    "io.restorable.purpose": "restore-verification",
                },
            )
        except DockerException as e:
            raise EnvironmentFailureError(f"Could not start postgres container: {e}") from e

        logger.info("Started container %s from %s", self._container.short_id, self._restore_cfg.docker_image)

    async def _wait_until_ready(self) -> None:
        """Wait until the readiness line has been logged twice.

        The entrypoint starts a temporary server for initialization, which
        logs the line once, then restarts the real server, which logs it
        again. Only the second occurrence means external connections work.

        Raises:
            EnvironmentFailureError: On timeout or if the container exits.
        """
        timeout = self._docker_cfg.startup_timeout_seconds
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        container = self._container

        while True:
            try:
                logs: bytes = await asyncio.to_thread(container.logs)
                if logs.count(READY_LOG_LINE) >= READY_OCCURRENCES:
                    logger.info("Database container ready")
                    return
                await asyncio.to_thread(container.reload)
            except DockerException as e:
                raise EnvironmentFailureError(f"Lost contact with postgres container: {e}") from e

            if container.status in ("exited", "dead"):
                tail = logs[-2000:].decode("utf-8", errors="replace")
                raise EnvironmentFailureError(
                    f"Postgres container exited before becoming ready:\n{tail}"
                )
            if loop.time() >= deadline:
                raise EnvironmentFailureError(
                    f"Postgres container not ready after {timeout} seconds"
                )
            await asyncio.sleep(self.poll_interval)

    def _published_port(self) -> int:
        try:
            self._container.reload()
            bindings = self._container.attrs["NetworkSettings"]["Ports"][CONTAINER_PORT]
            return int(bindings[0]["HostPort"])
        except DockerException as e:
            raise EnvironmentFailureError(f"Failed to inspect postgres container: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise EnvironmentFailureError(
                f"Postgres container has no published port for {CONTAINER_PORT}"
            ) from e

    def _stage_artifact(self, artifact: BinaryIO) -> None:
        """Stream the artifact to disk, then copy it into the container."""
        temp_dir = self._config.cli.temp_path
        if temp_dir is not None:
            temp_dir.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            prefix="restorable-backup-", suffix=".dump", dir=temp_dir, delete=False
        ) as staged:
            self._staging_files.append(Path(staged.name))
            shutil.copyfileobj(artifact, staged, COPY_CHUNK_SIZE)

        with tempfile.NamedTemporaryFile(
            prefix="restorable-backup-", suffix=".tar", dir=temp_dir, delete=False
        ) as archive:
            self._staging_files.append(Path(archive.name))
            with tarfile.open(fileobj=archive, mode="w") as tar:
                tar.add(staged.name, arcname=CONTAINER_BACKUP_NAME, filter=_readable)

        try:
            with open(archive.name, "rb") as data:
                copied = self._container.put_archive(CONTAINER_BACKUP_DIR, data)
        except DockerException as e:
            raise EnvironmentFailureError(f"Failed to copy backup file into container: {e}") from e
        if not copied:
            raise EnvironmentFailureError("Failed to copy backup file into container")

        logger.debug("Staged backup at %s/%s", CONTAINER_BACKUP_DIR, CONTAINER_BACKUP_NAME)

    async def _run_restore(self, password: str) -> None:
        """Restore with pg_restore, falling back to psql.

        The artifact format is not known in advance: a custom/directory
        dump loads with pg_restore, a plain SQL dump only with psql.
        Only the successful attempt is timed.
        """
        backup_path = f"{CONTAINER_BACKUP_DIR}/{CONTAINER_BACKUP_NAME}"
        user = self._restore_cfg.user
        db_name = self._restore_cfg.db_name

        pg_restore_cmd = [
            "pg_restore",
            "--username", user,
            "--dbname", db_name,
            "--no-password",
            "--verbose",
            "--no-owner",
            backup_path,
        ]
        start = time.monotonic_ns()
        primary_code, primary_output = await self._exec(pg_restore_cmd, password)
        if primary_code == 0:
            self._restore_duration_ns = time.monotonic_ns() - start
            self.restore_method = "pg_restore"
            logger.debug("pg_restore output:\n%s", primary_output)
            logger.info("Database restore completed with pg_restore")
            return

        logger.info("pg_restore failed (exit %d), attempting restore with psql", primary_code)
        logger.debug("pg_restore failure output:\n%s", primary_output)

        psql_cmd = [
            "psql",
            "--username", user,
            "--dbname", db_name,
            "--no-password",
            "--set", "ON_ERROR_STOP=1",
            "--file", backup_path,
        ]
        start = time.monotonic_ns()
        fallback_code, fallback_output = await self._exec(psql_cmd, password)
        if fallback_code != 0:
            raise RestoreFailure(primary_code, primary_output, fallback_code, fallback_output)

        self._restore_duration_ns = time.monotonic_ns() - start
        self.restore_method = "psql"
        logger.debug("psql output:\n%s", fallback_output)
        logger.info("Database restore completed with psql")

    async def _exec(self, cmd: list[str], password: str) -> tuple[int, str]:
        """Run a command in the container; return exit code and combined output."""
        try:
            exit_code, output = await asyncio.to_thread(
                self._container.exec_run, cmd, environment={"PGPASSWORD": password}
            )
        except DockerException as e:
            raise EnvironmentFailureError(f"Failed to execute {cmd[0]}: {e}") from e
        return exit_code, (output or b"").decode("utf-8", errors="replace")

    async def _connect(self, password: str, port: int) -> None:
        conninfo = make_conninfo(
            host=self._restore_cfg.host,
            port=port,
            user=self._restore_cfg.user,
            password=password,
            dbname=self._restore_cfg.db_name,
            sslmode="disable",
        )
        introspector = SchemaIntrospector(conninfo)
        try:
            await introspector.connect()
        except psycopg.Error as e:
            raise EnvironmentFailureError(f"Failed to connect to restored database: {e}") from e
        self._introspector = introspector

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def extract_schema(self) -> SchemaSnapshot:
        introspector = self._require_restored()
        try:
            return await introspector.extract_schema()
        except psycopg.Error as e:
            raise EnvironmentFailureError(f"Schema extraction failed: {e}") from e

    async def extract_metrics(self) -> MetricsSnapshot:
        introspector = self._require_restored()
        try:
            return await introspector.extract_metrics(self._restore_duration_ns)
        except psycopg.Error as e:
            raise EnvironmentFailureError(f"Metrics extraction failed: {e}") from e

    def _require_restored(self) -> SchemaIntrospector:
        if self._introspector is None or not self._introspector.connected:
            raise RestoreStateError("Database connection not established; call restore() first")
        return self._introspector

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def cleanup(self) -> None:
        """Close the connection, remove the container and staging files.

        Every step runs even if an earlier one fails.

        Raises:
            EnvironmentFailureError: If the container could not be removed.
        """
        if self._introspector is not None:
            try:
                await self._introspector.close()
            except psycopg.Error as e:
                logger.warning("Failed to close database connection: %s", e)
            self._introspector = None

        removal_error: DockerException | None = None
        if self._container is not None:
            container, self._container = self._container, None
            try:
                await asyncio.to_thread(container.remove, force=True, v=True)
                logger.info("Removed container %s", container.short_id)
            except NotFound:
                pass
            except DockerException as e:
                removal_error = e

        while self._staging_files:
            self._staging_files.pop().unlink(missing_ok=True)

        if removal_error is not None:
            raise EnvironmentFailureError(
                f"Failed to terminate container: {removal_error}"
            ) from removal_error


def _readable(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.mode = 0o644
    return info
