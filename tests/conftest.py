"""Shared fixtures for restorable tests."""

import asyncio
import io
from pathlib import Path

import pytest

from restorable.config.models import RestorableConfig
from restorable.schema.models import (
    ColumnSnapshot,
    MetricsSnapshot,
    SchemaSnapshot,
    TableMetrics,
    TableSnapshot,
)


def make_table(name: str, columns: tuple[str, ...] = ("id",), namespace: str = "public") -> TableSnapshot:
    return TableSnapshot(
        name=name,
        namespace=namespace,
        column_count=len(columns),
        columns=[ColumnSnapshot(name=col, data_type="integer") for col in columns],
    )


def make_schema(*names: str) -> SchemaSnapshot:
    return SchemaSnapshot(tables=[make_table(name) for name in names])


def make_metrics(rows: dict[str, int] | None = None, duration_ns: int = 2_500_000_000) -> MetricsSnapshot:
    rows = {"a": 10} if rows is None else rows
    return MetricsSnapshot(
        restore_duration_ns=duration_ns,
        db_size_bytes=8 * 1024 * 1024,
        table_metrics=[
            TableMetrics(name=name, namespace="public", row_count=count)
            for name, count in rows.items()
        ],
    )


class FakeSource:
    """In-memory backup source."""

    def __init__(self, data: bytes = b"PGDMP"):
        self.data = data
        self.stream: io.BytesIO | None = None

    async def acquire(self) -> io.BytesIO:
        self.stream = io.BytesIO(self.data)
        return self.stream

    def identifier(self) -> str:
        return "local:/backups/billing.dump"


class FakeRestorer:
    """Restorer returning fixed snapshots; counts cleanup calls."""

    def __init__(self, schema, metrics, restore_error: Exception | None = None, delay: float = 0):
        self.schema = schema
        self.metrics = metrics
        self.restore_error = restore_error
        self.delay = delay
        self.restored: bytes | None = None
        self.restore_method: str | None = None
        self.cleanup_calls = 0

    async def __aenter__(self) -> "FakeRestorer":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.cleanup()

    async def restore(self, artifact) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.restore_error is not None:
            raise self.restore_error
        self.restored = artifact.read()
        self.restore_method = "pg_restore"

    async def extract_schema(self):
        return self.schema

    async def extract_metrics(self):
        return self.metrics

    async def cleanup(self) -> None:
        self.cleanup_calls += 1


@pytest.fixture
def schema_factory():
    """Build a SchemaSnapshot of ``public`` tables from bare names."""
    return make_schema


@pytest.fixture
def metrics_factory():
    """Build a MetricsSnapshot from a ``{table: row_count}`` mapping."""
    return make_metrics


@pytest.fixture
def config(tmp_path: Path) -> RestorableConfig:
    """Config with every local path under ``tmp_path``."""
    return RestorableConfig.model_validate(
        {
            "project": {"id": "billing", "name": "Billing"},
            "cli": {
                "machine_id": "verify-host",
                "report_dir": str(tmp_path / "reports"),
                "baseline_dir": str(tmp_path / "schemas"),
                "temp_dir": str(tmp_path / "staging"),
            },
            "backup": {"source": "local", "local": {"path": str(tmp_path / "backup.dump")}},
        }
    )
