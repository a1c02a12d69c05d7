"""Pydantic models for schema and metrics snapshots.

This module contains the snapshot models produced by a restore:
- Schema models: ColumnSnapshot, TableSnapshot, SchemaSnapshot
- Metrics models: TableMetrics, MetricsSnapshot
- Comparison models: ColumnDiff, SchemaDiff

Timestamps are timezone-aware UTC and always serialize in the fixed
``YYYY-MM-DDTHH:MM:SS.ffffffZ`` form, so a snapshot written to disk and
loaded back re-serializes to identical bytes.
"""

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer

SCHEMA_FORMAT_VERSION = "1"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        # Treat naive datetimes as UTC.
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime in the fixed UTC wire form.

    Example:
        >>> format_timestamp(datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
        '2024-01-02T03:04:05.000000Z'
    """
    return _as_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


UTCTimestamp = Annotated[
    datetime,
    AfterValidator(_as_utc),
    PlainSerializer(format_timestamp, return_type=str),
]


class SnapshotModel(BaseModel):
    """Immutable base for snapshot models whose JSON keys differ from attribute names."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_by_name=True,
        validate_by_alias=True,
        serialize_by_alias=True,
    )


# ============================================================================
# Schema Snapshot Models
# ============================================================================


class ColumnSnapshot(SnapshotModel):
    """A column as declared in the restored database.

    Example:
        >>> col = ColumnSnapshot(name="id", data_type="uuid")
        >>> col.nullable
        True
    """

    name: str
    data_type: str
    nullable: bool = True


class TableSnapshot(SnapshotModel):
    """A user table; identity is the pair (namespace, name)."""

    name: str
    namespace: str = Field(alias="schema")
    column_count: int = 0
    columns: list[ColumnSnapshot] = Field(default_factory=list)

    @property
    def qualified_name(self) -> str:
        """Return ``namespace.name``."""
        return f"{self.namespace}.{self.name}"


class SchemaSnapshot(SnapshotModel):
    """Structural description of a database at a point in time.

    Example:
        >>> snap = SchemaSnapshot(tables=[TableSnapshot(name="users", namespace="public")])
        >>> snap.table_names()
        ['public.users']
    """

    version: str = SCHEMA_FORMAT_VERSION
    timestamp: UTCTimestamp = Field(default_factory=utc_now)
    tables: list[TableSnapshot] = Field(default_factory=list)

    def table_names(self) -> list[str]:
        """Return fully qualified table names in snapshot order."""
        return [table.qualified_name for table in self.tables]


# ============================================================================
# Metrics Snapshot Models
# ============================================================================


class TableMetrics(SnapshotModel):
    """Row count for a single table."""

    name: str
    namespace: str = Field(alias="schema")
    row_count: int = 0

    @property
    def qualified_name(self) -> str:
        """Return ``namespace.name``."""
        return f"{self.namespace}.{self.name}"


class MetricsSnapshot(SnapshotModel):
    """Quantitative description of a restored database.

    ``restore_duration_ns`` is the wall-clock duration of the successful
    restore attempt in integer nanoseconds.
    """

    timestamp: UTCTimestamp = Field(default_factory=utc_now)
    restore_duration_ns: int = 0
    db_size_bytes: int = 0
    table_metrics: list[TableMetrics] = Field(default_factory=list)

    @property
    def restore_seconds(self) -> float:
        """Restore duration in seconds."""
        return self.restore_duration_ns / 1_000_000_000

    @property
    def total_rows(self) -> int:
        """Sum of row counts across all tables."""
        return sum(tm.row_count for tm in self.table_metrics)


# ============================================================================
# Comparison Result Models
# ============================================================================


class ColumnDiff(BaseModel):
    """A baseline column missing from the current snapshot."""

    table: str
    column: str
    message: str = ""


class SchemaDiff(BaseModel):
    """Result of comparing a current snapshot against a baseline.

    Example:
        >>> diff = SchemaDiff(baseline_table_count=3, current_table_count=2)
        >>> diff.table_count_delta
        -1
    """

    missing_tables: list[str] = Field(default_factory=list)
    new_tables: list[str] = Field(default_factory=list)
    missing_columns: list[ColumnDiff] = Field(default_factory=list)
    baseline_table_count: int = 0
    current_table_count: int = 0

    @property
    def table_count_delta(self) -> int:
        """Current table count minus baseline table count."""
        return self.current_table_count - self.baseline_table_count
