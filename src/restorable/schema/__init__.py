"""Schema snapshots, comparison, introspection, and baseline storage.

Usage:
    from restorable.schema import SchemaIntrospector, compare_snapshots
    from restorable.schema import BaselineStore, SchemaSnapshot
"""

from restorable.schema.baseline import BaselineStore
from restorable.schema.comparator import compare_snapshots, table_columns
from restorable.schema.introspector import SchemaIntrospector
from restorable.schema.models import (
    SCHEMA_FORMAT_VERSION,
    ColumnDiff,
    ColumnSnapshot,
    MetricsSnapshot,
    SchemaDiff,
    SchemaSnapshot,
    TableMetrics,
    TableSnapshot,
    format_timestamp,
    utc_now,
)

__all__ = [
    "SCHEMA_FORMAT_VERSION",
    "BaselineStore",
    "SchemaIntrospector",
    "compare_snapshots",
    "table_columns",
    "ColumnSnapshot",
    "TableSnapshot",
    "SchemaSnapshot",
    "TableMetrics",
    "MetricsSnapshot",
    "ColumnDiff",
    "SchemaDiff",
    "format_timestamp",
    "utc_now",
]
