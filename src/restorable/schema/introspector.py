"""PostgreSQL schema and metrics introspection via the system catalogs.

This module queries a restored database to extract:
- User tables (excluding system namespaces) with their columns
- Database size
- Per-table row counts, from ``pg_stat_user_tables`` with an exact
  ``COUNT(*)`` fallback when the statistics are not yet populated

Uses psycopg (v3) async connections.
"""

import logging

import psycopg
from psycopg import AsyncConnection, sql

from restorable.schema.models import (
    ColumnSnapshot,
    MetricsSnapshot,
    SchemaSnapshot,
    TableMetrics,
    TableSnapshot,
)

logger = logging.getLogger(__name__)


class SchemaIntrospector:
    """Introspects a restored PostgreSQL database.

    Usage:
        async with SchemaIntrospector(conninfo) as introspector:
            schema = await introspector.extract_schema()
            metrics = await introspector.extract_metrics(restore_duration_ns)
    """

    # Namespaces that never hold user tables
    EXCLUDED_NAMESPACES = ("information_schema", "pg_catalog")

    def __init__(self, conninfo: str, connect_timeout: int = 10):
        """Initialize with a connection string.

        Args:
            conninfo: PostgreSQL connection URL or keyword/value string.
            connect_timeout: Seconds to wait for the connection.
        """
        self._conninfo = conninfo
        self._connect_timeout = connect_timeout
        self._conn: AsyncConnection | None = None

    async def __aenter__(self) -> "SchemaIntrospector":
        """Async context manager entry - opens connection."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - closes connection."""
        await self.close()

    async def connect(self) -> None:
        """Open the connection (autocommit, read queries only)."""
        self._conn = await psycopg.AsyncConnection.connect(
            self._conninfo,
            connect_timeout=self._connect_timeout,
            autocommit=True,
        )

    async def close(self) -> None:
        """Close the connection if open. Safe to call repeatedly."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    @property
    def connected(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    async def extract_schema(self) -> SchemaSnapshot:
        """Extract all user tables and their columns in name order.

        Returns:
            SchemaSnapshot ordered by (namespace, name).
        """
        self._require_connection()

        tables: list[TableSnapshot] = []
        for namespace, name, column_count in await self._get_tables():
            columns = await self._get_columns(namespace, name)
            tables.append(
                TableSnapshot(
                    name=name,
                    namespace=namespace,
                    column_count=column_count,
                    columns=columns,
                )
            )

        logger.debug("Extracted schema with %d tables", len(tables))
        return SchemaSnapshot(tables=tables)

    async def _get_tables(self) -> list[tuple[str, str, int]]:
        """Get (namespace, name, column_count) for every user table."""
        query = """
            SELECT
                t.table_schema,
                t.table_name,
                (SELECT COUNT(*) FROM information_schema.columns c
                 WHERE c.table_schema = t.table_schema
                   AND c.table_name = t.table_name) AS column_count
            FROM information_schema.tables t
            WHERE t.table_schema <> ALL(%s)
              AND t.table_schema NOT LIKE 'pg_toast%%'
              AND t.table_type = 'BASE TABLE'
            ORDER BY t.table_schema, t.table_name
        """
        rows = await self._fetch(query, (list(self.EXCLUDED_NAMESPACES),))
        return [(row[0], row[1], int(row[2])) for row in rows]

    async def _get_columns(self, namespace: str, table_name: str) -> list[ColumnSnapshot]:
        """Get columns for a table in ordinal order."""
        query = """
            SELECT column_name, data_type, is_nullable
            FROM information_schema.columns
            WHERE table_schema = %s
              AND table_name = %s
            ORDER BY ordinal_position
        """
        rows = await self._fetch(query, (namespace, table_name))
        return [
            ColumnSnapshot(
                name=col_name,
                data_type=data_type,
                nullable=(is_nullable == "YES"),
            )
            for col_name, data_type, is_nullable in rows
        ]

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    async def extract_metrics(self, restore_duration_ns: int = 0) -> MetricsSnapshot:
        """Extract database size and per-table row counts.

        Row counts come from ``pg_stat_user_tables`` first. Right after a
        bulk load those statistics are often empty or all zero, in which
        case every table is counted exactly with ``COUNT(*)``.

        Args:
            restore_duration_ns: Duration of the successful restore attempt.

        Returns:
            MetricsSnapshot for the restored database.
        """
        self._require_connection()

        size_rows = await self._fetch("SELECT pg_database_size(current_database())")
        db_size = int(size_rows[0][0]) if size_rows else 0

        table_metrics = await self._get_stat_row_counts()
        if not table_metrics or all(tm.row_count == 0 for tm in table_metrics):
            logger.debug("Row statistics empty or zero; counting rows exactly")
            table_metrics = await self._get_exact_row_counts()

        return MetricsSnapshot(
            restore_duration_ns=restore_duration_ns,
            db_size_bytes=db_size,
            table_metrics=table_metrics,
        )

    async def _get_stat_row_counts(self) -> list[TableMetrics]:
        """Read live tuple estimates from the statistics view."""
        query = """
            SELECT schemaname, relname, n_live_tup
            FROM pg_stat_user_tables
            ORDER BY schemaname, relname
        """
        rows = await self._fetch(query)
        return [
            TableMetrics(namespace=namespace, name=name, row_count=int(count or 0))
            for namespace, name, count in rows
        ]

    async def _get_exact_row_counts(self) -> list[TableMetrics]:
        """Count rows in every user table with ``COUNT(*)``."""
        metrics: list[TableMetrics] = []
        for namespace, name, _ in await self._get_tables():
            query = sql.SQL("SELECT COUNT(*) FROM {}.{}").format(
                sql.Identifier(namespace), sql.Identifier(name)
            )
            rows = await self._fetch(query)
            metrics.append(
                TableMetrics(namespace=namespace, name=name, row_count=int(rows[0][0]))
            )
        return metrics

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_connection(self) -> None:
        if not self._conn:
            raise RuntimeError("Introspector not connected. Use async with statement.")

    async def _fetch(self, query, params: tuple = ()) -> list[tuple]:
        """Execute a query and return all rows."""
        async with self._conn.cursor() as cur:
            await cur.execute(query, params or None)
            return await cur.fetchall()
