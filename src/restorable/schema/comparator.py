"""Schema snapshot comparison using set operations.

Compares the tables and columns of a current snapshot against a baseline.
Pure logic -- no I/O, no database connections.

Usage:
    from restorable.schema.comparator import compare_snapshots

    diff = compare_snapshots(current, baseline)
    if diff.missing_tables:
        print("Missing:", ", ".join(diff.missing_tables))
"""

from restorable.schema.models import ColumnDiff, SchemaDiff, SchemaSnapshot


def table_columns(snapshot: SchemaSnapshot) -> dict[str, set[str]]:
    """Map each qualified table name to its set of column names.

    Example:
        >>> from restorable.schema.models import TableSnapshot, ColumnSnapshot
        >>> snap = SchemaSnapshot(tables=[TableSnapshot(
        ...     name="users", namespace="public",
        ...     columns=[ColumnSnapshot(name="id", data_type="int")])])
        >>> table_columns(snap)
        {'public.users': {'id'}}
    """
    return {
        table.qualified_name: {column.name for column in table.columns}
        for table in snapshot.tables
    }


def compare_snapshots(current: SchemaSnapshot, baseline: SchemaSnapshot) -> SchemaDiff:
    """Compare a current schema snapshot against a baseline.

    Finds:
    - Missing tables: in *baseline* but not in *current*
    - New tables: in *current* but not in *baseline*
    - Missing columns: baseline columns absent from a table present in both

    Missing tables keep baseline order and new tables keep current order,
    so messages built from the diff are deterministic.

    Args:
        current: Snapshot extracted from the restored database.
        baseline: Last trusted snapshot for the project.

    Returns:
        ``SchemaDiff`` describing the drift.

    Examples:
        >>> from restorable.schema.models import TableSnapshot
        >>> a = TableSnapshot(name="a", namespace="public")
        >>> b = TableSnapshot(name="b", namespace="public")
        >>> diff = compare_snapshots(SchemaSnapshot(tables=[a]), SchemaSnapshot(tables=[a, b]))
        >>> diff.missing_tables
        ['public.b']
    """
    current_columns = table_columns(current)
    baseline_columns = table_columns(baseline)

    missing_tables: list[str] = [
        name for name in baseline.table_names() if name not in current_columns
    ]
    new_tables: list[str] = [
        name for name in current.table_names() if name not in baseline_columns
    ]

    missing_columns: list[ColumnDiff] = []
    for table_name in baseline.table_names():
        if table_name not in current_columns:
            continue
        missing_cols = baseline_columns[table_name] - current_columns[table_name]
        for col_name in sorted(missing_cols):
            missing_columns.append(
                ColumnDiff(
                    table=table_name,
                    column=col_name,
                    message=f"Column '{col_name}' missing from table '{table_name}'",
                )
            )

    return SchemaDiff(
        missing_tables=missing_tables,
        new_tables=new_tables,
        missing_columns=missing_columns,
        baseline_table_count=len(baseline.tables),
        current_table_count=len(current.tables),
    )
