"""Tests for the checker framework.

Verifies that:
- Every checker passes when a snapshot is compared with itself
- Schema checkers pass on the first run (no baseline)
- A missing baseline table fails ``tables_exist`` as critical
- Schema growth passes ``table_count`` and is listed by ``new_tables``
- Row count and duration checkers honour their thresholds
- The registry builds checkers by kind and rejects unknown kinds
"""

import pytest

from conftest import make_metrics, make_schema, make_table
from restorable.checks import (
    DEFAULT_CHECKS,
    CheckLevel,
    ColumnsMatchChecker,
    NewTablesChecker,
    NonEmptyTablesChecker,
    RestoreDurationChecker,
    RowCountChecker,
    TableCountChecker,
    TablesExistChecker,
    TotalRowCountChecker,
    build_checkers,
    count_failures,
    get_checker,
    has_critical_failure,
    run_checks,
)
from restorable.config.models import VerificationConfig
from restorable.errors import ConfigurationError
from restorable.schema.models import SchemaSnapshot

ALL_CHECKERS = [
    TablesExistChecker(),
    TableCountChecker(),
    NewTablesChecker(),
    ColumnsMatchChecker(),
    RowCountChecker(),
    NonEmptyTablesChecker(),
    TotalRowCountChecker(),
    RestoreDurationChecker(),
]


# ============================================================
# Test: Properties shared by all checkers
# ============================================================


class TestCheckerProperties:
    """Verify properties that hold for every built-in checker."""

    @pytest.mark.parametrize("checker", ALL_CHECKERS, ids=lambda c: c.name)
    def test_reflexive(self, checker) -> None:
        """Comparing a snapshot with itself passes."""
        snap = make_schema("a", "b")
        result = checker.check(snap, snap, make_metrics())
        assert result.passed, result.message
        assert result.name == checker.name

    @pytest.mark.parametrize(
        "checker",
        [TablesExistChecker(), TableCountChecker(), NewTablesChecker(), ColumnsMatchChecker()],
        ids=lambda c: c.name,
    )
    def test_first_run_passes(self, checker) -> None:
        """Without a baseline, schema checkers pass whatever the schema."""
        result = checker.check(make_schema("anything"), None, None)
        assert result.passed

    def test_run_checks_preserves_order(self) -> None:
        """Results come back in checker order, one per checker."""
        snap = make_schema("a")
        results = run_checks(ALL_CHECKERS, snap, snap, make_metrics())
        assert [r.name for r in results] == [c.name for c in ALL_CHECKERS]


# ============================================================
# Test: Schema checkers
# ============================================================


class TestTablesExist:
    """Verify the critical tables_exist checker."""

    def test_first_run_message(self) -> None:
        result = TablesExistChecker().check(make_schema("a"), None, None)
        assert "first verification run" in result.message

    def test_missing_table_is_critical_failure(self) -> None:
        """Baseline {a,b,c} vs current {a,b} fails and names public.c."""
        result = TablesExistChecker().check(make_schema("a", "b"), make_schema("a", "b", "c"), None)
        assert not result.passed
        assert result.level == CheckLevel.CRITICAL
        assert "public.c" in result.message
        assert has_critical_failure([result])

    def test_all_present(self) -> None:
        result = TablesExistChecker().check(make_schema("a", "b"), make_schema("a", "b"), None)
        assert result.message == "All 2 expected tables present"


class TestTableCount:
    """Verify table count comparison."""

    def test_growth_passes(self) -> None:
        result = TableCountChecker().check(make_schema("a", "b", "c"), make_schema("a", "b"), None)
        assert result.passed
        assert "+1" in result.message

    def test_decrease_fails_as_warning(self) -> None:
        result = TableCountChecker().check(make_schema("a"), make_schema("a", "b"), None)
        assert not result.passed
        assert result.level == CheckLevel.WARNING
        assert "-1" in result.message


class TestNewTables:
    """Verify the informational new_tables checker."""

    def test_lists_new_tables(self) -> None:
        result = NewTablesChecker().check(make_schema("a", "b", "c"), make_schema("a", "b"), None)
        assert result.passed
        assert result.level == CheckLevel.INFO
        assert "public.c" in result.message

    def test_none_detected(self) -> None:
        result = NewTablesChecker().check(make_schema("a"), make_schema("a"), None)
        assert result.message == "No new tables detected"


class TestColumnsMatch:
    """Verify column drift detection."""

    def test_missing_column_fails(self) -> None:
        current = SchemaSnapshot(tables=[make_table("users", ("id",))])
        baseline = SchemaSnapshot(tables=[make_table("users", ("id", "email"))])
        result = ColumnsMatchChecker().check(current, baseline, None)
        assert not result.passed
        assert "public.users.email" in result.message

    def test_added_column_passes(self) -> None:
        current = SchemaSnapshot(tables=[make_table("users", ("id", "email"))])
        baseline = SchemaSnapshot(tables=[make_table("users", ("id",))])
        assert ColumnsMatchChecker().check(current, baseline, None).passed


# ============================================================
# Test: Data checkers
# ============================================================


class TestDataCheckers:
    """Verify row count and duration checkers."""

    def test_row_counts_soft_skip(self) -> None:
        """Baselines carry no row counts, so the check passes and reports the total."""
        snap = make_schema("a")
        result = RowCountChecker().check(snap, snap, make_metrics({"a": 7}))
        assert result.passed
        assert "Current total rows: 7" in result.message

    def test_non_empty_tables_minimum(self) -> None:
        metrics = make_metrics({"a": 5, "b": 0})
        snap = make_schema("a", "b")
        assert NonEmptyTablesChecker(minimum_tables=1).check(snap, None, metrics).passed
        assert not NonEmptyTablesChecker(minimum_tables=2).check(snap, None, metrics).passed

    def test_non_empty_tables_without_metrics(self) -> None:
        assert not NonEmptyTablesChecker().check(make_schema("a"), None, None).passed

    def test_total_row_count_minimum(self) -> None:
        snap = make_schema("a")
        assert TotalRowCountChecker(minimum_rows=10).check(snap, None, make_metrics({"a": 10})).passed
        result = TotalRowCountChecker(minimum_rows=11).check(snap, None, make_metrics({"a": 10}))
        assert not result.passed
        assert "below minimum 11" in result.message

    def test_restore_duration_limit(self) -> None:
        """Exceeding the maximum fails as a warning."""
        snap = make_schema("a")
        slow = make_metrics(duration_ns=90 * 1_000_000_000)
        result = RestoreDurationChecker(max_duration_seconds=60).check(snap, None, slow)
        assert not result.passed
        assert result.level == CheckLevel.WARNING
        assert result.message == "Restore took 90 seconds (maximum: 60)"

    def test_restore_duration_unlimited(self) -> None:
        snap = make_schema("a")
        slow = make_metrics(duration_ns=90 * 1_000_000_000)
        assert RestoreDurationChecker(max_duration_seconds=0).check(snap, None, slow).passed


class TestCountFailures:
    """Verify failure tallies."""

    def test_counts_by_level(self) -> None:
        snap = make_schema("a", "b")
        results = run_checks(
            [TablesExistChecker(), TableCountChecker(), NewTablesChecker()],
            make_schema("a"),
            snap,
            None,
        )
        assert count_failures(results) == (1, 1, 0)


# ============================================================
# Test: Registry
# ============================================================


class TestRegistry:
    """Verify checker construction by kind."""

    def test_default_set(self) -> None:
        checkers = build_checkers(VerificationConfig())
        assert [c.name for c in checkers] == list(DEFAULT_CHECKS)

    def test_configured_order(self) -> None:
        config = VerificationConfig(checks=["new_tables", "tables_exist"])
        assert [c.name for c in build_checkers(config)] == ["new_tables", "tables_exist"]

    def test_unknown_kind_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown check kind 'bogus'"):
            get_checker("bogus", VerificationConfig())

    def test_unknown_kind_in_config_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            build_checkers(VerificationConfig(checks=["tables_exist", "bogus"]))

    def test_disabled_groups_dropped(self) -> None:
        config = VerificationConfig.model_validate(
            {"schema": {"enabled": False}, "row_counts": {"enabled": False}}
        )
        assert [c.name for c in build_checkers(config)] == ["restore_duration"]

    def test_thresholds_passed_through(self) -> None:
        config = VerificationConfig.model_validate(
            {"max_restore_seconds": 120, "row_counts": {"minimum_rows": 50}}
        )
        assert get_checker("restore_duration", config).max_duration_seconds == 120
        assert get_checker("total_row_count", config).minimum_rows == 50
