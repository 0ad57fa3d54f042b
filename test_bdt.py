"""Tests for the bdt comparison engine."""

import math
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from bdt import (
    CompareConfig,
    CompareEngine,
    DifferenceKind,
    LogicalSchema,
    LogicalType,
    MemoryRowSource,
    PairingKind,
    TolerancePolicy,
    Verdict,
    compare,
    equal,
    reconcile,
    render,
    verdict,
)
from bdt.comparators import coerce_value, compare_values
from bdt.differ import RowDiffer
from bdt.exceptions import DuplicateColumnNameError, RowSourceError, ValidationError
from bdt.models import BOOLEAN, FLOAT64, INT64, UTF8, LogLevel, TimeUnit
from bdt.schema import common_type


def source(columns, rows):
    return MemoryRowSource(LogicalSchema.of(columns), rows)


SCORES = [("id", INT64), ("score", FLOAT64)]


class TestTolerantComparator:
    """Test scalar equality under a tolerance policy."""

    def test_exact_by_default(self):
        """Test that the default policy rejects representation error."""
        assert equal(0.1 + 0.2, 0.3, FLOAT64) is False
        assert equal(0.5, 0.5, FLOAT64) is True

    def test_absolute_epsilon(self):
        """Test that |a - b| <= epsilon is equal."""
        policy = TolerancePolicy(absolute_epsilon=0.01)
        assert equal(100.0, 100.005, FLOAT64, policy) is True
        assert equal(100.0, 100.02, FLOAT64, policy) is False

    def test_absolute_epsilon_boundary_is_inclusive(self):
        """Test a difference exactly equal to the epsilon is equal."""
        policy = TolerancePolicy(absolute_epsilon=0.5)
        assert equal(1.0, 1.5, FLOAT64, policy) is True
        assert equal(1.0, 1.5000001, FLOAT64, policy) is False

    def test_relative_epsilon(self):
        """Test that the relative epsilon scales with the larger magnitude."""
        policy = TolerancePolicy(relative_epsilon=0.01)
        assert equal(100.0, 101.0, FLOAT64, policy) is True
        assert equal(100.0, 102.0, FLOAT64, policy) is False

    def test_nan_equals_nan(self):
        """Test that NaN equals NaN under any policy."""
        assert equal(math.nan, math.nan, FLOAT64) is True
        assert equal(math.nan, 1.0, FLOAT64) is False
        assert equal(math.nan, 1.0, FLOAT64, TolerancePolicy(absolute_epsilon=1e300)) is False

    def test_infinities(self):
        """Test that infinities only equal infinities of the same sign."""
        wide = TolerancePolicy(absolute_epsilon=1e300, relative_epsilon=10.0)
        assert equal(math.inf, math.inf, FLOAT64) is True
        assert equal(-math.inf, -math.inf, FLOAT64) is True
        assert equal(math.inf, -math.inf, FLOAT64, wide) is False
        assert equal(math.inf, 1e308, FLOAT64, wide) is False

    def test_nulls(self):
        """Test Null handling."""
        assert equal(None, None, INT64) is True
        kind, _ = compare_values(None, 1, INT64)
        assert kind == DifferenceKind.NULL_MISMATCH
        kind, _ = compare_values("a", None, UTF8)
        assert kind == DifferenceKind.NULL_MISMATCH

    def test_integers_ignore_tolerance(self):
        """Test that integers compare exactly whatever the policy."""
        policy = TolerancePolicy(absolute_epsilon=5)
        assert equal(1, 2, INT64, policy) is False

    def test_boolean_never_equals_integer(self):
        assert equal(True, 1, BOOLEAN) is False
        assert equal(True, True, BOOLEAN) is True

    def test_text_is_exact(self):
        assert equal("abc", "abc", UTF8) is True
        assert equal("abc", "ABC", UTF8) is False
        assert equal("abc", "abc ", UTF8) is False

    def test_binary(self):
        binary = LogicalType.binary()
        assert equal(b"\x00\x01", bytearray(b"\x00\x01"), binary) is True
        assert equal(b"\x00", b"\x01", binary) is False

    def test_decimals(self):
        """Test decimal equality with and without tolerance."""
        decimal_type = LogicalType.decimal(10, 3)
        assert equal(Decimal("1.10"), Decimal("1.1"), decimal_type) is True
        assert equal(Decimal("1.000"), Decimal("1.005"), decimal_type) is False
        policy = TolerancePolicy(absolute_epsilon=0.01)
        assert equal(Decimal("1.000"), Decimal("1.005"), decimal_type, policy) is True

    def test_timestamps_normalised_to_unit(self):
        """Test datetimes and epoch counts compare in the type's unit."""
        millis = LogicalType.timestamp(TimeUnit.MILLISECOND)
        one_second = datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)
        assert equal(one_second, 1000, millis) is True
        assert equal(1000, 1001, millis) is False

    def test_dates(self):
        assert equal(date(1970, 1, 2), 1, LogicalType.date()) is True
        assert equal(date(1970, 1, 3), 1, LogicalType.date()) is False

    def test_coerce_value(self):
        """Test widening into the effective type."""
        millis = LogicalType.timestamp(TimeUnit.MILLISECOND)
        micros = LogicalType.timestamp(TimeUnit.MICROSECOND)
        assert coerce_value(1000, millis, micros) == 1_000_000
        assert coerce_value(2_000_000, micros, millis) == 2000
        assert coerce_value(3, INT64, FLOAT64) == 3.0
        assert coerce_value(3, INT64, LogicalType.decimal(20, 2)) == Decimal(3)
        assert coerce_value(0.1, FLOAT64, LogicalType.decimal(76, 38)) == Decimal(0.1)
        assert coerce_value(math.inf, FLOAT64, LogicalType.decimal(76, 38)).is_infinite()
        assert coerce_value(None, INT64, FLOAT64) is None


class TestTolerancePolicy:
    """Test tolerance policy validation."""

    def test_defaults_are_exact(self):
        assert TolerancePolicy().is_exact is True

    @pytest.mark.parametrize("value", [-1.0, math.nan, math.inf, True, "0.1"])
    def test_invalid_epsilon(self, value):
        """Test that negative, non-finite and non-numeric values are rejected."""
        with pytest.raises(ValidationError):
            TolerancePolicy(absolute_epsilon=value)
        with pytest.raises(ValidationError):
            TolerancePolicy(relative_epsilon=value)


class TestSchemaReconciler:
    """Test column alignment by name."""

    def test_plan_order(self):
        """Test left order first, then right-only columns in right order."""
        left = LogicalSchema.of([("b", INT64), ("a", INT64), ("only_left", UTF8)])
        right = LogicalSchema.of([("z", UTF8), ("a", INT64), ("y", UTF8), ("b", INT64)])

        plan = reconcile(left, right)

        assert [p.name for p in plan] == ["b", "a", "only_left", "z", "y"]
        assert [p.kind for p in plan] == [
            PairingKind.MATCHED,
            PairingKind.MATCHED,
            PairingKind.LEFT_ONLY,
            PairingKind.RIGHT_ONLY,
            PairingKind.RIGHT_ONLY,
        ]
        assert plan.pairings[0].left_index == 0
        assert plan.pairings[0].right_index == 3

    def test_names_are_case_sensitive(self):
        plan = reconcile(
            LogicalSchema.of([("Name", UTF8)]),
            LogicalSchema.of([("name", UTF8)]),
        )
        assert len(plan.left_only) == 1
        assert len(plan.right_only) == 1

    def test_incompatible_types(self):
        """Test that numeric vs text is type incompatible."""
        plan = reconcile(
            LogicalSchema.of([("a", INT64)]),
            LogicalSchema.of([("a", UTF8)]),
        )
        assert plan.pairings[0].kind == PairingKind.TYPE_INCOMPATIBLE
        assert plan.is_comparable is False

    def test_duplicate_names(self):
        """Test that a repeated column name is rejected."""
        with pytest.raises(DuplicateColumnNameError) as exc_info:
            reconcile(
                LogicalSchema.of([("a", INT64), ("a", INT64)]),
                LogicalSchema.of([("a", INT64)]),
            )
        assert exc_info.value.name == "a"
        assert exc_info.value.side == "left"

    def test_common_integer_types(self):
        assert common_type(LogicalType.integer(32), INT64) == INT64
        assert common_type(LogicalType.integer(8, signed=False), LogicalType.integer(8)) \
            == LogicalType.integer(16)
        assert common_type(LogicalType.integer(64, signed=False), LogicalType.integer(32)) \
            == INT64

    def test_common_numeric_types(self):
        assert common_type(INT64, FLOAT64) == LogicalType.decimal(76, 38)
        assert common_type(LogicalType.floating(32), FLOAT64) == FLOAT64
        assert common_type(LogicalType.decimal(10, 2), FLOAT64) == LogicalType.decimal(76, 38)
        assert common_type(FLOAT64, LogicalType.decimal(38, 20)) == LogicalType.decimal(76, 38)
        assert common_type(LogicalType.decimal(10, 2), LogicalType.decimal(12, 4)) \
            == LogicalType.decimal(12, 4)
        assert common_type(INT64, LogicalType.decimal(10, 2)) == LogicalType.decimal(21, 2)

    def test_common_timestamp_takes_finer_unit(self):
        assert common_type(
            LogicalType.timestamp(TimeUnit.MILLISECOND),
            LogicalType.timestamp(TimeUnit.NANOSECOND),
        ) == LogicalType.timestamp(TimeUnit.NANOSECOND)

    def test_no_common_type(self):
        assert common_type(BOOLEAN, INT64) is None
        assert common_type(UTF8, FLOAT64) is None
        assert common_type(LogicalType.date(), LogicalType.timestamp()) is None


class TestRowDiffer:
    """Test the streaming row comparison."""

    def test_identical_sources_are_equal(self):
        rows = [(i, float(i) / 3) for i in range(50)]
        report = compare(source(SCORES, rows), source(SCORES, rows))

        assert report.verdict == Verdict.EQUAL
        assert report.summary.rows_compared == 50
        assert report.summary.rows_equal == 50
        assert report.summary.rows_different == 0
        assert report.differences == []

    def test_score_within_tolerance(self):
        """Test 10.00000001 vs 10.0 is equal with absolute_epsilon 1e-6."""
        report = compare(
            source(SCORES, [(1, 10.00000001)]),
            source(SCORES, [(1, 10.0)]),
            policy=TolerancePolicy(absolute_epsilon=1e-6),
        )
        assert report.verdict == Verdict.EQUAL

    def test_score_without_tolerance(self):
        """Test 10.00000001 vs 10.0 is a single value mismatch when exact."""
        report = compare(
            source(SCORES, [(1, 10.00000001)]),
            source(SCORES, [(1, 10.0)]),
        )
        assert report.verdict == Verdict.UNEQUAL
        assert len(report.differences) == 1
        difference = report.differences[0]
        assert difference.kind == DifferenceKind.VALUE_MISMATCH
        assert difference.column_name == "score"
        assert difference.row_ordinal == 0

    def test_extra_left_column(self):
        """Test an extra left column makes equal rows unequal."""
        report = compare(
            source([("id", INT64), ("extra_col", UTF8)], [(1, "x"), (2, "y")]),
            source([("id", INT64)], [(1,), (2,)]),
        )
        assert report.verdict == Verdict.UNEQUAL
        assert len(report.differences) == 1
        assert report.differences[0].kind == DifferenceKind.LEFT_ONLY_COLUMN
        assert report.differences[0].row_ordinal is None
        assert report.summary.columns_left_only == 1
        assert report.summary.rows_equal == 2

    def test_limit_keeps_counters_exact(self):
        """Test limit=1 over 100 mismatching rows."""
        left = [(i, 1.0) for i in range(100)]
        right = [(i, 2.0) for i in range(100)]

        report = compare(source(SCORES, left), source(SCORES, right), limit=1)

        assert len(report.differences) == 1
        assert report.summary.rows_different == 100
        assert report.summary.differences_found == 100
        assert report.summary.differences_recorded == 1
        assert report.verdict == Verdict.UNEQUAL

    def test_row_count_mismatch(self):
        """Test a longer right side yields exactly one row count difference."""
        left = [(i, 0.5) for i in range(3)]
        right = [(i, 0.5) for i in range(5)]

        report = compare(source(SCORES, left), source(SCORES, right))

        assert report.verdict == Verdict.UNEQUAL
        assert [d.kind for d in report.differences] == [DifferenceKind.ROW_COUNT_MISMATCH]
        difference = report.differences[0]
        assert difference.row_ordinal == 3
        assert difference.left_value == "0"
        assert difference.right_value == "2"
        assert report.summary.rows_compared == 3
        assert report.summary.left_rows == 3
        assert report.summary.right_rows == 5

    def test_left_longer_row_count_mismatch(self):
        """Test a longer left side counts its remaining rows."""
        left = [(i, 0.5) for i in range(5)]
        right = [(i, 0.5) for i in range(3)]

        report = compare(source(SCORES, left), source(SCORES, right))

        assert report.verdict == Verdict.UNEQUAL
        assert [d.kind for d in report.differences] == [DifferenceKind.ROW_COUNT_MISMATCH]
        difference = report.differences[0]
        assert difference.row_ordinal == 3
        assert difference.left_value == "2"
        assert difference.right_value == "0"
        assert report.summary.rows_compared == 3
        assert report.summary.left_rows == 5
        assert report.summary.right_rows == 3

    def test_row_count_mismatch_recorded_past_limit(self):
        report = compare(
            source([("id", INT64)], [(1,), (2,)]),
            source([("id", INT64)], [(9,), (2,), (3,)]),
            limit=1,
        )
        kinds = [d.kind for d in report.differences]
        assert kinds == [DifferenceKind.VALUE_MISMATCH, DifferenceKind.ROW_COUNT_MISMATCH]

    def test_reordered_columns(self):
        """Test that physical column order does not change the outcome."""
        left = source(
            [("id", INT64), ("score", FLOAT64), ("name", UTF8)],
            [(1, 1.5, "a"), (2, 2.5, "b"), (3, 3.5, "c")],
        )
        right = source(
            [("name", UTF8), ("id", INT64), ("score", FLOAT64)],
            [("a", 1, 1.5), ("x", 2, 2.5), ("c", 3, 9.0)],
        )
        right_reordered = source(
            [("score", FLOAT64), ("name", UTF8), ("id", INT64)],
            [(1.5, "a", 1), (2.5, "x", 2), (9.0, "c", 3)],
        )
        left_again = source(
            [("name", UTF8), ("score", FLOAT64), ("id", INT64)],
            [("a", 1.5, 1), ("b", 2.5, 2), ("c", 3.5, 3)],
        )

        first = compare(left, right)
        second = compare(left_again, right_reordered)

        def keys(report):
            return sorted((d.row_ordinal, d.column_name, d.kind.value) for d in report.differences)

        assert first.verdict == second.verdict == Verdict.UNEQUAL
        assert keys(first) == keys(second) == [
            (1, "name", "VALUE_MISMATCH"),
            (2, "score", "VALUE_MISMATCH"),
        ]

    def test_widened_comparison(self):
        """Test Int64 vs Float64 columns compare under the tolerance."""
        report = compare(
            source([("v", INT64)], [(1,), (2,)]),
            source([("v", FLOAT64)], [(1.0,), (2.0000001,)]),
            policy=TolerancePolicy(absolute_epsilon=1e-3),
        )
        assert report.verdict == Verdict.EQUAL

    def test_integer_float_mix_is_lossless(self):
        """Test an integer above 2**53 is not rounded onto a nearby float."""
        report = compare(
            source([("v", INT64)], [(2 ** 53 + 1,), (2 ** 53,)]),
            source([("v", FLOAT64)], [(float(2 ** 53),), (float(2 ** 53),)]),
        )
        assert report.verdict == Verdict.UNEQUAL
        assert [d.row_ordinal for d in report.differences] == [0]
        assert report.differences[0].left_value == "9007199254740993"

    def test_decimal_float_mix_is_lossless(self):
        """Test decimal digits beyond float precision still count."""
        decimal_type = LogicalType.decimal(38, 20)
        report = compare(
            source([("v", decimal_type)], [(Decimal("0.10000000000000000001"),), (Decimal("0.5"),)]),
            source([("v", FLOAT64)], [(0.1,), (0.5,)]),
        )
        assert report.verdict == Verdict.UNEQUAL
        assert [d.row_ordinal for d in report.differences] == [0]

    def test_decimal_float_mix_keeps_special_values(self):
        """Test NaN and infinities across a Decimal vs Float column."""
        report = compare(
            source(
                [("v", LogicalType.decimal(10, 2))],
                [(Decimal("NaN"),), (Decimal("Infinity"),), (Decimal("-Infinity"),)],
            ),
            source([("v", FLOAT64)], [(math.nan,), (math.inf,), (math.inf,)]),
            policy=TolerancePolicy(absolute_epsilon=1e300),
        )
        assert [d.row_ordinal for d in report.differences] == [2]

    def test_null_mismatch(self):
        report = compare(
            source([("v", UTF8)], [("a",), (None,)]),
            source([("v", UTF8)], [(None,), (None,)]),
        )
        assert [d.kind for d in report.differences] == [DifferenceKind.NULL_MISMATCH]
        assert report.differences[0].left_value == "a"
        assert report.differences[0].right_value is None

    def test_incompatible_types_traverse_rows(self):
        """Test a type-incompatible column mismatches on every row."""
        report = compare(
            source([("id", INT64), ("v", INT64)], [(1, 1), (2, 2)]),
            source([("id", INT64), ("v", UTF8)], [(1, "1"), (2, "2")]),
        )
        assert report.verdict == Verdict.STRUCTURALLY_INCOMPARABLE
        assert report.incompatible_columns == ["v"]
        assert len(report.errors) == 1
        assert [d.row_ordinal for d in report.differences] == [0, 1]
        assert all(d.kind == DifferenceKind.VALUE_MISMATCH for d in report.differences)

    def test_differ_is_single_use(self):
        plan = reconcile(LogicalSchema.of(SCORES), LogicalSchema.of(SCORES))
        differ = RowDiffer(plan)
        assert differ.diff(source(SCORES, []), source(SCORES, [])) is True
        with pytest.raises(RuntimeError):
            differ.diff(source(SCORES, []), source(SCORES, []))

    def test_malformed_row(self):
        """Test a row narrower than its schema is a row source failure."""
        with pytest.raises(RowSourceError):
            compare(source(SCORES, [(1,)]), source(SCORES, [(1, 1.0)]))


class TestCompareEngine:
    """Test engine orchestration."""

    def test_duplicate_names_are_incomparable(self):
        """Test duplicate names produce a report instead of reading rows."""
        left = source([("a", INT64), ("a", INT64)], [(1, 1)])
        right = source([("a", INT64)], [(1,)])

        report = CompareEngine().compare(left, right)

        assert report.verdict == Verdict.STRUCTURALLY_INCOMPARABLE
        assert "Duplicate column name 'a'" in report.errors[0]
        assert report.summary.rows_compared == 0

    def test_report_to_dict(self):
        config = CompareConfig(absolute_epsilon=0.1, limit=10)
        report = CompareEngine(config).compare(
            source(SCORES, [(1, 1.0)]),
            source(SCORES, [(1, 1.05)]),
        )
        result = report.to_dict()
        assert result["verdict"] == "EQUAL"
        assert result["is_match"] is True
        assert result["summary"]["rows_compared"] == 1
        assert "execution" in result


class TestReporter:
    """Test report rendering."""

    def test_equal_message(self):
        report = compare(source(SCORES, [(1, 1.0)]), source(SCORES, [(1, 1.0)]))
        rendered = render(report)
        assert verdict(report) == Verdict.EQUAL
        assert rendered.message == "Files match"
        assert rendered.lines[0] == "Files match"
        assert rendered.shown == 0

    def test_truncation(self):
        """Test that only max_rows_shown differences are rendered."""
        left = [(i, 1.0) for i in range(30)]
        right = [(i, 2.0) for i in range(30)]
        report = compare(source(SCORES, left), source(SCORES, right))

        rendered = render(report, max_rows_shown=5)

        assert rendered.message == "Files are different"
        assert rendered.shown == 5
        assert rendered.omitted == 25
        assert "  ... 25 more differences not shown" in rendered.lines
        assert "  rows different:         30" in rendered.lines

    def test_incomparable_message(self):
        report = compare(
            source([("a", BOOLEAN)], [(True,)]),
            source([("a", INT64)], [(1,)]),
        )
        rendered = render(report)
        assert rendered.message == "Files cannot be compared"
        assert any("cannot be compared" in line for line in rendered.lines[1:])


class TestCompareConfig:
    """Test configuration parsing."""

    def test_from_dict_coerces_numbers(self):
        config = CompareConfig.from_dict({
            "absolute_epsilon": "1e-6",
            "limit": "5",
            "has_header": "no",
            "log_level": "debug",
        })
        assert config.absolute_epsilon == 1e-6
        assert config.limit == 5
        assert config.has_header is False
        assert config.log_level == LogLevel.DEBUG

    def test_unknown_keys(self):
        with pytest.raises(ValidationError):
            CompareConfig.from_dict({"epsilon": 0.1})

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            CompareConfig(absolute_epsilon=-0.5)
        with pytest.raises(ValidationError):
            CompareConfig(limit=-1)

    def test_overrides_skip_none(self):
        config = CompareConfig(limit=3).with_overrides(limit=None, max_rows_shown=7)
        assert config.limit == 3
        assert config.max_rows_shown == 7
