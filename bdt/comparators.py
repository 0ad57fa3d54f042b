"""Comparison functions for the logical column types."""

from __future__ import annotations

import math
from datetime import date, datetime
from decimal import Decimal, localcontext
from typing import Any, Optional

from .models import DifferenceKind, LogicalType, TimeUnit, TolerancePolicy, TypeKind
from .utils import date_to_days, datetime_to_units


EXACT_POLICY = TolerancePolicy()

# Wide enough for Decimal(76, s) subtraction without rounding.
_DECIMAL_PRECISION = 160


def _tolerance_message(diff: Any, policy: TolerancePolicy) -> str:
    return (
        f"Value difference ({diff}) exceeds tolerance "
        f"(absolute {policy.absolute_epsilon}, relative {policy.relative_epsilon})"
    )


def compare_floats(
    left: Any,
    right: Any,
    policy: TolerancePolicy = EXACT_POLICY
) -> tuple[bool, str]:
    """
    Compare two floating point values under a tolerance policy.

    NaN equals NaN. Infinities only equal an infinity of the same sign.

    Args:
        left: The left value
        right: The right value
        policy: Absolute/relative tolerance

    Returns:
        Tuple of (is_match, message)
    """
    left = float(left)
    right = float(right)

    if math.isnan(left) or math.isnan(right):
        if math.isnan(left) and math.isnan(right):
            return True, ""
        return False, f"Values differ: {left!r} != {right!r}"

    if math.isinf(left) or math.isinf(right):
        if left == right:
            return True, ""
        return False, f"Values differ: {left!r} != {right!r}"

    diff = abs(left - right)
    if diff <= policy.absolute_epsilon:
        return True, ""
    if diff <= policy.relative_epsilon * max(abs(left), abs(right)):
        return True, ""

    if policy.is_exact:
        return False, f"Values differ: {left!r} != {right!r}"
    return False, _tolerance_message(diff, policy)


def _to_decimal(value: Any) -> Decimal:
    """Exact decimal value; floats convert to their full binary expansion."""
    if isinstance(value, Decimal):
        return value
    return Decimal(value)


def _epsilon(value: float) -> Decimal:
    return Decimal(repr(float(value)))


def compare_decimals(
    left: Any,
    right: Any,
    policy: TolerancePolicy = EXACT_POLICY
) -> tuple[bool, str]:
    """Compare two decimal values exactly, then under the tolerance policy."""
    left = _to_decimal(left)
    right = _to_decimal(right)

    if left.is_nan() or right.is_nan():
        if left.is_nan() and right.is_nan():
            return True, ""
        return False, f"Values differ: {left} != {right}"

    if left.is_infinite() or right.is_infinite():
        if left == right:
            return True, ""
        return False, f"Values differ: {left} != {right}"

    if left == right:
        return True, ""

    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        diff = abs(left - right)
        if diff <= _epsilon(policy.absolute_epsilon):
            return True, ""
        if diff <= _epsilon(policy.relative_epsilon) * max(abs(left), abs(right)):
            return True, ""

    if policy.is_exact:
        return False, f"Values differ: {left} != {right}"
    return False, _tolerance_message(diff, policy)


def compare_timestamps(left: Any, right: Any, unit: TimeUnit) -> tuple[bool, str]:
    """Compare two timestamps after normalising both to ``unit``."""
    left_units = datetime_to_units(left, unit) if isinstance(left, datetime) else left
    right_units = datetime_to_units(right, unit) if isinstance(right, datetime) else right
    if left_units == right_units:
        return True, ""
    return False, f"Timestamps differ: {left_units} != {right_units} ({unit.value})"


def compare_exact(left: Any, right: Any) -> tuple[bool, str]:
    """Structural equality; booleans never equal integers."""
    if isinstance(left, bool) != isinstance(right, bool):
        return False, f"Values differ: {left!r} != {right!r}"
    if isinstance(left, (bytes, bytearray, memoryview)):
        left = bytes(left)
    if isinstance(right, (bytes, bytearray, memoryview)):
        right = bytes(right)
    if left == right:
        return True, ""
    return False, f"Values differ: {left!r} != {right!r}"


def compare_values(
    left: Any,
    right: Any,
    logical_type: LogicalType,
    policy: TolerancePolicy = EXACT_POLICY
) -> tuple[Optional[DifferenceKind], str]:
    """
    Compare two scalars of the same logical type.

    Args:
        left: The left value (None is Null)
        right: The right value (None is Null)
        logical_type: The effective comparison type
        policy: Tolerance applied to Float and Decimal types only

    Returns:
        Tuple of (difference kind or None when equal, message)
    """
    if left is None and right is None:
        return None, ""
    if left is None:
        return DifferenceKind.NULL_MISMATCH, "Left value is null, right value is not"
    if right is None:
        return DifferenceKind.NULL_MISMATCH, "Right value is null, left value is not"

    kind = logical_type.kind
    if kind == TypeKind.FLOAT:
        is_match, message = compare_floats(left, right, policy)
    elif kind == TypeKind.DECIMAL:
        is_match, message = compare_decimals(left, right, policy)
    elif kind == TypeKind.TIMESTAMP:
        is_match, message = compare_timestamps(left, right, logical_type.unit)
    elif kind == TypeKind.DATE:
        is_match, message = compare_exact(
            date_to_days(left) if isinstance(left, date) else left,
            date_to_days(right) if isinstance(right, date) else right,
        )
    else:
        is_match, message = compare_exact(left, right)

    if is_match:
        return None, ""
    return DifferenceKind.VALUE_MISMATCH, message


def equal(
    left: Any,
    right: Any,
    logical_type: LogicalType,
    policy: TolerancePolicy = EXACT_POLICY
) -> bool:
    """Decide equality of two scalars of ``logical_type`` under ``policy``."""
    kind, _ = compare_values(left, right, logical_type, policy)
    return kind is None


def coerce_value(value: Any, from_type: LogicalType, to_type: LogicalType) -> Any:
    """
    Widen a value declared as ``from_type`` into the effective ``to_type``.

    Args:
        value: The scalar value (None passes through)
        from_type: Declared type of the column the value came from
        to_type: Effective comparison type from the plan

    Returns:
        The value in the representation ``to_type`` compares
    """
    if value is None:
        return None

    kind = to_type.kind
    if kind == TypeKind.FLOAT:
        if isinstance(value, (int, Decimal)) and not isinstance(value, bool):
            return float(value)
        return value
    if kind == TypeKind.DECIMAL:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return Decimal(value)
        return value
    if kind == TypeKind.TIMESTAMP:
        if isinstance(value, datetime):
            return datetime_to_units(value, to_type.unit)
        source_unit = from_type.unit or to_type.unit
        if source_unit == to_type.unit:
            return value
        if to_type.unit.per_second >= source_unit.per_second:
            return value * (to_type.unit.per_second // source_unit.per_second)
        return value // (source_unit.per_second // to_type.unit.per_second)
    if kind == TypeKind.DATE and isinstance(value, date):
        return date_to_days(value)
    return value
