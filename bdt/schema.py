"""Schema reconciliation: aligns two logical schemas into a comparison plan."""

from __future__ import annotations

import logging
from typing import Optional

from .exceptions import DuplicateColumnNameError
from .models import (
    ColumnPairing,
    ComparisonPlan,
    LogicalSchema,
    LogicalType,
    PairingKind,
    TypeKind,
)


logger = logging.getLogger(__name__)

MAX_DECIMAL_PRECISION = 76
_INTEGER_WIDTHS = (8, 16, 32, 64)

# Floats mixed with Integer or Decimal compare as their exact decimal expansion.
FLOAT_AS_DECIMAL = LogicalType.decimal(MAX_DECIMAL_PRECISION, MAX_DECIMAL_PRECISION // 2)


def check_unique(schema: LogicalSchema, side: Optional[str] = None) -> None:
    """Raise DuplicateColumnNameError if the schema repeats a column name."""
    duplicates = schema.duplicate_names()
    if duplicates:
        raise DuplicateColumnNameError(duplicates[0], side)


def _integer_digits(integer_type: LogicalType) -> int:
    """Decimal digits needed for the largest magnitude of an integer type."""
    bits = integer_type.bit_width if not integer_type.signed else integer_type.bit_width - 1
    return len(str(2 ** bits))


def _common_integer(left: LogicalType, right: LogicalType) -> LogicalType:
    if left.signed == right.signed:
        return LogicalType.integer(max(left.bit_width, right.bit_width), left.signed)

    signed, unsigned = (left, right) if left.signed else (right, left)
    # A signed integer needs one extra bit to hold every unsigned value.
    needed = next((w for w in _INTEGER_WIDTHS if w > unsigned.bit_width), 64)
    return LogicalType.integer(max(signed.bit_width, needed), signed=True)


def _common_decimal(left: LogicalType, right: LogicalType) -> LogicalType:
    scale = max(left.scale, right.scale)
    whole = max(left.precision - left.scale, right.precision - right.scale)
    return LogicalType.decimal(min(whole + scale, MAX_DECIMAL_PRECISION), scale)


def common_type(left: LogicalType, right: LogicalType) -> Optional[LogicalType]:
    """
    Find the type both sides are compared as.

    Args:
        left: Declared type of the left column
        right: Declared type of the right column

    Returns:
        The narrowest type holding both, or None when the types are incompatible
    """
    if left == right:
        return left

    if left.kind == right.kind:
        if left.kind == TypeKind.INTEGER:
            return _common_integer(left, right)
        if left.kind == TypeKind.FLOAT:
            return LogicalType.floating(max(left.bit_width, right.bit_width))
        if left.kind == TypeKind.DECIMAL:
            return _common_decimal(left, right)
        if left.kind == TypeKind.TIMESTAMP:
            finer = left.unit if left.unit.per_second >= right.unit.per_second else right.unit
            return LogicalType.timestamp(finer)
        return left

    if not (left.is_numeric and right.is_numeric):
        return None

    if left.kind == TypeKind.FLOAT:
        return common_type(FLOAT_AS_DECIMAL, right)
    if right.kind == TypeKind.FLOAT:
        return common_type(left, FLOAT_AS_DECIMAL)

    # Integer and Decimal
    decimal, integer = (left, right) if left.kind == TypeKind.DECIMAL else (right, left)
    whole = max(decimal.precision - decimal.scale, _integer_digits(integer))
    return LogicalType.decimal(
        min(whole + decimal.scale, MAX_DECIMAL_PRECISION), decimal.scale
    )


def reconcile(left: LogicalSchema, right: LogicalSchema) -> ComparisonPlan:
    """
    Align two schemas by case-sensitive column name.

    Plan order is the left schema order followed by right-only columns in
    right schema order, independent of physical column positions.

    Args:
        left: Schema of the left row source
        right: Schema of the right row source

    Returns:
        ComparisonPlan with one pairing per distinct column name

    Raises:
        DuplicateColumnNameError: if either schema repeats a column name
    """
    check_unique(left, "left")
    check_unique(right, "right")

    right_positions = {column.name: i for i, column in enumerate(right)}
    pairings: list[ColumnPairing] = []
    matched_right: set[int] = set()

    for left_index, left_column in enumerate(left):
        right_index = right_positions.get(left_column.name)
        if right_index is None:
            pairings.append(ColumnPairing(
                kind=PairingKind.LEFT_ONLY,
                name=left_column.name,
                left_index=left_index,
                left_type=left_column.type,
            ))
            continue

        matched_right.add(right_index)
        right_column = right[right_index]
        effective = common_type(left_column.type, right_column.type)
        if effective is None:
            logger.warning(
                "Column '%s' has incompatible types: %s vs %s",
                left_column.name, left_column.type, right_column.type
            )
        pairings.append(ColumnPairing(
            kind=PairingKind.MATCHED if effective else PairingKind.TYPE_INCOMPATIBLE,
            name=left_column.name,
            left_index=left_index,
            right_index=right_index,
            left_type=left_column.type,
            right_type=right_column.type,
            effective_type=effective,
        ))

    for right_index, right_column in enumerate(right):
        if right_index not in matched_right:
            pairings.append(ColumnPairing(
                kind=PairingKind.RIGHT_ONLY,
                name=right_column.name,
                right_index=right_index,
                right_type=right_column.type,
            ))

    plan = ComparisonPlan(tuple(pairings))
    logger.debug(
        "Reconciled schemas: %d matched, %d incompatible, %d left-only, %d right-only",
        len(plan.matched), len(plan.incompatible), len(plan.left_only), len(plan.right_only)
    )
    return plan
