"""Streaming row comparison for bdt."""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from .comparators import coerce_value, compare_values
from .exceptions import RowSourceError
from .models import (
    ColumnPairing,
    ComparisonPlan,
    ComparisonState,
    Difference,
    DifferenceKind,
    PairingKind,
    Summary,
    TolerancePolicy,
)
from .sources import Row, RowSource
from .utils import render_value


logger = logging.getLogger(__name__)


class RowDiffer:
    """
    Drives two row sources in lock-step and collects differences.

    Handles:
    - Per-cell typed comparison under a tolerance policy
    - Left-only / right-only columns, reported once before any row
    - Incompatible column types, reported as a mismatch on every row
    - Row count divergence, reported once with the remaining-row counts
    - A cap on recorded differences that keeps summary counters exact

    A RowDiffer is single-use: construct a fresh one per comparison.
    """

    def __init__(
        self,
        plan: ComparisonPlan,
        policy: Optional[TolerancePolicy] = None,
        limit: Optional[int] = None
    ):
        self.plan = plan
        self.policy = policy or TolerancePolicy()
        self.limit = limit

        self.differences: list[Difference] = []
        self.summary = Summary(
            columns_left_only=len(plan.left_only),
            columns_right_only=len(plan.right_only),
        )
        self.state = ComparisonState.NOT_STARTED
        self._compared = [
            p for p in plan
            if p.kind in (PairingKind.MATCHED, PairingKind.TYPE_INCOMPATIBLE)
        ]
        self._limit_logged = False

    @property
    def limit_reached(self) -> bool:
        return self.limit is not None and len(self.differences) >= self.limit

    def diff(self, left: RowSource, right: RowSource) -> bool:
        """
        Compare every row of ``left`` against the row at the same ordinal of ``right``.

        Args:
            left: The left row source
            right: The right row source

        Returns:
            True if the sources are equal, False otherwise

        Raises:
            RowSourceError: if a source fails or yields a malformed row
        """
        if self.state != ComparisonState.NOT_STARTED:
            raise RuntimeError("RowDiffer instances are single-use")
        self.state = ComparisonState.COMPARING

        self._add_column_differences()

        left_width = len(left.schema)
        right_width = len(right.schema)
        left_rows = iter(left)
        right_rows = iter(right)
        ordinal = 0

        while True:
            left_row = next(left_rows, None)
            right_row = next(right_rows, None)

            if left_row is None and right_row is None:
                break
            if left_row is None or right_row is None:
                self._add_row_count_difference(
                    ordinal, left_row, right_row, left_rows, right_rows
                )
                break

            self._check_width("left", ordinal, left_row, left_width)
            self._check_width("right", ordinal, right_row, right_width)
            self._diff_row(ordinal, left_row, right_row)
            ordinal += 1

        self.summary.rows_compared = ordinal
        if self.summary.left_rows == 0 and self.summary.right_rows == 0:
            self.summary.left_rows = self.summary.right_rows = ordinal

        self.state = self._final_state()
        logger.debug(
            "Compared %d rows: %d equal, %d different, %d differences (%d recorded)",
            ordinal,
            self.summary.rows_equal,
            self.summary.rows_different,
            self.summary.differences_found,
            self.summary.differences_recorded,
        )
        return self.state == ComparisonState.EQUAL

    def _final_state(self) -> ComparisonState:
        if not self.plan.is_comparable:
            return ComparisonState.STRUCTURALLY_INCOMPARABLE
        if self.summary.differences_found == 0 and \
                self.summary.left_rows == self.summary.right_rows:
            return ComparisonState.EQUAL
        return ComparisonState.UNEQUAL

    def _check_width(self, side: str, ordinal: int, row: Row, width: int) -> None:
        if len(row) != width:
            raise RowSourceError(
                side,
                f"row {ordinal} has {len(row)} values but the schema declares {width} columns"
            )

    def _diff_row(self, ordinal: int, left_row: Row, right_row: Row) -> None:
        """Compare one row pair in plan order."""
        row_differs = False

        for pairing in self._compared:
            left_value = left_row[pairing.left_index]
            right_value = right_row[pairing.right_index]

            if pairing.kind == PairingKind.TYPE_INCOMPATIBLE:
                kind = DifferenceKind.VALUE_MISMATCH
                message = f"Incompatible types: {pairing.left_type} vs {pairing.right_type}"
            else:
                kind, message = compare_values(
                    coerce_value(left_value, pairing.left_type, pairing.effective_type),
                    coerce_value(right_value, pairing.right_type, pairing.effective_type),
                    pairing.effective_type,
                    self.policy,
                )
            if kind is None:
                continue

            row_differs = True
            self._add_difference(Difference(
                row_ordinal=ordinal,
                column_name=pairing.name,
                left_value=render_value(left_value, pairing.left_type),
                right_value=render_value(right_value, pairing.right_type),
                kind=kind,
                message=message,
            ))

        if row_differs:
            self.summary.rows_different += 1
        else:
            self.summary.rows_equal += 1

    def _add_column_differences(self) -> None:
        for pairing in self.plan:
            if pairing.kind == PairingKind.LEFT_ONLY:
                self._add_difference(self._column_difference(
                    pairing, DifferenceKind.LEFT_ONLY_COLUMN, "left"
                ))
            elif pairing.kind == PairingKind.RIGHT_ONLY:
                self._add_difference(self._column_difference(
                    pairing, DifferenceKind.RIGHT_ONLY_COLUMN, "right"
                ))

    def _column_difference(
        self,
        pairing: ColumnPairing,
        kind: DifferenceKind,
        side: str
    ) -> Difference:
        column_type = pairing.left_type if side == "left" else pairing.right_type
        return Difference(
            row_ordinal=None,
            column_name=pairing.name,
            left_value=str(pairing.left_type) if pairing.left_type else None,
            right_value=str(pairing.right_type) if pairing.right_type else None,
            kind=kind,
            message=f"Column '{pairing.name}' ({column_type}) only exists in {side}",
        )

    def _add_row_count_difference(
        self,
        ordinal: int,
        left_row: Optional[Row],
        right_row: Optional[Row],
        left_rows: Iterator[Row],
        right_rows: Iterator[Row]
    ) -> None:
        """Count the rest of the longer side without comparing or keeping it."""
        left_remaining = 0 if left_row is None else 1 + sum(1 for _ in left_rows)
        right_remaining = 0 if right_row is None else 1 + sum(1 for _ in right_rows)

        self.summary.left_rows = ordinal + left_remaining
        self.summary.right_rows = ordinal + right_remaining

        self.summary.differences_found += 1
        self.summary.differences_recorded += 1
        self.differences.append(Difference(
            row_ordinal=ordinal,
            column_name=None,
            left_value=str(left_remaining),
            right_value=str(right_remaining),
            kind=DifferenceKind.ROW_COUNT_MISMATCH,
            message=(
                f"Row counts do not match: {self.summary.left_rows} != "
                f"{self.summary.right_rows} (diverged at row {ordinal})"
            ),
        ))

    def _add_difference(self, difference: Difference) -> None:
        self.summary.differences_found += 1
        if self.limit_reached:
            if not self._limit_logged:
                logger.info(
                    "Difference limit (%d) reached; counting remaining rows only",
                    self.limit
                )
                self._limit_logged = True
            return
        self.differences.append(difference)
        self.summary.differences_recorded += 1
