"""Rendering of comparison reports."""

from __future__ import annotations

from .models import (
    DiffReport,
    Difference,
    DifferenceKind,
    RenderedReport,
    Verdict,
)


VERDICT_MESSAGES = {
    Verdict.EQUAL: "Files match",
    Verdict.UNEQUAL: "Files are different",
    Verdict.STRUCTURALLY_INCOMPARABLE: "Files cannot be compared",
}

_NULL = "NULL"


def verdict(report: DiffReport) -> Verdict:
    """The terminal outcome of the comparison run."""
    return report.verdict


def format_difference(difference: Difference) -> str:
    """Format a single difference as one line."""
    tag = f"[{difference.kind.value}]"

    if difference.kind == DifferenceKind.ROW_COUNT_MISMATCH:
        return f"{tag} row {difference.row_ordinal}: {difference.message}"

    if difference.kind in (DifferenceKind.LEFT_ONLY_COLUMN, DifferenceKind.RIGHT_ONLY_COLUMN):
        return f"{tag} column '{difference.column_name}': {difference.message}"

    left = _NULL if difference.left_value is None else difference.left_value
    right = _NULL if difference.right_value is None else difference.right_value
    line = (
        f"{tag} row {difference.row_ordinal} column '{difference.column_name}': "
        f"left={left} right={right}"
    )
    if difference.message:
        line += f" ({difference.message})"
    return line


def render(report: DiffReport, max_rows_shown: int = 20) -> RenderedReport:
    """
    Render a report for display.

    Only the first ``max_rows_shown`` differences are listed; the summary
    is always complete.

    Args:
        report: The report to render
        max_rows_shown: Maximum number of difference lines

    Returns:
        RenderedReport with the verdict message and output lines
    """
    outcome = verdict(report)
    message = VERDICT_MESSAGES[outcome]
    lines = [message]

    for error in report.errors:
        lines.append(f"  error: {error}")

    shown = report.differences[:max_rows_shown]
    omitted = len(report.differences) - len(shown)

    if shown:
        lines.append("")
        lines.append("Differences:")
        lines.extend(f"  {format_difference(d)}" for d in shown)
    if omitted:
        lines.append(f"  ... {omitted} more differences not shown")

    summary = report.summary
    not_recorded = summary.differences_found - summary.differences_recorded
    if not_recorded:
        lines.append(f"  ... {not_recorded} further differences not recorded (limit reached)")

    lines.extend([
        "",
        "Summary:",
        f"  rows compared:          {summary.rows_compared}",
        f"  rows equal:             {summary.rows_equal}",
        f"  rows different:         {summary.rows_different}",
        f"  left rows:              {summary.left_rows}",
        f"  right rows:             {summary.right_rows}",
        f"  columns only in left:   {summary.columns_left_only}",
        f"  columns only in right:  {summary.columns_right_only}",
        f"  differences:            {summary.differences_found} "
        f"({summary.differences_recorded} recorded)",
    ])

    return RenderedReport(
        verdict=outcome,
        message=message,
        lines=lines,
        shown=len(shown),
        omitted=omitted,
    )
