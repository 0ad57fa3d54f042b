"""Parquet file, row group and column chunk metadata."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.parquet as pq

from .exceptions import RowSourceError
from .utils import format_table


NOT_AVAILABLE = "N/A"

COLUMN_HEADERS = [
    "Column Name",
    "Logical Type",
    "Physical Type",
    "Distinct Values",
    "Nulls",
    "Min",
    "Max",
]


def _logical_type(descriptor: Any) -> str:
    text = str(descriptor.logical_type)
    return NOT_AVAILABLE if text == "None" else text


def _statistics_cells(column: Any) -> list[str]:
    """Physical type, distinct count, nulls, min and max of a column chunk."""
    if not column.is_stats_set:
        return [NOT_AVAILABLE] * 5
    stats = column.statistics
    cells = [
        stats.physical_type,
        str(stats.distinct_count) if stats.has_distinct_count else NOT_AVAILABLE,
        str(stats.null_count) if stats.has_null_count else NOT_AVAILABLE,
    ]
    if stats.has_min_max:
        cells.extend([str(stats.min), str(stats.max)])
    else:
        cells.extend([NOT_AVAILABLE, NOT_AVAILABLE])
    return cells


def view_parquet_meta(path: str | Path) -> str:
    """
    Describe a Parquet file: file-level metadata followed by one table of
    column chunk statistics per row group.

    Raises:
        RowSourceError: if the file cannot be opened as Parquet
    """
    try:
        metadata = pq.ParquetFile(str(path)).metadata
    except (pa.ArrowException, OSError) as e:
        raise RowSourceError(str(path), str(e)) from e

    sections = [format_table(["Key", "Value"], [
        ["Version", metadata.format_version],
        ["Created By", metadata.created_by or NOT_AVAILABLE],
        ["Rows", str(metadata.num_rows)],
        ["Row Groups", str(metadata.num_row_groups)],
    ])]

    for i in range(metadata.num_row_groups):
        row_group = metadata.row_group(i)
        rows = []
        for j in range(row_group.num_columns):
            column = row_group.column(j)
            rows.append(
                [column.path_in_schema, _logical_type(metadata.schema.column(j))]
                + _statistics_cells(column)
            )
        sections.append(
            f"\nRow Group {i} of {metadata.num_row_groups} contains {row_group.num_rows} rows "
            f"and has {row_group.total_byte_size} bytes:\n"
        )
        sections.append(format_table(COLUMN_HEADERS, rows))

    return "\n".join(sections)
