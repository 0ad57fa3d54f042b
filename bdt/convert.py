"""Format conversion by streaming rows from a source into a sink."""

from __future__ import annotations

import logging
from pathlib import Path

from .formats import open_sink, open_source
from .sources import RowSink, RowSource


logger = logging.getLogger(__name__)


def copy_rows(source: RowSource, sink: RowSink) -> int:
    """
    Copy every row of a source into a sink.

    The sink is opened with the source's schema and closed afterwards,
    also when reading fails.

    Returns:
        Number of rows copied
    """
    sink.open(source.schema)
    count = 0
    try:
        for row in source:
            sink.write(row)
            count += 1
    finally:
        sink.close()
    return count


def convert_files(
    input_path: str | Path,
    output_path: str | Path,
    has_header: bool = True,
    batch_size: int = 8192
) -> int:
    """Convert a file into the format implied by the output extension."""
    logger.info("Converting %s to %s", input_path, output_path)
    with open_source(input_path, has_header, batch_size) as source:
        count = copy_rows(source, open_sink(output_path, batch_size))
    logger.info("Wrote %d rows to %s", count, output_path)
    return count
