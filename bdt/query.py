"""SQL over registered files, executed by DuckDB."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import duckdb

from .arrow import ArrowRowSource, source_to_table
from .exceptions import QueryError, RowSourceError
from .formats import AvroRowSource, FileFormat, file_format
from .utils import escape_identifier, escape_string_literal, sanitize_table_name


logger = logging.getLogger(__name__)


def read_expression(path: str | Path, has_header: bool = True) -> str:
    """DuckDB table function call that scans a CSV, NDJSON or Parquet file."""
    fmt = file_format(path)
    escaped_path = escape_string_literal(str(path))
    if fmt == FileFormat.CSV:
        header = "true" if has_header else "false"
        return f"read_csv_auto('{escaped_path}', header={header})"
    if fmt == FileFormat.PARQUET:
        return f"read_parquet('{escaped_path}')"
    if fmt == FileFormat.JSON:
        return f"read_json_auto('{escaped_path}', format='newline_delimited')"
    raise QueryError(str(path), f"no table function for {fmt.value} files")


class QueryEngine:
    """
    Registers files as named tables and runs SQL against them.

    Each engine owns one in-memory DuckDB connection; tables registered on
    it live as long as the engine.
    """

    def __init__(self, has_header: bool = True, batch_size: int = 8192):
        self.has_header = has_header
        self.batch_size = batch_size
        self.connection = duckdb.connect()
        self.tables: dict[str, str] = {}

    def register(self, table_name: str, path: str | Path) -> None:
        """
        Register a file as a table.

        CSV, NDJSON and Parquet files are exposed as views over DuckDB's
        scanners; Avro files are decoded up front and registered as an
        Arrow table.
        """
        logger.info("Registering table '%s' for %s", table_name, path)
        try:
            if file_format(path) == FileFormat.AVRO:
                with AvroRowSource(path) as source:
                    self.connection.register(table_name, source_to_table(source))
            else:
                self.connection.execute(
                    f"CREATE OR REPLACE VIEW {escape_identifier(table_name)} AS "
                    f"SELECT * FROM {read_expression(path, self.has_header)}"
                )
        except duckdb.Error as e:
            raise QueryError(str(path), str(e)) from e
        except (OSError, ValueError) as e:
            raise RowSourceError(str(path), str(e)) from e
        self.tables[table_name] = str(path)

    def register_file(self, path: str | Path) -> str:
        """Register a file under its sanitised file stem and return the table name."""
        table_name = sanitize_table_name(Path(path).stem)
        self.register(table_name, path)
        return table_name

    def sql(self, query: str) -> ArrowRowSource:
        """Execute a query and stream its result as a row source."""
        logger.debug("Executing SQL: %s", query)
        try:
            reader = self.connection.execute(query).to_arrow_reader(self.batch_size)
        except duckdb.Error as e:
            raise QueryError(query, str(e)) from e
        return ArrowRowSource.from_reader(reader, "<query>")

    def scalar(self, query: str) -> Optional[object]:
        """Execute a query returning a single value."""
        try:
            row = self.connection.execute(query).fetchone()
        except duckdb.Error as e:
            raise QueryError(query, str(e)) from e
        return row[0] if row else None

    def count(self, table_name: str) -> int:
        return self.scalar(f"SELECT COUNT(*) FROM {escape_identifier(table_name)}")

    def explain(self, query: str) -> str:
        """Return DuckDB's physical plan for a query."""
        try:
            rows = self.connection.execute(f"EXPLAIN {query}").fetchall()
        except duckdb.Error as e:
            raise QueryError(query, str(e)) from e
        return "\n".join(str(row[-1]) for row in rows)

    def close(self) -> None:
        self.connection.close()

    def __enter__(self) -> QueryEngine:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
