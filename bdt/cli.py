"""Command line interface for bdt."""

from __future__ import annotations

import argparse
import itertools
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .config import load_config, setup_logging
from .convert import convert_files, copy_rows
from .engine import CompareEngine
from .exceptions import BdtError
from .formats import open_sink, open_source
from .models import CompareConfig, LogLevel, Verdict
from .parquet_meta import view_parquet_meta
from .query import QueryEngine
from .reporter import render
from .sources import RowSource
from .utils import format_table, render_value, strip_invalid_utf8


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNEQUAL = 1
EXIT_INCOMPARABLE = 3
EXIT_ERROR = 4

_VERDICT_EXIT_CODES = {
    Verdict.EQUAL: EXIT_OK,
    Verdict.UNEQUAL: EXIT_UNEQUAL,
    Verdict.STRUCTURALLY_INCOMPARABLE: EXIT_INCOMPARABLE,
}

DEFAULT_VIEW_LIMIT = 10


def format_rows(source: RowSource, limit: Optional[int] = None) -> str:
    """Render up to ``limit`` rows of a source as a text table."""
    columns = source.schema.columns
    rows = itertools.islice(source, limit) if limit else source
    cells = [
        [render_value(value, column.type) for column, value in zip(columns, row)]
        for row in rows
    ]
    return format_table([c.name for c in columns], cells)


def cmd_view(args: argparse.Namespace) -> int:
    with open_source(args.filename, not args.no_header_row) as source:
        print(format_rows(source, args.limit))
    if args.limit > 0:
        print(f"Limiting to {args.limit} rows. Run with --limit 0 to remove limit.")
    return EXIT_OK


def cmd_schema(args: argparse.Namespace) -> int:
    with open_source(args.filename, not args.no_header_row) as source:
        rows = [
            [column.name, str(column.type), "YES" if column.nullable else "NO"]
            for column in source.schema
        ]
    print(format_table(["column_name", "data_type", "is_nullable"], rows))
    return EXIT_OK


def cmd_convert(args: argparse.Namespace) -> int:
    count = convert_files(args.input, args.output, not args.no_header_row)
    print(f"Wrote {count} rows to {args.output}")
    return EXIT_OK


def cmd_count(args: argparse.Namespace) -> int:
    with QueryEngine(not args.no_header_row) as engine:
        engine.register("__t1__", args.table)
        print(format_table(["COUNT(*)"], [[str(engine.count("__t1__"))]]))
    return EXIT_OK


def cmd_query(args: argparse.Namespace) -> int:
    with QueryEngine(not args.no_header_row) as engine:
        for path in args.table:
            table_name = engine.register_file(path)
            if args.verbose:
                print(f"Registering table '{table_name}' for {path}")
        if args.verbose:
            print(engine.explain(args.sql))
        with engine.sql(args.sql) as result:
            if args.output:
                count = copy_rows(result, open_sink(args.output))
                print(f"Wrote {count} rows to {args.output}")
            else:
                print(format_rows(result))
    return EXIT_OK


def cmd_view_parquet_meta(args: argparse.Namespace) -> int:
    print(view_parquet_meta(args.input))
    return EXIT_OK


def cmd_remove_invalid_utf8(args: argparse.Namespace) -> int:
    removed = strip_invalid_utf8(args.input)
    print(f"Removed {removed} invalid bytes from {args.input}")
    return EXIT_OK


def cmd_compare(args: argparse.Namespace) -> int:
    config = CompareConfig()
    if args.config:
        config = load_config(args.config)
        if args.log_level is None and config.log_level is not None:
            setup_logging(config.log_level)

    config = config.with_overrides(
        absolute_epsilon=args.epsilon,
        relative_epsilon=args.relative_epsilon,
        limit=args.limit,
        max_rows_shown=args.max_rows_shown,
        has_header=False if args.no_header_row else None,
    )

    report = CompareEngine(config).compare_files(args.input1, args.input2)
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(render(report, config.max_rows_shown).text)
    return _VERDICT_EXIT_CODES[report.verdict]


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def _add_header_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--no-header-row",
        action="store_true",
        help="CSV files have no header row; columns are named f0, f1, ..."
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bdt",
        description="Boring Data Tool: view, query, convert and compare CSV, JSON, Parquet and Avro files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bdt view data.parquet --limit 5
  bdt query --table sales.csv --sql "SELECT region, SUM(amount) FROM sales GROUP BY region"
  bdt compare expected.csv actual.parquet --epsilon 0.0001

Exit codes for compare: 0 match, 1 different, 3 cannot be compared, 4 error
        """
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=[level.value for level in LogLevel] + ["WARNING"],
        default=None,
        help="Log level: DEBUG, INFO, WARN or ERROR (default: WARN)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    view = subparsers.add_parser("view", help="View contents of a file")
    view.add_argument("filename", type=Path)
    view.add_argument(
        "-l", "--limit",
        type=_non_negative_int,
        default=DEFAULT_VIEW_LIMIT,
        help="Number of rows to show, 0 for all (default: 10)"
    )
    _add_header_flag(view)
    view.set_defaults(func=cmd_view)

    schema = subparsers.add_parser("schema", help="View schema of a file")
    schema.add_argument("filename", type=Path)
    _add_header_flag(schema)
    schema.set_defaults(func=cmd_schema)

    convert = subparsers.add_parser("convert", help="Convert a file to a different format")
    convert.add_argument("input", type=Path)
    convert.add_argument("output", type=Path)
    _add_header_flag(convert)
    convert.set_defaults(func=cmd_convert)

    count = subparsers.add_parser("count", help="Show the row count of a file")
    count.add_argument("--table", type=Path, required=True)
    _add_header_flag(count)
    count.set_defaults(func=cmd_count)

    query = subparsers.add_parser("query", help="Run a SQL query against one or more files")
    query.add_argument(
        "--table",
        type=Path,
        action="append",
        default=[],
        help="File to register as a table named after its file stem (repeatable)"
    )
    query.add_argument("--sql", required=True, help="SQL statement to run")
    query.add_argument("-o", "--output", type=Path, help="Write results to this file instead")
    query.add_argument("-v", "--verbose", action="store_true", help="Show tables and query plan")
    _add_header_flag(query)
    query.set_defaults(func=cmd_query)

    meta = subparsers.add_parser("view-parquet-meta", help="View Parquet metadata")
    meta.add_argument("input", type=Path)
    meta.set_defaults(func=cmd_view_parquet_meta)

    utf8 = subparsers.add_parser(
        "remove-invalid-utf8",
        help="Remove invalid UTF-8 byte sequences from a text file, in place"
    )
    utf8.add_argument("input", type=Path)
    utf8.set_defaults(func=cmd_remove_invalid_utf8)

    compare = subparsers.add_parser("compare", help="Compare the contents of two files")
    compare.add_argument("input1", type=Path)
    compare.add_argument("input2", type=Path)
    compare.add_argument("-e", "--epsilon", type=float, help="Absolute tolerance for numeric values")
    compare.add_argument(
        "-r", "--relative-epsilon",
        type=float,
        help="Relative tolerance for numeric values"
    )
    compare.add_argument("--limit", type=int, help="Stop recording differences after this many")
    compare.add_argument(
        "--max-rows-shown",
        type=int,
        help="Maximum number of differences to print (default: 20)"
    )
    compare.add_argument("--config", type=Path, help="YAML configuration file")
    compare.add_argument("--json", action="store_true", help="Print the report as JSON")
    _add_header_flag(compare)
    compare.set_defaults(func=cmd_compare)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(LogLevel.parse(args.log_level or LogLevel.WARN))

    try:
        return args.func(args)
    except BdtError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
