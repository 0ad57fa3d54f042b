"""
bdt - Boring Data Tool

Views, queries, converts and compares tabular files stored as CSV,
newline-delimited JSON, Parquet and Avro. The comparison engine decides
whether two files hold the same logical rows regardless of format and
column order, with an optional numeric tolerance.
"""

__version__ = "0.3.0"

from .engine import CompareEngine, compare, compare_files
from .models import (
    CompareConfig,
    Column,
    LogicalSchema,
    LogicalType,
    TolerancePolicy,
    ComparisonPlan,
    ColumnPairing,
    PairingKind,
    DiffReport,
    Difference,
    DifferenceKind,
    Summary,
    Verdict,
)
from .schema import reconcile
from .comparators import equal
from .reporter import render, verdict
from .sources import RowSource, RowSink, MemoryRowSource, MemoryRowSink
from .formats import FileFormat, file_format, open_source, open_sink
from .query import QueryEngine
from .convert import convert_files
from .config import load_config

__all__ = [
    # Engine
    "CompareEngine",
    "CompareConfig",
    "compare",
    "compare_files",
    # Schema
    "Column",
    "LogicalSchema",
    "LogicalType",
    "ComparisonPlan",
    "ColumnPairing",
    "PairingKind",
    "reconcile",
    # Values
    "TolerancePolicy",
    "equal",
    # Reports
    "DiffReport",
    "Difference",
    "DifferenceKind",
    "Summary",
    "Verdict",
    "render",
    "verdict",
    # Rows
    "RowSource",
    "RowSink",
    "MemoryRowSource",
    "MemoryRowSink",
    # Files
    "FileFormat",
    "file_format",
    "open_source",
    "open_sink",
    "QueryEngine",
    "convert_files",
    "load_config",
]
