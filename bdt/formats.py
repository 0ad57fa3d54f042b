"""File format adapters: open a file as a row source or a row sink."""

from __future__ import annotations

import base64
import json
import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

import fastavro
import pyarrow as pa
import pyarrow.csv as pacsv
import pyarrow.json as pajson
import pyarrow.parquet as pq
from fastavro.write import Writer as AvroWriter

from .arrow import ArrowBatchSink, ArrowRowSource
from .exceptions import (
    RowSinkError,
    RowSourceError,
    UnsupportedFormatError,
    UnsupportedTypeError,
)
from .models import Column, LogicalSchema, LogicalType, TimeUnit, TypeKind
from .sources import Row, RowSink, RowSource
from .utils import (
    date_to_days,
    datetime_to_units,
    file_ending,
    format_timestamp,
    render_value,
    sanitize_table_name,
)


logger = logging.getLogger(__name__)


class FileFormat(Enum):
    AVRO = "avro"
    CSV = "csv"
    JSON = "json"
    PARQUET = "parquet"


_EXTENSIONS = {
    "avro": FileFormat.AVRO,
    "csv": FileFormat.CSV,
    "json": FileFormat.JSON,
    "jsonl": FileFormat.JSON,
    "ndjson": FileFormat.JSON,
    "parquet": FileFormat.PARQUET,
    "parq": FileFormat.PARQUET,
}


def file_format(filename: str | Path) -> FileFormat:
    """Determine the file format from the file extension."""
    ending = file_ending(filename)
    try:
        return _EXTENSIONS[ending]
    except KeyError:
        raise UnsupportedFormatError(str(filename), ending)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

def open_source(
    path: str | Path,
    has_header: bool = True,
    batch_size: int = 8192
) -> RowSource:
    """
    Open a file as a row source, selecting the adapter by extension.

    Args:
        path: File to read
        has_header: Whether a CSV file starts with a header row
        batch_size: Rows decoded per batch where the format streams

    Returns:
        A RowSource; close it (or use it as a context manager) when done

    Raises:
        UnsupportedFormatError: if the extension is not recognised
        RowSourceError: if the file cannot be opened or its header decoded
    """
    fmt = file_format(path)
    name = str(path)
    if not Path(path).is_file():
        raise RowSourceError(name, "file not found")

    logger.debug("Opening %s as %s", name, fmt.value)
    try:
        if fmt == FileFormat.CSV:
            read_options = pacsv.ReadOptions(autogenerate_column_names=not has_header)
            reader = pacsv.open_csv(name, read_options=read_options)
            return ArrowRowSource.from_reader(reader, name)
        if fmt == FileFormat.JSON:
            table = pajson.read_json(name)
            return ArrowRowSource(table.schema, table.to_batches(max_chunksize=batch_size), name)
        if fmt == FileFormat.PARQUET:
            parquet_file = pq.ParquetFile(name)
            return ArrowRowSource(
                parquet_file.schema_arrow,
                parquet_file.iter_batches(batch_size=batch_size),
                name,
                on_close=parquet_file.close,
            )
        return AvroRowSource(name)
    except (pa.ArrowException, OSError, ValueError) as e:
        raise RowSourceError(name, str(e)) from e


def _identity(value: Any) -> Any:
    return value


def _timestamp_converter(unit: TimeUnit) -> Callable[[Any], Any]:
    def convert(value: Any) -> Any:
        return datetime_to_units(value, unit) if isinstance(value, datetime) else value
    return convert


def _date_converter(value: Any) -> Any:
    return date_to_days(value) if isinstance(value, date) else value


_AVRO_PRIMITIVES = {
    "boolean": LogicalType.boolean(),
    "int": LogicalType.integer(32),
    "long": LogicalType.integer(64),
    "float": LogicalType.floating(32),
    "double": LogicalType.floating(64),
    "string": LogicalType.utf8(),
    "enum": LogicalType.utf8(),
    "null": LogicalType.utf8(),
    "bytes": LogicalType.binary(),
    "fixed": LogicalType.binary(),
}

_AVRO_TIMESTAMPS = {
    "timestamp-millis": TimeUnit.MILLISECOND,
    "local-timestamp-millis": TimeUnit.MILLISECOND,
    "timestamp-micros": TimeUnit.MICROSECOND,
    "local-timestamp-micros": TimeUnit.MICROSECOND,
}


def avro_field_type(name: str, avro_type: Any) -> tuple[LogicalType, bool, Callable[[Any], Any]]:
    """
    Map an Avro field type to a logical type.

    Returns:
        Tuple of (logical type, nullable, value converter)
    """
    nullable = False
    if isinstance(avro_type, list):
        non_null = [t for t in avro_type if t != "null"]
        nullable = len(non_null) < len(avro_type)
        if len(non_null) != 1:
            raise UnsupportedTypeError(name, json.dumps(avro_type))
        avro_type = non_null[0]

    if isinstance(avro_type, dict):
        logical = avro_type.get("logicalType")
        base = avro_type.get("type")
    else:
        logical = None
        base = avro_type

    if logical == "decimal":
        return (
            LogicalType.decimal(avro_type["precision"], avro_type.get("scale", 0)),
            nullable,
            _identity,
        )
    if logical in _AVRO_TIMESTAMPS:
        unit = _AVRO_TIMESTAMPS[logical]
        return LogicalType.timestamp(unit), nullable, _timestamp_converter(unit)
    if logical == "date":
        return LogicalType.date(), nullable, _date_converter
    if logical == "uuid":
        return LogicalType.utf8(), nullable, lambda v: v if v is None else str(v)

    if isinstance(base, str) and base in _AVRO_PRIMITIVES:
        return _AVRO_PRIMITIVES[base], nullable, _identity
    raise UnsupportedTypeError(name, json.dumps(avro_type))


class AvroRowSource(RowSource):
    """Row source over an Avro object container file."""

    def __init__(self, path: str | Path):
        self.name = str(path)
        self._file = open(path, "rb")
        try:
            self._reader = fastavro.reader(self._file)
            writer_schema = self._reader.writer_schema
            if not isinstance(writer_schema, dict) or writer_schema.get("type") != "record":
                raise UnsupportedTypeError("<root>", json.dumps(writer_schema))
            columns = []
            self._converters: list[tuple[str, Callable[[Any], Any]]] = []
            for avro_field in writer_schema["fields"]:
                logical_type, nullable, converter = avro_field_type(
                    avro_field["name"], avro_field["type"]
                )
                columns.append(Column(avro_field["name"], logical_type, nullable))
                self._converters.append((avro_field["name"], converter))
            self._schema = LogicalSchema(tuple(columns))
        except Exception:
            self._file.close()
            raise

    @property
    def schema(self) -> LogicalSchema:
        return self._schema

    def read_row(self) -> Optional[Row]:
        try:
            record = next(self._reader, None)
        except (ValueError, EOFError, OSError) as e:
            raise RowSourceError(self.name, str(e)) from e
        if record is None:
            return None
        return tuple(convert(record.get(name)) for name, convert in self._converters)

    def close(self) -> None:
        self._file.close()


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------

class CsvRowSink(ArrowBatchSink):
    """Writes rows as CSV with a header line."""

    def _open_writer(self, arrow_schema: pa.Schema) -> None:
        self._writer = pacsv.CSVWriter(self.target, arrow_schema)

    def _write_batch(self, batch: pa.RecordBatch) -> None:
        self._writer.write_batch(batch)

    def _close_writer(self) -> None:
        self._writer.close()


class ParquetRowSink(ArrowBatchSink):
    """Writes rows to a Parquet file, one row group per flushed batch."""

    def _open_writer(self, arrow_schema: pa.Schema) -> None:
        self._writer = pq.ParquetWriter(self.target, arrow_schema)

    def _write_batch(self, batch: pa.RecordBatch) -> None:
        self._writer.write_table(pa.Table.from_batches([batch]))

    def _close_writer(self) -> None:
        self._writer.close()


def _json_value(value: Any, logical_type: LogicalType) -> Any:
    if value is None:
        return None
    kind = logical_type.kind
    if kind == TypeKind.TIMESTAMP and isinstance(value, int):
        return format_timestamp(value, logical_type.unit)
    if kind == TypeKind.DATE or isinstance(value, (datetime, date)):
        return render_value(value, logical_type)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return value


class JsonRowSink(RowSink):
    """Writes rows as newline-delimited JSON objects."""

    def __init__(self, target: str):
        self.target = target
        self.rows_written = 0
        self._columns: tuple[Column, ...] = ()
        self._file = None

    def open(self, schema: LogicalSchema) -> None:
        self._columns = schema.columns
        try:
            self._file = open(self.target, "w", encoding="utf-8")
        except OSError as e:
            raise RowSinkError(self.target, str(e)) from e

    def write(self, row: Row) -> None:
        record = {
            column.name: _json_value(value, column.type)
            for column, value in zip(self._columns, row)
        }
        self._file.write(json.dumps(record))
        self._file.write("\n")
        self.rows_written += 1

    def close(self) -> None:
        if self._file is not None:
            self._file.close()


def avro_name(name: str) -> str:
    """Make a column name a valid Avro field name."""
    name = sanitize_table_name(name)
    if not name or name[0].isdigit():
        name = "_" + name
    return name


def logical_type_to_avro(logical_type: LogicalType, nullable: bool = True) -> Any:
    kind = logical_type.kind
    if kind == TypeKind.INTEGER:
        fits_int = logical_type.bit_width <= (32 if logical_type.signed else 16)
        avro_type: Any = "int" if fits_int else "long"
    elif kind == TypeKind.FLOAT:
        avro_type = "float" if logical_type.bit_width <= 32 else "double"
    elif kind == TypeKind.DECIMAL:
        avro_type = {
            "type": "bytes",
            "logicalType": "decimal",
            "precision": logical_type.precision,
            "scale": logical_type.scale,
        }
    elif kind == TypeKind.TIMESTAMP:
        if logical_type.unit == TimeUnit.MILLISECOND:
            avro_type = {"type": "long", "logicalType": "timestamp-millis"}
        elif logical_type.unit == TimeUnit.MICROSECOND:
            avro_type = {"type": "long", "logicalType": "timestamp-micros"}
        else:
            # No Avro logical type for this unit; raw epoch count.
            avro_type = "long"
    elif kind == TypeKind.DATE:
        avro_type = {"type": "int", "logicalType": "date"}
    else:
        avro_type = {
            TypeKind.UTF8: "string",
            TypeKind.BOOLEAN: "boolean",
            TypeKind.BINARY: "bytes",
        }[kind]
    return ["null", avro_type] if nullable else avro_type


def logical_schema_to_avro(schema: LogicalSchema, name: str = "Row") -> dict:
    return {
        "type": "record",
        "name": name,
        "fields": [
            {"name": avro_name(c.name), "type": logical_type_to_avro(c.type, c.nullable)}
            for c in schema
        ],
    }


class AvroRowSink(RowSink):
    """Writes rows to an Avro object container file."""

    def __init__(self, target: str, codec: str = "null"):
        self.target = target
        self.codec = codec
        self.rows_written = 0
        self._names: list[str] = []
        self._file = None
        self._writer = None

    def open(self, schema: LogicalSchema) -> None:
        avro_schema = logical_schema_to_avro(schema)
        self._names = [f["name"] for f in avro_schema["fields"]]
        try:
            parsed = fastavro.parse_schema(avro_schema)
            self._file = open(self.target, "wb")
            self._writer = AvroWriter(self._file, parsed, codec=self.codec)
        except (ValueError, OSError) as e:
            raise RowSinkError(self.target, str(e)) from e

    def write(self, row: Row) -> None:
        try:
            self._writer.write(dict(zip(self._names, row)))
        except (ValueError, TypeError) as e:
            raise RowSinkError(self.target, str(e)) from e
        self.rows_written += 1

    def close(self) -> None:
        if self._writer is not None:
            self._writer.flush()
        if self._file is not None:
            self._file.close()


def open_sink(path: str | Path, batch_size: int = 8192) -> RowSink:
    """Create a row sink for the output file, selecting the writer by extension."""
    fmt = file_format(path)
    target = str(path)
    if fmt == FileFormat.CSV:
        return CsvRowSink(target, batch_size)
    if fmt == FileFormat.PARQUET:
        return ParquetRowSink(target, batch_size)
    if fmt == FileFormat.JSON:
        return JsonRowSink(target)
    return AvroRowSink(target)
