"""Arrow record batches as row sources and sinks."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Iterator, Optional

import pyarrow as pa

from .exceptions import RowSinkError, RowSourceError, UnsupportedTypeError
from .models import Column, LogicalSchema, LogicalType, TimeUnit, TypeKind
from .sources import Row, RowSink, RowSource


logger = logging.getLogger(__name__)

_FLOAT_TYPES = {16: pa.float16(), 32: pa.float32(), 64: pa.float64()}
_MAX_DECIMAL128_PRECISION = 38


def arrow_type_to_logical(column: str, data_type: pa.DataType) -> LogicalType:
    """Map an Arrow data type to a logical type."""
    types = pa.types
    if types.is_dictionary(data_type):
        return arrow_type_to_logical(column, data_type.value_type)
    if types.is_boolean(data_type):
        return LogicalType.boolean()
    if types.is_integer(data_type):
        return LogicalType.integer(data_type.bit_width, types.is_signed_integer(data_type))
    if types.is_floating(data_type):
        return LogicalType.floating(data_type.bit_width)
    if types.is_decimal(data_type):
        return LogicalType.decimal(data_type.precision, data_type.scale)
    if types.is_string(data_type) or types.is_large_string(data_type) or types.is_null(data_type):
        return LogicalType.utf8()
    if types.is_timestamp(data_type):
        return LogicalType.timestamp(TimeUnit(data_type.unit))
    if types.is_date(data_type):
        return LogicalType.date()
    if types.is_binary(data_type) or types.is_large_binary(data_type) \
            or types.is_fixed_size_binary(data_type):
        return LogicalType.binary()
    raise UnsupportedTypeError(column, str(data_type))


def logical_type_to_arrow(logical_type: LogicalType) -> pa.DataType:
    """Map a logical type to the Arrow type used when writing it."""
    kind = logical_type.kind
    if kind == TypeKind.INTEGER:
        prefix = "int" if logical_type.signed else "uint"
        return getattr(pa, f"{prefix}{logical_type.bit_width}")()
    if kind == TypeKind.FLOAT:
        return _FLOAT_TYPES[logical_type.bit_width]
    if kind == TypeKind.DECIMAL:
        if logical_type.precision <= _MAX_DECIMAL128_PRECISION:
            return pa.decimal128(logical_type.precision, logical_type.scale)
        return pa.decimal256(logical_type.precision, logical_type.scale)
    if kind == TypeKind.TIMESTAMP:
        return pa.timestamp(logical_type.unit.value)
    return {
        TypeKind.UTF8: pa.string(),
        TypeKind.BOOLEAN: pa.bool_(),
        TypeKind.DATE: pa.date32(),
        TypeKind.BINARY: pa.binary(),
    }[kind]


def arrow_schema_to_logical(schema: pa.Schema) -> LogicalSchema:
    return LogicalSchema(tuple(
        Column(f.name, arrow_type_to_logical(f.name, f.type), f.nullable)
        for f in schema
    ))


def logical_schema_to_arrow(schema: LogicalSchema) -> pa.Schema:
    return pa.schema([
        pa.field(c.name, logical_type_to_arrow(c.type), c.nullable)
        for c in schema
    ])


def _column_values(array: pa.Array) -> list:
    """Python values of one column; timestamps and dates become epoch counts."""
    data_type = array.type
    if pa.types.is_dictionary(data_type):
        array = array.dictionary_decode()
        data_type = array.type
    if pa.types.is_timestamp(data_type):
        array = array.cast(pa.int64())
    elif pa.types.is_date64(data_type):
        array = array.cast(pa.date32()).cast(pa.int32())
    elif pa.types.is_date32(data_type):
        array = array.cast(pa.int32())
    return array.to_pylist()


class ArrowRowSource(RowSource):
    """Row source over a stream of Arrow record batches, one batch in memory at a time."""

    def __init__(
        self,
        arrow_schema: pa.Schema,
        batches: Iterable[pa.RecordBatch],
        name: str = "<arrow>",
        on_close: Optional[Callable[[], None]] = None
    ):
        self.name = name
        self.arrow_schema = arrow_schema
        self._schema = arrow_schema_to_logical(arrow_schema)
        self._batches = iter(batches)
        self._rows: Iterator[Row] = iter(())
        self._on_close = on_close
        self._closed = False

    @classmethod
    def from_table(cls, table: pa.Table, name: str = "<arrow>") -> ArrowRowSource:
        return cls(table.schema, table.to_batches(), name)

    @classmethod
    def from_reader(cls, reader: pa.RecordBatchReader, name: str = "<arrow>") -> ArrowRowSource:
        return cls(reader.schema, reader, name, on_close=reader.close)

    @property
    def schema(self) -> LogicalSchema:
        return self._schema

    def read_row(self) -> Optional[Row]:
        while True:
            row = next(self._rows, None)
            if row is not None:
                return row
            batch = self._next_batch()
            if batch is None:
                return None
            self._rows = self._batch_rows(batch)

    def _next_batch(self) -> Optional[pa.RecordBatch]:
        try:
            return next(self._batches, None)
        except (pa.ArrowException, OSError) as e:
            raise RowSourceError(self.name, str(e)) from e

    def _batch_rows(self, batch: pa.RecordBatch) -> Iterator[Row]:
        if batch.num_columns == 0:
            return iter([()] * batch.num_rows)
        try:
            columns = [_column_values(column) for column in batch.columns]
        except (pa.ArrowException, OSError) as e:
            raise RowSourceError(self.name, str(e)) from e
        return zip(*columns)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close()


class ArrowBatchSink(RowSink):
    """
    Base sink that buffers rows into Arrow record batches.

    Subclasses implement _open_writer, _write_batch and _close_writer.
    """

    def __init__(self, target: str, batch_size: int = 8192):
        self.target = target
        self.batch_size = batch_size
        self.arrow_schema: Optional[pa.Schema] = None
        self.rows_written = 0
        self._rows: list[Row] = []

    def open(self, schema: LogicalSchema) -> None:
        self.arrow_schema = logical_schema_to_arrow(schema)
        try:
            self._open_writer(self.arrow_schema)
        except (pa.ArrowException, OSError) as e:
            raise RowSinkError(self.target, str(e)) from e

    def write(self, row: Row) -> None:
        self._rows.append(row)
        if len(self._rows) >= self.batch_size:
            self._flush()

    def close(self) -> None:
        try:
            self._flush()
        finally:
            try:
                self._close_writer()
            except (pa.ArrowException, OSError) as e:
                raise RowSinkError(self.target, str(e)) from e
        logger.debug("Wrote %d rows to %s", self.rows_written, self.target)

    def _flush(self) -> None:
        if not self._rows:
            return
        columns = list(zip(*self._rows))
        try:
            arrays = [
                pa.array(list(values), type=field.type)
                for values, field in zip(columns, self.arrow_schema)
            ]
            batch = pa.RecordBatch.from_arrays(arrays, schema=self.arrow_schema)
            self._write_batch(batch)
        except (pa.ArrowException, OSError) as e:
            raise RowSinkError(self.target, str(e)) from e
        self.rows_written += len(self._rows)
        self._rows = []

    def _open_writer(self, arrow_schema: pa.Schema) -> None:
        raise NotImplementedError

    def _write_batch(self, batch: pa.RecordBatch) -> None:
        raise NotImplementedError

    def _close_writer(self) -> None:
        raise NotImplementedError


def source_to_table(source: RowSource) -> pa.Table:
    """Materialise a row source as an Arrow table."""
    arrow_schema = logical_schema_to_arrow(source.schema)
    columns: list[list] = [[] for _ in arrow_schema]
    for row in source:
        for values, value in zip(columns, row):
            values.append(value)
    arrays = [pa.array(values, type=field.type) for values, field in zip(columns, arrow_schema)]
    return pa.Table.from_arrays(arrays, schema=arrow_schema)
