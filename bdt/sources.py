"""Row source and row sink interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Iterator, Optional

from .models import LogicalSchema


Row = tuple


class RowSource(ABC):
    """
    Single-pass, order-preserving producer of rows.

    Usage:
        with source:
            for row in source:
                ...

    Stopping early and calling close() is how a caller cancels a read.
    """

    @property
    @abstractmethod
    def schema(self) -> LogicalSchema:
        """The declared schema of every row."""

    @abstractmethod
    def read_row(self) -> Optional[Row]:
        """Return the next row, or None once the source is exhausted."""

    def close(self) -> None:
        """Release any underlying resources."""

    def __iter__(self) -> Iterator[Row]:
        while True:
            row = self.read_row()
            if row is None:
                return
            yield row

    def __enter__(self) -> RowSource:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class RowSink(ABC):
    """Consumer of a schema followed by rows."""

    @abstractmethod
    def open(self, schema: LogicalSchema) -> None:
        """Accept the schema. Called exactly once, before any write."""

    @abstractmethod
    def write(self, row: Row) -> None:
        """Append one row."""

    @abstractmethod
    def close(self) -> None:
        """Flush and release resources."""


class MemoryRowSource(RowSource):
    """Row source over an in-memory iterable of rows."""

    def __init__(self, schema: LogicalSchema, rows: Iterable[Any], name: str = "<memory>"):
        self._schema = schema
        self._rows = iter(rows)
        self.name = name

    @property
    def schema(self) -> LogicalSchema:
        return self._schema

    def read_row(self) -> Optional[Row]:
        row = next(self._rows, None)
        return tuple(row) if row is not None else None


class MemoryRowSink(RowSink):
    """Row sink collecting rows into a list."""

    def __init__(self):
        self.schema: Optional[LogicalSchema] = None
        self.rows: list[Row] = []
        self.closed = False

    def open(self, schema: LogicalSchema) -> None:
        self.schema = schema

    def write(self, row: Row) -> None:
        self.rows.append(tuple(row))

    def close(self) -> None:
        self.closed = True
