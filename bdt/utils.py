"""Utility functions for bdt."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional, Sequence

from .exceptions import RowSinkError, RowSourceError, UnsupportedFormatError
from .models import LogicalType, TimeUnit, TypeKind


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
EPOCH_DATE = date(1970, 1, 1)

_FRACTION_DIGITS = {
    TimeUnit.SECOND: 0,
    TimeUnit.MILLISECOND: 3,
    TimeUnit.MICROSECOND: 6,
    TimeUnit.NANOSECOND: 9,
}


def file_ending(filename: str | Path) -> str:
    """Return the lower-cased extension of a filename, without the dot."""
    suffix = Path(filename).suffix
    if not suffix:
        raise UnsupportedFormatError(str(filename))
    return suffix[1:].lower()


def sanitize_table_name(name: str) -> str:
    """Replace every character that is not alphanumeric or '_' with '_'."""
    return re.sub(r'[^0-9A-Za-z_]', '_', name)


def escape_identifier(name: str) -> str:
    """Escape a SQL identifier."""
    escaped = name.replace('"', '""')
    return f'"{escaped}"'


def escape_string_literal(value: str) -> str:
    """Escape a string literal for SQL."""
    return value.replace("'", "''")


def strip_invalid_utf8(path: str | Path) -> int:
    """
    Rewrite a text file in place without its invalid UTF-8 byte sequences.

    Returns:
        Number of bytes removed

    Raises:
        RowSourceError: if the file cannot be read
        RowSinkError: if the file cannot be rewritten
    """
    try:
        with open(path, 'rb') as f:
            data = f.read()
    except OSError as e:
        raise RowSourceError(str(path), str(e)) from e

    cleaned = data.decode("utf-8", errors="ignore").encode("utf-8")
    removed = len(data) - len(cleaned)
    if removed:
        try:
            with open(path, 'wb') as f:
                f.write(cleaned)
        except OSError as e:
            raise RowSinkError(str(path), str(e)) from e
    return removed


def datetime_to_units(value: datetime, unit: TimeUnit) -> int:
    """Convert a datetime to a count of ``unit`` since the epoch. Naive means UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    micros = (value - EPOCH) // timedelta(microseconds=1)
    return micros * unit.per_second // 1_000_000


def date_to_days(value: date) -> int:
    if isinstance(value, datetime):
        value = value.date()
    return (value - EPOCH_DATE).days


def format_timestamp(value: int, unit: TimeUnit) -> str:
    """Render an epoch count as ISO 8601 (UTC) keeping the unit's precision."""
    seconds, fraction = divmod(value, unit.per_second)
    try:
        text = (EPOCH + timedelta(seconds=seconds)).strftime("%Y-%m-%dT%H:%M:%S")
    except OverflowError:
        return str(value)
    digits = _FRACTION_DIGITS[unit]
    if digits:
        text += f".{fraction:0{digits}d}"
    return text


def render_value(value: Any, logical_type: Optional[LogicalType] = None) -> Optional[str]:
    """
    Render a scalar for display. Null renders as None (absent).

    Args:
        value: The scalar value
        logical_type: Column type, used to render epoch-based timestamps and dates

    Returns:
        Rendered string, or None for Null
    """
    if value is None:
        return None
    if logical_type is not None and isinstance(value, int) and not isinstance(value, bool):
        if logical_type.kind == TypeKind.TIMESTAMP:
            return format_timestamp(value, logical_type.unit)
        if logical_type.kind == TypeKind.DATE:
            try:
                return (EPOCH_DATE + timedelta(days=value)).isoformat()
            except OverflowError:
                return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def format_table(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
    """Format rows as a bordered plain-text table."""
    cells = [
        ["" if value is None else (render_value(value) if not isinstance(value, str) else value)
         for value in row]
        for row in rows
    ]
    widths = [len(h) for h in headers]
    for row in cells:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    border = "+" + "+".join("-" * (w + 2) for w in widths) + "+"

    def line(values: Sequence[str]) -> str:
        return "| " + " | ".join(v.ljust(w) for v, w in zip(values, widths)) + " |"

    out = [border, line(list(headers)), border]
    out.extend(line(row) for row in cells)
    if cells:
        out.append(border)
    return "\n".join(out)
