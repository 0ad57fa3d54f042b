"""Data models for bdt."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Iterable, Optional

from .exceptions import ValidationError


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"

    @classmethod
    def parse(cls, value: Any) -> LogLevel:
        if isinstance(value, LogLevel):
            return value
        name = str(value).strip().upper()
        if name == "WARNING":
            name = "WARN"
        try:
            return cls(name)
        except ValueError:
            raise ValidationError(
                f"Unknown log level '{value}'",
                {"allowed": [level.value for level in cls]}
            )


class TypeKind(Enum):
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    UTF8 = "utf8"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    DATE = "date"
    BINARY = "binary"


NUMERIC_KINDS = frozenset({TypeKind.INTEGER, TypeKind.FLOAT, TypeKind.DECIMAL})


class TimeUnit(Enum):
    SECOND = "s"
    MILLISECOND = "ms"
    MICROSECOND = "us"
    NANOSECOND = "ns"

    @property
    def per_second(self) -> int:
        return _UNITS_PER_SECOND[self]


_UNITS_PER_SECOND = {
    TimeUnit.SECOND: 1,
    TimeUnit.MILLISECOND: 1_000,
    TimeUnit.MICROSECOND: 1_000_000,
    TimeUnit.NANOSECOND: 1_000_000_000,
}


@dataclass(frozen=True)
class LogicalType:
    """A physical-format independent column type."""
    kind: TypeKind
    bit_width: Optional[int] = None
    signed: bool = True
    precision: Optional[int] = None
    scale: Optional[int] = None
    unit: Optional[TimeUnit] = None

    @classmethod
    def integer(cls, bit_width: int = 64, signed: bool = True) -> LogicalType:
        return cls(TypeKind.INTEGER, bit_width=bit_width, signed=signed)

    @classmethod
    def floating(cls, bit_width: int = 64) -> LogicalType:
        return cls(TypeKind.FLOAT, bit_width=bit_width)

    @classmethod
    def decimal(cls, precision: int, scale: int = 0) -> LogicalType:
        return cls(TypeKind.DECIMAL, precision=precision, scale=scale)

    @classmethod
    def utf8(cls) -> LogicalType:
        return cls(TypeKind.UTF8)

    @classmethod
    def boolean(cls) -> LogicalType:
        return cls(TypeKind.BOOLEAN)

    @classmethod
    def timestamp(cls, unit: TimeUnit | str = TimeUnit.MICROSECOND) -> LogicalType:
        return cls(TypeKind.TIMESTAMP, unit=TimeUnit(unit))

    @classmethod
    def date(cls) -> LogicalType:
        return cls(TypeKind.DATE)

    @classmethod
    def binary(cls) -> LogicalType:
        return cls(TypeKind.BINARY)

    @property
    def is_numeric(self) -> bool:
        return self.kind in NUMERIC_KINDS

    def __str__(self) -> str:
        if self.kind == TypeKind.INTEGER:
            prefix = "Int" if self.signed else "UInt"
            return f"{prefix}{self.bit_width}"
        if self.kind == TypeKind.FLOAT:
            return f"Float{self.bit_width}"
        if self.kind == TypeKind.DECIMAL:
            return f"Decimal({self.precision}, {self.scale})"
        if self.kind == TypeKind.TIMESTAMP:
            return f"Timestamp({self.unit.value})"
        return {
            TypeKind.UTF8: "Utf8",
            TypeKind.BOOLEAN: "Boolean",
            TypeKind.DATE: "Date",
            TypeKind.BINARY: "Binary",
        }[self.kind]


INT64 = LogicalType.integer(64)
FLOAT64 = LogicalType.floating(64)
UTF8 = LogicalType.utf8()
BOOLEAN = LogicalType.boolean()


@dataclass(frozen=True)
class Column:
    """A named, typed column of a logical schema."""
    name: str
    type: LogicalType
    nullable: bool = True

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": str(self.type),
            "nullable": self.nullable,
        }


@dataclass(frozen=True)
class LogicalSchema:
    """Ordered column layout of a tabular dataset."""
    columns: tuple[Column, ...] = ()

    @classmethod
    def of(cls, columns: Iterable[Column | tuple]) -> LogicalSchema:
        """
        Build a schema from columns or ``(name, type[, nullable])`` tuples.

        Example:
            LogicalSchema.of([("id", INT64), ("score", FLOAT64, False)])
        """
        built = []
        for column in columns:
            if isinstance(column, Column):
                built.append(column)
            else:
                built.append(Column(*column))
        return cls(tuple(built))

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.columns]

    def duplicate_names(self) -> list[str]:
        """Names declared more than once, in first-repeat order."""
        seen = set()
        duplicates = []
        for name in self.names:
            if name in seen and name not in duplicates:
                duplicates.append(name)
            seen.add(name)
        return duplicates

    def __len__(self) -> int:
        return len(self.columns)

    def __iter__(self):
        return iter(self.columns)

    def __getitem__(self, index: int) -> Column:
        return self.columns[index]

    def to_dict(self) -> dict:
        return {"columns": [c.to_dict() for c in self.columns]}


@dataclass(frozen=True)
class TolerancePolicy:
    """Absolute/relative epsilon pair for Float and Decimal equality."""
    absolute_epsilon: float = 0.0
    relative_epsilon: float = 0.0

    def __post_init__(self):
        for name in ("absolute_epsilon", "relative_epsilon"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(
                    f"{name} must be a number",
                    {name: value}
                )
            if math.isnan(value) or math.isinf(value) or value < 0:
                raise ValidationError(
                    f"{name} must be a finite number >= 0",
                    {name: value}
                )

    @property
    def is_exact(self) -> bool:
        return self.absolute_epsilon == 0 and self.relative_epsilon == 0

    def to_dict(self) -> dict:
        return {
            "absolute_epsilon": self.absolute_epsilon,
            "relative_epsilon": self.relative_epsilon,
        }


class PairingKind(Enum):
    MATCHED = "MATCHED"
    TYPE_INCOMPATIBLE = "TYPE_INCOMPATIBLE"
    LEFT_ONLY = "LEFT_ONLY"
    RIGHT_ONLY = "RIGHT_ONLY"


@dataclass(frozen=True)
class ColumnPairing:
    """Alignment of one column name between the two schemas."""
    kind: PairingKind
    name: str
    left_index: Optional[int] = None
    right_index: Optional[int] = None
    left_type: Optional[LogicalType] = None
    right_type: Optional[LogicalType] = None
    effective_type: Optional[LogicalType] = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "left_index": self.left_index,
            "right_index": self.right_index,
            "left_type": str(self.left_type) if self.left_type else None,
            "right_type": str(self.right_type) if self.right_type else None,
            "effective_type": str(self.effective_type) if self.effective_type else None,
        }


@dataclass(frozen=True)
class ComparisonPlan:
    """Precomputed column alignment driving a row-by-row comparison."""
    pairings: tuple[ColumnPairing, ...] = ()

    def _of_kind(self, kind: PairingKind) -> list[ColumnPairing]:
        return [p for p in self.pairings if p.kind == kind]

    @property
    def matched(self) -> list[ColumnPairing]:
        return self._of_kind(PairingKind.MATCHED)

    @property
    def incompatible(self) -> list[ColumnPairing]:
        return self._of_kind(PairingKind.TYPE_INCOMPATIBLE)

    @property
    def left_only(self) -> list[ColumnPairing]:
        return self._of_kind(PairingKind.LEFT_ONLY)

    @property
    def right_only(self) -> list[ColumnPairing]:
        return self._of_kind(PairingKind.RIGHT_ONLY)

    @property
    def is_comparable(self) -> bool:
        return not self.incompatible

    def __iter__(self):
        return iter(self.pairings)

    def __len__(self) -> int:
        return len(self.pairings)

    def to_dict(self) -> dict:
        return {"pairings": [p.to_dict() for p in self.pairings]}


class DifferenceKind(Enum):
    VALUE_MISMATCH = "VALUE_MISMATCH"
    NULL_MISMATCH = "NULL_MISMATCH"
    LEFT_ONLY_COLUMN = "LEFT_ONLY_COLUMN"
    RIGHT_ONLY_COLUMN = "RIGHT_ONLY_COLUMN"
    ROW_COUNT_MISMATCH = "ROW_COUNT_MISMATCH"


@dataclass
class Difference:
    """A single difference found during comparison."""
    row_ordinal: Optional[int]
    column_name: Optional[str]
    left_value: Optional[str]
    right_value: Optional[str]
    kind: DifferenceKind
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "row_ordinal": self.row_ordinal,
            "column_name": self.column_name,
            "left_value": self.left_value,
            "right_value": self.right_value,
            "kind": self.kind.value,
            "message": self.message,
        }


class Verdict(Enum):
    EQUAL = "EQUAL"
    UNEQUAL = "UNEQUAL"
    STRUCTURALLY_INCOMPARABLE = "STRUCTURALLY_INCOMPARABLE"


class ComparisonState(Enum):
    NOT_STARTED = "NOT_STARTED"
    COMPARING = "COMPARING"
    EQUAL = "EQUAL"
    UNEQUAL = "UNEQUAL"
    STRUCTURALLY_INCOMPARABLE = "STRUCTURALLY_INCOMPARABLE"


@dataclass
class Summary:
    """Summary counters of a comparison run. Never truncated."""
    rows_compared: int = 0
    rows_equal: int = 0
    rows_different: int = 0
    columns_left_only: int = 0
    columns_right_only: int = 0
    left_rows: int = 0
    right_rows: int = 0
    differences_found: int = 0
    differences_recorded: int = 0

    def to_dict(self) -> dict:
        return {
            "rows_compared": self.rows_compared,
            "rows_equal": self.rows_equal,
            "rows_different": self.rows_different,
            "columns_left_only": self.columns_left_only,
            "columns_right_only": self.columns_right_only,
            "left_rows": self.left_rows,
            "right_rows": self.right_rows,
            "differences_found": self.differences_found,
            "differences_recorded": self.differences_recorded,
        }


@dataclass
class ExecutionInfo:
    """Execution metadata."""
    duration_ms: int
    timestamp: str
    engine_version: str = ""

    def to_dict(self) -> dict:
        return {
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp,
            "engine_version": self.engine_version,
        }


@dataclass
class DiffReport:
    """Complete comparison report."""
    verdict: Verdict
    summary: Summary
    differences: list[Difference] = field(default_factory=list)
    incompatible_columns: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    execution: Optional[ExecutionInfo] = None

    @property
    def is_match(self) -> bool:
        return self.verdict == Verdict.EQUAL

    def to_dict(self) -> dict:
        result = {
            "verdict": self.verdict.value,
            "is_match": self.is_match,
            "summary": self.summary.to_dict(),
            "differences": [d.to_dict() for d in self.differences],
        }
        if self.incompatible_columns:
            result["incompatible_columns"] = self.incompatible_columns
        if self.errors:
            result["errors"] = self.errors
        if self.execution:
            result["execution"] = self.execution.to_dict()
        return result


@dataclass
class RenderedReport:
    """Human-readable rendering of a DiffReport."""
    verdict: Verdict
    message: str
    lines: list[str] = field(default_factory=list)
    shown: int = 0
    omitted: int = 0

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def __str__(self) -> str:
        return self.text


@dataclass
class CompareConfig:
    """Configuration for a comparison run."""
    absolute_epsilon: float = 0.0
    relative_epsilon: float = 0.0
    limit: Optional[int] = None
    max_rows_shown: int = 20
    has_header: bool = True
    batch_size: int = 8192
    log_level: Optional[LogLevel] = None

    def __post_init__(self):
        if self.log_level is not None:
            self.log_level = LogLevel.parse(self.log_level)
        TolerancePolicy(self.absolute_epsilon, self.relative_epsilon)
        if self.limit is not None and self.limit < 0:
            raise ValidationError("limit must be >= 0", {"limit": self.limit})
        if self.max_rows_shown < 0:
            raise ValidationError(
                "max_rows_shown must be >= 0",
                {"max_rows_shown": self.max_rows_shown}
            )
        if self.batch_size < 1:
            raise ValidationError("batch_size must be >= 1", {"batch_size": self.batch_size})

    @property
    def policy(self) -> TolerancePolicy:
        return TolerancePolicy(self.absolute_epsilon, self.relative_epsilon)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> CompareConfig:
        """
        Build a config from a plain mapping (e.g. parsed YAML).

        Numbers are coerced because YAML 1.1 reads ``1e-6`` as a string.
        """
        data = data or {}
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(
                f"Unknown configuration keys: {', '.join(unknown)}",
                {"allowed": sorted(known)}
            )
        values = {}
        try:
            for key, value in data.items():
                if value is None:
                    if key == "limit":
                        values[key] = None
                    continue
                if key in ("absolute_epsilon", "relative_epsilon"):
                    values[key] = float(value)
                elif key in ("limit", "max_rows_shown", "batch_size"):
                    values[key] = int(value)
                elif key == "has_header":
                    values[key] = _parse_bool(value)
                else:
                    values[key] = value
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid configuration value: {e}", {"data": data})
        return cls(**values)

    def with_overrides(self, **overrides) -> CompareConfig:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    def to_dict(self) -> dict:
        return {
            "absolute_epsilon": self.absolute_epsilon,
            "relative_epsilon": self.relative_epsilon,
            "limit": self.limit,
            "max_rows_shown": self.max_rows_shown,
            "has_header": self.has_header,
            "batch_size": self.batch_size,
            "log_level": self.log_level.value if self.log_level else None,
        }


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    raise ValueError(f"not a boolean: {value!r}")
