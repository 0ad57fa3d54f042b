"""Custom exceptions for bdt."""


class BdtError(Exception):
    """Base exception for bdt errors."""
    pass


class ValidationError(BdtError):
    """Raised when a configuration or tolerance value is invalid."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class DuplicateColumnNameError(BdtError):
    """Raised when a schema declares the same column name twice."""
    def __init__(self, name: str, side: str = None):
        where = f" in {side} schema" if side else ""
        super().__init__(f"Duplicate column name '{name}'{where}")
        self.name = name
        self.side = side


class RowSourceError(BdtError):
    """Raised when a row source fails to open or to decode a row."""
    def __init__(self, source: str, reason: str):
        super().__init__(f"Failed to read {source}: {reason}")
        self.source = source
        self.reason = reason


class RowSinkError(BdtError):
    """Raised when a row sink cannot write its output."""
    def __init__(self, target: str, reason: str):
        super().__init__(f"Failed to write {target}: {reason}")
        self.target = target
        self.reason = reason


class UnsupportedFormatError(BdtError):
    """Raised when a file extension does not map to a known format."""
    def __init__(self, filename: str, extension: str = None):
        if extension:
            message = f"Unsupported file extension '{extension}' for {filename}"
        else:
            message = f"Could not determine file extension for {filename}"
        super().__init__(message)
        self.filename = filename
        self.extension = extension


class UnsupportedTypeError(BdtError):
    """Raised when a physical column type has no logical counterpart."""
    def __init__(self, column: str, type_name: str):
        super().__init__(f"Unsupported data type '{type_name}' for column '{column}'")
        self.column = column
        self.type_name = type_name


class ConfigError(BdtError):
    """Raised when a configuration file cannot be loaded."""
    def __init__(self, path: str, reason: str):
        super().__init__(f"Invalid configuration {path}: {reason}")
        self.path = path
        self.reason = reason


class QueryError(BdtError):
    """Raised when the query engine rejects a statement or a table registration."""
    def __init__(self, query: str, reason: str):
        super().__init__(f"Query failed: {reason}")
        self.query = query
        self.reason = reason
