"""YAML configuration loading and logging setup."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import yaml

from .exceptions import ConfigError, ValidationError
from .models import CompareConfig, LogLevel


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_LOG_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


def load_config(path: str | Path) -> CompareConfig:
    """
    Load a comparison configuration from a YAML file.

    The file holds an optional ``compare`` mapping with CompareConfig
    fields and an optional top-level ``log_level``:

        log_level: DEBUG
        compare:
          absolute_epsilon: 1e-6
          limit: 100

    Raises:
        ConfigError: if the file is missing, is not valid YAML or holds
            unknown keys or invalid values
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(str(path), "file not found")

    with open(path, 'r') as f:
        content = f.read()

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(str(path), f"failed to parse YAML: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(str(path), "top level must be a mapping")

    unknown = sorted(set(data) - {"compare", "log_level"})
    if unknown:
        raise ConfigError(str(path), f"unknown sections: {', '.join(map(str, unknown))}")

    section = data.get("compare") or {}
    if not isinstance(section, dict):
        raise ConfigError(str(path), "'compare' must be a mapping")
    section = dict(section)
    if "log_level" in data:
        section["log_level"] = data["log_level"]

    try:
        return CompareConfig.from_dict(section)
    except ValidationError as e:
        raise ConfigError(str(path), e.message) from e


def setup_logging(level: LogLevel = LogLevel.INFO) -> None:
    """
    Configure the root logger with a single stderr handler.

    Stdout is left to reports and query output.
    """
    numeric_level = _LOG_LEVELS[LogLevel.parse(level)]

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)
