"""CLI output formatting utilities.

Results go to STDOUT in one of three formats: pretty (tables and key/value
lines for humans), JSON, or YAML. Logs never go through this module.
"""
from __future__ import annotations

import datetime as _dt
import json
import sys
from dataclasses import dataclass, fields, is_dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, TextIO

from .yamlio import dump_yaml


class OutputFormat(str, Enum):
    """Output format options."""
    PRETTY = "pretty"
    JSON = "json"
    YAML = "yaml"

    @classmethod
    def parse(cls, value: str) -> "OutputFormat":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(f.value for f in cls)
            raise ValueError(f"unknown output format: {value!r}, must be one of: {choices}") from None


@dataclass
class OutputConfig:
    """Configuration for output formatting."""
    format: OutputFormat = OutputFormat.PRETTY
    file: Optional[TextIO] = None

    @property
    def stream(self) -> TextIO:
        """Get the output stream."""
        return self.file or sys.stdout


def normalize(data: Any) -> Any:
    """Convert dataclasses, enums and dates into JSON/YAML friendly values."""
    if is_dataclass(data) and not isinstance(data, type):
        return {f.name: normalize(getattr(data, f.name)) for f in fields(data)}
    if isinstance(data, dict):
        return {str(k): normalize(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [normalize(v) for v in data]
    if isinstance(data, Enum):
        return data.value
    if isinstance(data, (_dt.datetime, _dt.date, _dt.time)):
        return data.isoformat()
    return data


class OutputWriter:
    """Handles formatted output for CLI commands."""

    def __init__(self, config: Optional[OutputConfig] = None):
        self.config = config or OutputConfig()

    def print(self, *args, **kwargs) -> None:
        """Print to the configured output stream."""
        kwargs.setdefault("file", self.config.stream)
        print(*args, **kwargs)

    def print_data(self, data: Any, headers: Optional[List[str]] = None) -> None:
        """Print data in the configured format.

        Args:
            data: Data to print (dict, list, dataclass, or any serializable object).
            headers: Optional column headers for pretty tables.
        """
        fmt = self.config.format
        normalized = normalize(data)
        if fmt == OutputFormat.JSON:
            self.print(json.dumps(normalized, indent=2, default=str))
        elif fmt == OutputFormat.YAML:
            self.print(dump_yaml(normalized), end="")
        else:
            self._print_pretty(normalized, headers)

    def _print_pretty(self, data: Any, headers: Optional[List[str]]) -> None:
        if isinstance(data, list):
            if not data:
                self.print("(none)")
            elif all(isinstance(row, dict) for row in data):
                self._print_table(data, headers)
            else:
                for item in data:
                    self.print(f"- {item}")
        elif isinstance(data, dict):
            self._print_dict(data)
        else:
            self.print(str(data))

    def _print_dict(self, data: Dict[str, Any], indent: int = 0) -> None:
        prefix = " " * indent
        for key, value in data.items():
            if isinstance(value, dict):
                self.print(f"{prefix}{key}:")
                self._print_dict(value, indent + 2)
            elif isinstance(value, list) and value and all(isinstance(v, dict) for v in value):
                self.print(f"{prefix}{key}:")
                self._print_table(value, None, indent=indent + 2)
            else:
                self.print(f"{prefix}{key}: {_cell(value)}")

    def _print_table(
        self,
        rows: Sequence[Dict[str, Any]],
        headers: Optional[List[str]],
        indent: int = 0,
    ) -> None:
        if headers is None:
            headers = []
            for row in rows:
                for key in row:
                    if key not in headers:
                        headers.append(key)
        str_rows = [[_cell(row.get(h)) for h in headers] for row in rows]
        widths = [len(h) for h in headers]
        for str_row in str_rows:
            for i, val in enumerate(str_row):
                widths[i] = max(widths[i], len(val))

        prefix = " " * indent
        header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
        self.print(prefix + header_line.rstrip())
        self.print(prefix + "-" * len(header_line))
        for str_row in str_rows:
            self.print(prefix + " | ".join(v.ljust(widths[i]) for i, v in enumerate(str_row)).rstrip())


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, dict):
        return ", ".join(f"{k}={_cell(v)}" for k, v in value.items())
    if isinstance(value, list):
        return ", ".join(_cell(v) for v in value)
    return str(value)
