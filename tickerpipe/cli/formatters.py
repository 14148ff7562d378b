"""Table and JSON Lines renderers for command output."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import TextIO

from rich.box import SIMPLE
from rich.console import Console
from rich.table import Table

Row = Mapping[str, object]


def _plain(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class OutputFormatter:
    """Base class for output formatters."""

    name: str

    def render(self, rows: Sequence[Row], *, stream: TextIO, columns: Sequence[str] | None = None) -> None:
        raise NotImplementedError


@dataclass(slots=True)
class TableFormatter(OutputFormatter):
    """Render rows as a Rich table; an empty result prints a short notice."""

    name: str = "table"
    no_color: bool = False

    def render(self, rows: Sequence[Row], *, stream: TextIO, columns: Sequence[str] | None = None) -> None:
        console = Console(file=stream, no_color=self.no_color, width=160)
        headers = list(columns) if columns else list(rows[0].keys()) if rows else []
        if not rows:
            console.print("No rows.")
            return
        table = Table(box=SIMPLE)
        for header in headers:
            table.add_column(header, header_style="" if self.no_color else "bold", overflow="fold")
        for row in rows:
            table.add_row(*(self._cell(row.get(header)) for header in headers))
        console.print(table)

    @staticmethod
    def _cell(value: object) -> str:
        if value is None:
            return "-"
        return str(_plain(value))


@dataclass(slots=True)
class JSONLFormatter(OutputFormatter):
    """Render rows as one JSON object per line."""

    name: str = "jsonl"

    def render(self, rows: Sequence[Row], *, stream: TextIO, columns: Sequence[str] | None = None) -> None:
        for row in rows:
            keys = columns or list(row.keys())
            record = {key: _plain(row.get(key)) for key in keys}
            stream.write(json.dumps(record, ensure_ascii=False, default=str))
            stream.write("\n")
        stream.flush()


FORMATS = ("table", "jsonl")


def create_formatter(name: str, *, no_color: bool = False) -> OutputFormatter:
    normalized = name.strip().lower()
    if normalized == "table":
        return TableFormatter(no_color=no_color)
    if normalized == "jsonl":
        return JSONLFormatter()
    raise ValueError(f"Unsupported format '{name}'. Available formats: {', '.join(FORMATS)}.")


__all__ = ["FORMATS", "JSONLFormatter", "OutputFormatter", "TableFormatter", "create_formatter"]
