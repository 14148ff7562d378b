"""Row sources turning downloaded flat files into :class:`RawRow` streams."""

from __future__ import annotations

import csv
import gzip
from collections.abc import Iterator
from pathlib import Path
from typing import IO, Protocol

from tickerpipe.core.data.ingestion.models import RawRow
from tickerpipe.core.exceptions import ConfigurationError

# what the "replace" error handler puts in place of undecodable bytes
_REPLACEMENT_CHAR = "\ufffd"


class RowParser(Protocol):
    """Yields raw rows from a file or stream."""

    def __call__(self, path: Path) -> Iterator[RawRow]: ...


def _open_text(path: Path) -> IO[str]:
    if path.suffix == ".gz":
        return gzip.open(path, "rt", encoding="utf-8", errors="replace", newline="")
    return open(path, encoding="utf-8-sig", errors="replace", newline="")


def iter_csv_rows(stream: IO[str]) -> Iterator[RawRow]:
    """Yield rows from a CSV stream with a header line.

    A record the csv module rejects, or one holding undecodable bytes, is
    yielded as a damaged :class:`RawRow` so the consumer can count it and
    carry on with the next line.
    """

    reader = csv.DictReader(stream)
    if reader.fieldnames:
        reader.fieldnames = [name.strip() for name in reader.fieldnames]
    while True:
        try:
            record = next(reader)
        except StopIteration:
            return
        except csv.Error as exc:
            yield RawRow(damage=f"unreadable CSV record at line {reader.reader.line_num}: {exc}")
            continue
        fields = {key: value for key, value in record.items() if key is not None}
        if any(isinstance(value, str) and _REPLACEMENT_CHAR in value for value in fields.values()):
            yield RawRow(fields, damage=f"invalid UTF-8 at line {reader.reader.line_num}")
            continue
        yield RawRow(fields)


def read_csv_rows(path: str | Path) -> Iterator[RawRow]:
    """Stream rows from ``path``; ``.gz`` files are decompressed on the fly."""

    file_path = Path(path)
    if not file_path.is_file():
        raise ConfigurationError(f"File not found: {file_path}", details={"path": str(file_path)})
    with _open_text(file_path) as stream:
        yield from iter_csv_rows(stream)


__all__ = ["RowParser", "iter_csv_rows", "read_csv_rows"]
