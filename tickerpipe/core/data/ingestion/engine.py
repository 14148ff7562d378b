"""Idempotent import of raw rows into the point tables.

Rows are parsed by a source dialect, filtered by the optional date range and
reconciled against stored points by natural key. New points are written in
batches; a batch that collides with a concurrent writer is retried one row at
a time so forward progress never depends on engine-level locking.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from time import perf_counter
from typing import TYPE_CHECKING, Any

from tickerpipe.core.data.ingestion.config import ImportOptions
from tickerpipe.core.data.ingestion.dialects import SourceDialect, get_dialect
from tickerpipe.core.data.ingestion.models import DataPoint, RawRow
from tickerpipe.core.data.ingestion.readers import read_csv_rows
from tickerpipe.core.data.ingestion.validator import validate_point
from tickerpipe.core.exceptions import DuplicateKeyError, ErrorCode, RowError, RowParseError
from tickerpipe.core.logging import get_logger
from tickerpipe.core.models.market import Feed

if TYPE_CHECKING:
    from tickerpipe.core.data.storage.points import PointStore

_SUMMARY_DETAILS = 10


@dataclass(slots=True)
class ImportResult:
    """Counters describing one import."""

    ticker: str
    total_rows: int = 0
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    error_details: list[str] = field(default_factory=list)
    aborted: bool = False
    duration_ms: float = 0.0
    file: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "file": self.file,
            "total_rows": self.total_rows,
            "imported": self.imported,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
            "error_details": list(self.error_details),
            "aborted": self.aborted,
            "duration_ms": round(self.duration_ms, 3),
        }


def _same_values(stored: DataPoint, candidate: DataPoint) -> bool:
    for left, right in zip(stored.values(), candidate.values(), strict=True):
        if left is None or right is None:
            if left is not right:
                return False
            continue
        if float(left) != float(right):
            return False
    return True


class ImportEngine:
    """Reconciles parsed rows with stored points for a single feed."""

    def __init__(self, point_store: PointStore, logger: Any | None = None) -> None:
        self.point_store = point_store
        self.logger = logger or get_logger(__name__)

    def import_file(
        self,
        feed: Feed,
        path: str | Path,
        options: ImportOptions | None = None,
        *,
        parser: Callable[[Path], Iterator[RawRow]] = read_csv_rows,
        dialect: SourceDialect | None = None,
    ) -> ImportResult:
        """Import every row of ``path`` for ``feed``."""

        file_path = Path(path)
        return self.import_rows(feed, parser(file_path), options, dialect=dialect, file=str(file_path))

    def import_rows(
        self,
        feed: Feed,
        rows: Iterable[RawRow],
        options: ImportOptions | None = None,
        *,
        dialect: SourceDialect | None = None,
        file: str | None = None,
    ) -> ImportResult:
        options = options or ImportOptions()
        options.validate()
        dialect = dialect or get_dialect(feed.source)

        start = perf_counter()
        result = ImportResult(ticker=feed.ticker, file=file)
        pending: list[DataPoint] = []

        try:
            self._consume(feed, rows, dialect, options, pending, result)
        finally:
            # rows reconciled before a failure stay committed
            self._flush(pending, result)
        result.duration_ms = (perf_counter() - start) * 1000
        self._log_summary(result)
        return result

    def _consume(
        self,
        feed: Feed,
        rows: Iterable[RawRow],
        dialect: SourceDialect,
        options: ImportOptions,
        pending: list[DataPoint],
        result: ImportResult,
    ) -> None:
        for position, row in enumerate(rows, start=1):
            result.total_rows += 1
            try:
                if row.damage is not None:
                    raise RowParseError(row.damage)
                point = dialect.build(row, feed)
                if point is None or not options.includes(point.ts.date()):
                    continue
                validate_point(point)
                self._reconcile(point, pending, options, result)
            except RowError as exc:
                self._record_error(result, position, exc.message, options)
                if result.errors > options.error_threshold:
                    result.aborted = True
                    self.logger.bind(error_code=ErrorCode.ERROR_BUDGET_EXCEEDED.value).warning(
                        "Error budget exceeded for {}: {} errors > threshold {}; stopping at row {}",
                        feed.ticker,
                        result.errors,
                        options.error_threshold,
                        position,
                    )
                    return
                continue

            if len(pending) >= options.batch_size:
                self._flush(pending, result)

    def _reconcile(
        self,
        point: DataPoint,
        pending: list[DataPoint],
        options: ImportOptions,
        result: ImportResult,
    ) -> None:
        stored = self.point_store.find(point)
        if stored is None:
            pending.append(point)
            return
        if not options.update_existing or _same_values(stored, point):
            result.skipped += 1
            return
        self.point_store.update(point)
        result.updated += 1

    def _flush(self, pending: list[DataPoint], result: ImportResult) -> None:
        if not pending:
            return
        try:
            result.imported += self.point_store.insert_batch(pending)
        except DuplicateKeyError as exc:
            self.logger.debug(
                "Batch of {} hit a natural-key conflict on {}; inserting row by row", len(pending), exc.table
            )
            self._insert_one_by_one(pending, result)
        pending.clear()

    def _insert_one_by_one(self, points: list[DataPoint], result: ImportResult) -> None:
        for point in points:
            try:
                self.point_store.insert_one(point)
            except DuplicateKeyError:
                result.skipped += 1
                continue
            result.imported += 1

    def _record_error(self, result: ImportResult, position: int, message: str, options: ImportOptions) -> None:
        result.errors += 1
        detail = f"Row {position}: {message}"
        if len(result.error_details) < options.max_error_details:
            result.error_details.append(detail)
        self.logger.warning("Import error for {} at {}", result.ticker, detail)

    def _log_summary(self, result: ImportResult) -> None:
        self.logger.info(
            "Import finished for {}: total={} imported={} updated={} skipped={} errors={} ({:.1f} ms)",
            result.ticker,
            result.total_rows,
            result.imported,
            result.updated,
            result.skipped,
            result.errors,
            result.duration_ms,
        )
        for detail in result.error_details[:_SUMMARY_DETAILS]:
            self.logger.info("  {}", detail)
        if result.errors > _SUMMARY_DETAILS:
            self.logger.info("  ... and {} more errors", result.errors - _SUMMARY_DETAILS)


__all__ = ["ImportEngine", "ImportResult"]
