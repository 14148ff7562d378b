"""Point storage keyed by natural keys over the univariates/aggregates tables."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

import duckdb
from duckdb import DuckDBPyConnection

from tickerpipe.core.data.ingestion.models import AggregatePoint, DataPoint, UnivariatePoint
from tickerpipe.core.exceptions import DuplicateKeyError, StorageError
from tickerpipe.core.models.market import SeriesKind, Timeframe
from tickerpipe.core.timeutils import to_naive_utc, utcnow

_TABLES: dict[SeriesKind, str] = {
    SeriesKind.UNIVARIATE: "univariates",
    SeriesKind.AGGREGATE: "aggregates",
}

_INSERT_SQL: dict[SeriesKind, str] = {
    SeriesKind.UNIVARIATE: (
        "INSERT INTO univariates (timeframe, ticker, ts, main, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?)"
    ),
    SeriesKind.AGGREGATE: (
        "INSERT INTO aggregates (timeframe, ticker, ts, open, high, low, close, aclose, volume, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
    ),
}

_UPDATE_SQL: dict[SeriesKind, str] = {
    SeriesKind.UNIVARIATE: (
        "UPDATE univariates SET main = ?, timeframe = ?, updated_at = ? "
        "WHERE ticker = ? AND ts = ?"
    ),
    SeriesKind.AGGREGATE: (
        "UPDATE aggregates SET open = ?, high = ?, low = ?, close = ?, aclose = ?, volume = ?, "
        "updated_at = ? WHERE timeframe = ? AND ticker = ? AND ts = ?"
    ),
}


def _is_duplicate(exc: duckdb.ConstraintException) -> bool:
    message = str(exc).lower()
    return "duplicate key" in message or "unique" in message


def _insert_params(point: DataPoint) -> tuple:
    ts = to_naive_utc(point.ts)
    now = utcnow()
    if isinstance(point, UnivariatePoint):
        return (point.timeframe.value, point.ticker, ts, point.main, now, now)
    return (
        point.timeframe.value,
        point.ticker,
        ts,
        point.open,
        point.high,
        point.low,
        point.close,
        point.aclose,
        point.volume,
        now,
        now,
    )


class PointStore:
    """Reads and writes canonical points.

    Natural-key uniqueness is enforced by the unique indexes created in
    :mod:`tickerpipe.core.data.schema`; conflicts surface as
    :class:`DuplicateKeyError`.
    """

    def __init__(self, conn: DuckDBPyConnection) -> None:
        self.conn = conn

    def find(self, point: DataPoint) -> DataPoint | None:
        """Return the stored point sharing ``point``'s natural key, if any."""

        ts = to_naive_utc(point.ts)
        if isinstance(point, UnivariatePoint):
            row = self.conn.execute(
                "SELECT timeframe, ticker, ts, main FROM univariates WHERE ticker = ? AND ts = ?",
                [point.ticker, ts],
            ).fetchone()
            if row is None:
                return None
            return UnivariatePoint(ticker=row[1], timeframe=Timeframe(row[0]), ts=row[2], main=row[3])

        row = self.conn.execute(
            "SELECT timeframe, ticker, ts, open, high, low, close, aclose, volume FROM aggregates "
            "WHERE timeframe = ? AND ticker = ? AND ts = ?",
            [point.timeframe.value, point.ticker, ts],
        ).fetchone()
        if row is None:
            return None
        return AggregatePoint(
            ticker=row[1],
            timeframe=Timeframe(row[0]),
            ts=row[2],
            open=row[3],
            high=row[4],
            low=row[5],
            close=row[6],
            aclose=row[7],
            volume=row[8],
        )

    def insert_batch(self, points: Sequence[DataPoint]) -> int:
        """Insert ``points`` atomically; a conflict rolls the whole batch back."""

        if not points:
            return 0
        grouped: dict[SeriesKind, list[tuple]] = {}
        for point in points:
            grouped.setdefault(point.kind, []).append(_insert_params(point))

        self.conn.begin()
        try:
            for kind, rows in grouped.items():
                self.conn.executemany(_INSERT_SQL[kind], rows)
        except duckdb.ConstraintException as exc:
            self.conn.rollback()
            if _is_duplicate(exc):
                raise DuplicateKeyError(str(exc), table=", ".join(_TABLES[k] for k in grouped)) from exc
            raise StorageError(f"Constraint violated: {exc}") from exc
        except duckdb.Error as exc:
            self.conn.rollback()
            raise StorageError(f"Batch insert failed: {exc}") from exc
        self.conn.commit()
        return len(points)

    def insert_one(self, point: DataPoint) -> None:
        try:
            self.conn.execute(_INSERT_SQL[point.kind], list(_insert_params(point)))
        except duckdb.ConstraintException as exc:
            if _is_duplicate(exc):
                raise DuplicateKeyError(
                    str(exc),
                    table=_TABLES[point.kind],
                    details={"ticker": point.ticker, "ts": point.ts.isoformat()},
                ) from exc
            raise StorageError(f"Constraint violated: {exc}") from exc

    def update(self, point: DataPoint) -> bool:
        """Overwrite the value columns of the stored point; ``False`` if absent."""

        ts = to_naive_utc(point.ts)
        if isinstance(point, UnivariatePoint):
            params = [point.main, point.timeframe.value, utcnow(), point.ticker, ts]
        else:
            params = [
                point.open,
                point.high,
                point.low,
                point.close,
                point.aclose,
                point.volume,
                utcnow(),
                point.timeframe.value,
                point.ticker,
                ts,
            ]
        try:
            self.conn.execute(_UPDATE_SQL[point.kind], params)
        except duckdb.Error as exc:
            raise StorageError(f"Update failed: {exc}") from exc
        return self.find(point) is not None

    def latest_timestamp(self, ticker: str, kind: SeriesKind) -> datetime | None:
        row = self.conn.execute(
            f"SELECT max(ts) FROM {_TABLES[kind]} WHERE ticker = ?",
            [ticker],
        ).fetchone()
        return row[0] if row else None

    def latest_timestamps(self) -> dict[str, datetime]:
        """Map every ticker to its newest stored timestamp across both tables."""

        rows = self.conn.execute(
            """
            SELECT ticker, max(ts) FROM (
                SELECT ticker, ts FROM univariates
                UNION ALL
                SELECT ticker, ts FROM aggregates
            ) GROUP BY ticker
            """
        ).fetchall()
        return {ticker: ts for ticker, ts in rows}

    def count(self, ticker: str | None = None, kind: SeriesKind = SeriesKind.UNIVARIATE) -> int:
        table = _TABLES[kind]
        if ticker is None:
            row = self.conn.execute(f"SELECT count(*) FROM {table}").fetchone()
        else:
            row = self.conn.execute(f"SELECT count(*) FROM {table} WHERE ticker = ?", [ticker]).fetchone()
        return int(row[0]) if row else 0


__all__ = ["PointStore"]
