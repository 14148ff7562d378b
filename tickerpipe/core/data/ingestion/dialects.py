"""Source-specific row dialects.

A dialect turns one :class:`RawRow` into a candidate point for a feed. It
returns ``None`` for rows that carry no observation (blank date, missing
value, a row for another ticker) and raises :class:`RowParseError` for rows
whose content is malformed.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime

from tickerpipe.core.data.ingestion.models import AggregatePoint, DataPoint, RawRow, UnivariatePoint
from tickerpipe.core.exceptions import RowParseError
from tickerpipe.core.models.market import Feed, SeriesKind
from tickerpipe.core.timeutils import to_naive_utc

# digits in an epoch value -> divisor to seconds
_EPOCH_DIVISORS: Mapping[int, int] = {10: 1, 13: 1_000, 16: 1_000_000, 19: 1_000_000_000}


class SourceDialect:
    """Generic CSV layout (Yahoo style ``Date,Open,High,Low,Close,Adj Close,Volume``)."""

    name = "generic"
    date_columns: Sequence[str] = ("Date", "DATE", "date")
    date_formats: Sequence[str] = ("%Y-%m-%d %H:%M:%S", "%m/%d/%Y", "%Y%m%d")
    missing_values: frozenset[str] = frozenset({""})
    value_columns: Sequence[str] = ("Value", "VALUE", "value", "Close", "CLOSE", "close")
    open_columns: Sequence[str] = ("Open", "OPEN", "open")
    high_columns: Sequence[str] = ("High", "HIGH", "high")
    low_columns: Sequence[str] = ("Low", "LOW", "low")
    close_columns: Sequence[str] = ("Close", "CLOSE", "close")
    aclose_columns: Sequence[str] = ("Adj Close", "ADJ CLOSE", "adj_close", "aclose")
    volume_columns: Sequence[str] = ("Volume", "VOLUME", "volume")

    def build(self, row: RawRow, feed: Feed) -> DataPoint | None:
        ts = self.parse_timestamp(row.get(*self.date_columns))
        if ts is None:
            return None
        if feed.kind is SeriesKind.UNIVARIATE:
            return self.build_univariate(row, feed, ts)
        return self.build_aggregate(row, feed, ts)

    def build_univariate(self, row: RawRow, feed: Feed, ts: datetime) -> UnivariatePoint | None:
        value = self.parse_number(row.get(*self.value_columns), "value")
        if value is None:
            return None
        return UnivariatePoint(ticker=feed.ticker, timeframe=feed.timeframe, ts=ts, main=value)

    def build_aggregate(self, row: RawRow, feed: Feed, ts: datetime) -> AggregatePoint | None:
        open_ = self.parse_number(row.get(*self.open_columns), "open")
        high = self.parse_number(row.get(*self.high_columns), "high")
        low = self.parse_number(row.get(*self.low_columns), "low")
        close = self.parse_number(row.get(*self.close_columns), "close")
        if open_ is None or high is None or low is None or close is None:
            return None
        aclose = self.parse_number(row.get(*self.aclose_columns), "aclose")
        volume = self.parse_number(row.get(*self.volume_columns), "volume")
        return AggregatePoint(
            ticker=feed.ticker,
            timeframe=feed.timeframe,
            ts=ts,
            open=open_,
            high=high,
            low=low,
            close=close,
            aclose=close if aclose is None else aclose,
            volume=volume,
        )

    def is_missing(self, raw: str | None) -> bool:
        return raw is None or raw.strip() in self.missing_values

    def parse_timestamp(self, raw: str | None) -> datetime | None:
        if self.is_missing(raw):
            return None
        text = raw.strip()
        try:
            return to_naive_utc(datetime.fromisoformat(text))
        except ValueError:
            pass
        for fmt in self.date_formats:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
        raise RowParseError(f"Unparsable date '{text}'", field="date", value=text)

    def parse_number(self, raw: str | None, field: str) -> float | None:
        if self.is_missing(raw):
            return None
        text = raw.strip().replace(",", "")
        try:
            return float(text)
        except ValueError as exc:
            raise RowParseError(f"Unparsable {field} '{raw.strip()}'", field=field, value=raw) from exc


class FredDialect(SourceDialect):
    """FRED observations: ISO dates, a ``Value`` column and ``.`` for missing data."""

    name = "fred"
    date_formats = ()
    missing_values = frozenset({"", "."})
    value_columns = ("Value", "VALUE", "value")

    def build_aggregate(self, row: RawRow, feed: Feed, ts: datetime) -> AggregatePoint | None:
        value = self.parse_number(row.get(*self.value_columns), "value")
        if value is None:
            return None
        return AggregatePoint(
            ticker=feed.ticker,
            timeframe=feed.timeframe,
            ts=ts,
            open=value,
            high=value,
            low=value,
            close=value,
            aclose=value,
            volume=None,
        )


class CboeDialect(SourceDialect):
    """CBOE index history: ``MM/DD/YYYY`` dates, upper-case OHLC, no volume."""

    name = "cboe"
    date_formats = ("%m/%d/%Y",)

    def parse_timestamp(self, raw: str | None) -> datetime | None:
        if self.is_missing(raw):
            return None
        text = raw.strip()
        try:
            return datetime.strptime(text, "%m/%d/%Y")
        except ValueError:
            return super().parse_timestamp(text)

    def build_aggregate(self, row: RawRow, feed: Feed, ts: datetime) -> AggregatePoint | None:
        point = super().build_aggregate(row, feed, ts)
        if point is not None:
            point.aclose = point.close
            point.volume = None
        return point


class PolygonDialect(SourceDialect):
    """Polygon flat files: lower-case columns, epoch timestamps, many tickers per file."""

    name = "polygon"
    date_columns = ("date", "Date", "DATE", "timestamp", "Timestamp", "window_start")
    ticker_columns: Sequence[str] = ("ticker", "Ticker", "TICKER")

    def build(self, row: RawRow, feed: Feed) -> DataPoint | None:
        row_ticker = row.get(*self.ticker_columns)
        if row_ticker and row_ticker.strip().upper() != feed.provider_symbol.upper():
            return None
        return super().build(row, feed)

    def parse_timestamp(self, raw: str | None) -> datetime | None:
        if self.is_missing(raw):
            return None
        text = raw.strip()
        divisor = _EPOCH_DIVISORS.get(len(text)) if text.isdigit() else None
        if divisor is not None:
            return datetime.fromtimestamp(int(text) / divisor, tz=UTC).replace(tzinfo=None)
        return super().parse_timestamp(text)


_DIALECTS: Mapping[str, SourceDialect] = {
    dialect.name: dialect
    for dialect in (SourceDialect(), FredDialect(), CboeDialect(), PolygonDialect())
}


def get_dialect(source: str) -> SourceDialect:
    """Return the dialect for ``source``; unknown sources use the generic layout."""

    return _DIALECTS.get(source.strip().lower(), _DIALECTS["generic"])


__all__ = [
    "CboeDialect",
    "FredDialect",
    "PolygonDialect",
    "SourceDialect",
    "get_dialect",
]
