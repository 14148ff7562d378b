from __future__ import annotations

from datetime import datetime

import pytest

from tickerpipe.core.data.ingestion import (
    AggregatePoint,
    CboeDialect,
    FredDialect,
    PolygonDialect,
    RawRow,
    SourceDialect,
    UnivariatePoint,
    get_dialect,
)
from tickerpipe.core.exceptions import RowParseError
from tickerpipe.core.models.market import Feed, SeriesKind, Timeframe


def _feed(source: str, kind: SeriesKind = SeriesKind.UNIVARIATE, **kwargs: object) -> Feed:
    return Feed(ticker="TICK", source=source, timeframe=Timeframe.D1, kind=kind, **kwargs)


def test_fred_value_row_becomes_univariate_point() -> None:
    point = FredDialect().build(RawRow({"Date": "2024-01-02", "Value": "3.95"}), _feed("fred"))

    assert point == UnivariatePoint(ticker="TICK", timeframe=Timeframe.D1, ts=datetime(2024, 1, 2), main=3.95)


@pytest.mark.parametrize("value", [".", "", "  "])
def test_fred_missing_values_are_dropped(value: str) -> None:
    assert FredDialect().build(RawRow({"Date": "2024-01-02", "Value": value}), _feed("fred")) is None


def test_blank_date_is_dropped() -> None:
    assert FredDialect().build(RawRow({"Date": "", "Value": "1"}), _feed("fred")) is None


def test_fred_aggregate_fans_value_out() -> None:
    point = FredDialect().build(RawRow({"Date": "2024-01-02", "Value": "7"}), _feed("fred", SeriesKind.AGGREGATE))

    assert isinstance(point, AggregatePoint)
    assert (point.open, point.high, point.low, point.close, point.aclose) == (7.0, 7.0, 7.0, 7.0, 7.0)
    assert point.volume is None


def test_unparsable_number_raises_parse_error() -> None:
    with pytest.raises(RowParseError) as excinfo:
        FredDialect().build(RawRow({"Date": "2024-01-02", "Value": "abc"}), _feed("fred"))

    assert excinfo.value.field == "value"


def test_unparsable_date_raises_parse_error() -> None:
    with pytest.raises(RowParseError, match="Unparsable date 'yesterday'"):
        SourceDialect().build(RawRow({"Date": "yesterday", "Value": "1"}), _feed("generic"))


def test_cboe_history_row() -> None:
    row = RawRow({"DATE": "01/02/2024", "OPEN": "13.21", "HIGH": "14.23", "LOW": "13.10", "CLOSE": "13.20"})

    point = CboeDialect().build(row, _feed("cboe", SeriesKind.AGGREGATE))

    assert isinstance(point, AggregatePoint)
    assert point.ts == datetime(2024, 1, 2)
    assert point.close == 13.20
    assert point.aclose == point.close
    assert point.volume is None


def test_cboe_accepts_iso_dates() -> None:
    row = RawRow({"DATE": "2024-01-02", "OPEN": "1", "HIGH": "2", "LOW": "1", "CLOSE": "2"})

    point = CboeDialect().build(row, _feed("cboe", SeriesKind.AGGREGATE))

    assert point is not None and point.ts == datetime(2024, 1, 2)


def test_generic_yahoo_layout_with_thousands_separators() -> None:
    row = RawRow(
        {
            "Date": "2024-01-02",
            "Open": "1,000.5",
            "High": "1,010",
            "Low": "990",
            "Close": "1,005",
            "Adj Close": "1,004",
            "Volume": "12,345",
        }
    )

    point = SourceDialect().build(row, _feed("yahoo", SeriesKind.AGGREGATE))

    assert isinstance(point, AggregatePoint)
    assert point.values() == (1000.5, 1010.0, 990.0, 1005.0, 1004.0, 12345.0)


def test_generic_aggregate_defaults_adjusted_close_to_close() -> None:
    row = RawRow({"Date": "2024-01-02", "Open": "1", "High": "2", "Low": "1", "Close": "1.5"})

    point = SourceDialect().build(row, _feed("generic", SeriesKind.AGGREGATE))

    assert point is not None and point.aclose == 1.5


@pytest.mark.parametrize("stamp", ["1704067200", "1704067200000", "1704067200000000", "1704067200000000000"])
def test_polygon_epoch_timestamps(stamp: str) -> None:
    row = RawRow({"ticker": "TICK", "window_start": stamp, "open": "1", "high": "2", "low": "1", "close": "2"})

    point = PolygonDialect().build(row, _feed("polygon", SeriesKind.AGGREGATE))

    assert point is not None and point.ts == datetime(2024, 1, 1)


def test_polygon_rows_for_other_tickers_are_dropped() -> None:
    row = RawRow({"ticker": "OTHER", "window_start": "1704067200", "open": "1", "high": "2", "low": "1", "close": "2"})

    assert PolygonDialect().build(row, _feed("polygon", SeriesKind.AGGREGATE)) is None


def test_polygon_matches_provider_symbol() -> None:
    row = RawRow({"ticker": "X:BTCUSD", "date": "2024-01-01", "open": "1", "high": "2", "low": "1", "close": "2"})
    feed = _feed("polygon", SeriesKind.AGGREGATE, source_id="X:BTCUSD")

    point = PolygonDialect().build(row, feed)

    assert point is not None and point.ticker == "TICK"


def test_get_dialect_falls_back_to_generic() -> None:
    assert isinstance(get_dialect("FRED"), FredDialect)
    assert isinstance(get_dialect(" cboe "), CboeDialect)
    assert get_dialect("unknown").name == "generic"
