"""Data models flowing through the import engine."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

from tickerpipe.core.models.market import SeriesKind, Timeframe

UnivariateKey = tuple[str, datetime]
AggregateKey = tuple[str, str, datetime]
NaturalKey = Union[UnivariateKey, AggregateKey]


@dataclass(slots=True, frozen=True)
class RawRow:
    """One record yielded by a row source, keyed by column name.

    ``damage`` is set by the row source when the record could not be read,
    for example an oversized field or bytes that are not valid UTF-8.
    """

    fields: Mapping[str, str] = field(default_factory=dict)
    damage: str | None = None

    def get(self, *names: str) -> str | None:
        """Return the first non-``None`` value among ``names``."""
        for name in names:
            value = self.fields.get(name)
            if value is not None:
                return value
        return None


@dataclass(slots=True)
class UnivariatePoint:
    """Single-value observation; unique on ``(ticker, ts)``."""

    ticker: str
    timeframe: Timeframe
    ts: datetime
    main: float

    kind = SeriesKind.UNIVARIATE

    @property
    def natural_key(self) -> UnivariateKey:
        return (self.ticker, self.ts)

    def values(self) -> tuple[float | None, ...]:
        return (self.main,)


@dataclass(slots=True)
class AggregatePoint:
    """OHLCV observation; unique on ``(timeframe, ticker, ts)``."""

    ticker: str
    timeframe: Timeframe
    ts: datetime
    open: float
    high: float
    low: float
    close: float
    aclose: float | None = None
    volume: float | None = None

    kind = SeriesKind.AGGREGATE

    @property
    def natural_key(self) -> AggregateKey:
        return (self.timeframe.value, self.ticker, self.ts)

    def values(self) -> tuple[float | None, ...]:
        return (self.open, self.high, self.low, self.close, self.aclose, self.volume)


DataPoint = Union[UnivariatePoint, AggregatePoint]


__all__ = [
    "AggregateKey",
    "AggregatePoint",
    "DataPoint",
    "NaturalKey",
    "RawRow",
    "UnivariateKey",
    "UnivariatePoint",
]
