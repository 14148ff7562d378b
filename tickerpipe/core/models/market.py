"""Feed-related enums and the Feed model."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator


class Timeframe(str, Enum):
    """Sampling cadence of a feed."""

    M1 = "M1"
    H1 = "H1"
    D1 = "D1"
    W1 = "W1"
    MN1 = "MN1"
    Q = "Q"
    Y = "Y"

    @classmethod
    def parse(cls, value: str | Timeframe) -> Timeframe | None:
        """Return the matching member, or ``None`` for unknown values."""

        if isinstance(value, Timeframe):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return None


class SeriesKind(str, Enum):
    """Canonical storage shape of a feed."""

    UNIVARIATE = "univariate"
    AGGREGATE = "aggregate"


class Feed(BaseModel):
    """A uniquely-tickered external time series (``time_series`` row)."""

    model_config = ConfigDict(validate_assignment=True)

    id: int | None = None
    ticker: str
    timeframe: Timeframe
    source: str
    kind: SeriesKind = SeriesKind.UNIVARIATE
    source_id: str | None = None
    description: str | None = None
    since: date | None = None
    created_at: datetime | None = None

    @field_validator("ticker")
    @classmethod
    def _strip_ticker(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("ticker must not be blank")
        return stripped

    @field_validator("source")
    @classmethod
    def _normalise_source(cls, value: str) -> str:
        stripped = value.strip().lower()
        if not stripped:
            raise ValueError("source must not be blank")
        return stripped

    @property
    def provider_symbol(self) -> str:
        """Identifier used when talking to the provider."""
        return self.source_id or self.ticker


__all__ = ["Feed", "SeriesKind", "Timeframe"]
