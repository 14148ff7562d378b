"""Kraken public OHLC downloader for crypto pairs."""

from __future__ import annotations

import csv
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from tickerpipe.core.exceptions import ConfigurationError, TransportError
from tickerpipe.core.models.market import Feed, Timeframe
from tickerpipe.core.providers.base import HttpDownloader

KRAKEN_BASE_URL = "https://api.kraken.com/0/public"

# feed symbol -> (request pair, key of the candles in the response)
KRAKEN_PAIRS: dict[str, tuple[str, str]] = {
    "BTCUSD": ("XBTUSD", "XXBTZUSD"),
    "BTCUSDT": ("XBTUSD", "XXBTZUSD"),
    "ETHUSD": ("ETHUSD", "XETHZUSD"),
    "ETHUSDT": ("ETHUSD", "XETHZUSD"),
}

# candle width in minutes
KRAKEN_INTERVALS: dict[Timeframe, int] = {
    Timeframe.M1: 1,
    Timeframe.H1: 60,
    Timeframe.D1: 1440,
    Timeframe.W1: 10080,
}

LatestLookup = Callable[[Feed], "datetime | None"]


class KrakenDownloader(HttpDownloader):
    """Fetches ``OHLC`` candles and stores them as ``Date,Open,High,Low,Close,Volume`` CSV.

    Kraken answers at most 720 candles per request. With a starting point
    (the newest stored bar, else ``feed.since``) the downloader follows the
    ``last`` cursor until a page adds nothing new or ``max_pages`` is reached;
    without one it takes the single most recent page.
    """

    source = "kraken"

    def __init__(
        self,
        artifact_root: str | Path,
        *,
        latest_lookup: LatestLookup | None = None,
        base_url: str = KRAKEN_BASE_URL,
        max_pages: int = 50,
        **kwargs: Any,
    ) -> None:
        super().__init__(artifact_root, **kwargs)
        self.latest_lookup = latest_lookup
        self.base_url = base_url.rstrip("/")
        self.max_pages = max(1, max_pages)

    def resolve_pair(self, feed: Feed) -> tuple[str, str | None]:
        symbol = feed.provider_symbol.upper().replace("/", "")
        if symbol in KRAKEN_PAIRS:
            return KRAKEN_PAIRS[symbol]
        return symbol, None

    def resolve_interval(self, feed: Feed) -> int:
        try:
            return KRAKEN_INTERVALS[feed.timeframe]
        except KeyError:
            raise ConfigurationError(
                f"Kraken has no candles for timeframe {feed.timeframe.value}",
                details={"source": self.source, "supported": [tf.value for tf in KRAKEN_INTERVALS]},
            ) from None

    def start_timestamp(self, feed: Feed) -> int | None:
        start = self.latest_lookup(feed) if self.latest_lookup is not None else None
        if start is None and feed.since is not None:
            start = datetime(feed.since.year, feed.since.month, feed.since.day)
        if start is None:
            return None
        return int(start.replace(tzinfo=UTC).timestamp())

    def fetch(self, feed: Feed, target: Path) -> None:
        pair, response_key = self.resolve_pair(feed)
        interval = self.resolve_interval(feed)
        cursor = self.start_timestamp(feed)
        self.logger.info("Downloading Kraken OHLC for {} (interval={}m, since={})", pair, interval, cursor)

        candles: dict[int, list[Any]] = {}
        for _ in range(self.max_pages):
            params: dict[str, Any] = {"pair": pair, "interval": interval}
            if cursor is not None:
                params["since"] = cursor
            page, last = self._fetch_page(params, response_key)
            fresh = [candle for candle in page if int(candle[0]) not in candles]
            for candle in fresh:
                candles[int(candle[0])] = candle
            if cursor is None or not fresh or last is None or last <= cursor:
                break
            cursor = last
        rows = write_candles((candles[ts] for ts in sorted(candles)), target, feed.timeframe)
        self.logger.info("Fetched {} Kraken candles for {}", rows, pair)

    def _fetch_page(self, params: dict[str, Any], response_key: str | None) -> tuple[list[list[Any]], int | None]:
        response = self.get(f"{self.base_url}/OHLC", params=params)
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(f"Kraken returned invalid JSON: {exc}", self.source) from exc
        errors = payload.get("error") or []
        if errors:
            raise TransportError(f"Kraken error: {', '.join(errors)}", self.source, response.status_code)
        result = payload.get("result") or {}
        last = result.get("last")
        if response_key is None:
            # unmapped pairs: Kraken names the candle list after its own pair code
            response_key = next((key for key, value in result.items() if isinstance(value, list)), None)
        page = result.get(response_key, []) if response_key is not None else []
        return [candle for candle in page if isinstance(candle, list) and len(candle) >= 7], last


def write_candles(candles: Iterable[list[Any]], target: Path, timeframe: Timeframe) -> int:
    """Write Kraken candles as OHLCV rows; returns the row count.

    A candle is ``[time, open, high, low, close, vwap, volume, count]``.
    Daily and weekly bars are written as dates, intraday bars as UTC datetimes.
    """

    stamp = "%Y-%m-%d" if timeframe in (Timeframe.D1, Timeframe.W1) else "%Y-%m-%d %H:%M:%S"
    count = 0
    with open(target, "w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(["Date", "Open", "High", "Low", "Close", "Volume"])
        for candle in candles:
            opened = datetime.fromtimestamp(int(candle[0]), tz=UTC)
            writer.writerow([opened.strftime(stamp), candle[1], candle[2], candle[3], candle[4], candle[6]])
            count += 1
    return count


__all__ = ["KRAKEN_BASE_URL", "KRAKEN_INTERVALS", "KRAKEN_PAIRS", "KrakenDownloader", "write_candles"]
