"""CBOE index history downloader."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from tickerpipe.core.models.market import Feed
from tickerpipe.core.providers.base import HttpDownloader

CBOE_BASE_URL = "https://cdn.cboe.com/api/global/us_indices/daily_prices"

# tickers whose CBOE file name differs from the feed ticker
CBOE_SYMBOLS: dict[str, str] = {
    "VIX": "VIX",
    "VIX9D": "VIX9D",
    "VIX3M": "VIX3M",
    "VIX6M": "VIX6M",
    "VIX1Y": "VIX1Y",
    "VVIX": "VVIX",
    "GVZ": "GVZ",
    "OVX": "OVX",
    "EVZ": "EVZ",
    "RVX": "RVX",
}


class CboeDownloader(HttpDownloader):
    source = "cboe"

    def __init__(self, artifact_root: str | Path, *, base_url: str = CBOE_BASE_URL, **kwargs: Any) -> None:
        super().__init__(artifact_root, **kwargs)
        self.base_url = base_url.rstrip("/")

    def history_url(self, feed: Feed) -> str:
        symbol = feed.provider_symbol.upper()
        return f"{self.base_url}/{CBOE_SYMBOLS.get(symbol, symbol)}_History.csv"

    def fetch(self, feed: Feed, target: Path) -> None:
        url = self.history_url(feed)
        self.logger.info("Downloading CBOE data from: {}", url)
        response = self.get(url)
        target.write_bytes(response.content)


__all__ = ["CBOE_BASE_URL", "CBOE_SYMBOLS", "CboeDownloader"]
