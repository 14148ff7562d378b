"""FRED economic series downloader."""

from __future__ import annotations

import csv
from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path
from typing import Any

from tickerpipe.core.exceptions import ConfigurationError, TransportError
from tickerpipe.core.models.market import Feed
from tickerpipe.core.providers.base import HttpDownloader

FRED_BASE_URL = "https://api.stlouisfed.org/fred"

LatestLookup = Callable[[Feed], "datetime | None"]


class FredDownloader(HttpDownloader):
    """Fetches ``series/observations`` JSON and stores it as ``Date,Value`` CSV.

    When ``latest_lookup`` is given the request starts at the newest stored
    observation, so only new or revised values travel over the wire.
    """

    source = "fred"

    def __init__(
        self,
        artifact_root: str | Path,
        api_key: str | None = None,
        *,
        latest_lookup: LatestLookup | None = None,
        base_url: str = FRED_BASE_URL,
        **kwargs: Any,
    ) -> None:
        super().__init__(artifact_root, **kwargs)
        self.api_key = api_key
        self.latest_lookup = latest_lookup
        self.base_url = base_url.rstrip("/")

    def build_params(self, feed: Feed, start_date: date | None = None) -> dict[str, str]:
        if not self.api_key:
            raise ConfigurationError(
                "FRED API key is required (set providers.fred_api_key or FRED_API_KEY)",
                details={"source": self.source},
            )
        params = {
            "series_id": feed.provider_symbol.upper(),
            "api_key": self.api_key,
            "file_type": "json",
        }
        if start_date is not None:
            params["observation_start"] = start_date.strftime("%Y-%m-%d")
        return params

    def fetch(self, feed: Feed, target: Path) -> None:
        start_date = feed.since
        if self.latest_lookup is not None:
            latest = self.latest_lookup(feed)
            if latest is not None:
                start_date = latest.date()
        params = self.build_params(feed, start_date)
        self.logger.info("Downloading FRED series {} (start={})", params["series_id"], start_date)
        response = self.get(f"{self.base_url}/series/observations", params=params)
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(f"FRED returned invalid JSON: {exc}", self.source) from exc
        if "error_message" in payload:
            raise TransportError(f"FRED error: {payload['error_message']}", self.source, response.status_code)
        write_observations(payload.get("observations", []), target)


def write_observations(observations: list[dict[str, Any]], target: Path) -> int:
    """Write FRED observations as ``Date,Value`` rows; returns the row count."""

    with open(target, "w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(["Date", "Value"])
        for observation in observations:
            writer.writerow([observation.get("date", ""), observation.get("value", "")])
    return len(observations)


__all__ = ["FRED_BASE_URL", "FredDownloader", "write_observations"]
