"""Downloader base classes.

A downloader fetches the raw flat file for a feed into the artifact
directory ``<root>/<source>_<ticker>/<ticker>_<YYYYMMDD>.csv``. A file already
fetched today is reused unless ``force`` is set.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any

import httpx

from tickerpipe.core.exceptions import TransportError
from tickerpipe.core.logging import get_logger
from tickerpipe.core.models.market import Feed

RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass(slots=True, frozen=True)
class DownloadResult:
    """Outcome of a download: the artifact location or the failure reason."""

    success: bool
    artifact_location: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, path: Path) -> DownloadResult:
        return cls(success=True, artifact_location=str(path))

    @classmethod
    def failed(cls, error: str) -> DownloadResult:
        return cls(success=False, error=error)


class Downloader(ABC):
    """Fetches the raw file for a feed."""

    source: str = "generic"
    suffix: str = ".csv"

    def __init__(self, artifact_root: str | Path, today: Callable[[], date] = date.today) -> None:
        self.artifact_root = Path(artifact_root).expanduser()
        self.today = today
        self.logger = get_logger(__name__).bind(source=self.source)

    def artifact_path(self, feed: Feed) -> Path:
        directory = self.artifact_root / f"{feed.source}_{feed.ticker}"
        return directory / f"{feed.ticker}_{self.today().strftime('%Y%m%d')}{self.suffix}"

    def download(self, feed: Feed, force: bool = False) -> DownloadResult:
        """Fetch the artifact for ``feed``.

        Transport failures are reported in the result; configuration problems
        (for example a missing API key) are raised.
        """

        target = self.artifact_path(feed)
        if target.exists() and not force:
            self.logger.info("File already exists: {}", target)
            return DownloadResult.ok(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.fetch(feed, target)
        except TransportError as exc:
            self.logger.bind(error_code=exc.error_code).error("Download failed for {}: {}", feed.ticker, exc.message)
            target.unlink(missing_ok=True)
            return DownloadResult.failed(exc.message)
        self.logger.info("{} data saved to: {}", self.source.upper(), target)
        return DownloadResult.ok(target)

    @abstractmethod
    def fetch(self, feed: Feed, target: Path) -> None:
        """Write the raw file for ``feed`` to ``target``."""

    def close(self) -> None:
        """Release transport resources held by the downloader."""


class HttpDownloader(Downloader):
    """Downloader speaking HTTP through httpx with exponential-backoff retries."""

    def __init__(
        self,
        artifact_root: str | Path,
        *,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
        max_attempts: int = 3,
        backoff_base: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], date] = date.today,
    ) -> None:
        super().__init__(artifact_root, today=today)
        # a client passed in belongs to the caller and is left open by close()
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=timeout, follow_redirects=True)
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self.sleep = sleep

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def _delay(self, attempt: int) -> float:
        return self.backoff_base ** (attempt - 1)

    def get(self, url: str, params: Mapping[str, Any] | None = None) -> httpx.Response:
        """GET ``url``; retry connection errors and retryable status codes."""

        last_error = ""
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self.client.get(url, params=params)
            except httpx.HTTPError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                status_code = None
            else:
                if response.is_success:
                    return response
                status_code = response.status_code
                last_error = f"HTTP {status_code} - {response.reason_phrase}"
                if status_code not in RETRY_STATUS_CODES:
                    raise TransportError(
                        f"Failed to download {self.source.upper()} data: {last_error}",
                        self.source,
                        status_code,
                    )
            if attempt < self.max_attempts:
                delay = self._delay(attempt)
                self.logger.warning(
                    "Attempt {}/{} for {} failed ({}); retrying in {:.1f}s",
                    attempt,
                    self.max_attempts,
                    url,
                    last_error,
                    delay,
                )
                self.sleep(delay)
        raise TransportError(
            f"Failed to download {self.source.upper()} data after {self.max_attempts} attempts: {last_error}",
            self.source,
            status_code,
        )


__all__ = ["DownloadResult", "Downloader", "HttpDownloader", "RETRY_STATUS_CODES"]
