"""Downloaders fetching raw flat files from data providers."""

from tickerpipe.core.providers.base import RETRY_STATUS_CODES, Downloader, DownloadResult, HttpDownloader
from tickerpipe.core.providers.cboe import CBOE_BASE_URL, CboeDownloader
from tickerpipe.core.providers.flat_file import FlatFileDownloader
from tickerpipe.core.providers.fred import FRED_BASE_URL, FredDownloader
from tickerpipe.core.providers.kraken import KRAKEN_BASE_URL, KrakenDownloader

__all__ = [
    "CBOE_BASE_URL",
    "CboeDownloader",
    "DownloadResult",
    "Downloader",
    "FRED_BASE_URL",
    "FlatFileDownloader",
    "FredDownloader",
    "HttpDownloader",
    "KRAKEN_BASE_URL",
    "KrakenDownloader",
    "RETRY_STATUS_CODES",
]
