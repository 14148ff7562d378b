"""Named import chains: how a feed's raw file is fetched and parsed."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from datetime import datetime
from pathlib import Path

import httpx

from tickerpipe.core.config import TickerPipeConfig
from tickerpipe.core.data.ingestion.dialects import CboeDialect, FredDialect, PolygonDialect, SourceDialect
from tickerpipe.core.data.ingestion.models import RawRow
from tickerpipe.core.data.ingestion.readers import RowParser, read_csv_rows
from tickerpipe.core.exceptions import ConfigurationError
from tickerpipe.core.models.market import Feed
from tickerpipe.core.providers import (
    CboeDownloader,
    Downloader,
    DownloadResult,
    FlatFileDownloader,
    FredDownloader,
    KrakenDownloader,
)

# source -> chain used when a pipeline is created implicitly
DEFAULT_CHAINS: dict[str, str] = {
    "fred": "fred_flat",
    "cboe": "cboe_flat",
    "polygon": "polygon_flat",
    "kraken": "kraken_flat",
}
FALLBACK_CHAIN = "flat_file"


class ImportStrategy:
    """Pairs a downloader with the row parser and dialect for its files."""

    def __init__(
        self,
        name: str,
        downloader: Downloader,
        dialect: SourceDialect,
        parser: RowParser = read_csv_rows,
    ) -> None:
        self.name = name
        self.downloader = downloader
        self.dialect = dialect
        self.parser = parser

    def fetch(self, feed: Feed) -> DownloadResult:
        return self.downloader.download(feed)

    def parse(self, path: Path) -> Iterator[RawRow]:
        return self.parser(path)

    def __repr__(self) -> str:
        return f"ImportStrategy(name={self.name!r}, dialect={self.dialect.name!r})"


class StrategyRegistry:
    """Static mapping from chain name to strategy."""

    def __init__(self, strategies: Iterable[ImportStrategy] = ()) -> None:
        self._strategies: dict[str, ImportStrategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: ImportStrategy) -> None:
        self._strategies[strategy.name] = strategy

    def get(self, name: str) -> ImportStrategy:
        try:
            return self._strategies[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown import chain '{name}'",
                details={"chain": name, "available": sorted(self._strategies)},
            ) from None

    def names(self) -> list[str]:
        return sorted(self._strategies)

    def default_chain_for(self, source: str) -> str:
        chain = DEFAULT_CHAINS.get(source.strip().lower(), FALLBACK_CHAIN)
        if chain not in self._strategies:
            raise ConfigurationError(f"No import chain registered for source '{source}'", details={"source": source})
        return chain

    def __contains__(self, name: object) -> bool:
        return name in self._strategies

    def __len__(self) -> int:
        return len(self._strategies)

    def close(self) -> None:
        """Close each registered downloader once."""

        closed: set[int] = set()
        for strategy in self._strategies.values():
            if id(strategy.downloader) in closed:
                continue
            closed.add(id(strategy.downloader))
            strategy.downloader.close()

    def __enter__(self) -> StrategyRegistry:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def build_default_registry(
    config: TickerPipeConfig,
    *,
    latest_lookup: Callable[[Feed], datetime | None] | None = None,
    client: httpx.Client | None = None,
) -> StrategyRegistry:
    """Register the built-in chains using ``config`` for credentials and paths."""

    providers = config.providers
    root = config.artifacts.root
    http_options = {
        "client": client,
        "timeout": providers.timeout,
        "max_attempts": providers.max_attempts,
        "backoff_base": providers.backoff_base,
    }
    return StrategyRegistry(
        [
            ImportStrategy(
                "fred_flat",
                FredDownloader(root, providers.fred_api_key, latest_lookup=latest_lookup, **http_options),
                FredDialect(),
            ),
            ImportStrategy("cboe_flat", CboeDownloader(root, **http_options), CboeDialect()),
            ImportStrategy(
                "kraken_flat",
                KrakenDownloader(root, latest_lookup=latest_lookup, **http_options),
                SourceDialect(),
            ),
            ImportStrategy("polygon_flat", FlatFileDownloader(root, providers.flat_file_drop), PolygonDialect()),
            ImportStrategy(FALLBACK_CHAIN, FlatFileDownloader(root, providers.flat_file_drop), SourceDialect()),
        ]
    )


__all__ = [
    "DEFAULT_CHAINS",
    "FALLBACK_CHAIN",
    "ImportStrategy",
    "StrategyRegistry",
    "build_default_registry",
]
