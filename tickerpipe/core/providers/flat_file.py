"""Downloader picking up files dropped by a broker or batch export."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Any

from tickerpipe.core.exceptions import ConfigurationError, TransportError
from tickerpipe.core.models.market import Feed
from tickerpipe.core.providers.base import Downloader


class FlatFileDownloader(Downloader):
    """Copies ``<drop_dir>/<symbol>.csv`` (or ``.csv.gz``) into the artifact tree."""

    source = "flat_file"

    def __init__(self, artifact_root: str | Path, drop_dir: str | Path | None, **kwargs: Any) -> None:
        super().__init__(artifact_root, **kwargs)
        self.drop_dir = Path(drop_dir).expanduser() if drop_dir else None

    def find(self, feed: Feed) -> Path | None:
        if self.drop_dir is None:
            raise ConfigurationError(
                "No flat file drop directory configured (providers.flat_file_drop)",
                details={"source": feed.source},
            )
        for name in (f"{feed.provider_symbol}.csv", f"{feed.provider_symbol}.csv.gz"):
            candidate = self.drop_dir / name
            if candidate.is_file():
                return candidate
        return None

    def artifact_path(self, feed: Feed) -> Path:
        path = super().artifact_path(feed)
        drop = self.find(feed)
        if drop is not None and drop.suffix == ".gz":
            return path.with_name(f"{path.name}.gz")
        return path

    def fetch(self, feed: Feed, target: Path) -> None:
        drop = self.find(feed)
        if drop is None:
            raise TransportError(f"No drop file for {feed.provider_symbol} in {self.drop_dir}", feed.source)
        self.logger.info("Copying drop file {} to {}", drop, target)
        shutil.copyfile(drop, target)


__all__ = ["FlatFileDownloader"]
