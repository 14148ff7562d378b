"""Pytest configuration for the tickerpipe test suite."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from duckdb import DuckDBPyConnection
from loguru import logger

from tickerpipe.core.data.storage import PipelineStore, PointStore, TickerPipeDuckDBFactory
from tickerpipe.core.models.market import Feed, SeriesKind, Timeframe


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line options for controlling integration tests."""

    parser.addoption(
        "--tickerpipe-run-integration",
        action="store_true",
        default=False,
        help="Run tickerpipe integration tests that require network access.",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "integration: marks tickerpipe tests requiring network or external services",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly requested."""

    if config.getoption("--tickerpipe-run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="integration tests require --tickerpipe-run-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture(autouse=True)
def _reset_loguru() -> Iterator[None]:
    yield
    # sinks configured by a test may point at streams that are closed afterwards
    logger.remove()


@pytest.fixture()
def conn() -> Iterator[DuckDBPyConnection]:
    with TickerPipeDuckDBFactory().connection() as connection:
        yield connection


@pytest.fixture()
def points(conn: DuckDBPyConnection) -> PointStore:
    return PointStore(conn)


@pytest.fixture()
def store(conn: DuckDBPyConnection) -> PipelineStore:
    return PipelineStore(conn)


@pytest.fixture()
def make_feed(store: PipelineStore) -> Callable[..., Feed]:
    def _make(
        ticker: str = "DGS10",
        source: str = "fred",
        timeframe: Timeframe = Timeframe.D1,
        kind: SeriesKind = SeriesKind.UNIVARIATE,
        **kwargs: object,
    ) -> Feed:
        return store.create_feed(Feed(ticker=ticker, source=source, timeframe=timeframe, kind=kind, **kwargs))

    return _make


@pytest.fixture()
def write_csv(tmp_path: Path) -> Callable[[str, str], Path]:
    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
