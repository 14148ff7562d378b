from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import pytest

from tickerpipe.core.config import TickerPipeConfig
from tickerpipe.core.data.ingestion import AggregatePoint, UnivariatePoint
from tickerpipe.core.data.storage import PipelineStore, PointStore
from tickerpipe.core.models.market import Feed, SeriesKind, Timeframe
from tickerpipe.core.models.pipeline import RunStage, RunStatus
from tickerpipe.core.services import (
    InlineRunQueue,
    RunResult,
    RunScheduler,
    StrategyRegistry,
    build_default_registry,
    feed_is_due,
    list_outdated_feeds,
)

NOW = datetime(2025, 8, 15, 14, 30)


@pytest.fixture()
def registry(tmp_path: Path) -> StrategyRegistry:
    config = TickerPipeConfig()
    config.artifacts.root = str(tmp_path / "artifacts")
    return build_default_registry(config)


@pytest.fixture()
def feeds(make_feed: Callable[..., Feed], points: PointStore) -> dict[str, Feed]:
    created = {
        "DGS10": make_feed("DGS10"),
        "DGS2": make_feed("DGS2"),
        "VIX": make_feed("VIX", source="cboe", kind=SeriesKind.AGGREGATE),
    }
    points.insert_one(UnivariatePoint("DGS10", Timeframe.D1, datetime(2025, 8, 14), 4.2))
    points.insert_one(AggregatePoint("VIX", Timeframe.D1, datetime(2025, 8, 1), 15, 16, 14, 15.5))
    return created


def test_feed_is_due(points: PointStore, feeds: dict[str, Feed]) -> None:
    assert not feed_is_due(feeds["DGS10"], points, NOW)
    assert feed_is_due(feeds["DGS2"], points, NOW)
    assert feed_is_due(feeds["VIX"], points, NOW)


def test_list_outdated_feeds(store: PipelineStore, feeds: dict[str, Feed]) -> None:
    outdated = list_outdated_feeds(store, NOW)

    assert [feed.ticker for feed in outdated] == ["DGS2", "VIX"]


def test_list_outdated_feeds_active_only(store: PipelineStore, feeds: dict[str, Feed]) -> None:
    store.create_pipeline(feeds["VIX"].id, "cboe_flat")
    store.create_pipeline(feeds["DGS2"].id, "fred_flat", active=False)

    outdated = list_outdated_feeds(store, NOW, active_only=True)

    assert [feed.ticker for feed in outdated] == ["VIX"]


def test_schedule_creates_pipelines_with_default_chains(
    store: PipelineStore, registry: StrategyRegistry, feeds: dict[str, Feed]
) -> None:
    enqueued: list[int] = []
    scheduler = RunScheduler(store, registry, enqueued.append)

    runs = scheduler.schedule_outdated(NOW)

    assert enqueued == [run.id for run in runs]
    assert len(runs) == 2
    chains = {store.get_feed(p.time_series_id).ticker: p.chain for p in store.list_pipelines()}
    assert chains == {"DGS2": "fred_flat", "VIX": "cboe_flat"}
    assert all(run.status is RunStatus.PENDING for run in runs)


def test_schedule_is_single_flight_per_feed(
    store: PipelineStore, registry: StrategyRegistry, feeds: dict[str, Feed]
) -> None:
    enqueued: list[int] = []
    scheduler = RunScheduler(store, registry, enqueued.append)
    first = scheduler.schedule_outdated(NOW)

    assert scheduler.schedule_outdated(NOW) == []

    # a finished run frees the feed for the next schedule
    done = store.require_run(first[0].id)
    done.start()
    done.fail()
    store.save_run(done)
    again = scheduler.schedule_outdated(NOW)

    assert [run.pipeline_id for run in again] == [first[0].pipeline_id]
    assert len(enqueued) == 3


def test_working_run_blocks_scheduling(
    store: PipelineStore, registry: StrategyRegistry, feeds: dict[str, Feed]
) -> None:
    scheduler = RunScheduler(store, registry, lambda run_id: None)
    (run, _) = scheduler.schedule_outdated(NOW)
    run.start()
    store.save_run(run)

    scheduled = scheduler.schedule_outdated(NOW)

    assert all(r.pipeline_id != run.pipeline_id for r in scheduled)


def test_stop_requested_run_still_blocks_scheduling(
    store: PipelineStore, registry: StrategyRegistry, feeds: dict[str, Feed]
) -> None:
    scheduler = RunScheduler(store, registry, lambda run_id: None)
    (run, other) = scheduler.schedule_outdated(NOW)
    run.start()
    run.request_stop()
    store.save_run(run)
    other.start()
    other.fail()
    store.save_run(other)

    scheduled = scheduler.schedule_outdated(NOW)

    assert [r.pipeline_id for r in scheduled] == [other.pipeline_id]
    assert store.require_run(run.id).status is RunStatus.SCHEDULED_STOP


def test_feeds_with_only_inactive_pipelines_are_skipped(
    store: PipelineStore, registry: StrategyRegistry, feeds: dict[str, Feed]
) -> None:
    store.create_pipeline(feeds["DGS2"].id, "fred_flat", active=False)
    scheduler = RunScheduler(store, registry, lambda run_id: None)

    runs = scheduler.schedule_outdated(NOW)

    assert [store.get_pipeline(run.pipeline_id).time_series_id for run in runs] == [feeds["VIX"].id]
    assert len(store.list_pipelines(time_series_id=feeds["DGS2"].id)) == 1


def test_unknown_source_uses_fallback_chain(
    store: PipelineStore, registry: StrategyRegistry, make_feed: Callable[..., Feed]
) -> None:
    feed = make_feed("SPY", source="yahoo", kind=SeriesKind.AGGREGATE)
    scheduler = RunScheduler(store, registry, lambda run_id: None)

    pipeline = scheduler.pipeline_for(feed)

    assert pipeline.chain == "flat_file"


def test_inline_queue_runs_immediately() -> None:
    class RecordingOrchestrator:
        def __init__(self) -> None:
            self.calls: list[int] = []

        def run(self, run_id: int) -> RunResult:
            self.calls.append(run_id)
            return RunResult(run_id=run_id, status=RunStatus.COMPLETED, stage=RunStage.FINISH)

    orchestrator = RecordingOrchestrator()
    queue = InlineRunQueue(orchestrator)

    queue(5)
    queue(6)

    assert orchestrator.calls == [5, 6]
    assert [result.run_id for result in queue.results] == [5, 6]
