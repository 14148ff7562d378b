"""Scheduling helpers: outdated feed discovery and single-flight enqueueing."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from tickerpipe.core.data.storage.pipelines import PipelineStore
from tickerpipe.core.data.storage.points import PointStore
from tickerpipe.core.logging import get_logger
from tickerpipe.core.models.market import Feed
from tickerpipe.core.models.pipeline import Pipeline, PipelineRun, RunStatus
from tickerpipe.core.services.orchestrator import Orchestrator, RunResult
from tickerpipe.core.services.staleness import is_up_to_date
from tickerpipe.core.services.strategies import StrategyRegistry
from tickerpipe.core.timeutils import utcnow

# a feed with a run in one of these states is not scheduled again; a stopped
# run may still be fetching or importing until it reaches a stage boundary
IN_FLIGHT = frozenset({RunStatus.PENDING, RunStatus.WORKING, RunStatus.SCHEDULED_STOP})


def feed_is_due(feed: Feed, points: PointStore, now: datetime | None = None) -> bool:
    """Whether ``feed`` needs a refresh according to its newest stored point."""

    latest = points.latest_timestamp(feed.ticker, feed.kind)
    return not is_up_to_date(latest, feed.timeframe, now)


def list_outdated_feeds(
    store: PipelineStore,
    now: datetime | None = None,
    active_only: bool = False,
    points: PointStore | None = None,
) -> list[Feed]:
    """Return every feed that is not up to date at ``now``.

    With ``active_only`` only feeds that have at least one active pipeline
    are considered.
    """

    now = now or utcnow()
    points = points or PointStore(store.conn)
    latest = points.latest_timestamps()
    active_feed_ids: set[int] | None = None
    if active_only:
        active_feed_ids = {pipeline.time_series_id for pipeline in store.list_pipelines(active=True)}

    outdated: list[Feed] = []
    for feed in store.list_feeds():
        if active_feed_ids is not None and feed.id not in active_feed_ids:
            continue
        if not is_up_to_date(latest.get(feed.ticker), feed.timeframe, now):
            outdated.append(feed)
    return outdated


class RunScheduler:
    """Creates runs for outdated feeds and hands them to ``enqueue``.

    At most one run per feed is in flight: feeds whose latest run is still
    PENDING, WORKING or SCHEDULED_STOP are skipped until the run is reset or
    reaches a terminal status.
    """

    def __init__(
        self,
        store: PipelineStore,
        registry: StrategyRegistry,
        enqueue: Callable[[int], Any],
        *,
        points: PointStore | None = None,
        logger: Any | None = None,
    ) -> None:
        self.store = store
        self.registry = registry
        self.enqueue = enqueue
        self.points = points or PointStore(store.conn)
        self.logger = logger or get_logger(__name__)

    def pipeline_for(self, feed: Feed) -> Pipeline | None:
        """Return the feed's active pipeline, creating one if the feed has none."""

        pipelines = self.store.list_pipelines(time_series_id=feed.id)
        for pipeline in pipelines:
            if pipeline.active:
                return pipeline
        if pipelines:
            return None
        chain = self.registry.default_chain_for(feed.source)
        self.logger.info("Creating pipeline {} for {}", chain, feed.ticker)
        return self.store.create_pipeline(feed.id, chain)

    def schedule_outdated(self, now: datetime | None = None, active_only: bool = False) -> list[PipelineRun]:
        scheduled: list[PipelineRun] = []
        for feed in list_outdated_feeds(self.store, now, active_only=active_only, points=self.points):
            pipeline = self.pipeline_for(feed)
            if pipeline is None:
                self.logger.debug("Feed {} has only inactive pipelines; skipping", feed.ticker)
                continue
            if pipeline.latest_run is not None and pipeline.latest_run.status in IN_FLIGHT:
                self.logger.info(
                    "Feed {} already has run {} in flight ({})",
                    feed.ticker,
                    pipeline.latest_run.id,
                    pipeline.latest_run.status.value,
                )
                continue
            run = self.store.create_run(pipeline.id)
            self.logger.info("Enqueued run {} for {}", run.id, feed.ticker)
            self.enqueue(run.id)
            scheduled.append(run)
        return scheduled


class InlineRunQueue:
    """``enqueue`` implementation executing runs immediately in-process."""

    def __init__(self, orchestrator: Orchestrator) -> None:
        self.orchestrator = orchestrator
        self.results: list[RunResult] = []

    def __call__(self, run_id: int) -> RunResult:
        result = self.orchestrator.run(run_id)
        self.results.append(result)
        return result


__all__ = [
    "IN_FLIGHT",
    "InlineRunQueue",
    "RunScheduler",
    "feed_is_due",
    "list_outdated_feeds",
]
