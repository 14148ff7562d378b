"""Run orchestration, staleness checks, strategies and scheduling."""

from tickerpipe.core.services.orchestrator import Orchestrator, RunResult, remove_artifact
from tickerpipe.core.services.run_log import RunLogger
from tickerpipe.core.services.scheduling import InlineRunQueue, RunScheduler, feed_is_due, list_outdated_feeds
from tickerpipe.core.services.staleness import freshness_threshold, is_up_to_date
from tickerpipe.core.services.strategies import (
    DEFAULT_CHAINS,
    ImportStrategy,
    StrategyRegistry,
    build_default_registry,
)

__all__ = [
    "DEFAULT_CHAINS",
    "ImportStrategy",
    "InlineRunQueue",
    "Orchestrator",
    "RunLogger",
    "RunResult",
    "RunScheduler",
    "StrategyRegistry",
    "build_default_registry",
    "feed_is_due",
    "freshness_threshold",
    "is_up_to_date",
    "list_outdated_feeds",
    "remove_artifact",
]
