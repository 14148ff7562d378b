"""Core domain models."""

from tickerpipe.core.models.market import Feed, SeriesKind, Timeframe
from tickerpipe.core.models.pipeline import (
    LogLevel,
    Pipeline,
    PipelineRun,
    RunLogEntry,
    RunStage,
    RunStatus,
)

__all__ = [
    "Feed",
    "LogLevel",
    "Pipeline",
    "PipelineRun",
    "RunLogEntry",
    "RunStage",
    "RunStatus",
    "SeriesKind",
    "Timeframe",
]
