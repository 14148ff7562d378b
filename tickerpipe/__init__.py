"""tickerpipe - idempotent market data pipelines on DuckDB."""

from tickerpipe.core.config import ConfigManager, TickerPipeConfig
from tickerpipe.core.data.ingestion import ImportEngine, ImportOptions, ImportResult
from tickerpipe.core.models import Feed, Pipeline, PipelineRun, RunStage, RunStatus, SeriesKind, Timeframe
from tickerpipe.core.services import Orchestrator, RunResult, is_up_to_date

__version__ = "0.1.0"

__all__ = [
    "ConfigManager",
    "Feed",
    "ImportEngine",
    "ImportOptions",
    "ImportResult",
    "Orchestrator",
    "Pipeline",
    "PipelineRun",
    "RunResult",
    "RunStage",
    "RunStatus",
    "SeriesKind",
    "TickerPipeConfig",
    "Timeframe",
    "is_up_to_date",
    "__version__",
]
