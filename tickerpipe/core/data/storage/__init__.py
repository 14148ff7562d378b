"""DuckDB-backed storage for points and pipeline bookkeeping."""

from tickerpipe.core.data.storage.duckdb_factory import DuckDBFactoryConfig, TickerPipeDuckDBFactory
from tickerpipe.core.data.storage.pipelines import PipelineStore
from tickerpipe.core.data.storage.points import PointStore

__all__ = ["DuckDBFactoryConfig", "PipelineStore", "PointStore", "TickerPipeDuckDBFactory"]
