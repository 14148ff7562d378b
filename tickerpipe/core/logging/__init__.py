"""Logging utilities for pipeline runs and imports."""

from tickerpipe.core.logging.config import LogConfig
from tickerpipe.core.logging.logger import (
    PIPELINE_FIELDS,
    JsonLineSink,
    configure_logging,
    current_trace_id,
    get_logger,
    log_context,
    logger,
)

__all__ = [
    "JsonLineSink",
    "LogConfig",
    "PIPELINE_FIELDS",
    "configure_logging",
    "current_trace_id",
    "get_logger",
    "log_context",
    "logger",
]
