"""Append-only audit trail attached to a pipeline run."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from tickerpipe.core.logging import get_logger
from tickerpipe.core.models.pipeline import LogLevel

LogWriter = Callable[[int, LogLevel, str], Any]

_LOGURU_LEVELS: dict[LogLevel, str] = {
    LogLevel.INFO: "INFO",
    LogLevel.WARN: "WARNING",
    LogLevel.ERROR: "ERROR",
}


class RunLogger:
    """Mirrors run messages to loguru and to the ``pipeline_run_logs`` table.

    The audit trail is best effort: a failing writer is reported through
    loguru and never interrupts the run.
    """

    def __init__(self, run_id: int, writer: LogWriter | None = None, logger: Any | None = None) -> None:
        self.run_id = run_id
        self.writer = writer
        self.logger = (logger or get_logger(__name__)).bind(run_id=run_id)

    def info(self, message: str) -> None:
        self.log(LogLevel.INFO, message)

    def warning(self, message: str) -> None:
        self.log(LogLevel.WARN, message)

    def error(self, message: str) -> None:
        self.log(LogLevel.ERROR, message)

    def log(self, level: LogLevel, message: str) -> None:
        self.logger.log(_LOGURU_LEVELS[level], message)
        if self.writer is None:
            return
        try:
            self.writer(self.run_id, level, message)
        except Exception as exc:  # noqa: BLE001 - the audit trail never fails a run
            self.logger.opt(exception=exc).error("Could not persist run log entry: {}", exc)


__all__ = ["LogWriter", "RunLogger"]
