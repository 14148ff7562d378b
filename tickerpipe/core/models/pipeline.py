"""Pipeline, PipelineRun and RunLogEntry entities.

A :class:`PipelineRun` is a small state machine over ``(status, stage)``:

* it is created in ``(PENDING, START)`` with zeroed counters;
* :meth:`PipelineRun.can_run` holds only in ``(PENDING, START)``;
* while ``WORKING`` the stage only ever moves forward;
* ``COMPLETED`` and ``FAILED`` are terminal, and only :meth:`PipelineRun.reset`
  brings a run back to ``PENDING``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from tickerpipe.core.exceptions import InvalidTransitionError


class RunStatus(str, Enum):
    PENDING = "PENDING"
    WORKING = "WORKING"
    SCHEDULED_STOP = "SCHEDULED_STOP"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class RunStage(str, Enum):
    START = "START"
    FETCH = "FETCH"
    TRANSFORM = "TRANSFORM"
    IMPORT = "IMPORT"
    POST_PROCESSING = "POST_PROCESSING"
    FINISH = "FINISH"

    @property
    def order(self) -> int:
        return _STAGE_ORDER[self]

    def next(self) -> RunStage | None:
        """Return the following stage, or ``None`` after FINISH."""
        index = self.order + 1
        if index >= len(_STAGES):
            return None
        return _STAGES[index]


_STAGES: tuple[RunStage, ...] = tuple(RunStage)
_STAGE_ORDER: dict[RunStage, int] = {stage: index for index, stage in enumerate(_STAGES)}


class LogLevel(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


@dataclass(slots=True)
class PipelineRun:
    """One execution attempt of a pipeline."""

    pipeline_id: int
    id: int | None = None
    status: RunStatus = RunStatus.PENDING
    stage: RunStage = RunStage.START
    n_successful: int = 0
    n_failed: int = 0
    n_skipped: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def can_run(self) -> bool:
        return self.status is RunStatus.PENDING and self.stage is RunStage.START

    def reset(self) -> None:
        """Return the run to its initial state regardless of where it is."""
        self.status = RunStatus.PENDING
        self.stage = RunStage.START
        self.n_successful = 0
        self.n_failed = 0
        self.n_skipped = 0

    def start(self) -> None:
        if not self.can_run():
            raise InvalidTransitionError(
                "Run can only start from PENDING/START",
                self.status.value,
                self.stage.value,
            )
        self.status = RunStatus.WORKING

    def advance_to(self, stage: RunStage) -> None:
        """Move a working run strictly forward to ``stage``."""
        if self.status is not RunStatus.WORKING:
            raise InvalidTransitionError(
                f"Cannot advance to {stage.value} while {self.status.value}",
                self.status.value,
                self.stage.value,
            )
        if stage.order <= self.stage.order:
            raise InvalidTransitionError(
                f"Stage {stage.value} does not follow {self.stage.value}",
                self.status.value,
                self.stage.value,
            )
        self.stage = stage

    def complete(self) -> None:
        if self.status is not RunStatus.WORKING:
            raise InvalidTransitionError(
                "Only a working run can complete",
                self.status.value,
                self.stage.value,
            )
        self.stage = RunStage.FINISH
        self.status = RunStatus.COMPLETED

    def fail(self) -> None:
        """Mark the run FAILED at its current stage."""
        if self.status.is_terminal:
            raise InvalidTransitionError(
                "Run already finished",
                self.status.value,
                self.stage.value,
            )
        self.status = RunStatus.FAILED

    def request_stop(self) -> None:
        if self.status is not RunStatus.WORKING:
            raise InvalidTransitionError(
                "Only a working run can be asked to stop",
                self.status.value,
                self.stage.value,
            )
        self.status = RunStatus.SCHEDULED_STOP

    def add_counts(self, *, successful: int = 0, failed: int = 0, skipped: int = 0) -> None:
        if min(successful, failed, skipped) < 0:
            raise ValueError("counters are additive only")
        self.n_successful += successful
        self.n_failed += failed
        self.n_skipped += skipped

    @property
    def total_processed(self) -> int:
        return self.n_successful + self.n_failed + self.n_skipped

    @property
    def success_rate(self) -> float:
        if self.total_processed == 0:
            return 0.0
        return round(self.n_successful / self.total_processed * 100, 2)


@dataclass(slots=True)
class Pipeline:
    """Binds a feed to a named import chain."""

    time_series_id: int
    chain: str
    id: int | None = None
    active: bool = True
    created_at: datetime | None = None
    latest_run: PipelineRun | None = field(default=None, compare=False)

    @property
    def status(self) -> RunStatus:
        return self.latest_run.status if self.latest_run else RunStatus.PENDING

    @property
    def stage(self) -> RunStage:
        return self.latest_run.stage if self.latest_run else RunStage.START

    @property
    def n_successful(self) -> int:
        return self.latest_run.n_successful if self.latest_run else 0

    @property
    def n_failed(self) -> int:
        return self.latest_run.n_failed if self.latest_run else 0

    @property
    def n_skipped(self) -> int:
        return self.latest_run.n_skipped if self.latest_run else 0


@dataclass(slots=True, frozen=True)
class RunLogEntry:
    """Append-only audit record attached to a run."""

    pipeline_run_id: int
    level: LogLevel
    message: str
    id: int | None = None
    created_at: datetime | None = None


__all__ = [
    "LogLevel",
    "Pipeline",
    "PipelineRun",
    "RunLogEntry",
    "RunStage",
    "RunStatus",
]
