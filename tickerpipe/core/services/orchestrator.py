"""Executes one pipeline run end to end.

The orchestrator walks a run through FETCH, TRANSFORM, IMPORT and
POST_PROCESSING, persisting every transition. A run that is not in
``(PENDING, START)`` is left untouched, so re-delivering a run id is a no-op.
Before each transition the stored status is re-read; a SCHEDULED_STOP set by
an operator halts the run where it stands.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tickerpipe.core.data.ingestion.config import ImportOptions
from tickerpipe.core.data.ingestion.engine import ImportEngine, ImportResult
from tickerpipe.core.data.storage.pipelines import PipelineStore
from tickerpipe.core.data.storage.points import PointStore
from tickerpipe.core.exceptions import CleanupError, ConfigurationError, TickerPipeError
from tickerpipe.core.logging import get_logger, log_context
from tickerpipe.core.models.pipeline import PipelineRun, RunStage, RunStatus
from tickerpipe.core.services.run_log import RunLogger
from tickerpipe.core.services.strategies import StrategyRegistry


@dataclass(slots=True)
class RunResult:
    """Summary returned to the worker that executed a run."""

    run_id: int
    status: RunStatus
    stage: RunStage
    n_successful: int = 0
    n_failed: int = 0
    n_skipped: int = 0
    executed: bool = True
    error: str | None = None
    import_result: ImportResult | None = None

    @property
    def success(self) -> bool:
        return self.status is RunStatus.COMPLETED

    @property
    def stopped(self) -> bool:
        return self.status is RunStatus.SCHEDULED_STOP

    @classmethod
    def from_run(cls, run: PipelineRun, **kwargs: Any) -> RunResult:
        return cls(
            run_id=run.id,
            status=run.status,
            stage=run.stage,
            n_successful=run.n_successful,
            n_failed=run.n_failed,
            n_skipped=run.n_skipped,
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "stage": self.stage.value,
            "n_successful": self.n_successful,
            "n_failed": self.n_failed,
            "n_skipped": self.n_skipped,
            "executed": self.executed,
            "error": self.error,
        }


class _StopRequested(Exception):
    pass


class Orchestrator:
    """Drives a :class:`PipelineRun` through its stages."""

    def __init__(
        self,
        store: PipelineStore,
        registry: StrategyRegistry,
        *,
        artifact_root: str | Path,
        options: ImportOptions | None = None,
        engine_factory: Callable[[], ImportEngine] | None = None,
        logger: Any | None = None,
    ) -> None:
        self.store = store
        self.registry = registry
        self.artifact_root = Path(artifact_root).expanduser()
        self.options = options or ImportOptions()
        self.logger = logger or get_logger(__name__)
        self.engine_factory = engine_factory or (lambda: ImportEngine(PointStore(store.conn), logger=self.logger))

    def run(self, run_id: int) -> RunResult:
        run = self.store.require_run(run_id)
        if not run.can_run():
            self.logger.info(
                "Run {} is {}/{}; nothing to do",
                run_id,
                run.status.value,
                run.stage.value,
            )
            return RunResult.from_run(run, executed=False)

        with log_context(run_id=run_id):
            return self._execute(run)

    def _execute(self, run: PipelineRun) -> RunResult:
        run_log = RunLogger(run.id, self.store.append_log, logger=self.logger)
        run.start()
        self.store.save_run(run)
        run_log.info(f"Run {run.id} started")

        artifact: Path | None = None
        import_result: ImportResult | None = None
        try:
            pipeline = self.store.get_pipeline(run.pipeline_id)
            if pipeline is None:
                raise ConfigurationError(f"Pipeline {run.pipeline_id} not found")
            feed = self.store.get_feed(pipeline.time_series_id)
            if feed is None:
                raise ConfigurationError(f"Feed {pipeline.time_series_id} not found")
            strategy = self.registry.get(pipeline.chain)

            self._advance(run, RunStage.FETCH, run_log)
            download = strategy.fetch(feed)
            if not download.success:
                return self._fail(run, run_log, f"Download failed: {download.error}")
            artifact = Path(download.artifact_location)
            run_log.info(f"Downloaded {feed.ticker} to {artifact}")

            self._advance(run, RunStage.TRANSFORM, run_log)
            self._advance(run, RunStage.IMPORT, run_log)
            engine = self.engine_factory()
            import_result = engine.import_file(
                feed,
                artifact,
                self.options,
                parser=strategy.parse,
                dialect=strategy.dialect,
            )
            run.add_counts(
                successful=import_result.imported + import_result.updated,
                failed=import_result.errors,
                skipped=import_result.skipped,
            )
            stop_requested = self._stop_requested(run)
            self.store.save_run(run)
            run_log.info(
                f"Imported {import_result.imported}, updated {import_result.updated}, "
                f"skipped {import_result.skipped}, errors {import_result.errors} "
                f"out of {import_result.total_rows} rows"
            )
            if import_result.aborted:
                return self._fail(
                    run,
                    run_log,
                    f"Error budget exceeded: {import_result.errors} errors "
                    f"(threshold {self.options.error_threshold})",
                    import_result,
                )
            if stop_requested:
                raise _StopRequested

            self._advance(run, RunStage.POST_PROCESSING, run_log)
            run.complete()
            self.store.save_run(run)
            run_log.info(f"Run {run.id} completed")
        except _StopRequested:
            run_log.warning(f"Run {run.id} stopped at stage {run.stage.value} on request")
            return RunResult.from_run(run, import_result=import_result, error="stopped")
        except TickerPipeError as exc:
            return self._fail(run, run_log, exc.message, import_result)
        except Exception as exc:  # noqa: BLE001 - any stage exception fails the run
            self.logger.opt(exception=exc).error("Unhandled error in run {}", run.id)
            return self._fail(run, run_log, f"{type(exc).__name__}: {exc}", import_result)

        self._cleanup(artifact, run_log)
        return RunResult.from_run(run, import_result=import_result)

    def _stop_requested(self, run: PipelineRun) -> bool:
        stored = self.store.get_run(run.id)
        if stored is not None and stored.status is RunStatus.SCHEDULED_STOP:
            run.status = RunStatus.SCHEDULED_STOP
            return True
        return False

    def _advance(self, run: PipelineRun, stage: RunStage, run_log: RunLogger) -> None:
        if self._stop_requested(run):
            raise _StopRequested
        run.advance_to(stage)
        self.store.save_run(run)
        run_log.info(f"Stage {stage.value}")

    def _fail(
        self,
        run: PipelineRun,
        run_log: RunLogger,
        message: str,
        import_result: ImportResult | None = None,
    ) -> RunResult:
        if not run.status.is_terminal:
            run.fail()
        self.store.save_run(run)
        run_log.error(f"Run {run.id} failed at stage {run.stage.value}: {message}")
        return RunResult.from_run(run, error=message, import_result=import_result)

    def _cleanup(self, artifact: Path | None, run_log: RunLogger) -> None:
        if artifact is None:
            return
        try:
            remove_artifact(artifact, self.artifact_root)
        except CleanupError as exc:
            run_log.warning(f"Cleanup failed for {exc.path}: {exc.message}")
        else:
            run_log.info(f"Removed artifact {artifact}")


def remove_artifact(artifact: Path, root: Path) -> None:
    """Delete ``artifact`` and prune empty parent directories below ``root``."""

    try:
        artifact.unlink(missing_ok=True)
    except OSError as exc:
        raise CleanupError(str(exc), str(artifact)) from exc

    root = root.resolve()
    parent = artifact.parent.resolve()
    if root not in parent.parents:
        return
    while parent != root:
        try:
            if any(parent.iterdir()):
                return
            parent.rmdir()
        except OSError as exc:
            raise CleanupError(str(exc), str(parent)) from exc
        parent = parent.parent


__all__ = ["Orchestrator", "RunResult", "remove_artifact"]
