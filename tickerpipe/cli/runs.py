"""Pipeline run commands."""

from __future__ import annotations

from collections.abc import Mapping

import typer

from tickerpipe.core.exceptions import ConfigurationError
from tickerpipe.core.models.pipeline import LogLevel, PipelineRun, RunStatus
from tickerpipe.core.services import RunResult

from .constants import RUN_FAILED_EXIT_CODE
from .utils import error_boundary, open_services, render

runs_app = typer.Typer(help="Create, execute and inspect pipeline runs.")

RUN_COLUMNS = [
    "id",
    "pipeline_id",
    "status",
    "stage",
    "n_successful",
    "n_failed",
    "n_skipped",
    "success_rate",
    "updated_at",
]
RESULT_COLUMNS = ["run_id", "status", "stage", "n_successful", "n_failed", "n_skipped", "executed", "error"]
LOG_COLUMNS = ["id", "created_at", "level", "message"]


def register(app: typer.Typer) -> None:
    app.add_typer(runs_app, name="runs", help="Operate pipeline runs")


def run_to_row(run: PipelineRun) -> Mapping[str, object]:
    return {
        "id": run.id,
        "pipeline_id": run.pipeline_id,
        "status": run.status.value,
        "stage": run.stage.value,
        "n_successful": run.n_successful,
        "n_failed": run.n_failed,
        "n_skipped": run.n_skipped,
        "success_rate": run.success_rate,
        "updated_at": run.updated_at,
    }


def exit_for(result: RunResult) -> None:
    """Exit with the run-failed code when an executed run did not complete."""

    if result.executed and not result.success:
        raise typer.Exit(code=RUN_FAILED_EXIT_CODE)


@runs_app.command("create")
def create_command(ctx: typer.Context, pipeline_id: int = typer.Argument(..., help="Pipeline id.")) -> None:
    """Create a PENDING run for a pipeline."""

    with error_boundary(), open_services(ctx) as services:
        run = services.store.create_run(pipeline_id)
        render(ctx, [run_to_row(run)], RUN_COLUMNS)


@runs_app.command("execute")
def execute_command(
    ctx: typer.Context,
    run_id: int = typer.Argument(..., help="Run id."),
    update_existing: bool | None = typer.Option(
        None,
        "--update-existing/--no-update-existing",
        help="Overwrite stored points whose values changed.",
    ),
    batch_size: int | None = typer.Option(None, "--batch-size", min=1, help="Rows per bulk insert."),
    error_threshold: int | None = typer.Option(None, "--error-threshold", min=0, help="Row errors tolerated."),
) -> None:
    """Execute a run synchronously."""

    with error_boundary(), open_services(ctx) as services:
        options = services.import_options(
            update_existing=update_existing,
            batch_size=batch_size,
            error_threshold=error_threshold,
        )
        result = services.orchestrator(options).run(run_id)
        render(ctx, [result.to_dict()], RESULT_COLUMNS)
    exit_for(result)


@runs_app.command("reset")
def reset_command(ctx: typer.Context, run_id: int = typer.Argument(..., help="Run id.")) -> None:
    """Return a run to PENDING/START with zeroed counters."""

    with error_boundary(), open_services(ctx) as services:
        run = services.store.require_run(run_id)
        run.reset()
        services.store.save_run(run)
        services.store.append_log(run_id, LogLevel.INFO, f"Run {run_id} reset")
        render(ctx, [run_to_row(run)], RUN_COLUMNS)


@runs_app.command("stop")
def stop_command(ctx: typer.Context, run_id: int = typer.Argument(..., help="Run id.")) -> None:
    """Ask a working run to stop before its next stage."""

    with error_boundary(), open_services(ctx) as services:
        run = services.store.require_run(run_id)
        run.request_stop()
        services.store.save_run(run)
        services.store.append_log(run_id, LogLevel.WARN, f"Stop requested for run {run_id}")
        render(ctx, [run_to_row(run)], RUN_COLUMNS)


@runs_app.command("show")
def show_command(
    ctx: typer.Context,
    run_id: int | None = typer.Argument(None, help="Run id; omit to list runs."),
    pipeline_id: int | None = typer.Option(None, "--pipeline", help="Only runs of this pipeline."),
    status: str | None = typer.Option(None, "--status", help="Only runs with this status."),
) -> None:
    """Show one run or list runs."""

    with error_boundary(), open_services(ctx) as services:
        if run_id is not None:
            runs = [services.store.require_run(run_id)]
        else:
            runs = services.store.list_runs(pipeline_id, _parse_status(status))
        render(ctx, [run_to_row(run) for run in runs], RUN_COLUMNS)


@runs_app.command("logs")
def logs_command(
    ctx: typer.Context,
    run_id: int = typer.Argument(..., help="Run id."),
    level: str | None = typer.Option(None, "--level", help="info, warn or error."),
) -> None:
    """Print the audit trail of a run."""

    log_level = None
    if level is not None:
        try:
            log_level = LogLevel(level.strip().lower())
        except ValueError as exc:
            raise typer.BadParameter(f"Unsupported level '{level}'", param_hint="--level") from exc
    with error_boundary(), open_services(ctx) as services:
        services.store.require_run(run_id)
        entries = services.store.list_logs(run_id, log_level)
        rows = [
            {"id": entry.id, "created_at": entry.created_at, "level": entry.level.value, "message": entry.message}
            for entry in entries
        ]
        render(ctx, rows, LOG_COLUMNS)


def _parse_status(value: str | None) -> RunStatus | None:
    if value is None:
        return None
    try:
        return RunStatus(value.strip().upper())
    except ValueError as exc:
        raise ConfigurationError(f"Unsupported status '{value}'", details={"status": value}) from exc


__all__ = ["exit_for", "register", "run_to_row", "runs_app"]
