"""One-off file import and scheduling commands."""

from __future__ import annotations

from pathlib import Path

import typer

from tickerpipe.core.data.ingestion import ImportEngine, get_dialect
from tickerpipe.core.exceptions import ConfigurationError
from tickerpipe.core.services import InlineRunQueue, RunScheduler

from .constants import RUN_FAILED_EXIT_CODE
from .feeds import parse_day
from .runs import RESULT_COLUMNS
from .utils import error_boundary, open_services, render

IMPORT_COLUMNS = ["ticker", "file", "total_rows", "imported", "updated", "skipped", "errors", "aborted"]


def register(app: typer.Typer) -> None:
    app.command("import")(import_command)
    app.command("schedule")(schedule_command)


def import_command(
    ctx: typer.Context,
    ticker: str = typer.Argument(..., help="Ticker of a registered feed."),
    file: Path = typer.Argument(..., help="CSV (or .csv.gz) file to import."),
    dialect: str | None = typer.Option(None, "--dialect", help="Row dialect; defaults to the feed's source."),
    start: str | None = typer.Option(None, "--start", help="Ignore rows before this date (YYYY-MM-DD)."),
    end: str | None = typer.Option(None, "--end", help="Ignore rows after this date (YYYY-MM-DD)."),
    update_existing: bool | None = typer.Option(
        None,
        "--update-existing/--no-update-existing",
        help="Overwrite stored points whose values changed.",
    ),
    batch_size: int | None = typer.Option(None, "--batch-size", min=1, help="Rows per bulk insert."),
    error_threshold: int | None = typer.Option(None, "--error-threshold", min=0, help="Row errors tolerated."),
) -> None:
    """Import a local file into a feed without creating a run."""

    start_day = parse_day(start, "--start")
    end_day = parse_day(end, "--end")
    with error_boundary(), open_services(ctx) as services:
        feed = services.store.get_feed_by_ticker(ticker)
        if feed is None:
            raise ConfigurationError(f"Feed {ticker} not found", details={"ticker": ticker})
        if not file.is_file():
            raise ConfigurationError(f"File not found: {file}", details={"path": str(file)})
        options = services.import_options(
            start_date=start_day,
            end_date=end_day,
            update_existing=update_existing,
            batch_size=batch_size,
            error_threshold=error_threshold,
        )
        engine = ImportEngine(services.points)
        result = engine.import_file(feed, file, options, dialect=get_dialect(dialect or feed.source))
        render(ctx, [result.to_dict()], IMPORT_COLUMNS)
    if result.aborted:
        raise typer.Exit(code=RUN_FAILED_EXIT_CODE)


def schedule_command(
    ctx: typer.Context,
    active_only: bool = typer.Option(False, "--active-only", help="Only feeds with an active pipeline."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Create runs without executing them."),
) -> None:
    """Create runs for outdated feeds and execute them in-process."""

    with error_boundary(), open_services(ctx) as services:
        queue = InlineRunQueue(services.orchestrator())
        scheduler = RunScheduler(services.store, services.registry, (lambda run_id: None) if dry_run else queue)
        runs = scheduler.schedule_outdated(active_only=active_only)
        if dry_run:
            rows = [{"run_id": run.id, "status": run.status.value, "stage": run.stage.value} for run in runs]
            render(ctx, rows, ["run_id", "status", "stage"])
            return
        render(ctx, [result.to_dict() for result in queue.results], RESULT_COLUMNS)
    if any(not result.success for result in queue.results):
        raise typer.Exit(code=RUN_FAILED_EXIT_CODE)


__all__ = ["import_command", "register", "schedule_command"]
