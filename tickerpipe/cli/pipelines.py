"""Pipeline commands."""

from __future__ import annotations

from collections.abc import Mapping

import typer

from tickerpipe.core.exceptions import ConfigurationError
from tickerpipe.core.models.pipeline import Pipeline

from .utils import Services, error_boundary, open_services, render

pipelines_app = typer.Typer(help="Manage pipelines.")

PIPELINE_COLUMNS = ["id", "ticker", "chain", "active", "status", "stage", "n_successful", "n_failed", "n_skipped"]


def register(app: typer.Typer) -> None:
    app.add_typer(pipelines_app, name="pipelines", help="Bind feeds to import chains")


def pipeline_to_row(pipeline: Pipeline, ticker: str | None) -> Mapping[str, object]:
    return {
        "id": pipeline.id,
        "ticker": ticker,
        "chain": pipeline.chain,
        "active": pipeline.active,
        "status": pipeline.status.value,
        "stage": pipeline.stage.value,
        "n_successful": pipeline.n_successful,
        "n_failed": pipeline.n_failed,
        "n_skipped": pipeline.n_skipped,
    }


def _ticker_for(services: Services, pipeline: Pipeline) -> str | None:
    feed = services.store.get_feed(pipeline.time_series_id)
    return feed.ticker if feed else None


@pipelines_app.command("create")
def create_command(
    ctx: typer.Context,
    ticker: str = typer.Argument(..., help="Ticker of the feed to import."),
    chain: str | None = typer.Option(None, "--chain", help="Import chain; defaults to the source's chain."),
    inactive: bool = typer.Option(False, "--inactive", help="Create the pipeline deactivated."),
) -> None:
    """Create a pipeline for a feed."""

    with error_boundary(), open_services(ctx) as services:
        feed = services.store.get_feed_by_ticker(ticker)
        if feed is None:
            raise ConfigurationError(f"Feed {ticker} not found", details={"ticker": ticker})
        resolved = chain or services.registry.default_chain_for(feed.source)
        pipeline = services.store.create_pipeline(feed.id, resolved, active=not inactive)
        render(ctx, [pipeline_to_row(pipeline, feed.ticker)], PIPELINE_COLUMNS)


@pipelines_app.command("list")
def list_command(
    ctx: typer.Context,
    active: bool | None = typer.Option(None, "--active/--inactive", help="Filter by active flag."),
) -> None:
    """List pipelines with the state of their latest run."""

    with error_boundary(), open_services(ctx) as services:
        rows = [
            pipeline_to_row(pipeline, _ticker_for(services, pipeline))
            for pipeline in services.store.list_pipelines(active=active)
        ]
        render(ctx, rows, PIPELINE_COLUMNS)


def _set_active(ctx: typer.Context, pipeline_id: int, active: bool) -> None:
    with error_boundary(), open_services(ctx) as services:
        if services.store.get_pipeline(pipeline_id) is None:
            raise ConfigurationError(f"Pipeline {pipeline_id} not found", details={"pipeline_id": pipeline_id})
        pipeline = services.store.set_pipeline_active(pipeline_id, active)
        render(ctx, [pipeline_to_row(pipeline, _ticker_for(services, pipeline))], PIPELINE_COLUMNS)


@pipelines_app.command("activate")
def activate_command(ctx: typer.Context, pipeline_id: int = typer.Argument(..., help="Pipeline id.")) -> None:
    """Activate a pipeline."""

    _set_active(ctx, pipeline_id, True)


@pipelines_app.command("deactivate")
def deactivate_command(ctx: typer.Context, pipeline_id: int = typer.Argument(..., help="Pipeline id.")) -> None:
    """Deactivate a pipeline; the scheduler ignores it."""

    _set_active(ctx, pipeline_id, False)


@pipelines_app.command("delete")
def delete_command(ctx: typer.Context, pipeline_id: int = typer.Argument(..., help="Pipeline id.")) -> None:
    """Delete a pipeline together with its runs and run logs."""

    with error_boundary(), open_services(ctx) as services:
        if not services.store.delete_pipeline(pipeline_id):
            raise ConfigurationError(f"Pipeline {pipeline_id} not found", details={"pipeline_id": pipeline_id})
        render(ctx, [{"id": pipeline_id, "deleted": True}], ["id", "deleted"])


__all__ = ["pipeline_to_row", "pipelines_app", "register"]
