"""Main entry point for the tickerpipe command line interface."""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError

from tickerpipe.core.logging import configure_logging

from .feeds import register as register_feed_commands
from .formatters import create_formatter
from .ingest import register as register_ingest_commands
from .pipelines import register as register_pipeline_commands
from .runs import register as register_run_commands


def create_app() -> typer.Typer:
    """Create the Typer application."""

    app = typer.Typer(add_completion=False, no_args_is_help=True, help="tickerpipe market data pipelines")

    @app.callback()
    def main(
        ctx: typer.Context,
        format: str = typer.Option("table", "--format", "-f", help="Output format (table or jsonl)."),
        output: Path | None = typer.Option(None, "--output", "-o", help="Write output to a file instead of stdout."),
        log_level: str | None = typer.Option(None, "--log-level", help="Logging level (defaults to the configured level)."),
        db: str | None = typer.Option(None, "--db", help="DuckDB database file (overrides configuration)."),
        config: Path | None = typer.Option(None, "--config", help="Path to a config.toml file."),
        no_color: bool = typer.Option(False, "--no-color", help="Disable colors in table output."),
    ) -> None:
        ctx.ensure_object(dict)
        normalized_format = format.strip().lower()
        try:
            create_formatter(normalized_format, no_color=no_color)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--format") from exc

        ctx.obj.update(
            {
                "format": normalized_format,
                "output_path": output,
                "no_color": no_color,
                "database": db,
                "config_path": config,
                "log_level": log_level,
            }
        )
        try:
            configure_logging(level=log_level or "INFO")
        except ValidationError as exc:
            raise typer.BadParameter(f"unknown log level {log_level!r}", param_hint="--log-level") from exc

    register_feed_commands(app)
    register_pipeline_commands(app)
    register_run_commands(app)
    register_ingest_commands(app)
    return app


app = create_app()
