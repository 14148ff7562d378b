"""Helpers shared across CLI commands."""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator, Mapping, Sequence
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

import duckdb
import typer
from duckdb import DuckDBPyConnection
from pydantic import ValidationError

from tickerpipe.core.config import ConfigManager, TickerPipeConfig
from tickerpipe.core.data.ingestion.config import ImportOptions
from tickerpipe.core.data.storage import PipelineStore, PointStore, TickerPipeDuckDBFactory
from tickerpipe.core.exceptions import (
    ConfigurationError,
    DuplicateKeyError,
    InvalidTransitionError,
    RunNotFoundError,
    TickerPipeError,
)
from tickerpipe.core.logging import configure_logging
from tickerpipe.core.models.market import Feed
from tickerpipe.core.services import Orchestrator, StrategyRegistry, build_default_registry

from .constants import SYSTEM_EXIT_CODE, VALIDATION_EXIT_CODE
from .formatters import OutputFormatter, create_formatter

# errors caused by user input rather than the environment
_VALIDATION_ERRORS = (ConfigurationError, DuplicateKeyError, InvalidTransitionError, RunNotFoundError)


@dataclass(slots=True)
class CLIOptions:
    """Options resolved by the root callback."""

    format: str = "table"
    output_path: Path | None = None
    no_color: bool = False
    database: str | None = None
    config_path: Path | None = None
    log_level: str | None = None


def get_cli_options(ctx: typer.Context) -> CLIOptions:
    ctx.ensure_object(dict)
    data = ctx.obj or {}
    return CLIOptions(
        format=str(data.get("format", "table")),
        output_path=data.get("output_path"),
        no_color=bool(data.get("no_color", False)),
        database=data.get("database"),
        config_path=data.get("config_path"),
        log_level=data.get("log_level"),
    )


def prepare_output(ctx: typer.Context) -> tuple[OutputFormatter, TextIO, ExitStack]:
    """Resolve the formatter and the stream command output goes to."""

    options = get_cli_options(ctx)
    formatter = create_formatter(options.format, no_color=options.no_color)
    stack = ExitStack()
    if options.output_path is None:
        return formatter, sys.stdout, stack
    try:
        stream = stack.enter_context(open(options.output_path, "w", encoding="utf-8"))
    except OSError as exc:
        stack.close()
        emit_error(f"Unable to open '{options.output_path}': {exc}", "OUTPUT_WRITE_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc
    return formatter, stream, stack


def render(ctx: typer.Context, rows: Sequence[Mapping[str, object]], columns: Sequence[str] | None = None) -> None:
    formatter, stream, stack = prepare_output(ctx)
    with stack:
        formatter.render(rows, stream=stream, columns=columns)


def emit_error(message: str, code: str, *, details: Mapping[str, object] | None = None) -> None:
    """Print a structured error payload to stderr."""

    payload: dict[str, object] = {"code": code, "message": message}
    if details:
        payload["details"] = _sanitize_details(details)
    typer.echo(json.dumps(payload, ensure_ascii=False, default=str), err=True)


def _sanitize_details(details: Mapping[str, object]) -> Mapping[str, object]:
    sanitized: dict[str, object] = {}
    for key, value in details.items():
        if isinstance(value, (str, int, float, bool)) or value is None:
            sanitized[key] = value
        elif isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
            sanitized[key] = [str(item) for item in value]
        else:
            sanitized[key] = str(value)
    return sanitized


@contextmanager
def error_boundary() -> Iterator[None]:
    """Translate library errors into structured stderr output and exit codes."""

    try:
        yield
    except _VALIDATION_ERRORS as error:
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from error
    except TickerPipeError as error:
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=SYSTEM_EXIT_CODE) from error
    except (duckdb.Error, OSError) as error:
        emit_error(str(error), "SYSTEM_ERROR")
        raise typer.Exit(code=SYSTEM_EXIT_CODE) from error


def build_registry(config: TickerPipeConfig, points: PointStore) -> StrategyRegistry:
    """Factory hook returning the strategy registry used by commands."""

    def latest(feed: Feed):
        return points.latest_timestamp(feed.ticker, feed.kind)

    return build_default_registry(config, latest_lookup=latest)


@dataclass(slots=True)
class Services:
    """Storage handles and collaborators opened for one command."""

    config: TickerPipeConfig
    conn: DuckDBPyConnection
    store: PipelineStore
    points: PointStore
    registry: StrategyRegistry

    def import_options(self, **overrides: object) -> ImportOptions:
        return ImportOptions.from_config(self.config.imports, **overrides)

    def orchestrator(self, options: ImportOptions | None = None) -> Orchestrator:
        return Orchestrator(
            self.store,
            self.registry,
            artifact_root=self.config.artifacts.root,
            options=options or self.import_options(),
        )


def load_config(ctx: typer.Context) -> TickerPipeConfig:
    options = get_cli_options(ctx)
    config = ConfigManager(config_path=options.config_path).get_config()
    if options.database:
        config.storage.database = options.database
    if options.log_level is None or config.logging.file:
        try:
            configure_logging(level=options.log_level or config.logging.level, path=config.logging.file)
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid logging level {config.logging.level!r}", details={"level": config.logging.level}
            ) from exc
    return config


@contextmanager
def open_services(ctx: typer.Context) -> Iterator[Services]:
    """Open the configured database and yield the command's collaborators."""

    config = load_config(ctx)
    factory = TickerPipeDuckDBFactory.from_storage_config(config.storage)
    with factory.connection() as conn:
        points = PointStore(conn)
        with build_registry(config, points) as registry:
            yield Services(
                config=config,
                conn=conn,
                store=PipelineStore(conn, chains=registry),
                points=points,
                registry=registry,
            )


__all__ = [
    "CLIOptions",
    "Services",
    "build_registry",
    "emit_error",
    "error_boundary",
    "get_cli_options",
    "load_config",
    "open_services",
    "prepare_output",
    "render",
]
