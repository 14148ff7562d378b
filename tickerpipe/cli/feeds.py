"""Feed (time series) commands."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime

import typer

from tickerpipe.core.exceptions import ConfigurationError
from tickerpipe.core.models.market import Feed, SeriesKind, Timeframe
from tickerpipe.core.services import list_outdated_feeds

from .utils import error_boundary, open_services, render

feeds_app = typer.Typer(help="Manage feeds.")

FEED_COLUMNS = ["id", "ticker", "timeframe", "source", "kind", "source_id", "latest", "description"]


def register(app: typer.Typer) -> None:
    app.add_typer(feeds_app, name="feeds", help="Register and inspect feeds")


def feed_to_row(feed: Feed, latest: datetime | None = None) -> Mapping[str, object]:
    return {
        "id": feed.id,
        "ticker": feed.ticker,
        "timeframe": feed.timeframe.value,
        "source": feed.source,
        "kind": feed.kind.value,
        "source_id": feed.source_id,
        "latest": latest,
        "description": feed.description,
    }


def parse_timeframe(value: str) -> Timeframe:
    timeframe = Timeframe.parse(value)
    if timeframe is None:
        allowed = ", ".join(member.value for member in Timeframe)
        raise typer.BadParameter(f"Unsupported timeframe '{value}'. Allowed values: {allowed}", param_hint="--timeframe")
    return timeframe


def parse_kind(value: str) -> SeriesKind:
    try:
        return SeriesKind(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(member.value for member in SeriesKind)
        raise typer.BadParameter(f"Unsupported kind '{value}'. Allowed values: {allowed}", param_hint="--kind") from exc


def parse_day(value: str | None, hint: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid date '{value}' (expected YYYY-MM-DD)", param_hint=hint) from exc


@feeds_app.command("add")
def add_command(
    ctx: typer.Context,
    ticker: str = typer.Argument(..., help="Unique feed ticker."),
    source: str = typer.Option(..., "--source", help="Provider name, e.g. fred, cboe, kraken, polygon."),
    timeframe: str = typer.Option("D1", "--timeframe", help="M1, H1, D1, W1, MN1, Q or Y."),
    kind: str = typer.Option("univariate", "--kind", help="univariate or aggregate."),
    source_id: str | None = typer.Option(None, "--source-id", help="Provider-side identifier."),
    description: str | None = typer.Option(None, "--description", help="Free-text description."),
    since: str | None = typer.Option(None, "--since", help="First date to fetch (YYYY-MM-DD)."),
) -> None:
    """Register a new feed."""

    feed_timeframe = parse_timeframe(timeframe)
    feed_kind = parse_kind(kind)
    since_day = parse_day(since, "--since")
    with error_boundary(), open_services(ctx) as services:
        try:
            candidate = Feed(
                ticker=ticker,
                source=source,
                timeframe=feed_timeframe,
                kind=feed_kind,
                source_id=source_id,
                description=description,
                since=since_day,
            )
        except ValueError as exc:
            raise ConfigurationError(f"Invalid feed: {exc}") from exc
        feed = services.store.create_feed(candidate)
        render(ctx, [feed_to_row(feed)], FEED_COLUMNS)


@feeds_app.command("list")
def list_command(
    ctx: typer.Context,
    source: str | None = typer.Option(None, "--source", help="Only feeds of this provider."),
) -> None:
    """List registered feeds with their newest stored observation."""

    with error_boundary(), open_services(ctx) as services:
        latest = services.points.latest_timestamps()
        rows = [feed_to_row(feed, latest.get(feed.ticker)) for feed in services.store.list_feeds(source)]
        render(ctx, rows, FEED_COLUMNS)


@feeds_app.command("outdated")
def outdated_command(
    ctx: typer.Context,
    active_only: bool = typer.Option(False, "--active-only", help="Only feeds with an active pipeline."),
) -> None:
    """List feeds that are due for a refresh."""

    with error_boundary(), open_services(ctx) as services:
        latest = services.points.latest_timestamps()
        feeds = list_outdated_feeds(services.store, active_only=active_only, points=services.points)
        render(ctx, [feed_to_row(feed, latest.get(feed.ticker)) for feed in feeds], FEED_COLUMNS)


__all__ = ["feeds_app", "feed_to_row", "parse_day", "parse_kind", "parse_timeframe", "register"]
