"""Timeframe-aware freshness predicate for feeds.

A feed is up to date when its newest stored observation is no older than
the start of the period it is expected to cover:

=========  ==================================================
timeframe  up to date when ``latest >=``
=========  ==================================================
M1         start of the current minute
H1         start of the current hour
D1         today minus one day (date comparison)
W1         Monday 00:00 of the current week
MN1        first day of the previous month
Q          first day of the quarter preceding the current one
Y          January 1st of the previous year
=========  ==================================================

Providers publish monthly, quarterly and yearly data with a lag, hence the
extra period of slack for those timeframes.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from tickerpipe.core.models.market import Timeframe
from tickerpipe.core.timeutils import to_naive_utc, utcnow


def shift_months(day: date, months: int) -> date:
    """Move ``day`` (a first-of-month) by ``months`` calendar months."""

    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def start_of_week(moment: datetime) -> datetime:
    monday = moment.date() - timedelta(days=moment.weekday())
    return datetime(monday.year, monday.month, monday.day)


def start_of_month(moment: datetime) -> date:
    return date(moment.year, moment.month, 1)


def start_of_quarter(moment: datetime) -> date:
    return date(moment.year, 3 * ((moment.month - 1) // 3) + 1, 1)


def freshness_threshold(timeframe: Timeframe, now: datetime) -> datetime:
    """Return the oldest ``latest`` timestamp still considered fresh at ``now``."""

    now = to_naive_utc(now)
    if timeframe is Timeframe.M1:
        return now.replace(second=0, microsecond=0)
    if timeframe is Timeframe.H1:
        return now.replace(minute=0, second=0, microsecond=0)
    if timeframe is Timeframe.D1:
        yesterday = now.date() - timedelta(days=1)
        return datetime(yesterday.year, yesterday.month, yesterday.day)
    if timeframe is Timeframe.W1:
        return start_of_week(now)
    if timeframe is Timeframe.MN1:
        boundary = shift_months(start_of_month(now), -1)
    elif timeframe is Timeframe.Q:
        boundary = shift_months(start_of_quarter(now), -3)
    elif timeframe is Timeframe.Y:
        boundary = date(now.year - 1, 1, 1)
    else:  # pragma: no cover - closed enum
        raise ValueError(f"Unsupported timeframe {timeframe!r}")
    return datetime(boundary.year, boundary.month, boundary.day)


def is_up_to_date(
    latest: datetime | date | None,
    timeframe: Timeframe | str | None,
    now: datetime | None = None,
) -> bool:
    """Whether a feed whose newest point is ``latest`` needs no refresh.

    ``None`` for ``latest`` or an unknown timeframe yields ``False``.
    """

    if latest is None or timeframe is None:
        return False
    parsed = Timeframe.parse(timeframe)
    if parsed is None:
        return False
    reference = utcnow() if now is None else to_naive_utc(now)
    latest_ts = to_naive_utc(latest)
    threshold = freshness_threshold(parsed, reference)
    if parsed is Timeframe.D1:
        return latest_ts.date() >= threshold.date()
    return latest_ts >= threshold


__all__ = [
    "freshness_threshold",
    "is_up_to_date",
    "shift_months",
    "start_of_month",
    "start_of_quarter",
    "start_of_week",
]
