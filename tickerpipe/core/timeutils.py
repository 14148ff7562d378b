"""Timestamp normalisation helpers; storage keeps naive UTC values."""

from __future__ import annotations

from datetime import UTC, date, datetime


def to_naive_utc(value: datetime | date) -> datetime:
    """Return ``value`` as a naive datetime expressed in UTC."""

    if not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


__all__ = ["to_naive_utc", "utcnow"]
