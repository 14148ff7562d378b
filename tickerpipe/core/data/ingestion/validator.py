"""Validation rules applied to parsed points before they are stored."""

from __future__ import annotations

from math import isfinite

from tickerpipe.core.data.ingestion.models import AggregatePoint, DataPoint, UnivariatePoint
from tickerpipe.core.exceptions import RowValidationError

_EPSILON = 1e-12


def _violates_low_high(low: float, high: float) -> bool:
    return (low - high) > _EPSILON


def validate_point(point: DataPoint) -> DataPoint:
    """Return ``point`` unchanged or raise :class:`RowValidationError`."""

    errors: dict[str, str] = {}
    if not point.ticker:
        errors["ticker"] = "ticker is required"

    if isinstance(point, UnivariatePoint):
        if not isfinite(point.main):
            errors["main"] = "main must be finite"
    elif isinstance(point, AggregatePoint):
        prices = {
            "open": point.open,
            "high": point.high,
            "low": point.low,
            "close": point.close,
        }
        if point.aclose is not None:
            prices["aclose"] = point.aclose
        for name, value in prices.items():
            if not isfinite(value):
                errors[name] = f"{name} must be finite"
        if "low" not in errors and "high" not in errors and _violates_low_high(point.low, point.high):
            errors["low_high"] = f"high {point.high} is below low {point.low}"
        if point.volume is not None and (not isfinite(point.volume) or point.volume < 0):
            errors["volume"] = "volume must be a non-negative number"

    if errors:
        raise RowValidationError("; ".join(errors.values()), validation_errors=errors)
    return point


__all__ = ["validate_point"]
