"""Configuration primitives for the import engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from tickerpipe.core.config import ImportConfig
from tickerpipe.core.exceptions import ConfigurationError, ErrorCode


class ImportConfigError(ConfigurationError):
    """Raised when import options are invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCode.IMPORT_CONFIG_ERROR.value)


@dataclass(slots=True, frozen=True)
class ImportOptions:
    """Runtime options controlling a single import."""

    start_date: date | None = None
    end_date: date | None = None
    batch_size: int = 1000
    update_existing: bool = False
    error_threshold: int = 100
    max_error_details: int = 100

    @classmethod
    def from_config(cls, config: ImportConfig, **overrides: Any) -> ImportOptions:
        """Build options from the configured import defaults plus per-call overrides."""

        values: dict[str, Any] = {
            "batch_size": config.batch_size,
            "error_threshold": config.error_threshold,
            "update_existing": config.update_existing,
            "max_error_details": config.max_error_details,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    def validate(self) -> None:
        """Ensure the options describe a runnable import."""

        if self.batch_size <= 0:
            raise ImportConfigError("batch_size must be positive")
        if self.error_threshold < 0:
            raise ImportConfigError("error_threshold must not be negative")
        if self.max_error_details < 0:
            raise ImportConfigError("max_error_details must not be negative")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ImportConfigError(f"start_date {self.start_date} is after end_date {self.end_date}")

    def includes(self, day: date) -> bool:
        """Whether ``day`` falls inside the optional date filter."""

        if self.start_date and day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        return True


__all__ = ["ImportConfigError", "ImportOptions"]
