"""Exception handling module."""

from tickerpipe.core.exceptions.base import (
    CleanupError,
    ConfigurationError,
    DuplicateKeyError,
    InvalidTransitionError,
    RowError,
    RowParseError,
    RowValidationError,
    RunNotFoundError,
    StorageError,
    TickerPipeError,
    TransportError,
)
from tickerpipe.core.exceptions.codes import ErrorCode

__all__ = [
    "TickerPipeError",
    "ConfigurationError",
    "TransportError",
    "RowError",
    "RowParseError",
    "RowValidationError",
    "DuplicateKeyError",
    "StorageError",
    "CleanupError",
    "InvalidTransitionError",
    "RunNotFoundError",
    "ErrorCode",
]
