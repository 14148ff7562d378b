"""tickerpipe core exception classes."""

from typing import Any

from tickerpipe.core.exceptions.codes import ErrorCode


class TickerPipeError(Exception):
    """Base exception for tickerpipe."""

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.GENERAL_ERROR.value,
        details: dict[str, Any] | None = None,
    ):
        """Initialise the error.

        Args:
            message: human readable message
            error_code: value of an :class:`ErrorCode`
            details: extra structured context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        """Return a serialisable payload describing the error."""

        return {"code": self.error_code, "message": self.message, "details": dict(self.details)}


class ConfigurationError(TickerPipeError):
    """Unknown source/strategy or missing required configuration."""

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.CONFIGURATION_ERROR.value,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)


class TransportError(TickerPipeError):
    """Download failure: network, auth, rate limit or HTTP status."""

    def __init__(
        self,
        message: str,
        source: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        super_details["source"] = source
        if status_code is not None:
            super_details["status_code"] = status_code
        super().__init__(message, ErrorCode.TRANSPORT_ERROR.value, super_details)
        self.source = source
        self.status_code = status_code


class RowError(TickerPipeError):
    """Row-level error contained by the import engine."""


class RowParseError(RowError):
    """Malformed row: unparsable date or numeric value."""

    def __init__(self, message: str, field: str | None = None, value: str | None = None):
        details: dict[str, Any] = {}
        if field is not None:
            details["field"] = field
        if value is not None:
            details["value"] = value
        super().__init__(message, ErrorCode.PARSE_ERROR.value, details)
        self.field = field


class RowValidationError(RowError):
    """Parsed point violates a domain rule, e.g. high below low."""

    def __init__(self, message: str, validation_errors: dict[str, str] | None = None):
        super_details: dict[str, Any] = {}
        if validation_errors:
            super_details["validation_errors"] = validation_errors
        super().__init__(message, ErrorCode.VALIDATION_ERROR.value, super_details)
        self.validation_errors = validation_errors or {}


class DuplicateKeyError(TickerPipeError):
    """Natural-key conflict reported by the storage layer."""

    def __init__(self, message: str, table: str, details: dict[str, Any] | None = None):
        super_details = details or {}
        super_details["table"] = table
        super().__init__(message, ErrorCode.DUPLICATE_KEY.value, super_details)
        self.table = table


class StorageError(TickerPipeError):
    """Storage failure that is not a natural-key conflict."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.STORAGE_ERROR.value, details)


class CleanupError(TickerPipeError):
    """Artifact deletion failed; never affects a run outcome."""

    def __init__(self, message: str, path: str):
        super().__init__(message, ErrorCode.CLEANUP_ERROR.value, {"path": path})
        self.path = path


class InvalidTransitionError(TickerPipeError):
    """Requested run status/stage change is not allowed."""

    def __init__(self, message: str, status: str, stage: str):
        super().__init__(
            message,
            ErrorCode.INVALID_TRANSITION.value,
            {"status": status, "stage": stage},
        )


class RunNotFoundError(TickerPipeError):
    """No pipeline run exists for the given identifier."""

    def __init__(self, run_id: int):
        super().__init__(f"Pipeline run {run_id} not found", ErrorCode.RUN_NOT_FOUND.value, {"run_id": run_id})
        self.run_id = run_id
