"""Standardised error codes shared by tickerpipe exceptions."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Error codes surfaced in logs, run log entries and CLI payloads."""

    GENERAL_ERROR = "GENERAL_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    IMPORT_CONFIG_ERROR = "IMPORT_CONFIG_ERROR"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DUPLICATE_KEY = "DUPLICATE_KEY"
    STORAGE_ERROR = "STORAGE_ERROR"
    CLEANUP_ERROR = "CLEANUP_ERROR"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    RUN_NOT_FOUND = "RUN_NOT_FOUND"
    ERROR_BUDGET_EXCEEDED = "ERROR_BUDGET_EXCEEDED"


__all__ = ["ErrorCode"]
