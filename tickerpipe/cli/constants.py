"""Exit codes returned by the tickerpipe CLI."""

VALIDATION_EXIT_CODE = 2
RUN_FAILED_EXIT_CODE = 3
SYSTEM_EXIT_CODE = 4

__all__ = ["RUN_FAILED_EXIT_CODE", "SYSTEM_EXIT_CODE", "VALIDATION_EXIT_CODE"]
