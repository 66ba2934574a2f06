"""Core modules for alertrouter - errors, exit codes and clocks."""

from alertrouter.core.clock import Clock, SystemClock
from alertrouter.core.errors import (
    AlertRouterError,
    AlertValidationError,
    CheckFailed,
    ConfigurationError,
    ExitCode,
    NotificationError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    # Errors
    "ExitCode",
    "AlertRouterError",
    "ConfigurationError",
    "AlertValidationError",
    "NotificationError",
    "CheckFailed",
    "main_with_error_handling",
    "format_error_message",
    # Clocks
    "Clock",
    "SystemClock",
]
