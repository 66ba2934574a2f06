"""
Error types and CLI exit codes.

Failures that reach a command line entry point become a process status:

    0    success
    1    a check ran and its expectation did not hold (routes test)
    10   routing configuration could not be loaded or validated
    11   a notification transport failed
    12   an incoming alert was malformed
    130  interrupted
    127  anything else
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    SUCCESS = 0
    CHECK_FAILED = 1
    CONFIG_ERROR = 10
    NOTIFICATION_ERROR = 11
    VALIDATION_ERROR = 12
    UNKNOWN_ERROR = 127
    INTERRUPTED = 130


class AlertRouterError(Exception):
    """
    Base class for errors the router raises on purpose.

    ``details`` holds structured context (label, route id, path...) that is
    logged as key/value pairs and appended to the user-facing message.
    """

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(AlertRouterError):
    """Bad YAML, regex, duration, receiver reference or cyclic route."""

    exit_code = ExitCode.CONFIG_ERROR


class AlertValidationError(AlertRouterError):
    exit_code = ExitCode.VALIDATION_ERROR


class NotificationError(AlertRouterError):
    exit_code = ExitCode.NOTIFICATION_ERROR


class CheckFailed(AlertRouterError):
    exit_code = ExitCode.CHECK_FAILED


F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Turn exceptions escaping a CLI command into its exit code.

    Example:
        @main_with_error_handling(log_errors=False)
        def check_config_command(config_file: str) -> int:
            load_config(config_file)   # ConfigurationError -> 10
            return 0
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except AlertRouterError as e:
                if log_errors:
                    logger.error(
                        "command_failed",
                        command=func.__name__,
                        error_type=type(e).__name__,
                        exit_code=int(e.exit_code),
                        **{"message": e.message, **e.details},
                    )
                if show_traceback or e.show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted", command=func.__name__)
                return ExitCode.INTERRUPTED
            except Exception as e:
                if log_errors:
                    logger.exception("command_crashed", command=func.__name__, error=str(e))
                elif show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: AlertRouterError) -> str:
    """``message (key=value, ...)`` for terminal and HTTP error output."""
    if not error.details:
        return error.message
    context = ", ".join(f"{key}={value}" for key, value in error.details.items())
    return f"{error.message} ({context})"
