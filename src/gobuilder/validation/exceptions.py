"""
Exception taxonomy and error handling helpers.

This module defines every exception raised by the builder together with the
small set of helpers used to log an error consistently at a component
boundary and decide whether it should propagate further.

Everything below the orchestrator is expected to catch ``BuilderError``
subclasses, log them, and carry on with the next cycle. Only ``StartupError``
and ``ValidationError`` are allowed to end the process, and only during
startup.
"""

import logging
import sys
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for error handling."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ValidationError(Exception):
    """
    Exception raised when a configuration value or argument fails validation.
    """

    def __init__(self, message: str, field_name: Optional[str] = None,
                 value: Any = None, severity: ErrorSeverity = ErrorSeverity.ERROR):
        super().__init__(message)
        self.field_name = field_name
        self.value = value
        self.severity = severity


class BuilderError(Exception):
    """Base class for all runtime errors raised by the builder."""


class VersionControlError(BuilderError):
    """A clone, pull, checkout, log or resolve operation failed."""


class AmbiguousOrMissingRevision(VersionControlError):
    """A revision resolved to zero or several commits, or to a malformed hash."""

    def __init__(self, revision: str, reason: str):
        super().__init__(f"revision {revision!r}: {reason}")
        self.revision = revision
        self.reason = reason


class CommandExecutionError(BuilderError):
    """The external command could not be started at all."""

    def __init__(self, argv, error: Exception):
        command = " ".join(str(a) for a in argv)
        super().__init__(f"cannot run '{command}': {error}")
        self.argv = list(argv)
        self.error = error


class ProcessTimeout(BuilderError):
    """
    An external command exceeded its timeout and its process tree was killed.

    The output captured up to the moment of termination is kept so it can be
    attached to the failure report.
    """

    def __init__(self, argv, timeout: float, output: str = ""):
        command = " ".join(str(a) for a in argv)
        super().__init__(f"'{command}' timed out after {timeout:g}s")
        self.argv = list(argv)
        self.timeout = timeout
        self.output = output


class BuildCommandFailure(BuilderError):
    """A build or test command ran to completion with a non-zero exit status."""

    def __init__(self, exit_status: int, log: str = ""):
        super().__init__(f"go exited with status {exit_status}")
        self.exit_status = exit_status
        self.log = log


class ReportingError(BuilderError):
    """A round trip to the dashboard failed or the dashboard returned an error."""


class StartupError(BuilderError):
    """Fatal problem detected while the process is starting up."""


def handle_error(
    error: Exception,
    context: str,
    severity: Union[ErrorSeverity, str] = ErrorSeverity.ERROR,
    reraise: bool = True,
    logger: Optional[logging.Logger] = None
) -> None:
    """
    Handle errors with consistent logging and optional re-raising.

    Args:
        error: The exception that occurred
        context: Context description of where the error occurred
        severity: Severity level for logging
        reraise: Whether to re-raise the exception after logging
        logger: Logger instance to use (defaults to module logger)
    """
    effective_logger = logger or globals()['logger']

    error_msg = f"Error in {context}: {error}"

    if isinstance(severity, str):
        severity_str = severity.lower()
    else:
        severity_str = severity.value

    if severity_str == "debug":
        effective_logger.debug(error_msg, exc_info=True)
    elif severity_str == "info":
        effective_logger.info(error_msg)
    elif severity_str == "warning":
        effective_logger.warning(error_msg)
    elif severity_str == "error":
        effective_logger.error(error_msg)
    elif severity_str == "critical":
        effective_logger.critical(error_msg, exc_info=True)

    if reraise:
        raise error


def handle_config_error(error: Exception, context: str, **kwargs) -> None:
    """Handle configuration-related errors."""
    handle_error(error, f"config {context}", **kwargs)


def handle_cli_error(error: Exception, context: str, **kwargs) -> None:
    """Log a fatal CLI error and exit the process."""
    exit_code = kwargs.pop('exit_code', 1)
    include_traceback = kwargs.pop('include_traceback', False)

    severity = kwargs.pop('severity', ErrorSeverity.CRITICAL if include_traceback else ErrorSeverity.ERROR)
    handle_error(error, f"CLI {context}", severity=severity, reraise=False, **kwargs)

    sys.exit(exit_code)
