"""
Validation and error handling for the gobuilder package.

This module provides the exception taxonomy, consistent error logging,
input validation and a simple retry helper.
"""

from .exceptions import (
    AmbiguousOrMissingRevision,
    BuildCommandFailure,
    BuilderError,
    CommandExecutionError,
    ErrorSeverity,
    ProcessTimeout,
    ReportingError,
    StartupError,
    ValidationError,
    VersionControlError,
    handle_cli_error,
    handle_config_error,
    handle_error,
)

from .strategies import simple_retry

from .validators import (
    validate_bool,
    validate_builder_name,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
    validate_regex_pattern,
    validate_string_list,
)

__all__ = [
    # Exceptions
    "AmbiguousOrMissingRevision",
    "BuildCommandFailure",
    "BuilderError",
    "CommandExecutionError",
    "ErrorSeverity",
    "ProcessTimeout",
    "ReportingError",
    "StartupError",
    "ValidationError",
    "VersionControlError",
    # Handlers
    "handle_cli_error",
    "handle_config_error",
    "handle_error",
    # Retry
    "simple_retry",
    # Validators
    "validate_bool",
    "validate_builder_name",
    "validate_non_empty_string",
    "validate_positive_float",
    "validate_positive_integer",
    "validate_regex_pattern",
    "validate_string_list",
]
