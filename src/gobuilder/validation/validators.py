"""
Simplified validation functions.

This module provides the value validators used while loading configuration
and parsing command-line arguments.
"""

import re
from typing import Any, List, Optional

from .exceptions import ValidationError

# os-arch[-variant], e.g. "linux-amd64" or "linux-386-387"
BUILDER_NAME_PATTERN = re.compile(r'^[a-zA-Z0-9_.]+(-[a-zA-Z0-9_.]+)+$')


def validate_positive_integer(
    value: Any,
    min_value: int = 1,
    max_value: Optional[int] = None,
    field_name: str = "value"
) -> int:
    """
    Validate that a value is a positive integer.

    Args:
        value: Value to validate
        min_value: Minimum allowed value (inclusive)
        max_value: Maximum allowed value (inclusive), None for no limit
        field_name: Name of the field being validated

    Returns:
        Validated integer value

    Raises:
        ValidationError: If validation fails
    """
    if isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be a valid integer, got {value}",
            field_name=field_name,
            value=value
        )
    try:
        int_value = int(value)
    except (ValueError, TypeError):
        raise ValidationError(
            f"{field_name} must be a valid integer, got {value}",
            field_name=field_name,
            value=value
        )
    if int_value < min_value:
        raise ValidationError(
            f"{field_name} must be >= {min_value}, got {int_value}",
            field_name=field_name,
            value=value
        )
    if max_value is not None and int_value > max_value:
        raise ValidationError(
            f"{field_name} must be <= {max_value}, got {int_value}",
            field_name=field_name,
            value=value
        )
    return int_value


def validate_positive_float(
    value: Any,
    min_value: float = 0.0,
    max_value: Optional[float] = None,
    field_name: str = "value"
) -> float:
    """
    Validate that a value is a positive float.

    Args:
        value: Value to validate
        min_value: Minimum allowed value (inclusive)
        max_value: Maximum allowed value (inclusive), None for no limit
        field_name: Name of the field being validated

    Returns:
        Validated float value

    Raises:
        ValidationError: If validation fails
    """
    if isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be a valid number, got {value}",
            field_name=field_name,
            value=value
        )
    try:
        float_value = float(value)
    except (ValueError, TypeError):
        raise ValidationError(
            f"{field_name} must be a valid number, got {value}",
            field_name=field_name,
            value=value
        )
    if float_value < min_value:
        raise ValidationError(
            f"{field_name} must be >= {min_value}, got {float_value}",
            field_name=field_name,
            value=value
        )
    if max_value is not None and float_value > max_value:
        raise ValidationError(
            f"{field_name} must be <= {max_value}, got {float_value}",
            field_name=field_name,
            value=value
        )
    return float_value


def validate_non_empty_string(value: Any, field_name: str = "value") -> str:
    """Validate that a value is a string with at least one non-blank character."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"{field_name} must be a non-empty string",
            field_name=field_name,
            value=value
        )
    return value


def validate_bool(value: Any, field_name: str = "value") -> bool:
    """Validate that a value is a real boolean (TOML true/false)."""
    if not isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be a boolean",
            field_name=field_name,
            value=value
        )
    return value


def validate_string_list(value: Any, field_name: str = "value", allow_empty: bool = True) -> List[str]:
    """
    Validate a list of strings.

    Args:
        value: Value to validate
        field_name: Name of the field being validated
        allow_empty: Whether an empty list is acceptable

    Returns:
        The validated list (a copy)

    Raises:
        ValidationError: If the value is not a list of strings
    """
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(
            f"{field_name} must be a list of strings",
            field_name=field_name,
            value=value
        )
    if not allow_empty and not value:
        raise ValidationError(
            f"{field_name} must not be empty",
            field_name=field_name,
            value=value
        )
    return list(value)


def validate_regex_pattern(pattern: str, field_name: str = "pattern") -> str:
    """
    Validate that a string compiles as a regular expression.

    Raises:
        ValidationError: If the pattern is not a valid regex
    """
    validate_non_empty_string(pattern, field_name)
    try:
        re.compile(pattern)
    except re.error as e:
        raise ValidationError(
            f"{field_name} is not a valid regular expression: {e}",
            field_name=field_name,
            value=pattern
        )
    return pattern


def validate_builder_name(name: Any, field_name: str = "builder") -> str:
    """
    Validate a build configuration identifier of the form ``os-arch[-variant]``.

    Raises:
        ValidationError: If the name does not have at least two dash-separated parts
    """
    if not isinstance(name, str) or not BUILDER_NAME_PATTERN.match(name):
        raise ValidationError(
            f"unsupported builder form: {name}",
            field_name=field_name,
            value=name
        )
    return name
