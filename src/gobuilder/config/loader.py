"""
Configuration file loading utilities.

This module handles the low-level loading and parsing of the TOML
configuration file.
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Dict

from ..validation import handle_config_error, ErrorSeverity

logger = logging.getLogger(__name__)


def load_toml_file(file_path: Path, description: str = "configuration file") -> Dict[str, Any]:
    """
    Load and parse a TOML file with error handling.

    Args:
        file_path: Path to the TOML file to load
        description: Human-readable description for error messages

    Returns:
        Parsed TOML data as a dictionary

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the file is malformed
    """
    logger.info(f"Loading {description} from: {file_path}")

    if not file_path.exists():
        logger.error(f"{description} not found: {file_path}")
        raise FileNotFoundError(f"{description} not found: {file_path}")

    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        handle_config_error(
            error=e,
            context=f"parsing {description}",
            severity=ErrorSeverity.CRITICAL,
            reraise=True,
            logger=logger
        )
        raise


def load_main_config(config_path: Path) -> Dict[str, Any]:
    """
    Load the main configuration file (config.toml).

    A relative ``builder.buildroot`` or ``builder.log_dir`` is resolved
    against the directory containing the file.
    """
    data = load_toml_file(config_path, "main configuration file")
    builder = data.get("builder", {})
    for key in ("buildroot", "log_dir"):
        value = builder.get(key)
        if isinstance(value, str) and value and not Path(value).is_absolute():
            builder[key] = str(config_path.parent / value)
    return data
