"""
Configuration management and singleton pattern.

This module provides the main configuration loading and management interface,
implementing a singleton pattern to ensure configuration is loaded only once.
"""

import logging
from pathlib import Path
from typing import Optional

from ..models.config import AppConfig
from ..validation import handle_config_error, ErrorSeverity
from .loader import load_main_config
from .validators import validate_app_config

logger = logging.getLogger(__name__)

# --- Global Singleton for Configuration ---

_CONFIG: Optional[AppConfig] = None

# Default path of the main configuration file, relative to the project root.
# Overridden by the CLI --config flag and by tests.
_CONFIG_FILE_PATH = Path(__file__).parent.parent.parent.parent / "conf" / "config.toml"


def set_config_path(config_path: Path) -> None:
    """
    Set a custom configuration file path.

    Clears any cached configuration so the next get_config() call reloads.
    """
    global _CONFIG_FILE_PATH, _CONFIG
    _CONFIG_FILE_PATH = Path(config_path)
    _CONFIG = None
    logger.info(f"Configuration path set to: {config_path}")


def get_config_path() -> Path:
    return _CONFIG_FILE_PATH


def clear_config_cache() -> None:
    """
    Clear the cached configuration, forcing a reload on next access.
    """
    global _CONFIG
    _CONFIG = None
    logger.debug("Configuration cache cleared")


def _load_config(config_path: Path) -> AppConfig:
    """
    Load and validate the application configuration.

    A missing configuration file is not an error: every setting has a
    default, so the builder runs with defaults and CLI overrides.

    Raises:
        ValidationError: If configuration validation fails
        tomllib.TOMLDecodeError: If the TOML file is malformed
    """
    try:
        if config_path.exists():
            data = load_main_config(config_path)
        else:
            logger.warning(f"Configuration file {config_path} not found, using defaults")
            data = {}

        app_config = validate_app_config(data)
        logger.debug(
            f"Loaded configuration: buildroot={app_config.builder.buildroot}, "
            f"dashboard={app_config.dashboard.host}"
        )
        return app_config

    except Exception as e:
        handle_config_error(
            error=e,
            context="processing configuration",
            severity=ErrorSeverity.CRITICAL,
            reraise=True,
            logger=logger
        )
        raise


def get_config() -> AppConfig:
    """
    Get the global application configuration, loading it if necessary.

    Returns:
        The singleton AppConfig instance
    """
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = _load_config(_CONFIG_FILE_PATH)
    return _CONFIG


def is_config_loaded() -> bool:
    return _CONFIG is not None
