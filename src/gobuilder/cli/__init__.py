"""
Command-line interface for the gobuilder package.
"""

from .keys import load_builder_key
from .main import main_cli

__all__ = [
    "load_builder_key",
    "main_cli",
]
