"""
System interaction utilities.

- Command execution with hard timeouts and interleaved output capture
- Process tree termination for commands that overrun their timeout
- Construction of the curated environment handed to build commands
"""

from .commands import ProcessRunner
from .environment import (
    EnvironmentOptions,
    PlatformAdapter,
    PosixEnvironmentAdapter,
    WindowsEnvironmentAdapter,
    build_environment,
    get_platform_adapter,
    options_for,
    with_toolchain,
)
from .processes import TimeoutConstants, terminate_process_tree

__all__ = [
    # Commands
    "ProcessRunner",
    # Processes
    "TimeoutConstants",
    "terminate_process_tree",
    # Environment
    "EnvironmentOptions",
    "PlatformAdapter",
    "PosixEnvironmentAdapter",
    "WindowsEnvironmentAdapter",
    "build_environment",
    "get_platform_adapter",
    "options_for",
    "with_toolchain",
]
