"""
Data models for the builder.

Configuration Models:
- Builder, subrepo and dashboard settings loaded from TOML
- Target configurations (one per build-matrix cell)

Runtime Models:
- Revisions discovered by polling repository logs
- In-flight build attempts

Result Models:
- Command results returned by the process runner
- Build results reported to the dashboard
"""

from .config import (
    AppConfig,
    BuilderSettings,
    DashboardSettings,
    EnvironmentSettings,
    SubrepoSettings,
    TargetConfiguration,
)
from .runtime import BuildAttempt, Revision
from .results import BuildResult, CommandResult

__all__ = [
    # Configuration
    "AppConfig",
    "BuilderSettings",
    "DashboardSettings",
    "EnvironmentSettings",
    "SubrepoSettings",
    "TargetConfiguration",
    # Runtime
    "BuildAttempt",
    "Revision",
    # Results
    "BuildResult",
    "CommandResult",
]
