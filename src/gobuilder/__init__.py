"""
gobuilder: continuous builder for a Go-style build dashboard.

The builder watches the primary repository and its secondary projects for
new commits, records them on the dashboard, builds each pending revision for
every configured os/arch pair, tests the secondary projects against passing
builds, and reports every result back to the dashboard.

The package is organized into specialized modules:
- config: Configuration management and validation
- models: Data structures and type definitions
- validation: Input validation and error handling
- system: Command execution, process termination and build environments
- repository: git operations and workspace locking
- dashboard: Dashboard HTTP client
- executor: Thread pool for parallel build passes
- orchestration: Build workers, commit polling and the top-level loop
- cli: Command-line interface

Usage:
    From command line:
        gobuilder [options] linux-amd64 linux-386
"""

from .cli import main_cli
from .config import clear_config_cache, get_config, set_config_path
from .dashboard import DashboardClient
from .models import (
    AppConfig,
    BuildResult,
    BuilderSettings,
    Revision,
    TargetConfiguration,
)
from .orchestration import BuildWorker, CommitPoller, Orchestrator, RevisionStore
from .repository import RepositoryClient, WorkspaceHandle, WorkspaceLock
from .system import ProcessRunner

__version__ = "0.1.0"

__all__ = [
    "main_cli",
    "get_config",
    "set_config_path",
    "clear_config_cache",
    "AppConfig",
    "BuildResult",
    "BuilderSettings",
    "Revision",
    "TargetConfiguration",
    "DashboardClient",
    "BuildWorker",
    "CommitPoller",
    "Orchestrator",
    "RevisionStore",
    "RepositoryClient",
    "WorkspaceHandle",
    "WorkspaceLock",
    "ProcessRunner",
]
