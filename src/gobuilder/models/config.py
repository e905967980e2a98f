"""
Configuration data models.

This module contains the configuration structures loaded from ``config.toml``
together with the immutable description of a single build-matrix cell.
"""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..validation import StartupError

DEFAULT_EXTRA_ENV = ["CC", "GOARM", "GOHOSTARCH", "GOHOSTOS", "PATH", "TMPDIR"]


def default_build_root() -> Path:
    """Default directory under which all workspaces are created."""
    if os.name == "nt":
        # Long absolute paths break the Windows toolchain, stay near the drive root.
        return Path("c:\\") / "gobuilder"
    return Path(tempfile.gettempdir()) / "gobuilder"


def default_build_cmd() -> str:
    return "all.bat" if os.name == "nt" else "./all.bash"


def default_final_install_path() -> str:
    return "c:\\go" if os.name == "nt" else "/usr/local/go"


@dataclass(frozen=True)
class TargetConfiguration:
    """
    One cell of the build matrix: a named (os, arch) pair and its secret key.

    Created once at startup and never mutated.
    """

    # e.g. "linux-amd64" or "linux-386-387"
    name: str
    goos: str
    goarch: str
    key: str = field(repr=False)

    @classmethod
    def from_name(cls, name: str, key: str) -> "TargetConfiguration":
        """
        Build a configuration from an ``os-arch[-variant]`` identifier.

        Raises:
            StartupError: If the identifier has fewer than two parts
        """
        parts = name.split("-", 2)
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise StartupError(f"unsupported builder form: {name}")
        return cls(name=name, goos=parts[0], goarch=parts[1], key=key)


@dataclass
class EnvironmentSettings:
    """Settings for the environment handed to build commands."""

    # Value of the toolchain-final-location variable.
    final_install_path: str = field(default_factory=default_final_install_path)
    # Host variables copied into every build environment when set.
    extra_vars: List[str] = field(default_factory=lambda: list(DEFAULT_EXTRA_ENV))


@dataclass
class SubrepoSettings:
    """How secondary projects are located, fetched and tested."""

    kind: str = "subrepo"
    url_pattern: str = r"^golang\.org/x/([a-z0-9\-]+)$"
    url_template: str = "https://go.googlesource.com/{0}"
    fetch_command: List[str] = field(
        default_factory=lambda: ["{go}", "get", "-d", "{package}/..."]
    )
    test_command: List[str] = field(
        default_factory=lambda: ["{go}", "test", "-short", "{package}/..."]
    )


@dataclass
class DashboardSettings:
    """Connection settings for the build dashboard."""

    host: str = "build.golang.org"
    retries: int = 3
    retry_delay: float = 1.0
    # None blocks for as long as the transport allows.
    request_timeout: Optional[float] = None


@dataclass
class BuilderSettings:
    """
    Global builder behaviour, loaded from the ``[builder]`` table.
    """

    buildroot: Path = field(default_factory=default_build_root)
    repo_url: str = "https://go.googlesource.com/go"
    # Directory name of the shared primary clone under buildroot.
    workspace_name: str = "goroot"
    # Directory name of the primary clone inside a private workspace.
    project_dir: str = "go"
    # Directory, relative to the primary clone, where the build command runs.
    source_dir: str = "src"
    build_cmd: str = field(default_factory=default_build_cmd)
    parallel: bool = False
    log_dir: Optional[Path] = None

    # [builder.timeouts]
    build_timeout: float = 60 * 60.0
    cmd_timeout: float = 5 * 60.0

    # [builder.polling]
    commit_interval: float = 60.0
    wait_interval: float = 30.0
    log_limit: int = 50

    environment: EnvironmentSettings = field(default_factory=EnvironmentSettings)

    @property
    def shared_workspace_path(self) -> Path:
        return Path(self.buildroot) / self.workspace_name


@dataclass
class AppConfig:
    """
    The root configuration object that aggregates all loaded settings.
    """

    builder: BuilderSettings = field(default_factory=BuilderSettings)
    subrepos: SubrepoSettings = field(default_factory=SubrepoSettings)
    dashboard: DashboardSettings = field(default_factory=DashboardSettings)
