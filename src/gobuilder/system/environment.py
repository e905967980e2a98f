"""
Build environment construction.

Every build and test command runs in a curated environment: the target
os/arch, the final install location of the toolchain, and a fixed allow-list
of variables copied from the host. The differences between host platforms
(Windows merges the whole host environment case-insensitively, POSIX copies
only the allow-list) live behind a small adapter interface so callers only
ever deal with ``build_environment`` and ``with_toolchain``.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnvironmentOptions:
    """Everything that determines a build environment."""

    goos: str
    goarch: str
    # Host variables copied into the environment when they are set.
    extra_vars: Sequence[str] = field(default_factory=tuple)
    # Value of GOROOT_FINAL; None leaves the platform default.
    final_install_path: Optional[str] = None


class PlatformAdapter:
    """Host-platform specific parts of environment construction."""

    name = "base"
    path_separator = os.pathsep
    default_final_install_path = "/usr/local/go"

    def initial(self, options: EnvironmentOptions) -> Dict[str, str]:
        return {
            "GOOS": options.goos,
            "GOARCH": options.goarch,
            "GOROOT_FINAL": options.final_install_path or self.default_final_install_path,
        }

    def merge_host(self, env: Dict[str, str], host_env: Mapping[str, str]) -> Dict[str, str]:
        """Add whatever else of the host environment this platform needs."""
        return env

    def find_key(self, env: Mapping[str, str], name: str) -> Optional[str]:
        return name if name in env else None

    def prepend_path(self, env: Dict[str, str], directories: Sequence[str]) -> Dict[str, str]:
        """Put directories in front of PATH, if PATH is part of the environment."""
        key = self.find_key(env, "PATH")
        if key is None:
            return env
        env[key] = self.path_separator.join(list(directories) + [env[key]])
        return env


class PosixEnvironmentAdapter(PlatformAdapter):
    name = "posix"
    path_separator = ":"


class WindowsEnvironmentAdapter(PlatformAdapter):
    """
    Windows: variable names are case-insensitive and the toolchain scripts
    need most of the host environment to find compilers and system tools.
    """

    name = "nt"
    path_separator = ";"
    default_final_install_path = "c:\\go"

    # Host variables that would confuse a fresh toolchain build.
    skipped = ("GOBIN", "GOROOT", "INCLUDE", "LIB")

    def initial(self, options: EnvironmentOptions) -> Dict[str, str]:
        env = super().initial(options)
        # Make all.bat exit with the build's completion status.
        env["GOBUILDEXIT"] = "1"
        return env

    def merge_host(self, env: Dict[str, str], host_env: Mapping[str, str]) -> Dict[str, str]:
        seen = {name.upper() for name in env}
        seen.update(self.skipped)
        for name, value in host_env.items():
            upper = name.upper()
            if upper == "":
                # Drive-cwd entries such as "=C:" are copied verbatim.
                env[name] = value
            elif upper not in seen:
                env[name] = value
                seen.add(upper)
        return env

    def find_key(self, env: Mapping[str, str], name: str) -> Optional[str]:
        for key in env:
            if key.upper() == name.upper():
                return key
        return None


_ADAPTERS = {
    "posix": PosixEnvironmentAdapter,
    "nt": WindowsEnvironmentAdapter,
}


def get_platform_adapter(os_name: Optional[str] = None) -> PlatformAdapter:
    """Return the adapter for ``os_name`` (defaults to the running host)."""
    os_name = os_name or os.name
    try:
        return _ADAPTERS[os_name]()
    except KeyError:
        logger.warning(f"No environment adapter for host '{os_name}', using POSIX rules")
        return PosixEnvironmentAdapter()


def build_environment(
    options: EnvironmentOptions,
    host_env: Optional[Mapping[str, str]] = None,
    adapter: Optional[PlatformAdapter] = None,
) -> Dict[str, str]:
    """
    Build the environment for a target configuration.

    Args:
        options: Target os/arch, allow-list and final install path
        host_env: Host environment to copy from (defaults to ``os.environ``)
        adapter: Host platform adapter (defaults to the running host)

    Returns:
        A new environment mapping
    """
    host_env = os.environ if host_env is None else host_env
    adapter = adapter or get_platform_adapter()

    env = adapter.initial(options)
    for name in options.extra_vars:
        # A variable set to the empty string still counts as set.
        key = adapter.find_key(host_env, name)
        if key is not None:
            env[name] = host_env[key]
    return adapter.merge_host(env, host_env)


def with_toolchain(
    env: Mapping[str, str],
    go_root: str,
    go_path: str,
    adapter: Optional[PlatformAdapter] = None,
) -> Dict[str, str]:
    """
    Extend a build environment so it uses a freshly built toolchain.

    Sets GOROOT and GOPATH and puts both ``bin`` directories first on PATH.
    """
    adapter = adapter or get_platform_adapter()
    result = dict(env)
    result["GOROOT"] = go_root
    result["GOPATH"] = go_path
    return adapter.prepend_path(
        result, [os.path.join(go_root, "bin"), os.path.join(go_path, "bin")]
    )


def options_for(goos: str, goarch: str, extra_vars: List[str], final_install_path: Optional[str]) -> EnvironmentOptions:
    return EnvironmentOptions(
        goos=goos,
        goarch=goarch,
        extra_vars=tuple(extra_vars),
        final_install_path=final_install_path,
    )
