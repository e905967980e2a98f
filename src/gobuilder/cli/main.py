"""
Command-line interface for the gobuilder continuous builder.

Usage:
    gobuilder [options] goos-goarch[-variant] ...

Example:
    gobuilder --parallel --dashboard build.golang.org linux-amd64 linux-386

With no mode flag the builder polls for commits and builds forever. ``--rev``
builds one revision for every configuration and exits; ``--fail`` marks every
pending revision as failed without building anything.
"""

import argparse
import dataclasses
import logging
import signal
import sys
import tomllib
from pathlib import Path
from typing import List, Optional

from ..config import get_config, set_config_path
from ..dashboard import DashboardClient
from ..executor import ManagedThreadPoolExecutor, ThreadPoolConfig
from ..models.config import AppConfig, TargetConfiguration
from ..orchestration import (
    BuildLogManager,
    BuildWorker,
    CommitPoller,
    Orchestrator,
    RevisionStore,
)
from ..repository import RepositoryClient, WorkspaceHandle, WorkspaceLock
from ..system import ProcessRunner
from ..validation import (
    BuilderError,
    StartupError,
    ValidationError,
    handle_cli_error,
    validate_builder_name,
    validate_positive_float,
)
from .keys import COMMIT_WATCHER, load_builder_key

# --- Logging Setup ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gobuilder",
        description="Continuous builder: builds new commits and reports results to the dashboard.",
    )
    parser.add_argument(
        "builders",
        nargs="*",
        metavar="goos-goarch[-variant]",
        help="Build configurations, e.g. linux-amd64 or linux-386-387.",
    )
    parser.add_argument("--config", type=Path, help="Path of the TOML configuration file.")
    parser.add_argument("--buildroot", type=Path, help="Directory under which builds happen.")
    parser.add_argument("--dashboard", help="Dashboard host name or base URL.")
    parser.add_argument("--rev", help="Build this revision for every configuration and exit.")
    parser.add_argument("--cmd", help="Build command, relative to the source directory unless absolute.")
    parser.add_argument(
        "--fail",
        action="store_true",
        help="Mark every pending revision as failed without building.",
    )
    parser.add_argument(
        "--parallel",
        action="store_true",
        default=None,
        help="Build configurations in parallel.",
    )
    parser.add_argument("--build-timeout", type=float, help="Seconds before a build is killed.")
    parser.add_argument("--cmd-timeout", type=float, help="Seconds before a git or fetch command is killed.")
    parser.add_argument("--commit-interval", type=float, help="Seconds between commit polls.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging.")
    return parser


def apply_overrides(app_config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """
    Return a copy of the configuration with command-line flags applied.

    Raises:
        ValidationError: If a flag value is out of range
    """
    changes = {}
    if args.buildroot is not None:
        changes["buildroot"] = args.buildroot
    if args.cmd:
        changes["build_cmd"] = args.cmd
    if args.parallel is not None:
        changes["parallel"] = args.parallel
    if args.build_timeout is not None:
        changes["build_timeout"] = validate_positive_float(args.build_timeout, field_name="--build-timeout")
    if args.cmd_timeout is not None:
        changes["cmd_timeout"] = validate_positive_float(args.cmd_timeout, field_name="--cmd-timeout")
    if args.commit_interval is not None:
        changes["commit_interval"] = validate_positive_float(args.commit_interval, field_name="--commit-interval")

    dashboard = app_config.dashboard
    if args.dashboard:
        dashboard = dataclasses.replace(dashboard, host=args.dashboard)

    return dataclasses.replace(
        app_config,
        builder=dataclasses.replace(app_config.builder, **changes),
        dashboard=dashboard,
    )


def load_targets(names: List[str], home: Optional[Path] = None) -> List[TargetConfiguration]:
    """
    Parse configuration identifiers and read their keys.

    Raises:
        StartupError: On a malformed identifier or a missing key
    """
    targets = []
    for name in names:
        try:
            validate_builder_name(name)
        except ValidationError as e:
            raise StartupError(str(e)) from e
        targets.append(TargetConfiguration.from_name(name, load_builder_key(name, home)))
    return targets


def main_cli(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the builder.

    Raises:
        SystemExit: With status 2 on missing configurations, 1 on startup errors
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.builders:
        parser.error("at least one build configuration is required")

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.config:
        set_config_path(args.config)

    try:
        app_config = apply_overrides(get_config(), args)
    except (ValidationError, tomllib.TOMLDecodeError, OSError) as e:
        handle_cli_error(error=e, context="configuration loading", exit_code=1, logger=logger)

    settings = app_config.builder

    try:
        targets = load_targets(args.builders)
    except StartupError as e:
        handle_cli_error(error=e, context="builder setup", exit_code=1, logger=logger)

    runner = ProcessRunner()
    repo = RepositoryClient(runner, settings.cmd_timeout)
    shared_workspace = WorkspaceHandle(settings.shared_workspace_path, WorkspaceLock())
    dashboard = DashboardClient(
        app_config.dashboard.host,
        retries=app_config.dashboard.retries,
        retry_delay=app_config.dashboard.retry_delay,
        request_timeout=app_config.dashboard.request_timeout,
    )
    log_manager = BuildLogManager(settings.log_dir)

    workers = [
        BuildWorker(target, settings, app_config.subrepos, repo, shared_workspace, dashboard, runner, log_manager)
        for target in targets
    ]
    orchestrator = Orchestrator(settings, workers, None, repo, shared_workspace)

    def signal_handler(signum, frame):
        logger.info(f"Signal {signal.strsignal(signum)} received, stopping after the current pass")
        orchestrator.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if args.fail:
        orchestrator.run_fail_mode()
        return 0

    try:
        orchestrator.prepare_workspace()
    except StartupError as e:
        handle_cli_error(error=e, context="workspace setup", exit_code=1, logger=logger)

    if args.rev:
        try:
            orchestrator.build_revision(args.rev)
        except BuilderError as e:
            handle_cli_error(error=e, context=f"building {args.rev}", exit_code=1, logger=logger)
        return 0

    try:
        watcher_key = load_builder_key(COMMIT_WATCHER)
    except StartupError as e:
        handle_cli_error(error=e, context="commit watcher setup", exit_code=1, logger=logger)

    store = RevisionStore()
    orchestrator.poller = CommitPoller(
        store, repo, dashboard, shared_workspace, watcher_key, settings, app_config.subrepos
    )

    if settings.parallel:
        pool = ManagedThreadPoolExecutor(ThreadPoolConfig(max_workers=len(workers)))
        with pool:
            orchestrator.pool = pool
            orchestrator.run_continuous()
    else:
        orchestrator.run_continuous()
    return 0


if __name__ == "__main__":
    sys.exit(main_cli())
