"""
Per-configuration build cycle.

A BuildWorker owns one target configuration and runs one cycle at a time:

1. ask the dashboard for the next primary revision to build
2. make sure the shared clone has it, pulling under the workspace lock if not
3. clone the shared workspace into a private one and check the revision out
4. run the build command with the configuration's environment
5. report pass or fail (with the log) to the dashboard
6. after a passing build, test every secondary project against it
7. remove the private workspace, whatever happened

Repository, reporting and build failures all end the cycle with a log line;
the next cycle simply tries again.
"""

import logging
import os
import time
from pathlib import Path
from typing import Dict, Optional, Tuple

from ..dashboard.client import DashboardClient
from ..models.config import BuilderSettings, SubrepoSettings, TargetConfiguration
from ..models.results import BuildResult
from ..models.runtime import BuildAttempt
from ..repository.client import RepositoryClient
from ..repository.workspace import WorkspaceHandle, private_workspace
from ..system.commands import ProcessRunner
from ..system.environment import build_environment, options_for, with_toolchain
from ..validation import (
    BuildCommandFailure,
    BuilderError,
    ErrorSeverity,
    ProcessTimeout,
    ReportingError,
    VersionControlError,
    handle_error,
)
from .log_manager import BuildLogManager

logger = logging.getLogger(__name__)


class BuildWorker:
    """
    Runs the fetch, checkout, build, test and report cycle for one configuration.
    """

    def __init__(
        self,
        target: TargetConfiguration,
        settings: BuilderSettings,
        subrepos: SubrepoSettings,
        repo: RepositoryClient,
        shared_workspace: WorkspaceHandle,
        dashboard: DashboardClient,
        runner: ProcessRunner,
        log_manager: Optional[BuildLogManager] = None,
    ):
        self.target = target
        self.settings = settings
        self.subrepos = subrepos
        self.repo = repo
        self.shared_workspace = shared_workspace
        self.dashboard = dashboard
        self.runner = runner
        self.log_manager = log_manager or BuildLogManager()

    @property
    def name(self) -> str:
        return self.target.name

    def environment(self) -> Dict[str, str]:
        """Environment for this configuration's build and test commands."""
        env_settings = self.settings.environment
        return build_environment(options_for(
            self.target.goos,
            self.target.goarch,
            env_settings.extra_vars,
            env_settings.final_install_path,
        ))

    def build(self) -> bool:
        """
        Run one build cycle.

        Returns:
            True if the build command ran; False when there was nothing to do
            or the cycle ended on a repository or dashboard error
        """
        try:
            hash = self.dashboard.todo(self.name)
        except ReportingError as e:
            logger.warning(f"{self.name}: todo: {e}")
            return False
        if not hash:
            return False

        # Look for the hash locally before pulling.
        try:
            self.repo.resolve_full_hash(self.shared_workspace, hash[:12])
        except VersionControlError:
            try:
                self.repo.pull(self.shared_workspace)
            except VersionControlError as e:
                logger.error(f"{self.name}: pull failed: {e}")
                return False

        try:
            self.build_hash(hash)
        except BuilderError as e:
            handle_error(e, f"{self.name} building {hash}", ErrorSeverity.ERROR, reraise=False, logger=logger)
            return False
        return True

    def build_hash(self, hash: str) -> None:
        """
        Build and report one primary revision, then the secondary projects.

        Raises:
            VersionControlError: If the revision could not be cloned or checked out
            ReportingError: If the primary result could not be reported
        """
        logger.info(f"{self.name} building {hash}")

        with private_workspace(self.settings.buildroot, f"{self.name}-{hash[:12]}") as workspace:
            attempt = BuildAttempt(builder=self.name, hash=hash, workspace=workspace.path)
            checkout = workspace.child(self.settings.project_dir)

            self.repo.clone(self.shared_workspace, checkout.path)
            self.repo.checkout(checkout, hash)

            src_dir = checkout.path / self.settings.source_dir
            cmd = self.settings.build_cmd
            if not os.path.isabs(cmd):
                cmd = str(src_dir / cmd)
            logfile = self.log_manager.log_path(workspace.path, self.name, hash)

            ok = self._run_build(attempt, cmd, src_dir, logfile)

            result = BuildResult(
                builder=self.name,
                package="",
                hash=hash,
                go_hash="",
                ok=ok,
                log="" if ok else attempt.log,
                duration=attempt.elapsed,
            )
            try:
                self.dashboard.post_result(self.target.key, result)
            except ReportingError as e:
                logger.error(f"{self.name}: recording result for {hash}: {e}")

            if ok:
                self.build_subrepos(checkout.path, workspace.path, hash)

    def _run_build(self, attempt: BuildAttempt, cmd: str, src_dir: Path, logfile: Path) -> bool:
        """Run the build command, filling in the attempt's log and status."""
        try:
            result = self.runner.run_captured(
                [cmd], src_dir, self.settings.build_timeout,
                env=self.environment(), logfile=logfile,
            )
        except ProcessTimeout as e:
            attempt.log = f"{e.output}\n{e}\n" if e.output else f"{e}\n"
            logger.warning(f"{self.name}: {e}")
            return False
        except BuilderError as e:
            attempt.log = str(e)
            logger.error(f"{self.name}: {e}")
            return False

        attempt.exit_status = result.exit_status
        attempt.log = result.output
        if result.exit_status != 0:
            logger.info(f"{self.name}: {BuildCommandFailure(result.exit_status)} building {attempt.hash}")
            return False
        return True

    def fail_build(self) -> bool:
        """
        Mark the next pending primary revision as failed without building it.

        Returns:
            True if a revision was marked; False when there was nothing to
            mark or the dashboard refused the result
        """
        try:
            hash = self.dashboard.todo(self.name)
        except ReportingError as e:
            logger.warning(f"{self.name}: todo: {e}")
            return False
        if not hash:
            return False

        logger.info(f"fail {self.name} {hash}")
        result = BuildResult(
            builder=self.name,
            package="",
            hash=hash,
            go_hash="",
            ok=False,
            log=f"auto-fail mode run by {os.environ.get('USER', '')}",
            duration=0.0,
        )
        try:
            self.dashboard.post_result(self.target.key, result)
        except ReportingError as e:
            logger.error(f"{self.name}: {e}")
            return False
        return True

    def build_subrepos(self, go_root: Path, go_path: Path, go_hash: str) -> None:
        """Build and report every secondary project that has work against go_hash."""
        try:
            packages = self.dashboard.packages(self.subrepos.kind)
        except ReportingError as e:
            logger.warning(f"{self.name}: listing subrepos: {e}")
            return

        for package in packages:
            try:
                hash = self.dashboard.todo(self.name, package, go_hash)
            except ReportingError as e:
                logger.warning(f"build_subrepos {package}: {e}")
                continue
            if not hash:
                continue

            logger.debug(f"build_subrepos {package}: building {hash!r}")
            start = time.monotonic()
            log, error = self.build_subrepo(go_root, go_path, package, hash)
            if error is not None:
                if not log:
                    log = str(error)
                logger.warning(f"build_subrepos {package}: {error}")

            result = BuildResult(
                builder=self.name,
                package=package,
                hash=hash,
                go_hash=go_hash,
                ok=error is None,
                log="" if error is None else log,
                duration=time.monotonic() - start,
            )
            try:
                self.dashboard.post_result(self.target.key, result)
            except ReportingError as e:
                logger.error(f"build_subrepos {package}: {e}")

    def build_subrepo(
        self, go_root: Path, go_path: Path, package: str, hash: str
    ) -> Tuple[str, Optional[BuilderError]]:
        """
        Fetch a secondary project, check out hash, and run its tests.

        Returns:
            (log, error) where error is None when the tests passed
        """
        env = with_toolchain(self.environment(), str(go_root), str(go_path))
        go_tool = str(Path(go_root) / "bin" / "go")

        def expand(template):
            return [arg.format(go=go_tool, package=package) for arg in template]

        try:
            fetched = self.runner.run_captured(
                expand(self.subrepos.fetch_command), go_path, self.settings.cmd_timeout, env=env
            )
        except ProcessTimeout as e:
            return e.output, e
        except BuilderError as e:
            return "", e
        if fetched.exit_status != 0:
            return fetched.output, BuildCommandFailure(fetched.exit_status, fetched.output)

        try:
            self.repo.checkout(WorkspaceHandle(Path(go_path) / "src" / package), hash)
        except VersionControlError as e:
            return "", e

        logfile = self.log_manager.log_path(Path(go_path), self.name, hash, package)
        try:
            tested = self.runner.run_captured(
                expand(self.subrepos.test_command), go_path, self.settings.build_timeout,
                env=env, logfile=logfile,
            )
        except ProcessTimeout as e:
            return e.output, e
        except BuilderError as e:
            return "", e
        if tested.exit_status != 0:
            return tested.output, BuildCommandFailure(tested.exit_status, tested.output)
        return tested.output, None
