"""
Top-level builder loop.

The Orchestrator prepares the shared workspace and then runs in one of
three modes:

- continuous: the commit poller runs in the background while the build
  workers are driven pass after pass, sequentially or in parallel
- fail mode: every pending primary revision is marked failed, nothing is built
- single revision: one named revision is built for every configuration
"""

import logging
import threading
import time
from pathlib import Path
from typing import List, Optional

from ..executor import ManagedThreadPoolExecutor
from ..models.config import BuilderSettings
from ..repository.client import RepositoryClient
from ..repository.workspace import WorkspaceHandle, remove_tree
from ..validation import (
    BuilderError,
    ErrorSeverity,
    StartupError,
    VersionControlError,
    handle_error,
)
from .build_worker import BuildWorker
from .commit_poller import CommitPoller

logger = logging.getLogger(__name__)


class Orchestrator:
    """
    Drives the build workers and owns the commit poller's lifetime.
    """

    def __init__(
        self,
        settings: BuilderSettings,
        workers: List[BuildWorker],
        poller: Optional[CommitPoller],
        repo: RepositoryClient,
        shared_workspace: WorkspaceHandle,
        pool: Optional[ManagedThreadPoolExecutor] = None,
    ):
        self.settings = settings
        self.workers = workers
        self.poller = poller
        self.repo = repo
        self.shared_workspace = shared_workspace
        self.pool = pool
        self._stop_event = threading.Event()

    def prepare_workspace(self) -> None:
        """
        Reuse the shared clone if it exists, otherwise recreate the build root
        and clone the primary repository into it.

        Raises:
            StartupError: If the primary repository could not be cloned
        """
        if self.repo.repo_exists(self.shared_workspace):
            logger.info(f"Found {self.shared_workspace.path}, reusing workspace")
            return

        buildroot = Path(self.settings.buildroot)
        remove_tree(buildroot)
        try:
            buildroot.mkdir(parents=True, mode=0o750, exist_ok=True)
        except OSError as e:
            raise StartupError(f"Error making build root {buildroot}: {e}") from e
        try:
            self.repo.clone(self.settings.repo_url, self.shared_workspace.path)
        except VersionControlError as e:
            raise StartupError(f"Error cloning repository: {e}") from e
        logger.info(f"Cloned {self.settings.repo_url} into {self.shared_workspace.path}")

    def run_pass(self) -> bool:
        """
        Give every worker one build cycle.

        Returns:
            True if any worker did work
        """
        if self.pool is not None:
            results = self.pool.run_all([worker.build for worker in self.workers])
            return any(result is True for result in results)

        built = False
        for worker in self.workers:
            try:
                built = worker.build() or built
            except Exception as e:
                handle_error(e, f"{worker.name} build cycle", ErrorSeverity.ERROR, reraise=False, logger=logger)
        return built

    def run_continuous(self, max_passes: Optional[int] = None) -> int:
        """
        Build forever, or until stopped or ``max_passes`` passes have run.

        When a pass finds nothing to build the loop sleeps the wait
        interval, and no pass is shorter than the wait interval.

        Returns:
            Number of passes run
        """
        wait = self.settings.wait_interval
        if self.poller is not None:
            self.poller.start()

        passes = 0
        try:
            while not self._stop_event.is_set():
                if max_passes is not None and passes >= max_passes:
                    break
                start = time.monotonic()
                built = self.run_pass()
                passes += 1

                if not built:
                    logger.debug(f"Nothing to build, sleeping {wait}s")
                    if self._stop_event.wait(wait):
                        break

                elapsed = time.monotonic() - start
                if elapsed < wait:
                    self._stop_event.wait(wait - elapsed)
        finally:
            if self.poller is not None:
                self.poller.stop()
        return passes

    def run_fail_mode(self, max_passes: Optional[int] = None) -> int:
        """
        Mark pending primary revisions failed until no worker finds any.

        Returns:
            Number of revisions marked
        """
        marked = 0
        passes = 0
        while not self._stop_event.is_set():
            if max_passes is not None and passes >= max_passes:
                break
            passes += 1
            built = False
            for worker in self.workers:
                if worker.fail_build():
                    built = True
                    marked += 1
            if not built:
                break
        logger.info(f"Fail mode marked {marked} revisions")
        return marked

    def build_revision(self, revision: str) -> bool:
        """
        Build one explicitly named revision for every configuration.

        Raises:
            AmbiguousOrMissingRevision: If the revision cannot be resolved
            VersionControlError: If git could not be run

        Returns:
            True if every configuration completed its attempt
        """
        hash = self.repo.resolve_full_hash(self.shared_workspace, revision)
        logger.info(f"Building {revision} ({hash}) for {len(self.workers)} configurations")

        ok = True
        for worker in self.workers:
            try:
                worker.build_hash(hash)
            except BuilderError as e:
                handle_error(e, f"{worker.name} building {hash}", ErrorSeverity.ERROR, reraise=False, logger=logger)
                ok = False
        return ok

    def stop(self) -> None:
        """Stop the continuous or fail-mode loop after the current pass."""
        self._stop_event.set()
        if self.poller is not None:
            self.poller.stop()
