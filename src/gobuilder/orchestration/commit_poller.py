"""
Background discovery of new commits.

The CommitPoller periodically pulls the primary repository and every
secondary project, reads the most recent log entries and makes sure the
dashboard knows about each of them. Commits are always recorded parent
first, so the dashboard never sees a child before its parent.
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional

from ..dashboard.client import DashboardClient
from ..models.config import BuilderSettings, SubrepoSettings
from ..repository.client import RepositoryClient, subrepo_url
from ..repository.workspace import WorkspaceHandle, remove_tree
from ..validation import BuilderError, ErrorSeverity, ReportingError, handle_error
from .shared_state import RevisionStore

logger = logging.getLogger(__name__)


class CommitPoller:
    """
    Keeps the dashboard's commit list in step with the repositories.
    """

    def __init__(
        self,
        store: RevisionStore,
        repo: RepositoryClient,
        dashboard: DashboardClient,
        shared_workspace: WorkspaceHandle,
        key: str,
        settings: BuilderSettings,
        subrepos: SubrepoSettings,
    ):
        self.store = store
        self.repo = repo
        self.dashboard = dashboard
        self.shared_workspace = shared_workspace
        self.key = key
        self.settings = settings
        self.subrepos = subrepos

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start polling in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Commit poller already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="CommitPoller", daemon=True)
        self._thread.start()
        logger.info(f"Commit poller started, interval {self.settings.commit_interval}s")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Ask the polling thread to finish and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
            logger.info("Commit poller stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception as e:
                handle_error(e, "commit poll", ErrorSeverity.ERROR, reraise=False, logger=logger)
            self._stop_event.wait(self.settings.commit_interval)

    def poll_once(self) -> None:
        """Poll the primary repository and then each secondary project."""
        self.poll_package("")

        try:
            packages = self.dashboard.packages(self.subrepos.kind)
        except ReportingError as e:
            logger.warning(f"commit poll: listing subrepos: {e}")
            return
        for package in packages:
            self.poll_package(package)

    def _workspace_for(self, package: str) -> WorkspaceHandle:
        if not package:
            return self.shared_workspace
        # Secondary clones are only touched by the poller.
        return WorkspaceHandle(Path(self.settings.buildroot) / package)

    def poll_package(self, package: str) -> int:
        """
        Pull one project and record its recent commits.

        Errors are logged and end the poll of this project only.

        Returns:
            Number of revisions seen for the first time
        """
        label = package or "primary"
        workspace = self._workspace_for(package)

        if not self.repo.repo_exists(workspace):
            url = self.settings.repo_url
            if package:
                url = subrepo_url(package, self.subrepos.url_pattern, self.subrepos.url_template) or ""
            try:
                self.repo.clone(url, workspace.path)
            except BuilderError as e:
                logger.error(f"{label}: clone failed: {e}")
                remove_tree(workspace.path)
                return 0

        try:
            self.repo.pull(workspace)
            revisions = self.repo.log(workspace, self.settings.log_limit)
        except BuilderError as e:
            logger.error(f"{label}: {e}")
            return 0

        added = 0
        for revision in revisions:
            if self.store.add(revision):
                added += 1
        logger.debug(f"{label}: {len(revisions)} log entries, {added} new")

        for revision in revisions:
            self.record_revision(package, revision.hash)
        return added

    def record_revision(self, package: str, hash: str) -> bool:
        """
        Make sure the dashboard knows about a revision and all its ancestors.

        Each unrecorded revision is checked against the dashboard first. If
        it is already there, it and every cached ancestor are marked
        recorded. Otherwise its parent is handled first and then the
        revision itself is posted.

        Returns:
            True if the revision is now recorded
        """
        pending: List[str] = [hash]
        on_stack = {hash}
        checked = set()

        while pending:
            current = pending[-1]
            revision = self.store.get(current)
            if revision is None:
                # A parent below the polled window is fine if the dashboard has it.
                if current != hash and self._exists(package, current):
                    pending.pop()
                    on_stack.discard(current)
                    continue
                logger.error(f"record_revision: unknown hash {current!r}")
                return False
            if revision.recorded:
                pending.pop()
                on_stack.discard(current)
                continue

            if current not in checked:
                checked.add(current)
                try:
                    exists = self.dashboard.commit_exists(package, current)
                except ReportingError as e:
                    logger.error(f"record_revision {current}: {e}")
                    return False
                if exists:
                    self.store.mark_recorded_chain(current)
                    pending.pop()
                    on_stack.discard(current)
                    continue
                parent = revision.parent
                if parent:
                    if parent in on_stack:
                        logger.error(f"record_revision: parent cycle at {current}")
                        return False
                    pending.append(parent)
                    on_stack.add(parent)
                    continue

            # The parent, if any, is recorded by now.
            try:
                self.dashboard.post_commit(self.key, package, revision)
            except ReportingError as e:
                logger.error(f"record_revision {current}: {e}")
                return False
            logger.info(f"recorded {package or 'go'} commit {revision.short_hash}")
            self.store.mark_recorded(current)
            pending.pop()
            on_stack.discard(current)

        return True

    def _exists(self, package: str, hash: str) -> bool:
        try:
            return self.dashboard.commit_exists(package, hash)
        except ReportingError as e:
            logger.error(f"record_revision {hash}: {e}")
            return False
