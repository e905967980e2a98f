"""
Version-control operations.

RepositoryClient wraps the handful of git commands the builder needs. Every
command runs through the ProcessRunner under the administrative timeout, and
every command against a shared workspace holds that workspace's lock for the
duration of that one command only.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..models.runtime import Revision
from ..system.commands import ProcessRunner
from ..validation import (
    AmbiguousOrMissingRevision,
    BuilderError,
    VersionControlError,
)
from .log_parser import LOG_FORMAT, parse_log
from .workspace import WorkspaceHandle

logger = logging.getLogger(__name__)

HASH_LENGTH = 40
_FULL_HASH = re.compile(r"^[0-9a-f]{40}$")


class RepositoryClient:
    """
    Clone, pull, checkout, resolve and log operations on git working trees.
    """

    def __init__(self, runner: ProcessRunner, cmd_timeout: float, git: str = "git"):
        self.runner = runner
        self.cmd_timeout = cmd_timeout
        self.git = git

    def _git(self, workspace: Union[WorkspaceHandle, Path], *args: str) -> str:
        """
        Run one git command and return its output.

        Raises:
            VersionControlError: On a non-zero exit, timeout or spawn failure
        """
        handle = workspace if isinstance(workspace, WorkspaceHandle) else WorkspaceHandle(workspace)
        argv = [self.git] + list(args)
        try:
            with handle.locked():
                result = self.runner.run_captured(argv, handle.path, self.cmd_timeout)
        except BuilderError as e:
            raise VersionControlError(f"git {args[0]} in {handle.path}: {e}") from e
        if result.exit_status != 0:
            raise VersionControlError(
                f"git {args[0]} in {handle.path} exited with status "
                f"{result.exit_status}: {result.output.strip()}"
            )
        return result.output

    @staticmethod
    def repo_exists(path: Union[WorkspaceHandle, Path]) -> bool:
        """Whether path holds a git working tree."""
        return (Path(path) / ".git").is_dir()

    def clone(self, source: Union[str, WorkspaceHandle], destination: Path) -> None:
        """
        Clone source (a URL or a workspace) into destination.

        Cloning from the shared workspace holds its lock while git reads it.
        """
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(source, WorkspaceHandle):
            # Run in the destination's parent so only the source needs locking.
            argv = [self.git, "clone", "--quiet", str(source.path), str(destination)]
            try:
                with source.locked():
                    result = self.runner.run_captured(argv, destination.parent, self.cmd_timeout)
            except BuilderError as e:
                raise VersionControlError(f"git clone {source.path}: {e}") from e
            if result.exit_status != 0:
                raise VersionControlError(
                    f"git clone {source.path} exited with status {result.exit_status}: "
                    f"{result.output.strip()}"
                )
            return
        if not source:
            raise VersionControlError(f"no repository URL to clone into {destination}")
        self._git(destination.parent, "clone", "--quiet", source, str(destination))

    def pull(self, workspace: WorkspaceHandle) -> None:
        self._git(workspace, "pull", "--quiet", "--ff-only")

    def checkout(self, workspace: WorkspaceHandle, revision: str) -> None:
        self._git(workspace, "checkout", "--quiet", "--detach", revision)

    def resolve_full_hash(self, workspace: WorkspaceHandle, revision: str) -> str:
        """
        Resolve a short hash, ref or keyword to a full commit hash.

        Raises:
            AmbiguousOrMissingRevision: If the revision matches no commit or
                several, or git prints something that is not a full hash
            VersionControlError: If git could not be run at all
        """
        try:
            output = self._git(
                workspace, "rev-parse", "--verify", "--quiet", "--end-of-options", f"{revision}^{{commit}}"
            )
        except VersionControlError as e:
            if isinstance(e.__cause__, BuilderError):
                raise
            raise AmbiguousOrMissingRevision(revision, "cannot find revision") from e

        full = output.strip()
        if not full:
            raise AmbiguousOrMissingRevision(revision, "cannot find revision")
        if len(full) != HASH_LENGTH or not _FULL_HASH.match(full):
            raise AmbiguousOrMissingRevision(revision, f"git returned invalid hash {full!r}")
        return full

    def log(self, workspace: WorkspaceHandle, limit: int) -> List[Revision]:
        """
        Return the most recent ``limit`` revisions, newest first, with parents.

        Parents are linked as described in ``link_parents``; only merges and
        parents that are not the next log entry cost a ``git rev-parse``.
        """
        output = self._git(
            workspace, "log", "--encoding=utf-8", f"--max-count={limit}", f"--format={LOG_FORMAT}"
        )
        try:
            entries = parse_log(output)
        except ValueError as e:
            raise VersionControlError(f"unparseable git log in {Path(workspace)}: {e}") from e

        return link_parents(entries, lambda ref: self._resolve_parent(workspace, ref))

    def _resolve_parent(self, workspace: WorkspaceHandle, ref: str) -> str:
        try:
            return self.resolve_full_hash(workspace, ref)
        except VersionControlError as e:
            logger.warning(f"Cannot resolve parent {ref} in {Path(workspace)}: {e}")
            return ""


def link_parents(entries: Sequence, resolve) -> List[Revision]:
    """
    Fill in each revision's parent from a parsed log window.

    The window is read as linear history:

    - a single parent that is the next entry in the log is linked directly
    - a single parent of the oldest entry is outside the window and left
      empty, so the window can be recorded on a fresh dashboard
    - a merge, or a parent that is not the next entry, is resolved
      explicitly (first parent only)
    - an entry without parents borrows the hash of the next entry

    Args:
        entries: (revision, parent references) pairs, newest first
        resolve: Callable turning a parent reference into a full hash,
            returning "" when it cannot

    Returns:
        The revisions with ``parent`` set
    """
    revisions = []
    for i, (revision, parent_refs) in enumerate(entries):
        following = entries[i + 1][0].hash if i + 1 < len(entries) else ""
        if not parent_refs:
            revision.parent = following
        elif len(parent_refs) == 1 and not following:
            revision.parent = ""
        elif len(parent_refs) == 1 and following.startswith(parent_refs[0]):
            revision.parent = following
        else:
            revision.parent = resolve(parent_refs[0])
        logger.debug(f"log {revision.hash} < {revision.parent}")
        revisions.append(revision)
    return revisions


def subrepo_url(import_path: str, pattern: str, template: str) -> Optional[str]:
    """
    Map a secondary project's import path to its clone URL.

    Returns:
        The URL, or None if the import path does not match the pattern
    """
    match = re.match(pattern, import_path)
    if not match:
        logger.error(f"subrepo_url: couldn't decipher {import_path!r}")
        return None
    return template.format(*match.groups(), path=import_path)
