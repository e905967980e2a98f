"""
Workspace handles and the shared-workspace lock.

The builder keeps exactly one shared clone of the primary repository. The
commit poller pulls it and reads its log while build workers resolve hashes
in it and clone from it, possibly from several threads at once. Git does
not serialize those operations well enough on its own, so every single
administrative command against the shared clone runs under one process-wide
lock. The lock is taken around one command at a time and is never held
across a build or a dashboard request.

Each build attempt works in a private clone, created fresh and removed when
the attempt ends, which needs no locking at all.
"""

import contextlib
import logging
import shutil
import threading
from pathlib import Path
from typing import Iterator, Optional, Union

logger = logging.getLogger(__name__)


class WorkspaceLock:
    """Exclusive lock over the shared primary workspace."""

    def __init__(self):
        self._lock = threading.Lock()

    def acquire(self) -> None:
        self._lock.acquire()

    def release(self) -> None:
        self._lock.release()

    def locked(self) -> bool:
        return self._lock.locked()

    def __enter__(self) -> "WorkspaceLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


class WorkspaceHandle:
    """
    A working directory of a repository.

    A handle created with a lock is the shared primary workspace; one created
    without is private to its owner.
    """

    def __init__(self, path: Union[str, Path], lock: Optional[WorkspaceLock] = None):
        self.path = Path(path)
        self.lock = lock

    @property
    def is_shared(self) -> bool:
        return self.lock is not None

    def locked(self):
        """Context manager holding the workspace lock for shared handles only."""
        if self.lock is None:
            return contextlib.nullcontext(self)
        return self.lock

    def child(self, *parts: str) -> "WorkspaceHandle":
        """A private handle for a directory below this one."""
        return WorkspaceHandle(self.path.joinpath(*parts))

    def __fspath__(self) -> str:
        return str(self.path)

    def __repr__(self) -> str:
        kind = "shared" if self.is_shared else "private"
        return f"WorkspaceHandle({str(self.path)!r}, {kind})"


def remove_tree(path: Path) -> None:
    """Remove a directory tree, logging instead of raising on failure."""
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except OSError as e:
        logger.error(f"Error removing workspace {path}: {e}")
        shutil.rmtree(path, ignore_errors=True)


@contextlib.contextmanager
def private_workspace(root: Union[str, Path], name: str) -> Iterator[WorkspaceHandle]:
    """
    Create a fresh private workspace ``root/name`` and remove it on exit.

    A leftover directory with the same name (from a builder that was killed
    mid-attempt) is removed first.
    """
    path = Path(root) / name
    if path.exists():
        logger.warning(f"Removing stale workspace {path}")
        remove_tree(path)
    path.mkdir(parents=True, mode=0o750)
    try:
        yield WorkspaceHandle(path)
    finally:
        remove_tree(path)
