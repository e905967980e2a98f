"""
Repository access for the builder.

- RepositoryClient: git clone/pull/checkout/resolve/log through the ProcessRunner
- WorkspaceLock and WorkspaceHandle: the shared primary clone and its lock
- private_workspace: scoped per-attempt working directories
"""

from .client import HASH_LENGTH, RepositoryClient, link_parents, subrepo_url
from .log_parser import LOG_FORMAT, parse_log
from .workspace import WorkspaceHandle, WorkspaceLock, private_workspace, remove_tree

__all__ = [
    "HASH_LENGTH",
    "LOG_FORMAT",
    "RepositoryClient",
    "WorkspaceHandle",
    "WorkspaceLock",
    "link_parents",
    "parse_log",
    "private_workspace",
    "remove_tree",
    "subrepo_url",
]
