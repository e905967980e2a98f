"""
Runtime data models.

This module contains the data structures created while the builder runs:
revisions discovered in repository logs and in-flight build attempts.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class Revision:
    """
    A single commit of a tracked repository.
    """

    # Full 40-character hash, the canonical identity of the revision.
    hash: str
    # Full hash of the parent; empty for a root or an unresolvable parent.
    parent: str = ""
    author: str = ""
    # ISO-8601 commit timestamp as printed by the version-control tool.
    date: str = ""
    desc: str = ""

    # True once the dashboard has confirmed this revision and all its ancestors.
    recorded: bool = False

    @property
    def short_hash(self) -> str:
        return self.hash[:12]


@dataclass
class BuildAttempt:
    """
    One (configuration, revision) build currently in flight.

    Owned by the BuildWorker that created it; the private workspace is removed
    when the attempt concludes.
    """

    builder: str
    hash: str
    workspace: Path
    package: str = ""
    start_time: float = field(default_factory=time.monotonic)
    log: str = ""
    exit_status: Optional[int] = None

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.start_time
