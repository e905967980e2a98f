"""
Build orchestration: workers, commit polling and the top-level loop.
"""

from .build_worker import BuildWorker
from .commit_poller import CommitPoller
from .log_manager import BuildLogManager
from .orchestrator import Orchestrator
from .shared_state import RevisionStore

__all__ = [
    "BuildLogManager",
    "BuildWorker",
    "CommitPoller",
    "Orchestrator",
    "RevisionStore",
]
