"""
State shared between orchestration components.

The RevisionStore is the process-scoped cache of every revision discovered
in a repository log. It is created once by the CLI and owned by the commit
poller. Entries are never evicted and never replaced: the first copy of a
revision seen wins, so its ``recorded`` flag survives later polls that
rediscover it.
"""

import logging
import threading
from typing import Dict, Iterator, Optional

from ..models.runtime import Revision

logger = logging.getLogger(__name__)


class RevisionStore:
    """Thread-safe table of known revisions keyed by full hash."""

    def __init__(self):
        self._revisions: Dict[str, Revision] = {}
        self._lock = threading.Lock()

    def add(self, revision: Revision) -> bool:
        """
        Insert a revision unless its hash is already known.

        A copy is stored so the caller's object stays independent.

        Returns:
            True if the revision was new
        """
        with self._lock:
            if revision.hash in self._revisions:
                return False
            self._revisions[revision.hash] = Revision(
                hash=revision.hash,
                parent=revision.parent,
                author=revision.author,
                date=revision.date,
                desc=revision.desc,
                recorded=revision.recorded,
            )
            return True

    def get(self, hash: str) -> Optional[Revision]:
        with self._lock:
            return self._revisions.get(hash)

    def mark_recorded_chain(self, hash: str) -> int:
        """
        Mark a revision and every cached ancestor as recorded.

        Used once the dashboard has confirmed a revision exists, which
        implies all of its ancestors exist too.

        Returns:
            Number of entries marked
        """
        marked = 0
        seen = set()
        with self._lock:
            revision = self._revisions.get(hash)
            while revision is not None and revision.hash not in seen:
                seen.add(revision.hash)
                revision.recorded = True
                marked += 1
                revision = self._revisions.get(revision.parent) if revision.parent else None
        return marked

    def mark_recorded(self, hash: str) -> None:
        with self._lock:
            revision = self._revisions.get(hash)
            if revision is not None:
                revision.recorded = True

    def __contains__(self, hash: object) -> bool:
        with self._lock:
            return hash in self._revisions

    def __len__(self) -> int:
        with self._lock:
            return len(self._revisions)

    def __iter__(self) -> Iterator[Revision]:
        with self._lock:
            return iter(list(self._revisions.values()))
