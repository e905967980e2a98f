"""
Result data models.

``CommandResult`` is what the process runner hands back for a finished
command; ``BuildResult`` is the immutable outcome sent to the dashboard.
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class CommandResult:
    """Outcome of an external command that ran to completion."""

    # stdout and stderr interleaved in the order they were written.
    output: str
    exit_status: int
    duration: float = 0.0


@dataclass(frozen=True)
class BuildResult:
    """
    A pass/fail result for one revision on one build configuration.

    For the primary project ``package`` and ``go_hash`` are empty; for a
    secondary project ``go_hash`` is the primary revision it was built against.
    """

    builder: str
    package: str
    hash: str
    go_hash: str
    ok: bool
    log: str
    # Wall-clock duration in seconds.
    duration: float

    def to_payload(self) -> Dict[str, Any]:
        """Encode the result in the dashboard's wire format."""
        return {
            "Builder": self.builder,
            "PackagePath": self.package,
            "Hash": self.hash,
            "GoHash": self.go_hash,
            "OK": self.ok,
            "Log": self.log,
            # The dashboard stores durations as integer nanoseconds.
            "RunTime": int(self.duration * 1e9),
        }
