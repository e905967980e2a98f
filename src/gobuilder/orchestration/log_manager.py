"""
Build log file placement.

Each build attempt mirrors its output to a log file while it runs. Without
a configured log directory the file lives inside the private workspace and
disappears with it; with one, logs are kept for later inspection.
"""

import logging
import re
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


class BuildLogManager:
    """Decides where build logs are written."""

    def __init__(self, log_dir: Optional[Path] = None):
        self.log_dir = Path(log_dir) if log_dir else None
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Build logs will be kept in {self.log_dir}")

    def log_path(self, workspace: Path, builder: str, hash: str, package: str = "") -> Path:
        """
        Path of the log file for one attempt.

        Args:
            workspace: The attempt's private workspace
            builder: Build configuration name
            hash: Revision being built
            package: Secondary project import path, empty for the primary project
        """
        if self.log_dir is None:
            name = "build.log" if not package else f"{slugify(package)}.log"
            return Path(workspace) / name
        parts = [builder]
        if package:
            parts.append(slugify(package))
        parts.append(hash[:12])
        return self.log_dir / ("-".join(parts) + ".log")


def slugify(package: str) -> str:
    """Turn an import path into something usable as a file name."""
    return _UNSAFE.sub("_", package).strip("_")
