"""
Builder key lookup.

Each configuration authenticates to the dashboard with a secret key read
from ``~/.gobuildkey-<name>``, falling back to the shared ``~/.gobuildkey``.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from ..validation import StartupError

logger = logging.getLogger(__name__)

# Pseudo-configuration whose key the commit poller uses.
COMMIT_WATCHER = "commit-watcher"


def home_dir() -> Path:
    if os.name == "nt":
        return Path(os.environ.get("HOMEDRIVE", "") + os.environ.get("HOMEPATH", ""))
    return Path(os.environ.get("HOME") or Path.home())


def load_builder_key(name: str, home: Optional[Path] = None) -> str:
    """
    Read the dashboard key for a configuration.

    Returns:
        The first line of the key file, stripped

    Raises:
        StartupError: If neither key file can be read or the key is empty
    """
    home = Path(home) if home is not None else home_dir()
    candidates = [home / f".gobuildkey-{name}", home / ".gobuildkey"]

    for path in candidates:
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            continue
        except OSError as e:
            raise StartupError(f"reading key for {name} from {path}: {e}") from e
        lines = content.splitlines()
        key = lines[0].strip() if lines else ""
        if not key:
            raise StartupError(f"empty key in {path}")
        logger.debug(f"Using key for {name} from {path}")
        return key

    raise StartupError(f"no key found for {name}: tried {', '.join(str(p) for p in candidates)}")
