"""
Pytest configuration and shared fixtures for the gobuilder test suite.

This module provides common fixtures, test doubles and configuration for
all test modules in the gobuilder project.
"""

import shutil
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import Mock

import pytest
import toml

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gobuilder.config import clear_config_cache  # noqa: E402
from gobuilder.models import BuilderSettings, Revision, TargetConfiguration  # noqa: E402
from gobuilder.validation import ReportingError  # noqa: E402


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


@pytest.fixture(autouse=True)
def reset_config_cache():
    """Make sure no test sees configuration loaded by another."""
    clear_config_cache()
    yield
    clear_config_cache()


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def sample_config_data():
    """Sample configuration data for testing."""
    return {
        "builder": {
            "buildroot": "/tmp/gobuilder-test",
            "repo_url": "https://example.com/go",
            "build_cmd": "./make.bash",
            "parallel": True,
            "timeouts": {"build_timeout": 120.0, "cmd_timeout": 10.0},
            "polling": {"commit_interval": 5.0, "wait_interval": 1.0, "log_limit": 20},
            "environment": {
                "final_install_path": "/opt/go",
                "extra_vars": ["PATH", "CC"],
            },
        },
        "subrepos": {
            "kind": "subrepo",
            "url_pattern": r"^example\.com/x/([a-z]+)$",
            "url_template": "https://example.com/r/{0}",
        },
        "dashboard": {
            "host": "dash.example.com",
            "retries": 2,
            "retry_delay": 0.0,
        },
    }


@pytest.fixture
def config_file(temp_dir, sample_config_data):
    """Write the sample configuration to a TOML file."""
    path = temp_dir / "config.toml"
    with open(path, "w") as f:
        toml.dump(sample_config_data, f)
    return path


@pytest.fixture
def builder_settings(temp_dir):
    """BuilderSettings rooted in a temporary directory with tiny intervals."""
    return BuilderSettings(
        buildroot=temp_dir / "buildroot",
        repo_url="https://example.com/go",
        build_cmd="./all.bash",
        build_timeout=30.0,
        cmd_timeout=10.0,
        commit_interval=0.01,
        wait_interval=0.0,
        log_limit=10,
    )


@pytest.fixture
def target():
    return TargetConfiguration.from_name("linux-amd64", "secret")


# ============================================================================
# Test Doubles
# ============================================================================


class FakeDashboard:
    """
    In-memory stand-in for DashboardClient.

    ``todo_queue`` maps (builder, package) to a list of hashes handed out in
    order; ``present`` holds (package, hash) pairs the dashboard already knows.
    """

    def __init__(self, present=None, packages: Optional[List[str]] = None):
        self.present = set(present or ())
        self.package_list = list(packages or [])
        self.todo_queue: Dict[tuple, List[str]] = {}
        self.posted_commits: List[Revision] = []
        self.results: List[Any] = []
        self.exists_queries: List[str] = []
        self.fail_posts = False

    def todo(self, builder, package="", go_hash=""):
        queue = self.todo_queue.get((builder, package), [])
        return queue.pop(0) if queue else ""

    def commit_exists(self, package, hash):
        self.exists_queries.append(hash)
        return (package, hash) in self.present

    def post_commit(self, key, package, revision):
        if self.fail_posts:
            raise ReportingError("dashboard unavailable")
        if revision.parent and (package, revision.parent) not in self.present:
            raise AssertionError(f"{revision.hash} posted before its parent {revision.parent}")
        self.posted_commits.append(revision)
        self.present.add((package, revision.hash))

    def post_result(self, key, result):
        self.results.append(result)

    def packages(self, kind="subrepo"):
        return list(self.package_list)


@pytest.fixture
def fake_dashboard():
    return FakeDashboard()


@pytest.fixture
def mock_runner():
    """A ProcessRunner double; tests set run_captured's behaviour."""
    return Mock()


def _make_hash(n: int) -> str:
    return f"{n:040x}"


def _make_chain(n: int) -> List[Revision]:
    """Revisions 1..n, each the parent of the next, newest first."""
    revisions = []
    for i in range(1, n + 1):
        revisions.append(Revision(
            hash=_make_hash(i),
            parent=_make_hash(i - 1) if i > 1 else "",
            author="Gopher <gopher@example.com>",
            date=f"2024-01-{i % 28 + 1:02d}T00:00:00Z",
            desc=f"change {i}",
        ))
    return list(reversed(revisions))


@pytest.fixture
def make_hash():
    """Factory for deterministic 40-character hex hashes."""
    return _make_hash


@pytest.fixture
def make_chain():
    """Factory for a linear chain of n revisions, newest first."""
    return _make_chain
