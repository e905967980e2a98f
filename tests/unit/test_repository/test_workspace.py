"""
Unit tests for workspace handles, the workspace lock and private workspaces.
"""

import os
import threading

import pytest

from gobuilder.repository import WorkspaceHandle, WorkspaceLock, private_workspace, remove_tree


@pytest.mark.unit
class TestWorkspaceLock:
    """Test cases for WorkspaceLock."""

    def test_context_manager(self):
        lock = WorkspaceLock()

        with lock:
            assert lock.locked()
        assert not lock.locked()

    def test_mutual_exclusion(self):
        lock = WorkspaceLock()
        inside = []
        max_inside = []
        guard = threading.Lock()

        def critical():
            for _ in range(20):
                with lock:
                    with guard:
                        inside.append(1)
                        max_inside.append(len(inside))
                    threading.Event().wait(0.001)
                    with guard:
                        inside.pop()

        threads = [threading.Thread(target=critical) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert max(max_inside) == 1


@pytest.mark.unit
class TestWorkspaceHandle:
    """Test cases for WorkspaceHandle."""

    def test_shared_handle_locks(self, temp_dir):
        handle = WorkspaceHandle(temp_dir, WorkspaceLock())

        assert handle.is_shared
        with handle.locked():
            assert handle.lock.locked()
        assert not handle.lock.locked()

    def test_private_handle_does_not_lock(self, temp_dir):
        handle = WorkspaceHandle(temp_dir)

        assert not handle.is_shared
        with handle.locked() as inner:
            assert inner is handle

    def test_child_is_private(self, temp_dir):
        handle = WorkspaceHandle(temp_dir, WorkspaceLock())
        child = handle.child("go", "src")

        assert child.path == temp_dir / "go" / "src"
        assert not child.is_shared

    def test_fspath(self, temp_dir):
        handle = WorkspaceHandle(str(temp_dir))

        assert os.fspath(handle) == str(temp_dir)
        assert "private" in repr(handle)


@pytest.mark.unit
class TestPrivateWorkspace:
    """Test cases for private_workspace."""

    def test_created_and_removed(self, temp_dir):
        with private_workspace(temp_dir, "linux-amd64-0123456789ab") as ws:
            assert ws.path == temp_dir / "linux-amd64-0123456789ab"
            assert ws.path.is_dir()
            (ws.path / "build.log").write_text("log")

        assert not (temp_dir / "linux-amd64-0123456789ab").exists()

    def test_removed_on_error(self, temp_dir):
        with pytest.raises(RuntimeError):
            with private_workspace(temp_dir, "ws") as ws:
                (ws.path / "go").mkdir()
                raise RuntimeError("build exploded")

        assert not (temp_dir / "ws").exists()

    def test_stale_workspace_is_replaced(self, temp_dir):
        stale = temp_dir / "ws"
        stale.mkdir()
        (stale / "leftover").write_text("old")

        with private_workspace(temp_dir, "ws") as ws:
            assert not (ws.path / "leftover").exists()

    def test_creates_missing_root(self, temp_dir):
        with private_workspace(temp_dir / "buildroot", "ws") as ws:
            assert ws.path.is_dir()


@pytest.mark.unit
def test_remove_tree_missing_path(temp_dir):
    remove_tree(temp_dir / "missing")
    assert not (temp_dir / "missing").exists()
