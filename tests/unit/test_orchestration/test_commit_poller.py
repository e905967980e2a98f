"""
Unit tests for CommitPoller: discovery, parent-first recording and the
background loop.
"""

import copy
import threading
from unittest.mock import Mock

import pytest

from gobuilder.models import SubrepoSettings
from gobuilder.orchestration import CommitPoller, RevisionStore
from gobuilder.repository import WorkspaceHandle, WorkspaceLock
from gobuilder.validation import ReportingError, VersionControlError


@pytest.fixture
def repo():
    repo = Mock()
    repo.repo_exists.return_value = True
    repo.log.return_value = []
    return repo


@pytest.fixture
def store():
    return RevisionStore()


@pytest.fixture
def poller(store, repo, fake_dashboard, builder_settings, temp_dir):
    shared = WorkspaceHandle(temp_dir / "buildroot" / "goroot", WorkspaceLock())
    return CommitPoller(
        store, repo, fake_dashboard, shared, "watcher-key", builder_settings, SubrepoSettings()
    )


def posted(dashboard):
    return [r.hash for r in dashboard.posted_commits]


@pytest.mark.unit
class TestRecordRevision:
    """Test cases for parent-first commit recording."""

    def test_scenario_new_history_is_posted_oldest_first(self, poller, repo, fake_dashboard, make_chain):
        chain = make_chain(3)  # C, B, A
        repo.log.return_value = copy.deepcopy(chain)

        poller.poll_package("")

        assert posted(fake_dashboard) == [chain[2].hash, chain[1].hash, chain[0].hash]
        assert all(poller.store.get(r.hash).recorded for r in chain)

    def test_scenario_known_parent_is_not_resubmitted(self, poller, store, repo, fake_dashboard, make_chain):
        c, b, a = make_chain(3)
        store.add(a)
        fake_dashboard.present.add(("", a.hash))
        repo.log.return_value = [copy.deepcopy(c), copy.deepcopy(b)]

        poller.poll_package("")

        assert posted(fake_dashboard) == [b.hash, c.hash]
        assert store.get(a.hash).recorded is True

    def test_children_first_still_posts_parents_first(self, poller, store, fake_dashboard, make_chain):
        chain = make_chain(50)
        for revision in chain:
            store.add(revision)

        # Newest first means every call starts from a child.
        for revision in chain:
            assert poller.record_revision("", revision.hash) is True

        assert posted(fake_dashboard) == [r.hash for r in reversed(chain)]

    def test_long_chain_does_not_recurse(self, poller, store, fake_dashboard, make_chain):
        chain = make_chain(3000)
        for revision in chain:
            store.add(revision)

        assert poller.record_revision("", chain[0].hash) is True
        assert len(fake_dashboard.posted_commits) == 3000

    def test_idempotent(self, poller, store, fake_dashboard, make_chain):
        newest = make_chain(1)[0]
        store.add(newest)

        assert poller.record_revision("", newest.hash) is True
        queries = len(fake_dashboard.exists_queries)
        assert poller.record_revision("", newest.hash) is True

        assert len(fake_dashboard.posted_commits) == 1
        assert len(fake_dashboard.exists_queries) == queries

    def test_present_revision_marks_ancestors(self, poller, store, fake_dashboard, make_chain):
        chain = make_chain(3)
        for revision in chain:
            store.add(revision)
        fake_dashboard.present.add(("", chain[0].hash))

        assert poller.record_revision("", chain[0].hash) is True

        assert fake_dashboard.posted_commits == []
        assert all(store.get(r.hash).recorded for r in chain)

    def test_unknown_hash(self, poller, fake_dashboard, make_hash):
        assert poller.record_revision("", make_hash(99)) is False
        assert fake_dashboard.posted_commits == []

    def test_parent_outside_window_known_to_dashboard(self, poller, store, fake_dashboard, make_chain):
        c, b, a = make_chain(3)
        store.add(c)
        store.add(b)
        fake_dashboard.present.add(("", a.hash))

        assert poller.record_revision("", c.hash) is True
        assert posted(fake_dashboard) == [b.hash, c.hash]

    def test_parent_outside_window_unknown_everywhere(self, poller, store, fake_dashboard, make_chain):
        c, b, _ = make_chain(3)
        store.add(c)
        store.add(b)

        assert poller.record_revision("", c.hash) is False
        assert fake_dashboard.posted_commits == []

    def test_post_failure_leaves_revision_unrecorded(self, poller, store, fake_dashboard, make_chain):
        chain = make_chain(2)
        for revision in chain:
            store.add(revision)
        fake_dashboard.fail_posts = True

        assert poller.record_revision("", chain[0].hash) is False
        assert not any(store.get(r.hash).recorded for r in chain)

        # The next poll retries.
        fake_dashboard.fail_posts = False
        assert poller.record_revision("", chain[0].hash) is True
        assert posted(fake_dashboard) == [chain[1].hash, chain[0].hash]

    def test_presence_query_failure(self, poller, store, fake_dashboard, make_chain):
        newest = make_chain(1)[0]
        store.add(newest)
        fake_dashboard.commit_exists = Mock(side_effect=ReportingError("down"))

        assert poller.record_revision("", newest.hash) is False
        assert store.get(newest.hash).recorded is False

    def test_parent_cycle(self, poller, store, make_hash):
        from gobuilder.models import Revision

        store.add(Revision(hash=make_hash(1), parent=make_hash(2)))
        store.add(Revision(hash=make_hash(2), parent=make_hash(1)))

        assert poller.record_revision("", make_hash(1)) is False


@pytest.mark.unit
class TestPolling:
    """Test cases for poll_package and poll_once."""

    def test_rediscovery_keeps_first_copy(self, poller, store, repo, make_chain):
        chain = make_chain(2)
        repo.log.return_value = copy.deepcopy(chain)
        assert poller.poll_package("") == 2

        repo.log.return_value = copy.deepcopy(chain)
        assert poller.poll_package("") == 0
        assert all(store.get(r.hash).recorded for r in chain)

    def test_pull_failure_skips_project(self, poller, repo, fake_dashboard):
        repo.pull.side_effect = VersionControlError("network down")

        assert poller.poll_package("") == 0
        repo.log.assert_not_called()

    def test_primary_uses_shared_workspace(self, poller, repo):
        poller.poll_package("")

        assert repo.pull.call_args[0][0] is poller.shared_workspace
        assert repo.log.call_args[0][1] == poller.settings.log_limit

    def test_missing_subrepo_is_cloned(self, poller, repo, builder_settings):
        repo.repo_exists.return_value = False
        poller.subrepos = SubrepoSettings(
            url_pattern=r"^golang\.org/x/([a-z]+)$", url_template="https://go.googlesource.com/{0}"
        )

        poller.poll_package("golang.org/x/net")

        url, destination = repo.clone.call_args[0]
        assert url == "https://go.googlesource.com/net"
        assert destination == builder_settings.buildroot / "golang.org/x/net"

    def test_failed_clone_is_removed(self, poller, repo, builder_settings):
        destination = builder_settings.buildroot / "golang.org/x/net"

        def half_clone(url, path):
            path.mkdir(parents=True)
            raise VersionControlError("clone failed")

        repo.repo_exists.return_value = False
        repo.clone.side_effect = half_clone

        assert poller.poll_package("golang.org/x/net") == 0
        assert not destination.exists()
        repo.pull.assert_not_called()

    def test_poll_once_covers_subrepos(self, poller, repo, fake_dashboard, make_chain):
        fake_dashboard.package_list = ["golang.org/x/net", "golang.org/x/tools"]
        repo.log.side_effect = [copy.deepcopy(make_chain(1)), [], []]

        poller.poll_once()

        assert repo.pull.call_count == 3
        assert len(fake_dashboard.posted_commits) == 1

    def test_one_failing_project_does_not_block_others(self, poller, repo, fake_dashboard):
        fake_dashboard.package_list = ["golang.org/x/net", "golang.org/x/tools"]
        repo.pull.side_effect = [None, VersionControlError("gone"), None]

        poller.poll_once()

        assert repo.log.call_count == 2


@pytest.mark.unit
class TestBackgroundLoop:
    """Test cases for start and stop."""

    def test_polls_until_stopped(self, poller, repo):
        polled = threading.Event()
        repo.log.side_effect = lambda *a: polled.set() or []

        poller.start()
        try:
            assert polled.wait(5)
            assert poller.running
        finally:
            poller.stop(timeout=5)

        assert not poller.running

    def test_survives_unexpected_errors(self, poller, repo):
        calls = []
        done = threading.Event()

        def flaky_pull(workspace):
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("unexpected")
            done.set()

        repo.pull.side_effect = flaky_pull
        poller.dashboard.packages = Mock(return_value=[])

        poller.start()
        try:
            assert done.wait(5)
        finally:
            poller.stop(timeout=5)
