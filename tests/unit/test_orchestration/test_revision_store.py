"""
Unit tests for RevisionStore.
"""

import pytest

from gobuilder.models import Revision
from gobuilder.orchestration import RevisionStore


@pytest.mark.unit
class TestRevisionStore:
    """Test cases for RevisionStore."""

    def test_add_and_get(self, make_chain):
        store = RevisionStore()
        newest = make_chain(1)[0]

        assert store.add(newest) is True
        assert newest.hash in store
        assert len(store) == 1
        assert store.get(newest.hash) == newest

    def test_first_copy_wins(self, make_hash):
        store = RevisionStore()
        store.add(Revision(hash=make_hash(1), desc="first"))
        store.mark_recorded(make_hash(1))

        assert store.add(Revision(hash=make_hash(1), desc="second")) is False
        kept = store.get(make_hash(1))
        assert kept.desc == "first"
        assert kept.recorded is True

    def test_stores_a_copy(self, make_hash):
        store = RevisionStore()
        original = Revision(hash=make_hash(1))
        store.add(original)

        original.recorded = True

        assert store.get(make_hash(1)).recorded is False

    def test_mark_recorded_chain(self, make_chain):
        store = RevisionStore()
        chain = make_chain(4)
        for revision in chain:
            store.add(revision)

        # Mark from the second newest; the newest stays unrecorded.
        assert store.mark_recorded_chain(chain[1].hash) == 3
        assert [store.get(r.hash).recorded for r in chain] == [False, True, True, True]

    def test_mark_recorded_chain_stops_at_unknown_parent(self, make_hash):
        store = RevisionStore()
        store.add(Revision(hash=make_hash(2), parent=make_hash(1)))

        assert store.mark_recorded_chain(make_hash(2)) == 1

    def test_mark_recorded_chain_survives_cycles(self, make_hash):
        store = RevisionStore()
        store.add(Revision(hash=make_hash(1), parent=make_hash(2)))
        store.add(Revision(hash=make_hash(2), parent=make_hash(1)))

        assert store.mark_recorded_chain(make_hash(1)) == 2

    def test_iteration(self, make_chain):
        store = RevisionStore()
        for revision in make_chain(3):
            store.add(revision)

        assert {r.hash for r in store} == {r.hash for r in make_chain(3)}
