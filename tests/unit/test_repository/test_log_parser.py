"""
Unit tests for git log parsing and parent linkage.
"""

import pytest

from gobuilder.repository import link_parents, parse_log
from gobuilder.repository.log_parser import FIELD_SEP, RECORD_SEP


def record(hash, parents, author, date, desc):
    return FIELD_SEP.join([hash, parents, author, date, desc]) + RECORD_SEP + "\n"


A = "a" * 40
B = "b" * 40
C = "c" * 40


@pytest.mark.unit
class TestParseLog:
    """Test cases for parse_log."""

    def test_parses_records_newest_first(self):
        output = (
            record(C, "bbbbbbb", "Gopher <g@example.com>", "2024-01-03T10:00:00+00:00", "third\n")
            + record(B, "aaaaaaa", "Gopher <g@example.com>", "2024-01-02T10:00:00+00:00", "second\n")
            + record(A, "", "Root <r@example.com>", "2024-01-01T10:00:00+00:00", "first\n")
        )

        entries = parse_log(output)

        assert [rev.hash for rev, _ in entries] == [C, B, A]
        assert [refs for _, refs in entries] == [["bbbbbbb"], ["aaaaaaa"], []]
        assert entries[2][0].author == "Root <r@example.com>"
        assert entries[0][0].date == "2024-01-03T10:00:00+00:00"
        assert entries[0][0].parent == ""

    def test_multiline_description_survives(self):
        desc = "cmd/go: fix thing\n\nLonger explanation\nwith\ttabs\n"
        entries = parse_log(record(A, "", "G <g@example.com>", "2024-01-01T00:00:00Z", desc))

        assert entries[0][0].desc == "cmd/go: fix thing\n\nLonger explanation\nwith\ttabs"

    def test_merge_keeps_all_parents_in_order(self):
        entries = parse_log(record(C, "aaaaaaa bbbbbbb", "G <g@example.com>", "2024", "merge"))

        assert entries[0][1] == ["aaaaaaa", "bbbbbbb"]

    def test_empty_output(self):
        assert parse_log("") == []
        assert parse_log("\n") == []

    def test_malformed_record(self):
        with pytest.raises(ValueError):
            parse_log(FIELD_SEP.join([A, "", "author"]) + RECORD_SEP)


@pytest.mark.unit
class TestLinkParents:
    """Test cases for link_parents."""

    def test_adjacent_parent_linked_without_resolving(self):
        entries = parse_log(
            record(C, "bbbbbbb", "G", "d", "c") + record(B, "aaaaaaa", "G", "d", "b") + record(A, "", "G", "d", "a")
        )

        revisions = link_parents(entries, lambda ref: pytest.fail(f"resolved {ref}"))

        assert [r.parent for r in revisions] == [B, A, ""]

    def test_oldest_entry_parent_outside_window_is_empty(self):
        entries = parse_log(
            record(C, "bbbbbbb", "G", "d", "c") + record(B, "aaaaaaa", "G", "d", "b")
        )

        revisions = link_parents(entries, lambda ref: pytest.fail(f"resolved {ref}"))

        assert [r.parent for r in revisions] == [B, ""]

    def test_non_adjacent_parent_is_resolved(self):
        entries = parse_log(
            record(C, "aaaaaaa", "G", "d", "c") + record(B, "9999999", "G", "d", "b")
        )
        resolved = []

        def resolve(ref):
            resolved.append(ref)
            return A

        revisions = link_parents(entries, resolve)

        assert resolved == ["aaaaaaa"]
        assert [r.parent for r in revisions] == [A, ""]

    def test_merge_resolves_first_parent(self):
        entries = parse_log(
            record(C, "aaaaaaa bbbbbbb", "G", "d", "merge") + record(B, "aaaaaaa", "G", "d", "b")
        )

        revisions = link_parents(entries, {"aaaaaaa": A}.get)

        assert revisions[0].parent == A

    def test_missing_parent_borrows_next_entry(self):
        entries = parse_log(
            record(C, "", "G", "d", "c") + record(B, "", "G", "d", "b") + record(A, "", "G", "d", "a")
        )

        revisions = link_parents(entries, lambda ref: pytest.fail("nothing to resolve"))

        assert [r.parent for r in revisions] == [B, A, ""]

    def test_unresolvable_parent_is_empty(self):
        entries = parse_log(record(C, "deadbee", "G", "d", "c") + record(B, "", "G", "d", "b"))

        revisions = link_parents(entries, lambda ref: "")

        assert revisions[0].parent == ""
