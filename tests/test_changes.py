"""
Tests for marksync/changes.py

Tests the change detector including baseline disambiguation and
idempotence.
"""
import pytest

from marksync.changes import diff, index_by_id
from marksync.conflicts import classify
from marksync.exceptions import InputError
from marksync.records import BookmarkRecord


class TestDiff:
    """Test diff() classification of ids."""

    def test_title_change_is_single_modified_pair(self):
        """local A, remote B, baseline A: one modified pair, medium/title."""
        changes = diff(
            local=[{"id": 1, "title": "A"}],
            remote=[{"id": 1, "title": "B"}],
            baseline=[{"id": 1, "title": "A"}],
        )

        assert len(changes.modified) == 1
        pair = changes.modified[0]
        assert pair.id == "1"
        assert pair.local.title == "A"
        assert pair.remote.title == "B"

        conflict = classify(pair)
        assert conflict.severity == "medium"
        assert conflict.type == "title"

        assert changes.added == []
        assert changes.removed == []

    def test_local_only_not_in_baseline_is_added(self):
        changes = diff([{"id": "1", "title": "A"}], [], baseline=[])
        assert [r.id for r in changes.added] == ["1"]
        assert changes.removed == []

    def test_local_only_in_baseline_is_removed(self):
        """Previously synced and now missing remotely: removed."""
        changes = diff([{"id": "1", "title": "A"}], [], baseline=[{"id": "1", "title": "A"}])
        assert changes.removed == ["1"]
        assert changes.added == []

    def test_no_baseline_means_everything_local_is_added(self):
        changes = diff([{"id": "1"}, {"id": "2"}], [])
        assert [r.id for r in changes.added] == ["1", "2"]

    def test_remote_only_ids(self):
        changes = diff(
            local=[],
            remote=[{"id": "new"}, {"id": "gone"}],
            baseline=[{"id": "gone"}],
        )
        assert [r.id for r in changes.remote_added] == ["new"]
        assert changes.local_removed == ["gone"]

    def test_equal_content_is_unchanged(self):
        changes = diff(
            [{"id": "1", "title": "A", "dateModified": 1}],
            [{"id": "1", "title": "A", "dateModified": 2}],
        )
        assert changes.modified == []
        assert changes.unchanged == 1
        assert changes.is_empty

    def test_total_changes(self):
        changes = diff(
            local=[{"id": "a"}, {"id": "b", "title": "x"}, {"id": "c"}],
            remote=[{"id": "b", "title": "y"}, {"id": "d"}],
            baseline=[{"id": "c"}],
        )
        assert changes.total_changes == 4

    def test_idempotent(self):
        local = [{"id": "1", "title": "A"}, {"id": "2", "url": "https://x"}]
        remote = [{"id": "1", "title": "B"}, {"id": "3"}]
        baseline = [{"id": "1", "title": "A"}]
        assert diff(local, remote, baseline) == diff(local, remote, baseline)

    def test_does_not_mutate_inputs(self):
        local = [{"id": "1", "title": "A"}]
        remote = [{"id": "1", "title": "B"}]
        diff(local, remote)
        assert local == [{"id": "1", "title": "A"}]

    def test_results_sorted_by_id(self):
        changes = diff([{"id": "c"}, {"id": "a"}, {"id": "b"}], [])
        assert [r.id for r in changes.added] == ["a", "b", "c"]

    def test_duplicate_ids_raise(self):
        with pytest.raises(InputError):
            diff([{"id": "1"}, {"id": "1"}], [])

    def test_to_dict(self):
        changes = diff([{"id": "1", "title": "A"}], [{"id": "1", "title": "B"}])
        data = changes.to_dict()
        assert data["modified"][0]["id"] == "1"
        assert data["unchanged"] == 0


class TestIndexById:
    """Test id indexing."""

    def test_builds_map(self):
        records = [BookmarkRecord(id="1"), BookmarkRecord(id="2")]
        assert set(index_by_id(records)) == {"1", "2"}

    def test_duplicate_names_side(self):
        with pytest.raises(InputError, match="remote"):
            index_by_id([BookmarkRecord(id="1"), BookmarkRecord(id="1")], "remote snapshot")
