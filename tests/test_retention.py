"""
Tests for marksync/retention.py

Retention must only ever trim the schedule it is asked about, never touch
manual backups, and be a no-op when repeated.
"""
from unittest.mock import patch

import pytest

from marksync import retention
from marksync.backups import BackupStore
from marksync.retention import (
    enforce_all_policies,
    enforce_retention_policy,
    get_backups_to_remove,
    get_retention_summary,
    record_backup,
)


def _ids(backups):
    return [b.id for b in backups]


class TestEnforceRetentionPolicy:
    """Test trimming a single schedule."""

    @pytest.fixture
    def populated(self, store, make_backup):
        """15 daily, 8 weekly and 5 manual backups tagged with the daily schedule."""
        for i in range(15):
            store.save_backup(make_backup(f"daily-{i:02d}", hours=i))
        for i in range(8):
            store.save_backup(make_backup(f"weekly-{i}", schedule_id="weekly", hours=i))
        for i in range(5):
            store.save_backup(make_backup(f"manual-{i}", type="manual", hours=i))
        return store

    def test_trims_only_target_schedule(self, populated):
        removed = enforce_retention_policy(populated, "daily", 10)

        assert removed == 5
        daily = [b.id for b in populated.get_backups_by_schedule("daily") if b.type == "scheduled"]
        assert daily == [f"daily-{i:02d}" for i in range(5, 15)]
        assert len(populated.get_backups_by_schedule("weekly")) == 8
        assert len(populated.get_backups_by_type("manual")) == 5

    def test_idempotent(self, populated):
        assert enforce_retention_policy(populated, "daily", 10) == 5
        assert enforce_retention_policy(populated, "daily", 10) == 0

    def test_under_limit_removes_nothing(self, populated):
        assert enforce_retention_policy(populated, "weekly", 8) == 0
        assert enforce_retention_policy(populated, "weekly", 20) == 0

    def test_zero_removes_all_scheduled(self, populated):
        assert enforce_retention_policy(populated, "weekly", 0) == 8
        assert populated.get_backups_by_schedule("weekly") == []
        assert len(populated.get_backups_by_type("manual")) == 5

    def test_unknown_schedule(self, populated):
        assert enforce_retention_policy(populated, "monthly", 1) == 0

    def test_counts_only_rows_actually_deleted(self, store, make_backup):
        """A concurrent sweep from another store on the same file is not double-counted."""
        for i in range(15):
            store.save_backup(make_backup(f"daily-{i:02d}", hours=i))
        other = BackupStore(path=str(store.path))
        original_select = retention._select_for_removal

        def select_then_race(session, schedule_id, retention_count):
            doomed = original_select(session, schedule_id, retention_count)
            other.delete_backups([b.id for b in doomed])
            return doomed

        with patch("marksync.retention._select_for_removal", side_effect=select_then_race):
            removed = enforce_retention_policy(store, "daily", 10)

        assert removed == 0
        assert len(store.get_backups_by_schedule("daily")) == 10

    def test_unlimited_never_touches_store(self, store):
        with patch.object(store, "session") as session:
            assert enforce_retention_policy(store, "daily", -1) == 0
            assert enforce_retention_policy(store, "daily", -7) == 0
        session.assert_not_called()

    def test_failed_backups_beyond_window_removed(self, store, make_backup):
        store.save_backup(make_backup("s0", hours=0))
        store.save_backup(make_backup("f1", hours=1, status="failed"))
        store.save_backup(make_backup("s2", hours=2))
        store.save_backup(make_backup("s3", hours=3))
        store.save_backup(make_backup("f4", hours=4, status="failed"))

        assert enforce_retention_policy(store, "daily", 2) == 2
        assert _ids(store.get_backups_by_schedule("daily")) == ["s2", "s3", "f4"]

    def test_failed_backups_kept_when_successes_fit(self, store, make_backup):
        store.save_backup(make_backup("f0", hours=0, status="failed"))
        store.save_backup(make_backup("s1", hours=1))
        store.save_backup(make_backup("s2", hours=2))

        assert enforce_retention_policy(store, "daily", 2) == 0
        assert len(store.get_backups_by_schedule("daily")) == 3


class TestDryRun:
    """Test get_backups_to_remove."""

    def test_lists_oldest_first_without_deleting(self, store, make_backup):
        for i in range(4):
            store.save_backup(make_backup(f"b{i}", hours=i))

        doomed = get_backups_to_remove(store, "daily", 2)

        assert _ids(doomed) == ["b0", "b1"]
        assert len(store.get_backups_by_schedule("daily")) == 4

    def test_unlimited(self, store, make_backup):
        store.save_backup(make_backup("b0"))
        assert get_backups_to_remove(store, "daily", -1) == []


class TestPolicies:
    """Test stored policies and record_backup."""

    def test_record_backup_applies_stored_policy(self, store, make_backup):
        store.set_retention_policy("daily", 2)
        results = [record_backup(store, make_backup(f"b{i}", hours=i)) for i in range(3)]

        assert [removed for _, removed in results] == [0, 0, 1]
        assert _ids(store.get_backups_by_schedule("daily")) == ["b1", "b2"]

    def test_record_backup_default_retention(self, store, make_backup):
        for i in range(3):
            record_backup(store, make_backup(f"b{i}", hours=i), default_retention=1)
        assert _ids(store.get_backups_by_schedule("daily")) == ["b2"]

    def test_record_backup_without_policy_keeps_everything(self, store, make_backup):
        for i in range(3):
            record_backup(store, make_backup(f"b{i}", hours=i))
        assert len(store.get_backups_by_schedule("daily")) == 3

    def test_manual_backup_never_sweeps(self, store, make_backup):
        store.set_retention_policy("daily", 0)
        store.save_backup(make_backup("s0"))
        saved, removed = record_backup(store, make_backup("m0", type="manual", schedule_id=None))
        assert saved.id == "m0"
        assert removed == 0
        assert store.get_backup("s0") is not None

    def test_enforce_all_policies(self, store, make_backup):
        for i in range(3):
            store.save_backup(make_backup(f"d{i}", hours=i))
            store.save_backup(make_backup(f"w{i}", schedule_id="weekly", hours=i))
        store.set_retention_policy("daily", 1)
        store.set_retention_policy("weekly", -1)

        assert enforce_all_policies(store) == {"daily": 2, "weekly": 0}

    def test_summary(self, store, make_backup):
        store.set_retention_policy("daily", 5)
        store.save_backup(make_backup("b0", hours=0))
        store.save_backup(make_backup("b1", hours=1))

        summary = get_retention_summary(store, "daily")

        assert summary["retention_count"] == 5
        assert summary["total_backups"] == 2
        assert summary["oldest_backup"].id == "b0"
        assert summary["newest_backup"].id == "b1"

    def test_summary_empty(self, store):
        summary = get_retention_summary(store, "daily")
        assert summary["retention_count"] is None
        assert summary["oldest_backup"] is None
