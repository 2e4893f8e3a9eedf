import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

from marksync.backups import BackupStore, create_backup_metadata
from marksync.records import BookmarkRecord

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep user and local config files out of the tests."""
    import marksync.backups as backups_module
    import marksync.config as config_module

    monkeypatch.setattr(config_module, "_config", None)
    monkeypatch.setattr(backups_module, "_store", None)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("MARKSYNC_"):
            monkeypatch.delenv(key)
    yield


@pytest.fixture
def store():
    """Backup store on a throwaway SQLite file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield BackupStore(path=os.path.join(tmpdir, "test.db"))


@pytest.fixture
def make_backup():
    """Factory for backup records with predictable timestamps."""
    def _make(id, type="scheduled", schedule_id="daily", status="success", hours=0, **extra):
        return create_backup_metadata(
            id=id,
            type=type,
            schedule_id=schedule_id,
            status=status,
            timestamp=BASE_TIME + timedelta(hours=hours),
            content_ref=f"drive:{id}",
            **extra
        )
    return _make


@pytest.fixture
def make_record():
    """Factory for bookmark records."""
    def _make(id, title="", url=None, parent_id="root", modified_minutes=None, added_minutes=None):
        return BookmarkRecord(
            id=id,
            title=title,
            url=url,
            parent_id=parent_id,
            date_added=BASE_TIME + timedelta(minutes=added_minutes) if added_minutes is not None else None,
            date_modified=BASE_TIME + timedelta(minutes=modified_minutes) if modified_minutes is not None else None,
        )
    return _make


@pytest.fixture
def sample_tree():
    """Browser-style nested bookmark tree."""
    return [
        {
            "id": "1",
            "title": "Bookmarks Bar",
            "children": [
                {"id": "10", "title": "Python", "url": "https://www.python.org/", "dateAdded": 1677247196000},
                {
                    "id": "11",
                    "title": "Tools",
                    "children": [
                        {"id": "20", "title": "GitHub", "url": "https://github.com/", "dateAdded": 1678969800000},
                    ],
                },
            ],
        },
        {"id": "2", "title": "Other Bookmarks", "children": []},
    ]
