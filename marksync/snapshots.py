"""
Snapshot store interface and adapters.

The native bookmark store and the remote object storage are collaborators
outside this package. They are consumed through SnapshotStore, which hands
out consistent read views of the local snapshot, the remote snapshot and
the last-synced baseline, and accepts the result of a sync cycle.
"""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

from marksync.changes import ChangeSet
from marksync.conflicts import Resolution
from marksync.exceptions import CollaboratorUnavailable, InputError
from marksync.merge import MergedState, merge_snapshots
from marksync.records import BookmarkRecord, coerce_records, flatten_tree

logger = logging.getLogger(__name__)


class SnapshotStore(ABC):
    """
    Source of bookmark snapshots.

    Implementations must give one consistent view per read for the duration
    of a change detection pass, and apply commit() atomically.
    """

    @abstractmethod
    def get_local_snapshot(self) -> List[BookmarkRecord]:
        """Records currently in the local bookmark store."""
        pass

    @abstractmethod
    def get_remote_snapshot(self) -> List[BookmarkRecord]:
        """Records currently in the shared remote store."""
        pass

    @abstractmethod
    def get_last_synced_baseline(self) -> Optional[List[BookmarkRecord]]:
        """Snapshot as of the last complete sync, or None if never synced."""
        pass

    @abstractmethod
    def commit(self, change_set: ChangeSet, resolutions: Iterable[Resolution]) -> MergedState:
        """Write the outcome of a sync cycle back to both sides."""
        pass


class MemorySnapshotStore(SnapshotStore):
    """Snapshot store held in memory; useful for embedding and tests."""

    def __init__(self, local: Optional[Iterable] = None, remote: Optional[Iterable] = None,
                 baseline: Optional[Iterable] = None):
        self.local = coerce_records(local)
        self.remote = coerce_records(remote)
        self.baseline = coerce_records(baseline) if baseline is not None else None
        self.commits = 0

    def get_local_snapshot(self) -> List[BookmarkRecord]:
        return list(self.local)

    def get_remote_snapshot(self) -> List[BookmarkRecord]:
        return list(self.remote)

    def get_last_synced_baseline(self) -> Optional[List[BookmarkRecord]]:
        return list(self.baseline) if self.baseline is not None else None

    def commit(self, change_set: ChangeSet, resolutions: Iterable[Resolution]) -> MergedState:
        state = merge_snapshots(self.local, self.remote, change_set, resolutions)
        self.local, self.remote, self.baseline = state.local, state.remote, state.baseline
        self.commits += 1
        return state


def _records_from_json(data: Any, source: Path) -> List[BookmarkRecord]:
    """
    Accept the JSON layouts snapshot files come in.

    - a flat list of records
    - {"bookmarks": [...]} as written by exports
    - a nested tree (nodes with "children")
    """
    if isinstance(data, dict):
        if "bookmarks" in data:
            data = data["bookmarks"]
        elif "children" in data:
            data = [data]
        else:
            raise InputError(f"Unrecognized snapshot layout in {source}")
    if not isinstance(data, list):
        raise InputError(f"Snapshot in {source} must be a list of records")
    if any(isinstance(node, dict) and node.get("children") for node in data):
        return flatten_tree(data)
    return coerce_records(data)


class JsonSnapshotStore(SnapshotStore):
    """
    Snapshot store backed by three JSON files in one directory.

    Layout:
        <dir>/local.json     local bookmark export
        <dir>/remote.json    copy of the shared remote state
        <dir>/baseline.json  state after the last completed sync (optional)
    """

    LOCAL_FILE = "local.json"
    REMOTE_FILE = "remote.json"
    BASELINE_FILE = "baseline.json"

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _read(self, name: str, required: bool = True) -> Optional[List[BookmarkRecord]]:
        path = self.directory / name
        if not path.exists():
            if required:
                raise CollaboratorUnavailable("snapshot store", f"{path} not found")
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InputError(f"Invalid JSON in {path}: {e}") from e
        except OSError as e:
            raise CollaboratorUnavailable("snapshot store", str(e)) from e
        return _records_from_json(data, path)

    def _stage(self, name: str, records: List[BookmarkRecord]) -> Path:
        """Write records next to their target file; returns the temp path."""
        path = self.directory / name
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump([r.to_dict() for r in records], f, indent=2, ensure_ascii=False)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise CollaboratorUnavailable("snapshot store", str(e)) from e
        return tmp

    def get_local_snapshot(self) -> List[BookmarkRecord]:
        return self._read(self.LOCAL_FILE)

    def get_remote_snapshot(self) -> List[BookmarkRecord]:
        return self._read(self.REMOTE_FILE)

    def get_last_synced_baseline(self) -> Optional[List[BookmarkRecord]]:
        return self._read(self.BASELINE_FILE, required=False)

    def commit(self, change_set: ChangeSet, resolutions: Iterable[Resolution]) -> MergedState:
        local = self.get_local_snapshot()
        remote = self.get_remote_snapshot()
        state = merge_snapshots(local, remote, change_set, resolutions)

        # All three files are staged before any is replaced
        outputs = (
            (self.LOCAL_FILE, state.local),
            (self.REMOTE_FILE, state.remote),
            (self.BASELINE_FILE, state.baseline),
        )
        staged = []
        try:
            for name, records in outputs:
                staged.append((self._stage(name, records), self.directory / name))
        except CollaboratorUnavailable:
            for tmp, _ in staged:
                tmp.unlink(missing_ok=True)
            raise

        try:
            for tmp, path in staged:
                tmp.replace(path)
        except OSError as e:
            raise CollaboratorUnavailable("snapshot store", str(e)) from e

        logger.info("Committed sync to %s (%d records)", self.directory, len(state.local))
        return state
