"""
Change detection between two bookmark snapshots.

Both snapshots are indexed by id and compared by fingerprint, so a diff is
linear in the number of records. A last-synced baseline disambiguates a
record that is new on one side from one that was deleted on the other.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from marksync.exceptions import InputError
from marksync.fingerprint import fingerprint
from marksync.records import BookmarkRecord, coerce_records

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModifiedPair:
    """A record present on both sides with differing content."""
    id: str
    local: BookmarkRecord
    remote: BookmarkRecord

    def to_dict(self) -> Dict:
        return {"id": self.id, "local": self.local.to_dict(), "remote": self.remote.to_dict()}


@dataclass
class ChangeSet:
    """
    Result of diffing a local snapshot against a remote one.

    Attributes:
        added: Local records the remote has never seen
        removed: Ids synced before but now gone from the remote
        modified: Pairs present on both sides with different fingerprints
        remote_added: Remote records the baseline has never seen
        local_removed: Ids synced before but now gone locally
        unchanged: Number of ids with matching fingerprints
    """
    added: List[BookmarkRecord] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    modified: List[ModifiedPair] = field(default_factory=list)
    remote_added: List[BookmarkRecord] = field(default_factory=list)
    local_removed: List[str] = field(default_factory=list)
    unchanged: int = 0

    @property
    def total_changes(self) -> int:
        return (len(self.added) + len(self.removed) + len(self.modified)
                + len(self.remote_added) + len(self.local_removed))

    @property
    def is_empty(self) -> bool:
        return self.total_changes == 0

    def to_dict(self) -> Dict:
        return {
            "added": [r.to_dict() for r in self.added],
            "removed": list(self.removed),
            "modified": [m.to_dict() for m in self.modified],
            "remoteAdded": [r.to_dict() for r in self.remote_added],
            "localRemoved": list(self.local_removed),
            "unchanged": self.unchanged,
        }


def index_by_id(records: Iterable[BookmarkRecord], side: str = "snapshot") -> Dict[str, BookmarkRecord]:
    """
    Build an id -> record map.

    Raises:
        InputError: if the same id appears twice
    """
    index = {}
    for record in records:
        if record.id in index:
            raise InputError(f"Duplicate id {record.id!r} in {side}")
        index[record.id] = record
    return index


def diff(local: Iterable, remote: Iterable, baseline: Optional[Iterable] = None) -> ChangeSet:
    """
    Diff a local snapshot against a remote one.

    Args:
        local: Local records (BookmarkRecord or mappings)
        remote: Remote records
        baseline: Last snapshot known to be fully synchronized. Without one,
            every local-only id counts as added and every remote-only id as
            remote_added.

    Returns:
        ChangeSet with every list sorted by id
    """
    local_index = index_by_id(coerce_records(local), "local snapshot")
    remote_index = index_by_id(coerce_records(remote), "remote snapshot")
    baseline_ids = set(index_by_id(coerce_records(baseline), "baseline")) if baseline is not None else set()

    changes = ChangeSet()

    for record_id in sorted(local_index):
        local_record = local_index[record_id]
        remote_record = remote_index.get(record_id)

        if remote_record is None:
            if record_id in baseline_ids:
                changes.removed.append(record_id)
            else:
                changes.added.append(local_record)
        elif fingerprint(local_record) != fingerprint(remote_record):
            changes.modified.append(ModifiedPair(record_id, local_record, remote_record))
        else:
            changes.unchanged += 1

    for record_id in sorted(remote_index):
        if record_id in local_index:
            continue
        if record_id in baseline_ids:
            changes.local_removed.append(record_id)
        else:
            changes.remote_added.append(remote_index[record_id])

    logger.debug(
        "Diff: %d added, %d removed, %d modified, %d remote added, %d local removed, %d unchanged",
        len(changes.added), len(changes.removed), len(changes.modified),
        len(changes.remote_added), len(changes.local_removed), changes.unchanged,
    )
    return changes
