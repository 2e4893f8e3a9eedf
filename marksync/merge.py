"""
Build the post-sync state of both snapshots.

Given a change set and the resolutions chosen for its conflicts, compute
what the local snapshot, the remote snapshot and the new baseline should
contain after a commit.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from marksync.changes import ChangeSet, index_by_id
from marksync.conflicts import Resolution
from marksync.constants import STRATEGY_SKIP
from marksync.exceptions import InputError
from marksync.records import BookmarkRecord, coerce_records

logger = logging.getLogger(__name__)


@dataclass
class MergedState:
    """Snapshots to write back after a sync cycle."""
    local: List[BookmarkRecord] = field(default_factory=list)
    remote: List[BookmarkRecord] = field(default_factory=list)
    baseline: List[BookmarkRecord] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def merge_snapshots(local: Iterable, remote: Iterable, change_set: ChangeSet,
                    resolutions: Optional[Iterable[Resolution]] = None) -> MergedState:
    """
    Apply a change set and its resolutions.

    - Unchanged records and one-sided additions end up on both sides.
    - One-sided deletions are propagated to the other side.
    - Resolved conflicts take the resolution's result record on both sides.
    - Skipped or unresolved conflicts keep each side's own version; they
      are reported again by the next change detection pass.

    Raises:
        InputError: a resolution refers to an id that is not a modified pair
    """
    local_index = index_by_id(coerce_records(local), "local snapshot")
    remote_index = index_by_id(coerce_records(remote), "remote snapshot")

    modified_ids = {pair.id for pair in change_set.modified}
    by_id: Dict[str, Resolution] = {}
    for resolution in resolutions or []:
        if resolution.conflict_id not in modified_ids:
            raise InputError(f"Resolution for {resolution.conflict_id!r} matches no conflict")
        by_id[resolution.conflict_id] = resolution

    dropped = set(change_set.removed) | set(change_set.local_removed)

    canonical: Dict[str, BookmarkRecord] = {}
    local_only: Dict[str, BookmarkRecord] = {}
    remote_only: Dict[str, BookmarkRecord] = {}

    for record_id, record in local_index.items():
        if record_id in dropped or record_id in modified_ids:
            continue
        canonical[record_id] = record

    for record in change_set.remote_added:
        canonical[record.id] = record

    skipped = []
    for pair in change_set.modified:
        resolution = by_id.get(pair.id)
        if resolution is None or resolution.strategy == STRATEGY_SKIP:
            local_only[pair.id] = local_index.get(pair.id, pair.local)
            remote_only[pair.id] = remote_index.get(pair.id, pair.remote)
            skipped.append(pair.id)
        else:
            canonical[pair.id] = resolution.result_record

    def ordered(*maps: Dict[str, BookmarkRecord]) -> List[BookmarkRecord]:
        merged = {}
        for m in maps:
            merged.update(m)
        return [merged[k] for k in sorted(merged)]

    state = MergedState(
        local=ordered(canonical, local_only),
        remote=ordered(canonical, remote_only),
        baseline=ordered(canonical, local_only),
        skipped=sorted(skipped),
    )
    logger.debug("Merged state: %d records, %d skipped conflicts", len(canonical), len(skipped))
    return state
