"""
Conflict classification and resolution.

A conflict is an id present in both snapshots whose fingerprints differ.
Each conflict moves through Detected -> Classified -> Resolved or Skipped
within one sync cycle; terminal states are final for that cycle.

Severity and type are plain field-equality checks:
    url differs              -> high
    title differs            -> medium
    anything else            -> low
    title, url and folder    -> type 'mixed'
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from marksync.changes import ChangeSet, ModifiedPair
from marksync.constants import (
    AUTO_STRATEGIES,
    MANY_CONFLICTS_THRESHOLD,
    STRATEGY_LOCAL_WINS,
    STRATEGY_MANUAL,
    STRATEGY_MERGE,
    STRATEGY_REMOTE_WINS,
    STRATEGY_SKIP,
)
from marksync.exceptions import InputError
from marksync.fingerprint import FINGERPRINT_FIELDS, fingerprint, fingerprint_fields
from marksync.records import KIND_FOLDER, KIND_LEAF, BookmarkRecord, coerce_record

logger = logging.getLogger(__name__)

SEVERITY_LOW = "low"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"
SEVERITIES = (SEVERITY_LOW, SEVERITY_MEDIUM, SEVERITY_HIGH)

TYPE_TITLE = "title"
TYPE_URL = "url"
TYPE_FOLDER = "folder"
TYPE_MIXED = "mixed"
CONFLICT_TYPES = (TYPE_TITLE, TYPE_URL, TYPE_FOLDER, TYPE_MIXED)

ALL_STRATEGIES = AUTO_STRATEGIES + (STRATEGY_MANUAL, STRATEGY_SKIP)


class ConflictState(Enum):
    """Lifecycle of a conflict within one sync cycle."""
    DETECTED = "detected"
    CLASSIFIED = "classified"
    RESOLVED = "resolved"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (ConflictState.RESOLVED, ConflictState.SKIPPED)


def _differing(local: BookmarkRecord, remote: BookmarkRecord) -> Dict[str, bool]:
    """Which fingerprint fields differ, compared after normalization."""
    a, b = fingerprint_fields(local), fingerprint_fields(remote)
    return {name: a[name] != b[name] for name in FINGERPRINT_FIELDS}


def conflict_type(local: BookmarkRecord, remote: BookmarkRecord) -> str:
    """Classify which fields diverge."""
    changed = _differing(local, remote)
    title_changed = changed["title"]
    url_changed = changed["url"]
    folder_changed = changed["parentId"]

    if title_changed and url_changed and folder_changed:
        return TYPE_MIXED
    if folder_changed:
        return TYPE_FOLDER
    if url_changed:
        return TYPE_URL
    if title_changed:
        return TYPE_TITLE
    return TYPE_MIXED


def conflict_severity(local: BookmarkRecord, remote: BookmarkRecord) -> str:
    """URL changes are high, title changes medium, everything else low."""
    changed = _differing(local, remote)
    if changed["url"]:
        return SEVERITY_HIGH
    if changed["title"]:
        return SEVERITY_MEDIUM
    return SEVERITY_LOW


@dataclass(frozen=True)
class Conflict:
    """A classified conflict between a local and a remote record."""
    id: str
    local: BookmarkRecord
    remote: BookmarkRecord
    severity: str
    type: str

    @property
    def changed_fields(self) -> List[str]:
        changed = _differing(self.local, self.remote)
        return [name for name in FINGERPRINT_FIELDS if changed[name]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "local": self.local.to_dict(),
            "remote": self.remote.to_dict(),
            "severity": self.severity,
            "type": self.type,
        }


@dataclass(frozen=True)
class Resolution:
    """Terminal outcome for one conflict."""
    conflict_id: str
    strategy: str
    result_record: Optional[BookmarkRecord] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conflictId": self.conflict_id,
            "strategy": self.strategy,
            "resultRecord": self.result_record.to_dict() if self.result_record else None,
        }


@dataclass
class BatchResolution:
    """Result of resolving a list of conflicts with one strategy."""
    strategy: str
    resolved: List[Resolution] = field(default_factory=list)

    @property
    def resolved_count(self) -> int:
        return len(self.resolved)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "resolved": [r.to_dict() for r in self.resolved],
            "resolvedCount": self.resolved_count,
        }


ConflictLike = Union[Conflict, ModifiedPair, Mapping[str, Any]]


def classify(item: ConflictLike) -> Conflict:
    """
    Classify a modified pair into a Conflict.

    Accepts a ModifiedPair, an existing Conflict (returned as is) or a
    mapping with 'local' and 'remote' entries.

    Raises:
        InputError: if the two sides disagree on id or do not actually differ
    """
    if isinstance(item, Conflict):
        return item
    if isinstance(item, ModifiedPair):
        local, remote = item.local, item.remote
    elif isinstance(item, Mapping):
        if "local" not in item or "remote" not in item:
            raise InputError("Conflict needs both 'local' and 'remote' records")
        local, remote = coerce_record(item["local"]), coerce_record(item["remote"])
    else:
        raise InputError(f"Cannot classify {type(item).__name__} as a conflict")

    if local.id != remote.id:
        raise InputError(f"Conflict sides have different ids: {local.id!r} != {remote.id!r}")
    if fingerprint(local) == fingerprint(remote):
        raise InputError(f"Records for id {local.id!r} have identical content; not a conflict")

    return Conflict(
        id=local.id,
        local=local,
        remote=remote,
        severity=conflict_severity(local, remote),
        type=conflict_type(local, remote),
    )


def detect_conflicts(change_set: ChangeSet) -> List[Conflict]:
    """Classify every modified pair of a change set."""
    return [classify(pair) for pair in change_set.modified]


def _newer_side(local: BookmarkRecord, remote: BookmarkRecord) -> BookmarkRecord:
    # Exact tie or missing timestamps fall back to local
    if remote.date_modified is None:
        return local
    if local.date_modified is None or remote.date_modified > local.date_modified:
        return remote
    return local


def merge_records(local: BookmarkRecord, remote: BookmarkRecord) -> BookmarkRecord:
    """
    Field-level union of two versions of the same record.

    For each content field the value from the more recently modified side
    wins; an empty value never replaces a non-empty one. dateAdded keeps the
    earliest value and dateModified the latest.
    """
    newer = _newer_side(local, remote)
    older = remote if newer is local else local

    def pick(name: str):
        preferred = getattr(newer, name)
        if preferred in (None, ""):
            return getattr(older, name)
        return preferred

    added = [d for d in (local.date_added, remote.date_added) if d is not None]
    modified = [d for d in (local.date_modified, remote.date_modified) if d is not None]

    url = pick("url")
    if local.kind == remote.kind:
        kind = local.kind
    else:
        kind = KIND_FOLDER if url is None else KIND_LEAF

    return BookmarkRecord(
        id=local.id,
        title=pick("title"),
        parent_id=pick("parent_id"),
        url=url,
        date_added=min(added) if added else None,
        date_modified=max(modified) if modified else None,
        kind=kind,
    )


def _validate_strategy(strategy: str, allowed=ALL_STRATEGIES):
    if strategy not in allowed:
        raise InputError(
            f"Unknown conflict strategy {strategy!r}; expected one of {', '.join(allowed)}"
        )


def resolve_conflict(conflict: Conflict, strategy: str,
                     result_record: Optional[Union[BookmarkRecord, Mapping[str, Any]]] = None) -> Resolution:
    """
    Resolve a single conflict.

    Args:
        conflict: Classified conflict
        strategy: local-wins, remote-wins, merge, manual or skip
        result_record: Record supplied by an external actor (manual only)

    Returns:
        Resolution; result_record is None for 'skip'

    Raises:
        InputError: unknown strategy, or a manual record that is missing or
            belongs to another id
    """
    _validate_strategy(strategy)

    if strategy == STRATEGY_LOCAL_WINS:
        return Resolution(conflict.id, strategy, conflict.local)
    if strategy == STRATEGY_REMOTE_WINS:
        return Resolution(conflict.id, strategy, conflict.remote)
    if strategy == STRATEGY_MERGE:
        return Resolution(conflict.id, strategy, merge_records(conflict.local, conflict.remote))
    if strategy == STRATEGY_SKIP:
        return Resolution(conflict.id, strategy, None)

    # manual
    if result_record is None:
        raise InputError(f"Manual resolution of {conflict.id!r} requires a result record")
    record = coerce_record(result_record)
    if record.id != conflict.id:
        raise InputError(
            f"Manual resolution record id {record.id!r} does not match conflict {conflict.id!r}"
        )
    return Resolution(conflict.id, strategy, record)


def resolve_conflicts(conflicts: Iterable[ConflictLike], strategy: str) -> BatchResolution:
    """
    Resolve a batch of conflicts with one automatic strategy.

    The strategy and every conflict are validated before anything is
    resolved, so the call either resolves the whole batch or raises.

    Raises:
        InputError: strategy is unknown or 'manual'/'skip', or a conflict
            is malformed
    """
    _validate_strategy(strategy, AUTO_STRATEGIES)
    classified = [classify(c) for c in conflicts]

    batch = BatchResolution(strategy=strategy)
    for conflict in classified:
        batch.resolved.append(resolve_conflict(conflict, strategy))

    logger.info("Resolved %d conflicts with %s", batch.resolved_count, strategy)
    return batch


class ConflictSession:
    """
    Conflicts and resolutions for one sync-preview lifetime.

    Not persisted: the next change detection pass recomputes everything
    from current snapshots.
    """

    def __init__(self, scope: Optional[str] = None):
        self.scope = scope
        self._conflicts: Dict[str, Conflict] = {}
        self._states: Dict[str, ConflictState] = {}
        self._resolutions: Dict[str, Resolution] = {}

    def __len__(self):
        return len(self._conflicts)

    def __contains__(self, conflict_id):
        return str(conflict_id) in self._conflicts

    def detect(self, change_set: ChangeSet) -> List[Conflict]:
        """Register and classify every modified pair of a change set."""
        for pair in change_set.modified:
            self._states[pair.id] = ConflictState.DETECTED
        conflicts = []
        for pair in change_set.modified:
            conflicts.append(self.add(classify(pair)))
        return conflicts

    def add(self, conflict: ConflictLike) -> Conflict:
        """Add a conflict to the session in the Classified state."""
        conflict = classify(conflict)
        state = self._states.get(conflict.id)
        if state is not None and state.is_terminal:
            raise InputError(f"Conflict {conflict.id!r} was already {state.value} this cycle")
        self._conflicts[conflict.id] = conflict
        self._states[conflict.id] = ConflictState.CLASSIFIED
        return conflict

    def get(self, conflict_id) -> Conflict:
        try:
            return self._conflicts[str(conflict_id)]
        except KeyError:
            raise InputError(f"No conflict with id {conflict_id!r} in this session") from None

    def state(self, conflict_id) -> ConflictState:
        self.get(conflict_id)
        return self._states[str(conflict_id)]

    @property
    def conflicts(self) -> List[Conflict]:
        return list(self._conflicts.values())

    @property
    def pending(self) -> List[Conflict]:
        return [c for c in self._conflicts.values() if not self._states[c.id].is_terminal]

    @property
    def resolutions(self) -> List[Resolution]:
        return list(self._resolutions.values())

    @property
    def is_complete(self) -> bool:
        return not self.pending

    def resolve(self, conflict_id, strategy: str, result_record=None) -> Resolution:
        """
        Move one conflict to its terminal state.

        Replaying the same resolution is a no-op that returns the stored
        result; a different resolution for a terminal conflict is refused.
        """
        conflict = self.get(conflict_id)
        resolution = resolve_conflict(conflict, strategy, result_record)

        existing = self._resolutions.get(conflict.id)
        if existing is not None:
            if existing == resolution:
                return existing
            raise InputError(
                f"Conflict {conflict.id!r} already resolved with {existing.strategy}"
            )

        self._resolutions[conflict.id] = resolution
        self._states[conflict.id] = (
            ConflictState.SKIPPED if strategy == STRATEGY_SKIP else ConflictState.RESOLVED
        )
        return resolution

    def skip(self, conflict_id) -> Resolution:
        return self.resolve(conflict_id, STRATEGY_SKIP)

    def resolve_all(self, strategy: str) -> BatchResolution:
        """Resolve every pending conflict with an automatic strategy."""
        _validate_strategy(strategy, AUTO_STRATEGIES)
        batch = BatchResolution(strategy=strategy)
        for conflict in self.pending:
            batch.resolved.append(self.resolve(conflict.id, strategy))
        return batch

    def summary(self) -> Dict[str, Any]:
        return summarize_conflicts(self.conflicts)


def summarize_conflicts(conflicts: Iterable[Conflict]) -> Dict[str, Any]:
    """Count conflicts by type and by severity."""
    summary = {
        "total": 0,
        "by_type": {t: 0 for t in CONFLICT_TYPES},
        "by_severity": {s: 0 for s in SEVERITIES},
    }
    for conflict in conflicts:
        summary["total"] += 1
        summary["by_type"][conflict.type] += 1
        summary["by_severity"][conflict.severity] += 1
    return summary


def conflict_recommendations(conflicts: Iterable[Conflict]) -> List[Dict[str, str]]:
    """
    Advisory messages for a conflict list.

    Returns:
        List of {"type", "message", "priority"} dictionaries, most urgent first
    """
    summary = summarize_conflicts(conflicts)
    recommendations = []

    if summary["total"] == 0:
        return recommendations

    high = summary["by_severity"][SEVERITY_HIGH]
    low = summary["by_severity"][SEVERITY_LOW]
    mixed = summary["by_type"][TYPE_MIXED]

    if high > 0:
        recommendations.append({
            "type": "warning",
            "message": f"{high} conflicts involve URL changes. Review these carefully.",
            "priority": "high",
        })

    if mixed > 0:
        recommendations.append({
            "type": "info",
            "message": f"{mixed} conflicts have multiple changes. Consider manual resolution.",
            "priority": "medium",
        })

    if summary["total"] > MANY_CONFLICTS_THRESHOLD:
        recommendations.append({
            "type": "info",
            "message": "Large number of conflicts detected. Consider using automatic resolution strategies.",
            "priority": "medium",
        })

    if low > high:
        recommendations.append({
            "type": "suggestion",
            "message": "Most conflicts are low severity. Automatic resolution should be safe.",
            "priority": "low",
        })

    return recommendations
