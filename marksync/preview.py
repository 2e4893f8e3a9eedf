"""
Dry-run sync previews.

A preview runs change detection and conflict classification against the
snapshot store without resolving or writing anything, so a caller can show
the plan before committing it.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from marksync.changes import ChangeSet, ModifiedPair, diff
from marksync.conflicts import Conflict, ConflictSession, conflict_recommendations, summarize_conflicts
from marksync.constants import DEFAULT_SCOPE, SCOPE_GLOBAL, SYNC_SCOPES
from marksync.exceptions import CollaboratorUnavailable, InputError
from marksync.records import BookmarkRecord
from marksync.snapshots import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class PreviewDetails:
    """Per-record listing of a preview."""
    conflicts: List[Conflict] = field(default_factory=list)
    added: List[BookmarkRecord] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    modified: List[ModifiedPair] = field(default_factory=list)
    remote_added: List[BookmarkRecord] = field(default_factory=list)
    local_removed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conflicts": [c.to_dict() for c in self.conflicts],
            "added": [r.to_dict() for r in self.added],
            "removed": list(self.removed),
            "modified": [m.to_dict() for m in self.modified],
            "remoteAdded": [r.to_dict() for r in self.remote_added],
            "localRemoved": list(self.local_removed),
        }


@dataclass
class SyncPreview:
    """What a sync cycle would do for one scope."""
    scope: str
    details: PreviewDetails
    change_set: ChangeSet
    local_count: int = 0
    remote_count: int = 0
    initial_sync: bool = False

    @property
    def changes(self) -> Dict[str, int]:
        d = self.details
        return {
            "added": len(d.added),
            "removed": len(d.removed),
            "updated": len(d.modified) - len(d.conflicts),
            "conflicts": len(d.conflicts),
            "remote_added": len(d.remote_added),
            "local_removed": len(d.local_removed),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": self.scope,
            "type": "initial_sync" if self.initial_sync else "sync_preview",
            "changes": self.changes,
            "summary": summarize_conflicts(self.details.conflicts),
            "recommendations": conflict_recommendations(self.details.conflicts),
            "details": self.details.to_dict(),
            "localCount": self.local_count,
            "remoteCount": self.remote_count,
        }


@dataclass
class PreviewResult:
    """
    Outcome of generate_sync_preview.

    On failure success is False, preview is None and message explains why.
    session holds the classified conflicts for manual resolution.
    """
    success: bool
    preview: Optional[SyncPreview] = None
    message: Optional[str] = None
    session: Optional[ConflictSession] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "message": self.message}
        return {"success": True, "preview": self.preview.to_dict()}


def build_preview(local: List[BookmarkRecord], remote: List[BookmarkRecord],
                  baseline: Optional[List[BookmarkRecord]],
                  scope: str = DEFAULT_SCOPE) -> PreviewResult:
    """
    Build a preview from snapshots already in hand.

    In 'global' scope every modified pair is a conflict. In 'host-to-many'
    scope the local side is authoritative, so modified pairs are plain
    updates and no conflicts are reported.
    """
    if scope not in SYNC_SCOPES:
        raise InputError(f"Unknown sync scope {scope!r}; expected one of {', '.join(SYNC_SCOPES)}")

    change_set = diff(local, remote, baseline)
    session = ConflictSession(scope)
    conflicts = session.detect(change_set) if scope == SCOPE_GLOBAL else []

    details = PreviewDetails(
        conflicts=conflicts,
        added=list(change_set.added),
        removed=list(change_set.removed),
        modified=list(change_set.modified),
        remote_added=list(change_set.remote_added),
        local_removed=list(change_set.local_removed),
    )
    preview = SyncPreview(
        scope=scope,
        details=details,
        change_set=change_set,
        local_count=len(local),
        remote_count=len(remote),
        initial_sync=baseline is None and not remote,
    )
    return PreviewResult(success=True, preview=preview, session=session)


def generate_sync_preview(store: SnapshotStore, scope: str = DEFAULT_SCOPE) -> PreviewResult:
    """
    Generate a sync preview from a snapshot store.

    Never raises for collaborator or input problems; those come back as
    PreviewResult(success=False, message=...) so a UI can recover.
    """
    try:
        local = store.get_local_snapshot()
        remote = store.get_remote_snapshot()
        baseline = store.get_last_synced_baseline()
        return build_preview(local, remote, baseline, scope)
    except (CollaboratorUnavailable, InputError, OSError) as e:
        logger.warning(f"Failed to generate sync preview: {e}")
        return PreviewResult(success=False, message=str(e))


def preview_summary(preview: SyncPreview) -> Dict[str, Any]:
    """
    One-line summary of a preview.

    Returns:
        Dict with totalChanges, summary text, hasConflicts, requiresAttention
    """
    changes = preview.changes
    labels = [
        ("added", "new"),
        ("remote_added", "new remote"),
        ("updated", "updated"),
        ("removed", "removed"),
        ("local_removed", "removed locally"),
        ("conflicts", "conflicts"),
    ]
    total = sum(changes[key] for key, _ in labels)
    parts = [f"{changes[key]} {label}" for key, label in labels if changes[key] > 0]

    return {
        "totalChanges": total,
        "summary": ", ".join(parts) if parts else "No changes detected",
        "hasConflicts": changes["conflicts"] > 0,
        "requiresAttention": changes["conflicts"] > 0,
    }
