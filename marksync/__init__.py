"""
marksync - bookmark snapshot reconciliation

Keeps hierarchical bookmark sets consistent across clients that only share
a weakly-consistent remote store, and governs how many backups each
schedule retains.

Example Usage:
    >>> from marksync import MemorySnapshotStore, generate_sync_preview
    >>> store = MemorySnapshotStore(local=[{"id": "1", "title": "A"}],
    ...                             remote=[{"id": "1", "title": "B"}],
    ...                             baseline=[{"id": "1", "title": "A"}])
    >>> result = generate_sync_preview(store)
    >>> result.preview.details.conflicts[0].severity
    'medium'
"""

__version__ = "0.3.0"
__author__ = "marksync Contributors"

# Records and fingerprints
from marksync.records import BookmarkRecord, flatten_tree
from marksync.fingerprint import fingerprint, snapshot_digest

# Change detection and conflicts
from marksync.changes import ChangeSet, diff
from marksync.conflicts import (
    Conflict,
    ConflictSession,
    Resolution,
    classify,
    resolve_conflict,
    resolve_conflicts,
)

# Previews and sync cycles
from marksync.snapshots import SnapshotStore, MemorySnapshotStore, JsonSnapshotStore
from marksync.preview import generate_sync_preview, preview_summary
from marksync.sync import run_sync_cycle

# Backups and retention
from marksync.backups import BackupStore, create_backup_metadata, get_store
from marksync.retention import enforce_retention_policy, record_backup

# Configuration and errors
from marksync.config import MarksyncConfig, get_config, init_config
from marksync.exceptions import MarksyncError, InputError, CollaboratorUnavailable

__all__ = [
    "BookmarkRecord",
    "flatten_tree",
    "fingerprint",
    "snapshot_digest",
    "ChangeSet",
    "diff",
    "Conflict",
    "ConflictSession",
    "Resolution",
    "classify",
    "resolve_conflict",
    "resolve_conflicts",
    "SnapshotStore",
    "MemorySnapshotStore",
    "JsonSnapshotStore",
    "generate_sync_preview",
    "preview_summary",
    "run_sync_cycle",
    "BackupStore",
    "create_backup_metadata",
    "get_store",
    "enforce_retention_policy",
    "record_backup",
    "MarksyncConfig",
    "get_config",
    "init_config",
    "MarksyncError",
    "InputError",
    "CollaboratorUnavailable",
]
