"""
One complete sync cycle: preview, resolve, commit.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from marksync.conflicts import Conflict, Resolution, resolve_conflicts
from marksync.constants import (
    AUTO_STRATEGIES,
    DEFAULT_SCOPE,
    DEFAULT_STRATEGY,
    SCOPE_HOST_TO_MANY,
    STRATEGY_LOCAL_WINS,
    STRATEGY_MANUAL,
)
from marksync.exceptions import InputError
from marksync.merge import MergedState
from marksync.preview import SyncPreview, generate_sync_preview
from marksync.snapshots import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of run_sync_cycle."""
    success: bool
    scope: str
    strategy: str
    message: Optional[str] = None
    preview: Optional[SyncPreview] = None
    resolutions: List[Resolution] = field(default_factory=list)
    pending: List[Conflict] = field(default_factory=list)
    state: Optional[MergedState] = None

    @property
    def committed(self) -> bool:
        return self.state is not None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "success": self.success,
            "scope": self.scope,
            "strategy": self.strategy,
            "committed": self.committed,
            "resolvedCount": len(self.resolutions),
            "pending": [c.id for c in self.pending],
        }
        if self.message:
            data["message"] = self.message
        if self.preview is not None:
            data["changes"] = self.preview.changes
        return data


def run_sync_cycle(store: SnapshotStore, scope: str = DEFAULT_SCOPE,
                   strategy: str = DEFAULT_STRATEGY,
                   manual_records: Optional[Mapping[str, Any]] = None) -> SyncResult:
    """
    Run a sync cycle against a snapshot store.

    Args:
        store: Snapshot store collaborator
        scope: 'global' or 'host-to-many'
        strategy: Automatic strategy, or 'manual' to apply manual_records and
            leave every other conflict pending for this cycle
        manual_records: conflict id -> result record, for the manual strategy

    Returns:
        SyncResult. A preview failure is reported with success=False; errors
        raised while committing propagate.

    Raises:
        InputError: unknown strategy or a manual record that does not match
    """
    if strategy not in AUTO_STRATEGIES + (STRATEGY_MANUAL,):
        raise InputError(f"Unknown conflict strategy {strategy!r}")

    result = generate_sync_preview(store, scope)
    if not result.success:
        return SyncResult(success=False, scope=scope, strategy=strategy, message=result.message)

    preview = result.preview
    change_set = preview.change_set
    session = result.session

    if scope == SCOPE_HOST_TO_MANY:
        # Local is authoritative; modified pairs are overwritten remotely
        resolutions = resolve_conflicts(change_set.modified, STRATEGY_LOCAL_WINS).resolved
    elif strategy == STRATEGY_MANUAL:
        for conflict_id, record in (manual_records or {}).items():
            session.resolve(conflict_id, STRATEGY_MANUAL, record)
        resolutions = session.resolutions
    else:
        resolutions = session.resolve_all(strategy).resolved

    pending = session.pending
    sync_result = SyncResult(
        success=True,
        scope=scope,
        strategy=strategy,
        preview=preview,
        resolutions=list(resolutions),
        pending=pending,
    )

    if change_set.is_empty:
        logger.info("Snapshots already in sync; nothing to commit")
        return sync_result

    sync_result.state = store.commit(change_set, resolutions)
    logger.info(
        "Sync committed (%s): %d resolved, %d pending",
        scope, len(sync_result.resolutions), len(pending),
    )
    return sync_result
