"""
Backup retention policies.

Each schedule keeps its newest N successful scheduled backups. Anything
older than the oldest kept success in that schedule (surplus successes and
failed attempts alike) is removed. Manual backups and other schedules are
filtered out before anything is selected for removal, so they can never be
trimmed.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple, Union, Mapping

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from marksync.backups import BackupStore
from marksync.constants import (
    BACKUP_STATUS_SUCCESS,
    BACKUP_TYPE_SCHEDULED,
    UNLIMITED_RETENTION,
)
from marksync.models import BackupRecord

logger = logging.getLogger(__name__)


def _select_for_removal(session: Session, schedule_id: str, retention_count: int) -> List[BackupRecord]:
    candidates = list(session.execute(
        select(BackupRecord)
        .where(BackupRecord.schedule_id == schedule_id)
        .where(BackupRecord.type == BACKUP_TYPE_SCHEDULED)
        .order_by(BackupRecord.timestamp.desc(), BackupRecord.seq.desc())
    ).scalars())

    successes = [b for b in candidates if b.status == BACKUP_STATUS_SUCCESS]
    if len(successes) <= retention_count:
        return []

    if retention_count == 0:
        doomed = candidates
    else:
        oldest_kept = successes[retention_count - 1]
        doomed = candidates[candidates.index(oldest_kept) + 1:]

    # Oldest first
    return list(reversed(doomed))


def get_backups_to_remove(store: BackupStore, schedule_id: str, retention_count: int) -> List[BackupRecord]:
    """
    Dry run of enforce_retention_policy.

    Returns:
        Backups that would be removed, oldest first
    """
    if retention_count < 0:
        return []
    with store.session(expire_on_commit=False) as session:
        return _select_for_removal(session, schedule_id, retention_count)


def enforce_retention_policy(store: BackupStore, schedule_id: str, retention_count: int) -> int:
    """
    Trim a schedule's backups down to its retention count.

    Args:
        store: Backup metadata store
        schedule_id: Schedule to trim; other schedules are never touched
        retention_count: Successful backups to keep; negative means unlimited

    Returns:
        Number of backups removed

    Storage errors propagate (as CollaboratorUnavailable) so a skipped sweep
    is visible to the caller. Calling twice in a row removes nothing the
    second time.
    """
    if retention_count < 0:
        return 0

    removed = 0
    with store.lock:
        with store.session() as session:
            doomed = _select_for_removal(session, schedule_id, retention_count)
            if doomed:
                # Rows another process already deleted are not counted
                result = session.execute(
                    delete(BackupRecord)
                    .where(BackupRecord.seq.in_([b.seq for b in doomed]))
                    .execution_options(synchronize_session=False)
                )
                removed = result.rowcount

    if removed:
        logger.info(f"Retention for schedule {schedule_id}: removed {removed} backups "
                    f"(keeping {retention_count})")
    return removed


def enforce_all_policies(store: BackupStore) -> Dict[str, int]:
    """Apply every stored retention policy; returns removed counts per schedule."""
    return {
        schedule_id: enforce_retention_policy(store, schedule_id, count)
        for schedule_id, count in store.list_retention_policies().items()
    }


def record_backup(store: BackupStore, record: Union[BackupRecord, Mapping[str, Any]],
                  default_retention: Optional[int] = None) -> Tuple[BackupRecord, int]:
    """
    Save a backup, then apply its schedule's retention policy.

    The stored policy for the schedule is used; default_retention applies
    when none is stored. Manual backups never trigger a sweep.

    Returns:
        (saved record, number of backups removed)
    """
    with store.lock:
        saved = store.save_backup(record)
        if saved.type != BACKUP_TYPE_SCHEDULED or not saved.schedule_id:
            return saved, 0

        count = store.get_retention_policy(saved.schedule_id)
        if count is None:
            count = default_retention if default_retention is not None else UNLIMITED_RETENTION
        removed = enforce_retention_policy(store, saved.schedule_id, count)

    return saved, removed


def get_retention_summary(store: BackupStore, schedule_id: str) -> Dict[str, Any]:
    """
    Describe a schedule's retained backups.

    Returns:
        Dict with schedule_id, retention_count (None when no policy is
        stored), total_backups, oldest_backup and newest_backup
    """
    backups = store.get_backups_by_schedule(schedule_id)
    return {
        "schedule_id": schedule_id,
        "retention_count": store.get_retention_policy(schedule_id),
        "total_backups": len(backups),
        "oldest_backup": backups[0] if backups else None,
        "newest_backup": backups[-1] if backups else None,
    }
