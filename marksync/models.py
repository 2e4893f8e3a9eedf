"""
SQLAlchemy models for the backup metadata log.

The log is append-only: rows are inserted when a backup is taken and only
ever deleted, by the retention engine or by an explicit user action.
"""
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from sqlalchemy import Integer, String, Text, Float, DateTime, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from marksync.constants import BACKUP_TYPE_MANUAL, BACKUP_STATUS_SUCCESS


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything is stored in UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BackupRecord(Base):
    """
    One backup in the log.

    Attributes:
        seq: Insertion sequence; breaks timestamp ties
        id: External backup identifier (e.g. backup_1700000000000)
        type: 'manual' or 'scheduled'
        schedule_id: Schedule that produced the backup (scheduled backups)
        status: 'success' or 'failed'
        timestamp: Creation time (UTC)
        content_ref: Reference to the stored backup content (file id, path)

    Descriptive attributes (set at creation, never updated):
        bookmark_count, folder_count, size, duration, error, filename, description
    """
    __tablename__ = 'backups'

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default=BACKUP_TYPE_MANUAL)
    schedule_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=BACKUP_STATUS_SUCCESS)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    content_ref: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    bookmark_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    folder_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    filename: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index('ix_backups_schedule_timestamp', 'schedule_id', 'timestamp'),
    )

    @property
    def timestamp_utc(self) -> Optional[datetime]:
        return as_utc(self.timestamp)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable form, matching the persisted log layout."""
        ts = self.timestamp_utc
        return {
            "id": self.id,
            "type": self.type,
            "scheduleId": self.schedule_id,
            "status": self.status,
            "timestamp": ts.isoformat() if ts else None,
            "contentRef": self.content_ref,
            "bookmarkCount": self.bookmark_count,
            "folderCount": self.folder_count,
            "size": self.size,
            "duration": self.duration,
            "error": self.error,
            "filename": self.filename,
            "description": self.description,
        }

    def __repr__(self):
        return f"<BackupRecord(id='{self.id}', type='{self.type}', schedule='{self.schedule_id}', status='{self.status}')>"


class RetentionPolicy(Base):
    """
    Number of scheduled backups to keep for one schedule.

    retention_count = -1 means unlimited.
    """
    __tablename__ = 'retention_policies'

    schedule_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    retention_count: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self):
        return f"<RetentionPolicy(schedule='{self.schedule_id}', count={self.retention_count})>"
