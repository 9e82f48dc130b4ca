"""Data models for the Taskflow service."""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

# SQLAlchemy base
Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskRecordRow(Base):
    """Persisted task record owned by one document."""

    __tablename__ = "task_records"

    id = Column(Integer, primary_key=True)
    document_id = Column(String(768), nullable=False)
    task_id = Column(String(64), nullable=False)
    content = Column(Text, nullable=False, default="")
    creator = Column(String(255), nullable=False, default="")
    responsible = Column(JSON, nullable=False, default=list)
    reminder_intervals = Column(JSON, nullable=False, default=list)
    due_date = Column(DateTime(timezone=True), nullable=True)
    done = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("document_id", "task_id", name="uq_task_records_document_task"),
        Index("ix_task_records_due_date", "due_date"),
        Index("ix_task_records_document_id", "document_id"),
    )


class TaskNotificationRecord(Base):
    """In-app notification feed entry for a task event."""

    __tablename__ = "task_notifications"

    id = Column(Integer, primary_key=True)
    document_id = Column(String(768), nullable=False)
    user_id = Column(String(255), nullable=False)
    event_kind = Column(String(32), nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (Index("ix_task_notifications_user_id", "user_id"),)
