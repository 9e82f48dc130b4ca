"""Repository helpers for task record persistence."""

from __future__ import annotations

import logging
from contextlib import closing
from datetime import datetime
from typing import Callable, Protocol, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import TaskRecordRow
from taskflow.domain import ReconciliationPlan, TaskRecord
from taskflow.errors import ReminderQueryError, TaskStorageError
from time_utils import from_storage, to_utc, utc_now

logger = logging.getLogger(__name__)
T = TypeVar("T")


class TaskRecordQuery(Protocol):
    """Query boundary used by reminder aggregation."""

    def find_records_due_between(self, start: datetime, end: datetime) -> list[TaskRecord]:
        """Return records with ``start <= due_date < end`` across all documents."""


class TaskRecordRepository:
    """Repository for task record reads and plan application."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize repository with a SQLAlchemy session factory."""
        self._session_factory = session_factory

    def list_for_document(self, document_id: str) -> list[TaskRecord]:
        """Return every task record owned by ``document_id``."""

        def handler(session: Session) -> list[TaskRecord]:
            rows = session.scalars(
                select(TaskRecordRow)
                .where(TaskRecordRow.document_id == document_id)
                .order_by(TaskRecordRow.id.asc())
            ).all()
            return [_to_record(row) for row in rows]

        return self._execute(handler)

    def get(self, document_id: str, task_id: str) -> TaskRecord | None:
        """Fetch one task record by owning document and task id."""

        def handler(session: Session) -> TaskRecord | None:
            row = _fetch_row(session, document_id, task_id)
            return None if row is None else _to_record(row)

        return self._execute(handler)

    def apply_plan(self, plan: ReconciliationPlan, *, now: datetime | None = None) -> None:
        """Apply creations, updates and deletions of one plan atomically."""
        if not plan.has_changes:
            return
        timestamp = to_utc(now or utc_now())

        def handler(session: Session) -> None:
            for record in plan.to_create:
                session.add(_to_row(record, timestamp=timestamp))
            for record in plan.to_update:
                row = _fetch_row(session, record.document_id, record.task_id)
                if row is None:
                    raise LookupError(f"Task record vanished during update: {record.task_id}")
                _apply_tracked_values(row, record)
                row.updated_at = timestamp
            if plan.to_delete:
                session.execute(
                    delete(TaskRecordRow).where(
                        TaskRecordRow.document_id == plan.document_id,
                        TaskRecordRow.task_id.in_(plan.to_delete),
                    )
                )
            session.flush()

        try:
            self._execute(handler)
        except (SQLAlchemyError, LookupError) as exc:
            logger.error(
                "Task record persistence failed: document_id=%s created=%s updated=%s deleted=%s",
                plan.document_id,
                len(plan.to_create),
                len(plan.to_update),
                len(plan.to_delete),
            )
            raise TaskStorageError(plan.document_id, "Failed to persist task records") from exc

    def delete_all_for_document(self, document_id: str) -> list[str]:
        """Delete every task record of a document and return the removed ids."""

        def handler(session: Session) -> list[str]:
            task_ids = list(
                session.scalars(
                    select(TaskRecordRow.task_id)
                    .where(TaskRecordRow.document_id == document_id)
                    .order_by(TaskRecordRow.id.asc())
                ).all()
            )
            if task_ids:
                session.execute(
                    delete(TaskRecordRow).where(TaskRecordRow.document_id == document_id)
                )
            return task_ids

        try:
            return self._execute(handler)
        except SQLAlchemyError as exc:
            raise TaskStorageError(document_id, "Failed to delete task records") from exc

    def find_records_due_between(self, start: datetime, end: datetime) -> list[TaskRecord]:
        """Return records due in the half-open range ``[start, end)``."""
        start_utc = to_utc(start)
        end_utc = to_utc(end)

        def handler(session: Session) -> list[TaskRecord]:
            rows = session.scalars(
                select(TaskRecordRow)
                .where(
                    TaskRecordRow.due_date.is_not(None),
                    TaskRecordRow.due_date >= start_utc,
                    TaskRecordRow.due_date < end_utc,
                )
                .order_by(TaskRecordRow.document_id.asc(), TaskRecordRow.id.asc())
            ).all()
            return [_to_record(row) for row in rows]

        try:
            return self._execute(handler)
        except SQLAlchemyError as exc:
            raise ReminderQueryError(
                f"Due-between query failed for [{start_utc.isoformat()}, {end_utc.isoformat()})"
            ) from exc

    def _execute(self, handler: Callable[[Session], T]) -> T:
        """Execute repository work inside a managed session."""
        with closing(self._session_factory()) as session:
            session.expire_on_commit = False
            try:
                result = handler(session)
                session.commit()
            except Exception:
                session.rollback()
                raise
        return result


def _fetch_row(session: Session, document_id: str, task_id: str) -> TaskRecordRow | None:
    """Return the row for one (document, task) pair, if any."""
    return session.scalars(
        select(TaskRecordRow).where(
            TaskRecordRow.document_id == document_id,
            TaskRecordRow.task_id == task_id,
        )
    ).one_or_none()


def _apply_tracked_values(row: TaskRecordRow, record: TaskRecord) -> None:
    """Copy directive-controlled fields onto a row."""
    row.content = record.content
    row.responsible = list(record.responsible)
    row.reminder_intervals = sorted(record.reminder_intervals)
    row.due_date = None if record.due_date is None else to_utc(record.due_date)


def _to_row(record: TaskRecord, *, timestamp: datetime) -> TaskRecordRow:
    """Map a new domain record to an ORM row."""
    row = TaskRecordRow(
        document_id=record.document_id,
        task_id=record.task_id,
        creator=record.creator,
        done=record.done,
        created_at=timestamp,
        updated_at=timestamp,
    )
    _apply_tracked_values(row, record)
    return row


def _to_record(row: TaskRecordRow) -> TaskRecord:
    """Map an ORM row to an immutable domain record."""
    return TaskRecord(
        document_id=str(row.document_id),
        task_id=str(row.task_id),
        content=row.content or "",
        creator=row.creator or "",
        responsible=tuple(row.responsible or ()),
        reminder_intervals=frozenset(row.reminder_intervals or ()),
        due_date=from_storage(row.due_date),
        done=bool(row.done),
        created_at=from_storage(row.created_at),
        updated_at=from_storage(row.updated_at),
    )


__all__ = ["TaskRecordQuery", "TaskRecordRepository"]
