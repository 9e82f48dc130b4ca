"""Domain types shared by directive synchronization and reminder aggregation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from taskflow.directives import Directive
    from taskflow.notifications import TaskNotification

IntervalKey = str
UserId = str
DocumentId = str
TaskId = str

# interval -> document -> task id -> responsible users
DocumentGrouping = dict[IntervalKey, dict[DocumentId, dict[TaskId, list[UserId]]]]
# interval -> user -> document -> task ids
DispatchGrouping = dict[IntervalKey, dict[UserId, dict[DocumentId, list[TaskId]]]]

PlanStatus = Literal["reconciled", "cleared", "skipped"]


@dataclass(frozen=True)
class TaskRecord:
    """Persisted state of one task directive, scoped to its owning document."""

    document_id: DocumentId
    task_id: TaskId
    content: str
    creator: UserId
    responsible: tuple[UserId, ...] = ()
    reminder_intervals: frozenset[IntervalKey] = frozenset()
    due_date: datetime | None = None
    done: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def same_tracked_values(self, other: "TaskRecord") -> bool:
        """Return True when the directive-controlled fields are equal by value."""
        return (
            self.content == other.content
            and self.responsible == other.responsible
            and self.due_date == other.due_date
            and self.reminder_intervals == other.reminder_intervals
        )


@dataclass(frozen=True)
class ReconciliationPlan:
    """Outcome of reconciling one document's directives against its records."""

    document_id: DocumentId
    status: PlanStatus = "reconciled"
    to_create: list[TaskRecord] = field(default_factory=list)
    to_update: list[TaskRecord] = field(default_factory=list)
    to_delete: list[TaskId] = field(default_factory=list)
    found_ids: list[TaskId] = field(default_factory=list)
    id_writebacks: list["Directive"] = field(default_factory=list)
    assignments: list["TaskNotification"] = field(default_factory=list)
    content: str | None = None

    @property
    def records_to_upsert(self) -> list[TaskRecord]:
        """Records that must be written, creations first."""
        return [*self.to_create, *self.to_update]

    @property
    def has_changes(self) -> bool:
        """Return True when applying the plan would touch storage."""
        return bool(self.to_create or self.to_update or self.to_delete)


__all__ = [
    "DispatchGrouping",
    "DocumentGrouping",
    "DocumentId",
    "IntervalKey",
    "PlanStatus",
    "ReconciliationPlan",
    "TaskId",
    "TaskRecord",
    "UserId",
]
