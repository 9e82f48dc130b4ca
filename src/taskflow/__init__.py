"""Task directive synchronization and reminder aggregation."""

from taskflow.aggregation import ReminderAggregator, invert_grouping
from taskflow.domain import DispatchGrouping, DocumentGrouping, ReconciliationPlan, TaskRecord
from taskflow.reconciler import reconcile
from taskflow.reminder_job import ReminderDispatchJob, ReminderDispatchResult
from taskflow.repository import TaskRecordRepository
from taskflow.synchronizer import DocumentTaskSynchronizer
from taskflow.windows import ReminderWindow, reminder_windows

__all__ = [
    "DispatchGrouping",
    "DocumentGrouping",
    "DocumentTaskSynchronizer",
    "ReconciliationPlan",
    "ReminderAggregator",
    "ReminderDispatchJob",
    "ReminderDispatchResult",
    "ReminderWindow",
    "TaskRecord",
    "TaskRecordRepository",
    "invert_grouping",
    "reconcile",
    "reminder_windows",
]
