"""Hourly job that turns due reminders into ``expiring`` notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from config import TaskflowConfig, settings
from taskflow.aggregation import ReminderAggregator, iter_dispatch_entries
from taskflow.notifications import (
    TaskEventKind,
    TaskNotification,
    TaskNotifier,
    build_task_url,
    dispatch_notifications,
)
from taskflow.repository import TaskRecordRepository
from time_utils import to_local

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderDispatchResult:
    """Counts from one reminder dispatch run."""

    sent: int = 0
    failed: int = 0
    skipped: int = 0


class ReminderDispatchJob:
    """Walk the dispatch grouping and notify each responsible user."""

    def __init__(
        self,
        repository: TaskRecordRepository,
        notifier: TaskNotifier,
        *,
        aggregator: ReminderAggregator | None = None,
        config: TaskflowConfig | None = None,
    ) -> None:
        """Initialize the job.

        Args:
            repository: Source of fresh task records at dispatch time.
            notifier: Delivery channel for ``expiring`` notifications.
            aggregator: Reminder aggregator (defaults to one over ``repository``).
            config: Taskflow settings (defaults to the global settings).
        """
        self._repository = repository
        self._notifier = notifier
        self._aggregator = aggregator or ReminderAggregator(repository)
        self._config = config or settings.taskflow

    def run(self, now: datetime | None = None) -> ReminderDispatchResult:
        """Execute one reminder run.

        Args:
            now: Reference timestamp (defaults to current UTC time).

        Returns:
            Sent, failed and skipped notification counts.
        """
        logger.debug("Task reminder job started")
        grouping = self._aggregator.get_due_reminders(now)
        notifications: list[TaskNotification] = []
        skipped = 0
        lookup_failures = 0
        for _interval, user_id, document_id, task_id in iter_dispatch_entries(grouping):
            try:
                notification = self._build_notification(user_id, document_id, task_id)
            except Exception:
                lookup_failures += 1
                logger.exception(
                    "Task lookup for reminder failed: document_id=%s task_id=%s user_id=%s",
                    document_id,
                    task_id,
                    user_id,
                )
                continue
            if notification is None:
                skipped += 1
                continue
            notifications.append(notification)

        sent, failed = dispatch_notifications(self._notifier, notifications)
        logger.debug("Task reminder job finished")
        return ReminderDispatchResult(
            sent=sent,
            failed=failed + lookup_failures,
            skipped=skipped,
        )

    def _build_notification(
        self, user_id: str, document_id: str, task_id: str
    ) -> TaskNotification | None:
        """Build an expiring notification from the record as stored right now."""
        record = self._repository.get(document_id, task_id)
        if record is None or record.due_date is None or user_id not in record.responsible:
            logger.info(
                "Skipping reminder for task changed since aggregation: "
                "document_id=%s task_id=%s user_id=%s",
                document_id,
                task_id,
                user_id,
            )
            return None
        return TaskNotification(
            document_id=document_id,
            user_id=user_id,
            event_kind=TaskEventKind.EXPIRING,
            params={
                "content": record.content,
                "creator": record.creator,
                "url": build_task_url(document_id, task_id, base_url=self._config.base_url),
                "dueDate": to_local(record.due_date).strftime(self._config.date_format),
            },
        )


__all__ = ["ReminderDispatchJob", "ReminderDispatchResult"]
