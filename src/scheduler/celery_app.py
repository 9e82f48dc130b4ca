"""Celery entry point for Taskflow reminder and synchronization tasks."""

from __future__ import annotations

import logging
from typing import Any

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from config import settings
from logging_config import configure_from_settings
from services.database import get_session_factory
from taskflow.notifications import DatabaseNotifier
from taskflow.reminder_job import ReminderDispatchJob
from taskflow.repository import TaskRecordRepository
from taskflow.synchronizer import DocumentTaskSynchronizer

LOGGER = logging.getLogger(__name__)

REMINDER_TASK_NAME = "taskflow.send_task_reminders"
SYNC_TASK_NAME = "taskflow.synchronize_document"

celery_app = Celery("taskflow.scheduler")
celery_app.conf.broker_url = settings.scheduler.broker_url
celery_app.conf.result_backend = settings.scheduler.result_backend
celery_app.conf.task_default_queue = settings.scheduler.queue
celery_app.conf.task_serializer = "json"
celery_app.conf.result_serializer = "json"
celery_app.conf.accept_content = ["json"]
celery_app.conf.enable_utc = True
celery_app.conf.timezone = "UTC"

beat_schedule = celery_app.conf.get("beat_schedule")
if beat_schedule is None:
    beat_schedule = {}
beat_schedule[REMINDER_TASK_NAME] = {
    "task": REMINDER_TASK_NAME,
    "schedule": crontab(minute=settings.scheduler.reminder_minute),
}
celery_app.conf.beat_schedule = beat_schedule


@setup_logging.connect
def _configure_worker_logging(**_kwargs: Any) -> None:
    """Install structured stdout logging in place of Celery's default handlers."""
    configure_from_settings()


def _build_reminder_job() -> ReminderDispatchJob:
    """Wire the reminder job against the configured database."""
    session_factory = get_session_factory()
    return ReminderDispatchJob(
        TaskRecordRepository(session_factory),
        DatabaseNotifier(session_factory),
    )


def _build_synchronizer() -> DocumentTaskSynchronizer:
    """Wire the document synchronizer against the configured database."""
    session_factory = get_session_factory()
    return DocumentTaskSynchronizer(
        TaskRecordRepository(session_factory),
        DatabaseNotifier(session_factory),
    )


@celery_app.task(name=REMINDER_TASK_NAME)
def send_task_reminders() -> dict[str, int]:
    """Send ``expiring`` notifications for tasks due in the reminder windows."""
    result = _build_reminder_job().run()
    LOGGER.info(
        "Task reminders dispatched: sent=%s failed=%s skipped=%s",
        result.sent,
        result.failed,
        result.skipped,
    )
    return {"sent": result.sent, "failed": result.failed, "skipped": result.skipped}


@celery_app.task(name=SYNC_TASK_NAME)
def synchronize_document(
    document_id: str,
    old_content: str | None,
    new_content: str | None,
    acting_user: str,
) -> dict[str, Any]:
    """Reconcile one document's directives and return the plan summary."""
    plan = _build_synchronizer().on_document_content_changed(
        document_id,
        old_content,
        new_content,
        acting_user,
    )
    return {
        "document_id": plan.document_id,
        "status": plan.status,
        "created": [record.task_id for record in plan.to_create],
        "updated": [record.task_id for record in plan.to_update],
        "deleted": list(plan.to_delete),
        "content": plan.content,
    }
