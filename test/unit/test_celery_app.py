"""Unit tests for the Celery wiring of Taskflow jobs."""

from __future__ import annotations

import json
import logging

from celery.signals import setup_logging

from config import settings
from logging_config import ContextFilter, JsonFormatter, clear_context, log_context
from scheduler import celery_app as celery_module
from taskflow.domain import ReconciliationPlan, TaskRecord
from taskflow.reminder_job import ReminderDispatchResult


def test_reminder_task_is_scheduled_hourly() -> None:
    """The beat schedule triggers the reminder task once per hour."""
    entry = celery_module.celery_app.conf.beat_schedule[celery_module.REMINDER_TASK_NAME]

    assert entry["task"] == "taskflow.send_task_reminders"
    assert entry["schedule"].minute == {0}
    assert entry["schedule"].hour == set(range(24))


def test_send_task_reminders_returns_counts(monkeypatch) -> None:
    """The reminder task reports the job's dispatch counts."""

    class _JobStub:
        def run(self, now=None):
            return ReminderDispatchResult(sent=3, failed=1, skipped=2)

    monkeypatch.setattr(celery_module, "_build_reminder_job", _JobStub)

    assert celery_module.send_task_reminders() == {"sent": 3, "failed": 1, "skipped": 2}


def test_synchronize_document_summarizes_plan(monkeypatch) -> None:
    """The synchronization task returns a serializable plan summary."""
    created = TaskRecord(
        document_id="Main.WebHome",
        task_id="gen-1",
        content="Write report",
        creator="XWiki.Admin",
    )

    class _SynchronizerStub:
        def on_document_content_changed(self, document_id, old_content, new_content, acting_user):
            return ReconciliationPlan(
                document_id=document_id,
                to_create=[created],
                to_delete=["old-1"],
                content="rewritten",
            )

    monkeypatch.setattr(celery_module, "_build_synchronizer", _SynchronizerStub)

    summary = celery_module.synchronize_document("Main.WebHome", "", "x", "XWiki.Admin")

    assert summary == {
        "document_id": "Main.WebHome",
        "status": "reconciled",
        "created": ["gen-1"],
        "updated": [],
        "deleted": ["old-1"],
        "content": "rewritten",
    }


def test_worker_logging_uses_structured_handler(monkeypatch, capsys) -> None:
    """Celery's logging setup installs the JSON handler with bound context."""
    monkeypatch.setattr(settings.logging, "level", "INFO", raising=False)
    monkeypatch.setattr(settings.logging, "json_output", True, raising=False)
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    try:
        setup_logging.send(sender=None, loglevel="INFO", logfile=None, format="", colorize=False)

        (handler,) = root.handlers
        assert isinstance(handler.formatter, JsonFormatter)
        assert any(isinstance(item, ContextFilter) for item in handler.filters)
        assert root.level == logging.INFO

        with log_context({"document_id": "Main.WebHome"}):
            logging.getLogger("taskflow.synchronizer").info("Synchronized document tasks")
        payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])

        assert payload["message"] == "Synchronized document tasks"
        assert payload["document_id"] == "Main.WebHome"
        assert payload["service"] == settings.logging.service
    finally:
        root.handlers[:] = original_handlers
        root.setLevel(original_level)
        clear_context()
