"""Task notification payloads and delivery boundaries."""

from __future__ import annotations

import json
import logging
from contextlib import closing
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Protocol
from urllib.parse import quote

from sqlalchemy.orm import Session

from models import TaskNotificationRecord
from time_utils import utc_now

logger = logging.getLogger(__name__)


class TaskEventKind(str, Enum):
    """Supported task notification kinds."""

    ASSIGNED = "assigned"
    EXPIRING = "expiring"


@dataclass(frozen=True)
class TaskNotification:
    """One notification request for one user about one document's task."""

    document_id: str
    user_id: str
    event_kind: TaskEventKind
    params: dict[str, str] = field(default_factory=dict)


class TaskNotifier(Protocol):
    """Delivery channel for task notifications."""

    def notify(self, notification: TaskNotification) -> None:
        """Deliver one notification."""


def build_task_url(document_id: str, task_id: str, *, base_url: str) -> str:
    """Return the external URL anchoring one task inside its document."""
    return f"{base_url.rstrip('/')}/{quote(document_id, safe='')}#{task_id}"


def serialize_event_body(params: dict[str, str]) -> str:
    """Serialize notification parameters to the stored JSON body."""
    return json.dumps(params, sort_keys=True, separators=(",", ":"))


class LoggingNotifier:
    """Notifier that only records notifications in the application log."""

    def notify(self, notification: TaskNotification) -> None:
        logger.info(
            "Task notification: kind=%s document_id=%s user_id=%s",
            notification.event_kind.value,
            notification.document_id,
            notification.user_id,
        )


class DatabaseNotifier:
    """Notifier that appends notifications to the in-app feed table."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def notify(self, notification: TaskNotification) -> None:
        with closing(self._session_factory()) as session:
            try:
                session.add(
                    TaskNotificationRecord(
                        document_id=notification.document_id,
                        user_id=notification.user_id,
                        event_kind=notification.event_kind.value,
                        body=serialize_event_body(notification.params),
                        created_at=utc_now(),
                    )
                )
                session.commit()
            except Exception:
                session.rollback()
                raise


def dispatch_notifications(
    notifier: TaskNotifier,
    notifications: Iterable[TaskNotification],
) -> tuple[int, int]:
    """Deliver each notification independently and return (sent, failed)."""
    sent = 0
    failed = 0
    for notification in notifications:
        try:
            notifier.notify(notification)
        except Exception:
            failed += 1
            logger.exception(
                "Task notification delivery failed: kind=%s document_id=%s user_id=%s",
                notification.event_kind.value,
                notification.document_id,
                notification.user_id,
            )
            continue
        sent += 1
    return sent, failed


__all__ = [
    "DatabaseNotifier",
    "LoggingNotifier",
    "TaskEventKind",
    "TaskNotification",
    "TaskNotifier",
    "build_task_url",
    "dispatch_notifications",
    "serialize_event_body",
]
