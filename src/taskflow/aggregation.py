"""Reminder aggregation over due task records.

Aggregation first builds a document-centric view::

    {"h1": {"Main.WebHome": {"k3v9x0qz2a-1761153864688": ["alice", "bob"]}}}

and then inverts it into the user-centric view consumed by dispatch::

    {"h1": {"alice": {"Main.WebHome": ["k3v9x0qz2a-1761153864688"]},
            "bob": {"Main.WebHome": ["k3v9x0qz2a-1761153864688"]}}}
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterator

from taskflow.domain import DispatchGrouping, DocumentGrouping, TaskRecord
from taskflow.repository import TaskRecordQuery
from taskflow.windows import ReminderWindow, reminder_windows
from time_utils import to_utc, utc_now

logger = logging.getLogger(__name__)


def qualifies_for_window(record: TaskRecord, window: ReminderWindow) -> bool:
    """Return True when a record should be reminded in ``window``."""
    if window.interval_key not in record.reminder_intervals:
        return False
    if not record.responsible or record.due_date is None:
        return False
    return window.contains(record.due_date)


def invert_grouping(grouping: DocumentGrouping) -> DispatchGrouping:
    """Turn interval -> document -> task -> users into interval -> user -> document -> tasks."""
    inverted: DispatchGrouping = {}
    for interval_key, documents in grouping.items():
        users: dict[str, dict[str, list[str]]] = {}
        for document_id, tasks in documents.items():
            for task_id, user_ids in tasks.items():
                for user_id in user_ids:
                    users.setdefault(user_id, {}).setdefault(document_id, []).append(task_id)
        pruned = {user: docs for user, docs in users.items() if any(docs.values())}
        if pruned:
            inverted[interval_key] = pruned
    return inverted


def regroup_by_document(grouping: DispatchGrouping) -> DocumentGrouping:
    """Rebuild the document-centric view from a dispatch grouping."""
    regrouped: DocumentGrouping = {}
    for interval_key, user_id, document_id, task_id in iter_dispatch_entries(grouping):
        (
            regrouped.setdefault(interval_key, {})
            .setdefault(document_id, {})
            .setdefault(task_id, [])
            .append(user_id)
        )
    return regrouped


def iter_dispatch_entries(grouping: DispatchGrouping) -> Iterator[tuple[str, str, str, str]]:
    """Yield ``(interval, user, document, task_id)`` for every dispatch entry."""
    for interval_key, users in grouping.items():
        for user_id, documents in users.items():
            for document_id, task_ids in documents.items():
                for task_id in task_ids:
                    yield interval_key, user_id, document_id, task_id


class ReminderAggregator:
    """Compute which task reminders are due for the current hour."""

    def __init__(
        self,
        query: TaskRecordQuery,
        *,
        window_calculator: Callable[[datetime], list[ReminderWindow]] = reminder_windows,
    ) -> None:
        self._query = query
        self._window_calculator = window_calculator

    def collect_document_grouping(self, now: datetime | None = None) -> DocumentGrouping:
        """Build interval -> document -> task id -> users for every window.

        Raises whatever the query boundary raises; ``get_due_reminders`` owns
        the fail-closed policy.
        """
        reference = to_utc(now or utc_now())
        grouping: DocumentGrouping = {}
        for window in self._window_calculator(reference):
            try:
                records = self._query.find_records_due_between(window.start, window.end)
            except Exception:
                logger.error("Due-between query failed: interval=%s", window.interval_key)
                raise
            documents: dict[str, dict[str, list[str]]] = {}
            for record in records:
                if not qualifies_for_window(record, window):
                    continue
                documents.setdefault(record.document_id, {})[record.task_id] = list(
                    record.responsible
                )
            if documents:
                grouping[window.interval_key] = documents
        return grouping

    def get_due_reminders(self, now: datetime | None = None) -> DispatchGrouping:
        """Return interval -> user -> document -> task ids, or {} if any window query fails."""
        try:
            grouping = self.collect_document_grouping(now)
        except Exception:
            logger.exception("Failed to get due tasks; skipping reminders for this run")
            return {}
        dispatch = invert_grouping(grouping)
        logger.info(
            "Computed due reminders: intervals=%s entries=%s",
            len(dispatch),
            sum(1 for _ in iter_dispatch_entries(dispatch)),
        )
        return dispatch


__all__ = [
    "ReminderAggregator",
    "invert_grouping",
    "iter_dispatch_entries",
    "qualifies_for_window",
    "regroup_by_document",
]
