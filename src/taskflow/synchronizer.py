"""Document change callback that keeps task records in sync with directives."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from functools import partial
from typing import Callable

from config import TaskflowConfig, settings
from logging_config import log_context
from taskflow.directives import has_directive_marker, rewrite_document, scan_directives
from taskflow.domain import ReconciliationPlan
from taskflow.identifiers import TaskIdGenerator
from taskflow.notifications import TaskNotifier, build_task_url, dispatch_notifications
from taskflow.reconciler import make_user_resolver, parse_due_date_value, reconcile
from taskflow.repository import TaskRecordRepository
from time_utils import get_local_timezone

logger = logging.getLogger(__name__)


class DocumentTaskSynchronizer:
    """Apply directive reconciliation whenever a document's text changes."""

    def __init__(
        self,
        repository: TaskRecordRepository,
        notifier: TaskNotifier,
        *,
        config: TaskflowConfig | None = None,
        id_generator: Callable[[], str] | None = None,
        resolve_user: Callable[[str], str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._notifier = notifier
        self._config = config or settings.taskflow
        self._id_generator = id_generator or TaskIdGenerator(
            prefix_length=self._config.id_prefix_length
        )
        self._resolve_user = resolve_user or make_user_resolver(self._config.user_namespace)
        self._clock = clock

    def on_document_content_changed(
        self,
        document_id: str,
        old_content: str | None,
        new_content: str | None,
        acting_user: str,
    ) -> ReconciliationPlan:
        """Synchronize task records for one changed document.

        Storage failures propagate as ``TaskStorageError``; nothing is
        notified or rewritten for a document whose plan was not persisted.
        """
        with log_context({"document_id": document_id}):
            if document_id in self._config.excluded_documents:
                return ReconciliationPlan(document_id=document_id, status="skipped")
            if old_content == new_content:
                logger.debug("Document content unchanged; skipping task synchronization")
                return ReconciliationPlan(document_id=document_id, status="skipped")
            if not has_directive_marker(new_content):
                return self._clear(document_id)
            return self._synchronize(document_id, new_content or "", acting_user)

    def _clear(self, document_id: str) -> ReconciliationPlan:
        removed = self._repository.delete_all_for_document(document_id)
        if removed:
            logger.info("Removed task records for document without directives: count=%s", len(removed))
        return ReconciliationPlan(document_id=document_id, status="cleared", to_delete=removed)

    def _synchronize(self, document_id: str, content: str, acting_user: str) -> ReconciliationPlan:
        directives = scan_directives(content)
        existing = self._repository.list_for_document(document_id)
        plan = reconcile(
            document_id,
            directives,
            existing,
            acting_user=acting_user,
            parse_due_date=partial(
                parse_due_date_value,
                date_format=self._config.date_format,
                tz=get_local_timezone(),
            ),
            build_url=partial(build_task_url, base_url=self._config.base_url),
            resolve_user=self._resolve_user,
            id_generator=self._id_generator,
            default_done=self._config.default_done,
        )
        now = self._clock() if self._clock is not None else None
        self._repository.apply_plan(plan, now=now)

        if plan.assignments:
            sent, failed = dispatch_notifications(self._notifier, plan.assignments)
            logger.info("Dispatched assignment notifications: sent=%s failed=%s", sent, failed)

        rewritten = None
        if plan.id_writebacks:
            rewritten = rewrite_document(content, plan.id_writebacks)

        logger.info(
            "Synchronized document tasks: directives=%s created=%s updated=%s deleted=%s",
            len(plan.found_ids),
            len(plan.to_create),
            len(plan.to_update),
            len(plan.to_delete),
        )
        return replace(plan, content=rewritten)


__all__ = ["DocumentTaskSynchronizer"]
